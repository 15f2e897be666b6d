"""MCP tool definitions for the Imagen server.

Five job-layer tools, the synchronous image tools they wrap and three
image history tools.
"""

_ASPECT_RATIOS = ["1:1", "3:4", "4:3", "9:16", "16:9"]
_SAFETY_LEVELS = ["BLOCK_NONE", "BLOCK_ONLY_HIGH", "BLOCK_MEDIUM_AND_ABOVE", "BLOCK_LOW_AND_ABOVE"]
_PERSON_GENERATION = ["DONT_ALLOW", "ALLOW_ADULT", "ALLOW_ALL"]
_LANGUAGES = ["auto", "en", "zh", "zh-TW", "hi", "ja", "ko", "pt", "es"]
_JOB_TYPES = ["generate", "edit", "customize", "upscale", "generate_and_upscale"]
_JOB_STATUSES = ["pending", "running", "completed", "failed"]

_COMMON_OUTPUT = {
    "output_path": {"type": "string", "description": "File path, relative to the output directory unless absolute"},
    "return_base64": {"type": "boolean", "default": False, "description": "Return the image inline instead of saving it (deprecated)"},
    "include_thumbnail": {"type": "boolean"},
    "region": {"type": "string", "description": "Vertex AI region (default from configuration)"},
}

_GENERATION = {
    "aspect_ratio": {"type": "string", "enum": _ASPECT_RATIOS, "default": "1:1"},
    "safety_level": {"type": "string", "enum": _SAFETY_LEVELS, "default": "BLOCK_MEDIUM_AND_ABOVE"},
    "person_generation": {"type": "string", "enum": _PERSON_GENERATION, "default": "DONT_ALLOW"},
    "language": {"type": "string", "enum": _LANGUAGES, "default": "auto"},
    "model": {"type": "string"},
    "sample_count": {"type": "integer", "minimum": 1, "maximum": 4, "default": 1},
    "sample_image_size": {"type": "string", "enum": ["1K", "2K"]},
}

_IMAGE_REF = {
    "type": "object",
    "properties": {
        "image_base64": {"type": "string"},
        "image_path": {"type": "string"},
    },
}

_HISTORY_FILTERS = {
    "type": "object",
    "properties": {
        "tool_name": {"type": "string"},
        "model": {"type": "string"},
        "aspect_ratio": {"type": "string"},
        "date_from": {"type": "string", "format": "date-time", "description": "ISO 8601 timestamp"},
        "date_to": {"type": "string", "format": "date-time", "description": "ISO 8601 timestamp"},
    },
}

TOOL_DEFINITIONS = [
    # ─── Job queue ───────────────────────────────────
    {
        "name": "start_generation_job",
        "description": "Start an image job in the background and return its job ID immediately. Use check_job_status and get_job_result to follow it.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tool_type": {"type": "string", "enum": _JOB_TYPES},
                "params": {"type": "object", "description": "Arguments of the matching image tool"},
            },
            "required": ["tool_type", "params"],
        },
    },
    {
        "name": "check_job_status",
        "description": "Show the status and timestamps of a job.",
        "inputSchema": {
            "type": "object",
            "properties": {"job_id": {"type": "string", "minLength": 1}},
            "required": ["job_id"],
        },
    },
    {
        "name": "get_job_result",
        "description": "Get the output of a completed job.",
        "inputSchema": {
            "type": "object",
            "properties": {"job_id": {"type": "string", "minLength": 1}},
            "required": ["job_id"],
        },
    },
    {
        "name": "list_jobs",
        "description": "List jobs, newest first, optionally filtered by status.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": _JOB_STATUSES},
                "limit": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 50},
            },
        },
    },
    {
        "name": "cancel_job",
        "description": "Cancel a pending or running job. A running request is not interrupted; its result is discarded.",
        "inputSchema": {
            "type": "object",
            "properties": {"job_id": {"type": "string", "minLength": 1}},
            "required": ["job_id"],
        },
    },

    # ─── Image tools ─────────────────────────────────
    {
        "name": "generate_image",
        "description": "Generate images from a text prompt with Imagen.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "minLength": 1},
                **_GENERATION,
                **_COMMON_OUTPUT,
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "edit_image",
        "description": "Edit an image with a prompt: inpainting, object removal, background swap or outpainting.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "minLength": 1},
                "reference_image_base64": {"type": "string"},
                "reference_image_path": {"type": "string"},
                "mask_image_base64": {"type": "string"},
                "mask_image_path": {"type": "string"},
                "mask_mode": {"type": "string", "enum": ["mask_free", "user_provided", "background", "foreground", "semantic"]},
                "mask_classes": {"type": "array", "items": {"type": "integer"}},
                "mask_dilation": {"type": "number", "minimum": 0, "maximum": 1, "default": 0.01},
                "edit_mode": {"type": "string", "enum": ["inpaint_removal", "inpaint_insertion", "bgswap", "outpainting", "mask_free"]},
                "base_steps": {"type": "integer", "minimum": 1},
                "guidance_scale": {"type": "number"},
                "negative_prompt": {"type": "string"},
                "model": {"type": "string"},
                "sample_count": {"type": "integer", "minimum": 1, "maximum": 4, "default": 1},
                "sample_image_size": {"type": "string", "enum": ["1K"]},
                **_COMMON_OUTPUT,
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "customize_image",
        "description": "Generate an image guided by control, subject and/or style reference images.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "minLength": 1},
                "control_image_base64": {"type": "string"},
                "control_image_path": {"type": "string"},
                "control_type": {"type": "string", "enum": ["face_mesh", "canny", "scribble"]},
                "enable_control_computation": {"type": "boolean", "default": True},
                "subject_images": {"type": "array", "items": _IMAGE_REF},
                "subject_description": {"type": "string"},
                "subject_type": {"type": "string", "enum": ["person", "animal", "product", "default"]},
                "style_image_base64": {"type": "string"},
                "style_image_path": {"type": "string"},
                "style_description": {"type": "string"},
                "negative_prompt": {"type": "string"},
                **_GENERATION,
                **_COMMON_OUTPUT,
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "upscale_image",
        "description": "Upscale an existing image 2x or 4x.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": {"type": "string", "minLength": 1},
                "scale_factor": {"type": "string", "enum": ["2", "4"], "default": "2"},
                **_COMMON_OUTPUT,
            },
            "required": ["input_path"],
        },
    },
    {
        "name": "generate_and_upscale_image",
        "description": "Generate an image from a prompt and upscale it in one step.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "minLength": 1},
                "scale_factor": {"type": "string", "enum": ["2", "4"], "default": "2"},
                "aspect_ratio": _GENERATION["aspect_ratio"],
                "safety_level": _GENERATION["safety_level"],
                "person_generation": _GENERATION["person_generation"],
                "language": _GENERATION["language"],
                "model": _GENERATION["model"],
                "sample_image_size": _GENERATION["sample_image_size"],
                **_COMMON_OUTPUT,
            },
            "required": ["prompt"],
        },
    },

    # ─── Image history ───────────────────────────────
    {
        "name": "list_history",
        "description": "List previously saved images with their generation parameters.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filters": _HISTORY_FILTERS,
                "sort_by": {"type": "string", "enum": ["created_at", "file_size"], "default": "created_at"},
                "sort_order": {"type": "string", "enum": ["asc", "desc"], "default": "desc"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 50},
                "offset": {"type": "integer", "minimum": 0, "default": 0},
            },
        },
    },
    {
        "name": "search_history",
        "description": "Search saved images by prompt text.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "minLength": 1},
                "limit": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 50},
                "filters": _HISTORY_FILTERS,
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_history_by_uuid",
        "description": "Show every recorded detail of one saved image.",
        "inputSchema": {
            "type": "object",
            "properties": {"uuid": {"type": "string", "minLength": 1}},
            "required": ["uuid"],
        },
    },
]

TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOL_DEFINITIONS}

# Synchronous image tools and the job type that runs the same executor.
IMAGE_TOOL_JOB_TYPES = {
    "generate_image": "generate",
    "edit_image": "edit",
    "customize_image": "customize",
    "upscale_image": "upscale",
    "generate_and_upscale_image": "generate_and_upscale",
}
