"""Executor for generate jobs (text-to-image)."""

import logging
from typing import Any

from imagen_mcp.models.results import ToolResult
from imagen_mcp.services.images import save_predictions
from imagen_mcp.workers.base import (
    BaseExecutor,
    ExecutorContext,
    check_sample_count,
    check_sample_image_size,
    require_prompt,
    safety_settings,
)

logger = logging.getLogger(__name__)


def build_generate_body(params: dict[str, Any], prompt: str, sample_count: int) -> dict[str, Any]:
    parameters: dict[str, Any] = {
        "sampleCount": sample_count,
        "aspectRatio": params.get("aspect_ratio", "1:1"),
        "safetySettings": safety_settings(params.get("safety_level", "BLOCK_MEDIUM_AND_ABOVE")),
        "personGeneration": params.get("person_generation", "DONT_ALLOW"),
        "language": params.get("language", "auto"),
    }
    if params.get("sample_image_size"):
        parameters["sampleImageSize"] = params["sample_image_size"]
    return {"instances": [{"prompt": prompt}], "parameters": parameters}


class GenerateImageExecutor(BaseExecutor):
    tool_name = "generate_image"

    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        prompt = require_prompt(params)
        sample_count = check_sample_count(params.get("sample_count", 1))
        model = params.get("model") or context.settings.imagen_model
        check_sample_image_size(params.get("sample_image_size"), model)

        body = build_generate_body(params, prompt, sample_count)
        logger.debug(
            "generate_image: model=%s aspect=%s samples=%d",
            model, body["parameters"]["aspectRatio"], sample_count,
        )
        predictions = await context.client.predict(model, body, params.get("region"))

        info = (
            f"Image generated successfully!\n\nPrompt: {prompt}\n"
            f"Aspect ratio: {body['parameters']['aspectRatio']}\nModel: {model}"
        )
        return save_predictions(
            context.outputs,
            predictions,
            params.get("output_path") or "generated_image.png",
            info,
            return_base64=bool(params.get("return_base64", False)),
        )
