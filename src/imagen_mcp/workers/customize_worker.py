"""Executor for customize jobs (control, subject and style reference images)."""

import logging
from typing import Any

from imagen_mcp.errors.exceptions import ValidationError
from imagen_mcp.models.results import ToolResult
from imagen_mcp.services.images import ImageSource, load_image_source, save_predictions
from imagen_mcp.workers.base import (
    BaseExecutor,
    ExecutorContext,
    check_sample_count,
    require_prompt,
    safety_settings,
)

logger = logging.getLogger(__name__)

CONTROL_TYPES = {
    "face_mesh": "CONTROL_TYPE_FACE_MESH",
    "canny": "CONTROL_TYPE_CANNY",
    "scribble": "CONTROL_TYPE_SCRIBBLE",
}

SUBJECT_TYPES = {
    "person": "SUBJECT_TYPE_PERSON",
    "animal": "SUBJECT_TYPE_ANIMAL",
    "product": "SUBJECT_TYPE_PRODUCT",
    "default": "SUBJECT_TYPE_DEFAULT",
}


def _image(source: ImageSource) -> dict[str, Any]:
    ref: dict[str, Any] = {"bytesBase64Encoded": source.base64}
    if source.mime_type:
        ref["mimeType"] = source.mime_type
    return ref


def build_customize_references(params: dict[str, Any]) -> list[dict[str, Any]]:
    has_control = bool(params.get("control_image_base64") or params.get("control_image_path"))
    subjects = params.get("subject_images") or []
    has_style = bool(params.get("style_image_base64") or params.get("style_image_path"))

    if not (has_control or subjects or has_style):
        raise ValidationError(
            "At least one reference image type must be provided (control, subject, or style)"
        )
    if has_control and not params.get("control_type"):
        raise ValidationError("control_type is required when control image is provided")
    if subjects and not params.get("subject_description"):
        raise ValidationError("subject_description is required when subject_images is provided")
    if subjects and not params.get("subject_type"):
        raise ValidationError("subject_type is required when subject_images is provided")

    type_count = sum((has_control, bool(subjects), has_style))
    aspect_ratio = params.get("aspect_ratio", "1:1")
    if type_count > 2 and aspect_ratio != "1:1":
        raise ValidationError(
            "API limitation: Cannot use more than 2 reference image types with non-square "
            f"aspect ratio {aspect_ratio}. Use aspect_ratio=\"1:1\" or reduce to 2 or fewer types."
        )

    references: list[dict[str, Any]] = []
    ref_id = 1
    if has_control:
        control = load_image_source(
            params.get("control_image_base64"), params.get("control_image_path"),
            "Control image", required=True,
        )
        control_type = params["control_type"]
        references.append(
            {
                "referenceType": "REFERENCE_TYPE_CONTROL",
                "referenceId": ref_id,
                "referenceImage": _image(control),
                "controlImageConfig": {
                    "controlType": CONTROL_TYPES.get(control_type, control_type),
                    "enableControlImageComputation": params.get("enable_control_computation", True),
                },
            }
        )
        ref_id += 1

    for subject in subjects:
        source = load_image_source(
            subject.get("image_base64"), subject.get("image_path"), "Subject image", required=True
        )
        references.append(
            {
                "referenceType": "REFERENCE_TYPE_SUBJECT",
                "referenceId": ref_id,
                "referenceImage": _image(source),
                "subjectImageConfig": {
                    "subjectType": SUBJECT_TYPES.get(params["subject_type"], "SUBJECT_TYPE_DEFAULT"),
                    "subjectDescription": params["subject_description"],
                },
            }
        )
        ref_id += 1

    if has_style:
        style = load_image_source(
            params.get("style_image_base64"), params.get("style_image_path"),
            "Style image", required=True,
        )
        style_config = {}
        if params.get("style_description"):
            style_config["styleDescription"] = params["style_description"]
        references.append(
            {
                "referenceType": "REFERENCE_TYPE_STYLE",
                "referenceId": ref_id,
                "referenceImage": _image(style),
                "styleImageConfig": style_config,
            }
        )
    return references


class CustomizeImageExecutor(BaseExecutor):
    tool_name = "customize_image"
    default_model_setting = "edit_model"

    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        prompt = require_prompt(params)
        sample_count = check_sample_count(params.get("sample_count", 1))
        if params.get("sample_image_size") == "2K":
            raise ValidationError(
                "The customize_image tool uses Imagen 3 capability models which do not support 2K. "
                "Please use \"1K\" or omit sample_image_size."
            )
        model = params.get("model") or context.settings.edit_model

        references = build_customize_references(params)
        parameters: dict[str, Any] = {
            "sampleCount": sample_count,
            "aspectRatio": params.get("aspect_ratio", "1:1"),
            "safetySettings": safety_settings(params.get("safety_level", "BLOCK_MEDIUM_AND_ABOVE")),
            "personGeneration": params.get("person_generation", "DONT_ALLOW"),
            "language": params.get("language", "auto"),
        }
        if params.get("negative_prompt"):
            parameters["negativePrompt"] = params["negative_prompt"]
        if params.get("sample_image_size"):
            parameters["sampleImageSize"] = params["sample_image_size"]

        body = {"instances": [{"prompt": prompt, "referenceImages": references}], "parameters": parameters}
        for ref in references:
            logger.debug("customize_image ref: type=%s id=%s", ref["referenceType"], ref["referenceId"])
        predictions = await context.client.predict(model, body, params.get("region"))

        info = (
            f"Image customized successfully!\n\nPrompt: {prompt}\nModel: {model}\n"
            f"Reference images: {len(references)}"
        )
        return save_predictions(
            context.outputs,
            predictions,
            params.get("output_path") or "customized_image.png",
            info,
            return_base64=bool(params.get("return_base64", False)),
        )
