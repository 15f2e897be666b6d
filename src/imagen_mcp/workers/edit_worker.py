"""Executor for edit jobs (inpainting, background swap, outpainting)."""

import logging
from typing import Any

from imagen_mcp.errors.exceptions import ValidationError
from imagen_mcp.models.results import ToolResult
from imagen_mcp.services.images import ImageSource, load_image_source, save_predictions
from imagen_mcp.workers.base import BaseExecutor, ExecutorContext, check_sample_count, require_prompt

logger = logging.getLogger(__name__)

EDIT_MODES = {
    "inpaint_removal": "EDIT_MODE_INPAINT_REMOVAL",
    "inpaint_insertion": "EDIT_MODE_INPAINT_INSERTION",
    "bgswap": "EDIT_MODE_BGSWAP",
    "outpainting": "EDIT_MODE_OUTPAINT",
    "mask_free": "EDIT_MODE_DEFAULT",
}

AUTO_MASK_MODES = {
    "background": "MASK_MODE_BACKGROUND",
    "foreground": "MASK_MODE_FOREGROUND",
    "semantic": "MASK_MODE_SEMANTIC",
}


def _reference(source: ImageSource) -> dict[str, Any]:
    ref: dict[str, Any] = {"bytesBase64Encoded": source.base64}
    if source.mime_type:
        ref["mimeType"] = source.mime_type
    return ref


def build_reference_images(params: dict[str, Any]) -> list[dict[str, Any]]:
    """Raw reference image plus an optional mask reference."""
    mask_mode = params.get("mask_mode")
    dilation = params.get("mask_dilation", 0.01)
    has_mask_image = bool(params.get("mask_image_base64") or params.get("mask_image_path"))

    if mask_mode == "semantic" and not params.get("mask_classes"):
        raise ValidationError(
            "mask_classes array is required and must not be empty when mask_mode is 'semantic'"
        )
    if has_mask_image and mask_mode not in (None, "user_provided"):
        raise ValidationError(
            "mask_image_base64/mask_image_path can only be used when mask_mode is 'user_provided'"
        )
    if mask_mode and mask_mode != "mask_free" and not 0 <= dilation <= 1:
        raise ValidationError("mask_dilation must be between 0 and 1")

    base = load_image_source(
        params.get("reference_image_base64"),
        params.get("reference_image_path"),
        "Reference image",
        required=True,
    )
    references = [
        {"referenceType": "REFERENCE_TYPE_RAW", "referenceId": 0, "referenceImage": _reference(base)}
    ]

    if mask_mode == "user_provided":
        mask = load_image_source(
            params.get("mask_image_base64"), params.get("mask_image_path"), "Mask image"
        )
        if mask is not None:
            references.append(
                {
                    "referenceType": "REFERENCE_TYPE_MASK",
                    "referenceId": 1,
                    "referenceImage": _reference(mask),
                    "maskImageConfig": {"maskMode": "MASK_MODE_USER_PROVIDED", "dilation": dilation},
                }
            )
        else:
            logger.debug("mask_mode is 'user_provided' but no mask image given, editing without mask")
    elif mask_mode in AUTO_MASK_MODES:
        config: dict[str, Any] = {"maskMode": AUTO_MASK_MODES[mask_mode], "dilation": dilation}
        if mask_mode == "semantic":
            config["maskClasses"] = params["mask_classes"]
        references.append(
            {"referenceType": "REFERENCE_TYPE_MASK", "referenceId": 1, "maskImageConfig": config}
        )
    return references


class EditImageExecutor(BaseExecutor):
    tool_name = "edit_image"
    default_model_setting = "edit_model"

    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        prompt = require_prompt(params)
        sample_count = check_sample_count(params.get("sample_count", 1))
        if params.get("sample_image_size") == "2K":
            raise ValidationError(
                "The edit_image tool uses Imagen 3 capability models which do not support 2K. "
                "Please use \"1K\" or omit sample_image_size."
            )
        model = params.get("model") or context.settings.edit_model
        mask_mode = params.get("mask_mode")
        edit_mode = params.get("edit_mode", "inpaint_insertion")

        references = build_reference_images(params)
        parameters: dict[str, Any] = {
            "editMode": (
                "EDIT_MODE_DEFAULT"
                if not mask_mode or mask_mode == "mask_free"
                else EDIT_MODES.get(edit_mode, "EDIT_MODE_DEFAULT")
            ),
            "sampleCount": sample_count,
        }
        base_steps = params.get("base_steps")
        if base_steps is not None:
            if not isinstance(base_steps, int) or base_steps < 1:
                raise ValidationError("base_steps must be a positive number")
            parameters["editConfig"] = {"baseSteps": base_steps}
        if params.get("guidance_scale") is not None:
            parameters["guidanceScale"] = params["guidance_scale"]
        if params.get("negative_prompt"):
            parameters["negativePrompt"] = params["negative_prompt"]
        if params.get("sample_image_size"):
            parameters["sampleImageSize"] = params["sample_image_size"]

        body = {"instances": [{"prompt": prompt, "referenceImages": references}], "parameters": parameters}
        logger.debug(
            "edit_image: model=%s edit=%s mask=%s refs=%d",
            model, edit_mode, mask_mode, len(references),
        )
        predictions = await context.client.predict(model, body, params.get("region"))

        info = (
            f"Image edited successfully!\n\nPrompt: {prompt}\nModel: {model}\n"
            f"Edit mode: {edit_mode}\nMask mode: {mask_mode}\n"
            f"Mask applied: {'yes' if len(references) > 1 else 'no'}"
        )
        return save_predictions(
            context.outputs,
            predictions,
            params.get("output_path") or "edited_image.png",
            info,
            return_base64=bool(params.get("return_base64", False)),
        )
