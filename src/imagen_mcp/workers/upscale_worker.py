"""Executor for upscale jobs."""

from pathlib import Path
from typing import Any

from imagen_mcp.errors.exceptions import ValidationError
from imagen_mcp.models.results import ToolResult
from imagen_mcp.services.images import load_image_source, save_predictions
from imagen_mcp.workers.base import BaseExecutor, ExecutorContext

SCALE_FACTORS = ("2", "4")


def default_upscale_path(input_path: str, scale_factor: str) -> str:
    path = Path(input_path)
    return str(path.with_name(f"upscaled_{scale_factor}x_{path.name}"))


class UpscaleImageExecutor(BaseExecutor):
    tool_name = "upscale_image"

    def history_fields(self, context: ExecutorContext, params: dict[str, Any]) -> dict[str, Any]:
        scale_factor = str(params.get("scale_factor", "2"))
        return {
            "prompt": f"Upscale {scale_factor}x: {params.get('input_path')}",
            "model": context.settings.upscale_model,
            "sample_count": 1,
        }

    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        input_path = params.get("input_path")
        if not isinstance(input_path, str) or not input_path.strip():
            raise ValidationError("input_path is required and must be a string")
        scale_factor = str(params.get("scale_factor", "2"))
        if scale_factor not in SCALE_FACTORS:
            raise ValidationError("scale_factor must be '2' or '4'")

        resolved = Path(input_path).expanduser()
        if not resolved.is_absolute():
            resolved = context.outputs.output_dir / resolved
        source = load_image_source(None, str(resolved), "Input image", required=True)

        body = {
            "instances": [{"prompt": "", "image": {"bytesBase64Encoded": source.base64}}],
            "parameters": {
                "mode": "upscale",
                "upscaleConfig": {"upscaleFactor": f"x{scale_factor}"},
                "sampleCount": 1,
            },
        }
        predictions = await context.client.predict(
            context.settings.upscale_model, body, params.get("region")
        )

        info = f"Image upscaled successfully!\n\nInput: {input_path}\nScale factor: {scale_factor}"
        return save_predictions(
            context.outputs,
            predictions[:1],
            params.get("output_path") or default_upscale_path(input_path, scale_factor),
            info,
            return_base64=bool(params.get("return_base64", False)),
        )
