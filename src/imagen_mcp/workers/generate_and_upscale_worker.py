"""Executor for generate_and_upscale jobs: generate one image, then upscale it."""

import logging
import time
from pathlib import Path
from typing import Any

from imagen_mcp.errors.exceptions import ExecutorError
from imagen_mcp.models.results import MessageResult, ResourceResult, ToolResult
from imagen_mcp.workers.base import BaseExecutor, ExecutorContext, check_sample_image_size, require_prompt
from imagen_mcp.workers.generate_worker import GenerateImageExecutor
from imagen_mcp.workers.upscale_worker import UpscaleImageExecutor

logger = logging.getLogger(__name__)


class GenerateAndUpscaleExecutor(BaseExecutor):
    tool_name = "generate_and_upscale_image"

    def history_fields(self, context: ExecutorContext, params: dict[str, Any]) -> dict[str, Any]:
        return {**super().history_fields(context, params), "sample_count": 1}

    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        prompt = require_prompt(params)
        model = params.get("model") or context.settings.imagen_model
        check_sample_image_size(params.get("sample_image_size"), model)
        scale_factor = str(params.get("scale_factor", "2"))

        temp_name = f"temp_generated_{int(time.time() * 1000)}.png"
        generate_params = {
            key: params[key]
            for key in (
                "aspect_ratio", "safety_level", "person_generation",
                "language", "region", "sample_image_size",
            )
            if params.get(key) is not None
        }
        generated = await GenerateImageExecutor().process(
            context,
            {**generate_params, "prompt": prompt, "model": model, "output_path": temp_name},
        )
        if not isinstance(generated, ResourceResult) or not generated.path:
            raise ExecutorError("Generation step did not produce an image file")

        temp_path = Path(generated.path)
        try:
            upscaled = await UpscaleImageExecutor().process(
                context,
                {
                    "input_path": str(temp_path),
                    "output_path": params.get("output_path") or "generated_upscaled_image.png",
                    "scale_factor": scale_factor,
                    "return_base64": params.get("return_base64", False),
                    "region": params.get("region"),
                },
            )
        finally:
            try:
                temp_path.unlink()
            except OSError:
                logger.debug("Could not remove temporary image %s", temp_path)

        info = (
            f"Image generated and upscaled successfully!\n\nPrompt: {prompt}\n"
            f"Model: {model}\nScale factor: {scale_factor}"
        )
        if isinstance(upscaled, MessageResult):
            return MessageResult(text=f"{info}\n\n{upscaled.text}")
        return upscaled.model_copy(update={"text": f"{info}\n\n{upscaled.text}"})
