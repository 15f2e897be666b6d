"""Base executor interface for Imagen tools."""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from imagen_mcp.config import Settings
from imagen_mcp.db.base import utcnow
from imagen_mcp.errors.exceptions import ValidationError
from imagen_mcp.models.history import ImageRecord, params_hash
from imagen_mcp.models.results import MultiResourceResult, ResourceResult, ToolResult
from imagen_mcp.repositories.history_repo import HistoryStore
from imagen_mcp.services.imagen_client import ImagenClient
from imagen_mcp.services.output_paths import OutputManager

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

MODELS_WITH_2K = ("imagen-4.0-generate-001", "imagen-4.0-ultra-generate-001")

# Request parameters copied onto history records when present
_HISTORY_FIELDS = (
    "aspect_ratio",
    "sample_count",
    "sample_image_size",
    "safety_level",
    "person_generation",
    "language",
)


@dataclass
class ExecutorContext:
    """Long-lived collaborators shared by every executor invocation."""

    settings: Settings
    client: ImagenClient
    outputs: OutputManager
    history: HistoryStore | None = None


def safety_settings(level: str) -> list[dict[str, str]]:
    return [{"category": c, "threshold": level} for c in SAFETY_CATEGORIES]


def require_prompt(params: dict[str, Any]) -> str:
    prompt = params.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("prompt is required and must be a string")
    return prompt


def check_sample_count(sample_count: Any) -> int:
    if not isinstance(sample_count, int) or not 1 <= sample_count <= 4:
        raise ValidationError("sample_count must be between 1 and 4")
    return sample_count


def check_sample_image_size(size: str | None, model: str) -> None:
    if size == "2K" and model not in MODELS_WITH_2K:
        raise ValidationError(
            "2K resolution is only supported by "
            f"{' and '.join(MODELS_WITH_2K)}. Current model \"{model}\" does not "
            "support 2K. Please use \"1K\" or switch to a 2K-compatible model."
        )


def saved_files(result: ToolResult) -> list[str]:
    """Paths written by a tool, empty for text-only results."""
    if isinstance(result, ResourceResult):
        return [result.path] if result.path else []
    if isinstance(result, MultiResourceResult):
        return list(result.paths)
    return []


class BaseExecutor(ABC):
    """Abstract base class for tool executors.

    Executors never touch job state. They return a tagged ``ToolResult`` or
    raise; the job queue owns every status transition.
    """

    tool_name: str = ""
    # Settings attribute naming the model used when the request names none
    default_model_setting: str = "imagen_model"

    @abstractmethod
    async def process(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        """Run the tool and return its result."""
        ...

    def history_fields(self, context: ExecutorContext, params: dict[str, Any]) -> dict[str, Any]:
        """Prompt, model and request settings stored with each saved image."""
        fields = {key: params[key] for key in _HISTORY_FIELDS if params.get(key) is not None}
        fields["prompt"] = params.get("prompt", "")
        fields["model"] = params.get("model") or getattr(context.settings, self.default_model_setting)
        return fields

    async def record_history(
        self, context: ExecutorContext, params: dict[str, Any], result: ToolResult
    ) -> None:
        """Write one history record per saved file.

        History is best effort: a storage failure is logged and the tool
        result is still returned.
        """
        history = getattr(context, "history", None)
        files = saved_files(result)
        if history is None or not files:
            return
        fields = self.history_fields(context, params)
        digest = params_hash(params)
        for file_path in files:
            record_id = str(uuid.uuid4())
            try:
                await history.record_image(
                    ImageRecord(
                        uuid=record_id,
                        file_path=file_path,
                        tool_name=self.tool_name,
                        created_at=utcnow(),
                        parameters=params,
                        params_hash=digest,
                        file_size=Path(file_path).stat().st_size,
                        mime_type=getattr(result, "mime_type", None),
                        **fields,
                    )
                )
            except Exception as exc:
                logger.warning("Failed to record image history for %s: %s", file_path, exc)
            else:
                logger.debug("Image history recorded: %s (%s)", record_id, file_path)

    async def execute(self, context: ExecutorContext, params: dict[str, Any]) -> ToolResult:
        started = time.monotonic()
        params = params or {}
        result = await self.process(context, params)
        logger.info(
            "%s finished in %.0fms (%s)",
            self.tool_name,
            (time.monotonic() - started) * 1000,
            getattr(result, "kind", type(result).__name__),
        )
        await self.record_history(context, params, result)
        return result
