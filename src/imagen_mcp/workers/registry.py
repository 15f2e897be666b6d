"""Executor registry mapping job types to executor classes."""

from imagen_mcp.models.enums import JobType
from imagen_mcp.workers.base import BaseExecutor


def _build_registry() -> dict[str, type[BaseExecutor]]:
    from imagen_mcp.workers.customize_worker import CustomizeImageExecutor
    from imagen_mcp.workers.edit_worker import EditImageExecutor
    from imagen_mcp.workers.generate_and_upscale_worker import GenerateAndUpscaleExecutor
    from imagen_mcp.workers.generate_worker import GenerateImageExecutor
    from imagen_mcp.workers.upscale_worker import UpscaleImageExecutor

    return {
        JobType.GENERATE: GenerateImageExecutor,
        JobType.EDIT: EditImageExecutor,
        JobType.CUSTOMIZE: CustomizeImageExecutor,
        JobType.UPSCALE: UpscaleImageExecutor,
        JobType.GENERATE_AND_UPSCALE: GenerateAndUpscaleExecutor,
    }


_registry: dict[str, type[BaseExecutor]] = {}


def _ensure_registry() -> None:
    if not _registry:
        _registry.update(_build_registry())


def register_executor(job_type: str, executor_class: type[BaseExecutor]) -> None:
    """Register an executor class for a job type."""
    _ensure_registry()
    _registry[job_type] = executor_class


def get_executor(job_type: str) -> BaseExecutor | None:
    """Get an executor instance for a job type."""
    _ensure_registry()
    cls = _registry.get(job_type)
    return cls() if cls else None

