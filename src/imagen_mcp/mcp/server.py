"""MCP protocol adapter exposing the job queue and Imagen executors as tools."""

import json
import logging
from typing import Any

import jsonschema
import pydantic
from sqlalchemy.exc import SQLAlchemyError

from imagen_mcp.errors.exceptions import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    ConflictError,
    ImagenMCPError,
    NotFoundError,
    ValidationError,
)
from imagen_mcp.models.enums import JobStatus
from imagen_mcp.models.history import HistoryFilters
from imagen_mcp.models.job import Job
from imagen_mcp.models.results import MessageResult, MultiResourceResult, ResourceResult, ToolResult
from imagen_mcp.repositories.history_repo import HistoryStore
from imagen_mcp.workers.queue import JobQueue

from .tools import IMAGE_TOOL_JOB_TYPES, TOOL_DEFINITIONS, TOOLS_BY_NAME

logger = logging.getLogger(__name__)


def _text(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


def _iso(value) -> str:
    return value.isoformat() if value else ""


def _preview(prompt: str, width: int = 80) -> str:
    return prompt if len(prompt) <= width else prompt[:width] + "..."


def _history_filters(raw: dict | None) -> HistoryFilters | None:
    if not raw:
        return None
    try:
        return HistoryFilters.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid history filters: {exc.errors()[0]['msg']}") from exc


def tool_result_content(result: ToolResult) -> dict:
    """Render an executor result as MCP tool content."""
    if isinstance(result, MessageResult):
        return _text(result.text)
    content: list[dict[str, Any]] = [{"type": "text", "text": result.text}]
    uris = [result.uri] if isinstance(result, ResourceResult) else list(result.uris)
    for uri in uris:
        content.append(
            {"type": "resource", "resource": {"uri": uri, "mimeType": result.mime_type, "text": uri}}
        )
    return {"content": content}


def validate_arguments(tool_name: str, arguments: dict[str, Any]) -> None:
    schema = TOOLS_BY_NAME[tool_name]["inputSchema"]
    try:
        jsonschema.validate(instance=arguments, schema=schema)
    except jsonschema.ValidationError as exc:
        path = ".".join(str(p) for p in exc.absolute_path)
        where = f" ({path})" if path else ""
        raise ValidationError(f"Invalid arguments for {tool_name}{where}: {exc.message}") from exc


class MCPServer:
    """Model Context Protocol server for Vertex AI Imagen.

    Job tools go through the queue; image tools run their executor inline;
    history tools read the image history store.
    Errors are raised as ``ImagenMCPError`` for the transport to map.
    """

    def __init__(self, queue: JobQueue, history: HistoryStore | None = None) -> None:
        self.queue = queue
        self.history = history or getattr(queue.context, "history", None)

    def list_tools(self) -> list[dict]:
        """Return available tool definitions."""
        return TOOL_DEFINITIONS

    async def call_tool(self, tool_name: str, arguments: dict[str, Any] | None) -> dict:
        """Validate arguments and dispatch a tool call."""
        handler = self._route(tool_name)
        if handler is None:
            raise ImagenMCPError(METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")
        arguments = arguments or {}
        validate_arguments(tool_name, arguments)
        try:
            return await handler(arguments)
        except ImagenMCPError as exc:
            logger.warning("MCP tool %s failed: %s", tool_name, exc.message)
            raise

    def _route(self, tool_name: str):
        if tool_name in IMAGE_TOOL_JOB_TYPES:
            return lambda args: self._run_image_tool(tool_name, args)
        routes = {
            "start_generation_job": self._start_generation_job,
            "check_job_status": self._check_job_status,
            "get_job_result": self._get_job_result,
            "list_jobs": self._list_jobs,
            "cancel_job": self._cancel_job,
            "list_history": self._list_history,
            "search_history": self._search_history,
            "get_history_by_uuid": self._get_history_by_uuid,
        }
        return routes.get(tool_name)

    async def _require_job(self, job_id: str) -> Job:
        job = await self.queue.get_job(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    # --- Job tools ---

    async def _start_generation_job(self, args: dict) -> dict:
        tool_type = args["tool_type"]
        job_id = await self.queue.create_job(tool_type, args["params"])
        return _text(
            f"Job created successfully!\n\nJob ID: {job_id}\nType: {tool_type}\nStatus: pending\n\n"
            "Use check_job_status to monitor progress and get_job_result to retrieve "
            "the output when completed."
        )

    async def _check_job_status(self, args: dict) -> dict:
        job = await self._require_job(args["job_id"])
        lines = [
            f"Job ID: {job.id}",
            f"Type: {job.type}",
            f"Status: {job.status}",
            f"Created: {_iso(job.created_at)}",
        ]
        if job.started_at:
            lines.append(f"Started: {_iso(job.started_at)}")
        if job.completed_at:
            lines.append(f"Completed: {_iso(job.completed_at)}")
        if job.error:
            lines.append(f"Error: {job.error}")

        if job.status is JobStatus.COMPLETED:
            lines.append("\nJob completed successfully! Use get_job_result to retrieve the output.")
        elif job.status is JobStatus.RUNNING:
            lines.append("\nJob is currently running...")
        elif job.status is JobStatus.PENDING:
            lines.append("\nJob is pending execution...")
        return _text("\n".join(lines))

    async def _get_job_result(self, args: dict) -> dict:
        job = await self._require_job(args["job_id"])
        if job.status in (JobStatus.PENDING, JobStatus.RUNNING):
            raise ConflictError(f"Job is still {job.status}. Current status: {job.status}")
        if job.status is JobStatus.FAILED:
            raise ConflictError(f"Job failed: {job.error or 'Unknown error'}")
        if not job.result:
            raise ImagenMCPError(INTERNAL_ERROR, "Job completed but no result found")

        lines = [
            "Job completed successfully!",
            f"\nJob ID: {job.id}",
            f"Type: {job.type}",
            f"Completed: {_iso(job.completed_at)}",
            "\nResult:",
        ]
        result = job.result
        if result.get("output_path"):
            lines.append(f"Output: {result['output_path']}")
            lines.append(f"URI: {result.get('uri')}")
            lines.append(f"MIME Type: {result.get('mime_type')}")
        elif result.get("output_paths"):
            lines.append(f"Generated {len(result['output_paths'])} image(s):")
            lines.extend(f"  {i}. {p}" for i, p in enumerate(result["output_paths"], start=1))
        else:
            lines.append(str(result.get("message", "")))
        return _text("\n".join(lines))

    async def _list_jobs(self, args: dict) -> dict:
        status = JobStatus(args["status"]) if args.get("status") else None
        jobs = await self.queue.list_jobs(status, args.get("limit", 50))
        if not jobs:
            suffix = f" with status '{status}'" if status else ""
            return _text(f"No jobs found{suffix}.")

        lines = ["Jobs:\n"]
        for i, job in enumerate(jobs, start=1):
            lines.append(f"{i}. Job ID: {job.id}")
            lines.append(f"   Type: {job.type}")
            lines.append(f"   Status: {job.status}")
            lines.append(f"   Created: {_iso(job.created_at)}")
            if job.started_at:
                lines.append(f"   Started: {_iso(job.started_at)}")
            if job.completed_at:
                lines.append(f"   Completed: {_iso(job.completed_at)}")
            if job.error:
                lines.append(f"   Error: {job.error}")
            lines.append("")
        lines.append(f"Total: {len(jobs)} job(s)")
        if status:
            lines.append(f"Filter: status = {status}")
        return _text("\n".join(lines))

    async def _cancel_job(self, args: dict) -> dict:
        job_id = args["job_id"]
        if not await self.queue.cancel_job(job_id):
            job = await self._require_job(job_id)
            raise ConflictError(
                f"Cannot cancel job in {job.status} status. "
                "Only pending and running jobs can be cancelled."
            )
        return _text(f"Job {job_id} has been cancelled successfully.")

    # --- Image tools ---

    async def _run_image_tool(self, tool_name: str, args: dict) -> dict:
        executor = self.queue.executor_for(IMAGE_TOOL_JOB_TYPES[tool_name])
        result = await executor.execute(self.queue.context, args)
        return tool_result_content(result)

    # --- History tools ---

    def _require_history(self) -> HistoryStore:
        if self.history is None:
            raise ImagenMCPError(INTERNAL_ERROR, "Image history is not available")
        return self.history

    async def _list_history(self, args: dict) -> dict:
        history = self._require_history()
        filters = _history_filters(args.get("filters"))
        limit = args.get("limit", 50)
        try:
            records = await history.list_images(
                filters,
                args.get("sort_by", "created_at"),
                args.get("sort_order", "desc"),
                limit,
                args.get("offset", 0),
            )
        except SQLAlchemyError as exc:
            raise ImagenMCPError(INTERNAL_ERROR, f"Failed to list image history: {exc}") from exc
        if not records:
            return _text("No image history found matching the specified filters.")

        lines = [f"Found {len(records)} image(s) in history:\n"]
        for record in records:
            lines.append(f"UUID: {record.uuid}")
            lines.append(f"  Tool: {record.tool_name}")
            lines.append(f"  Prompt: {_preview(record.prompt)}")
            lines.append(f"  Model: {record.model or 'N/A'}")
            lines.append(f"  Created: {_iso(record.created_at)}")
            lines.append(f"  File: {record.file_path}")
            if record.aspect_ratio:
                lines.append(f"  Aspect Ratio: {record.aspect_ratio}")
            if record.sample_image_size:
                lines.append(f"  Resolution: {record.sample_image_size}")
            size = record.file_size if record.file_size is not None else "N/A"
            lines.append(f"  File Size: {size} bytes")
            lines.append(f"  Success: {'Yes' if record.success else 'No'}")
            if record.error_message:
                lines.append(f"  Error: {record.error_message}")
            lines.append("")
        if len(records) == limit:
            lines.append(f"Showing first {limit} results. Use offset parameter to see more.")
        return _text("\n".join(lines).rstrip())

    async def _search_history(self, args: dict) -> dict:
        history = self._require_history()
        query = args["query"]
        limit = args.get("limit", 50)
        try:
            records = await history.search_images(query, _history_filters(args.get("filters")), limit)
        except SQLAlchemyError as exc:
            raise ImagenMCPError(INTERNAL_ERROR, f"Failed to search image history: {exc}") from exc
        if not records:
            return _text(f'No images found matching the search query: "{query}"')

        lines = [f'Found {len(records)} image(s) matching "{query}":\n']
        for record in records:
            lines.append(f"UUID: {record.uuid}")
            lines.append(f"  Tool: {record.tool_name}")
            lines.append(f"  Prompt: {_preview(record.prompt)}")
            lines.append(f"  Model: {record.model or 'N/A'}")
            lines.append(f"  Created: {_iso(record.created_at)}")
            lines.append(f"  File: {record.file_path}")
            lines.append("")
        if len(records) == limit:
            lines.append(
                f"Showing first {limit} results. Refine your search query to see more "
                "specific results."
            )
        return _text("\n".join(lines).rstrip())

    async def _get_history_by_uuid(self, args: dict) -> dict:
        history = self._require_history()
        record = await history.get_image(args["uuid"])
        if record is None:
            return _text(f"No image history found for UUID: {args['uuid']}")

        lines = [
            "Image History Details:\n",
            f"UUID: {record.uuid}",
            f"Tool: {record.tool_name}",
            f"File Path: {record.file_path}",
            f"Created: {_iso(record.created_at)}",
            f"\nPrompt:\n{record.prompt}",
            "\nGeneration Parameters:",
            f"  Model: {record.model or 'N/A'}",
        ]
        optional = (
            ("Aspect Ratio", record.aspect_ratio),
            ("Sample Count", record.sample_count),
            ("Resolution", record.sample_image_size),
            ("Safety Level", record.safety_level),
            ("Person Generation", record.person_generation),
            ("Language", record.language),
        )
        lines.extend(f"  {label}: {value}" for label, value in optional if value is not None)
        size = record.file_size if record.file_size is not None else "N/A"
        lines += [
            "\nFile Information:",
            f"  Size: {size} bytes",
            f"  MIME Type: {record.mime_type or 'N/A'}",
            f"  Success: {'Yes' if record.success else 'No'}",
        ]
        if record.error_message:
            lines.append(f"  Error: {record.error_message}")
        lines += [
            "\nIntegrity:",
            f"  Parameters Hash: {record.params_hash[:16]}...",
            "\nFull Parameters (JSON):",
            json.dumps(record.parameters, indent=2, ensure_ascii=False),
        ]
        return _text("\n".join(lines))
