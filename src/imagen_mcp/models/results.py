"""Tagged results returned by tool executors and their job projection.

Executors must return one of the result variants below. The queue turns
them into a tool-agnostic projection (output locators plus a media type)
that is persisted as ``Job.result``.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from imagen_mcp.errors.exceptions import ResultFormatError


class ResourceResult(BaseModel):
    """A single saved image."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["resource"] = "resource"
    uri: str
    path: str | None = None
    mime_type: str = "image/png"
    text: str = ""


class MultiResourceResult(BaseModel):
    """Several saved images from one request."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["resources"] = "resources"
    uris: list[str] = Field(min_length=1)
    paths: list[str] = Field(default_factory=list)
    mime_type: str = "image/png"
    text: str = ""


class MessageResult(BaseModel):
    """Text-only outcome (e.g. base64 mode, informational tools)."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["message"] = "message"
    text: str


ToolResult = Annotated[
    Union[ResourceResult, MultiResourceResult, MessageResult],
    Field(discriminator="kind"),
]


def normalize_result(result: Any) -> dict[str, Any]:
    """Project an executor result onto the persisted job result shape.

    Raises:
        ResultFormatError: If ``result`` is not one of the tagged variants.
    """
    if isinstance(result, ResourceResult):
        return {
            "output_path": result.path or result.uri,
            "uri": result.uri,
            "mime_type": result.mime_type,
        }
    if isinstance(result, MultiResourceResult):
        return {
            "output_paths": result.paths or list(result.uris),
            "uris": list(result.uris),
            "mime_type": result.mime_type,
        }
    if isinstance(result, MessageResult):
        return {"message": result.text}
    raise ResultFormatError(f"Invalid tool result format: {type(result).__name__}")


def primary_output(job_result: dict[str, Any] | None) -> str | None:
    """First output locator of a persisted job result, if any."""
    if not job_result:
        return None
    if job_result.get("output_path"):
        return job_result["output_path"]
    paths = job_result.get("output_paths") or []
    return paths[0] if paths else None
