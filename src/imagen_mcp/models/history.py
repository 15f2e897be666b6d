"""Pydantic models for image history records."""

import hashlib
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def params_hash(params: dict[str, Any]) -> str:
    """SHA-256 of the parameters serialized with sorted keys."""
    payload = json.dumps(params, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ImageRecord(BaseModel):
    """One saved image and the request that produced it."""

    model_config = ConfigDict(extra="forbid")

    uuid: str
    file_path: str
    tool_name: str
    prompt: str
    created_at: datetime
    model: str | None = None
    aspect_ratio: str | None = None
    sample_count: int | None = None
    sample_image_size: str | None = None
    safety_level: str | None = None
    person_generation: str | None = None
    language: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    params_hash: str
    success: bool = True
    error_message: str | None = None
    file_size: int | None = None
    mime_type: str | None = None


class HistoryFilters(BaseModel):
    """Optional filters shared by history listing and search."""

    tool_name: str | None = None
    model: str | None = None
    aspect_ratio: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


HistorySortField = Literal["created_at", "file_size"]
SortOrder = Literal["asc", "desc"]
