"""Batch configuration and report models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from imagen_mcp.models.enums import BatchItemStatus

AspectRatio = Literal["1:1", "3:4", "4:3", "9:16", "16:9"]
SafetyLevel = Literal[
    "BLOCK_NONE", "BLOCK_ONLY_HIGH", "BLOCK_MEDIUM_AND_ABOVE", "BLOCK_LOW_AND_ABOVE"
]
PersonGeneration = Literal["DONT_ALLOW", "ALLOW_ADULT", "ALLOW_ALL"]
Language = Literal["auto", "en", "zh", "zh-TW", "hi", "ja", "ko", "pt", "es"]


class BatchJobItem(BaseModel):
    """One entry of a batch config; minimally a prompt."""

    model_config = ConfigDict(extra="forbid")

    prompt: str = Field(..., min_length=1)
    output_filename: str | None = None
    aspect_ratio: AspectRatio | None = None
    safety_level: SafetyLevel | None = None
    person_generation: PersonGeneration | None = None
    language: Language | None = None
    model: str | None = None
    region: str | None = None
    sample_count: int | None = Field(default=None, ge=1, le=4)
    sample_image_size: Literal["1K", "2K"] | None = None
    include_thumbnail: bool | None = None


class BatchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    jobs: list[BatchJobItem] = Field(..., min_length=1)
    output_dir: str | None = None
    max_concurrent: int | None = Field(default=None, ge=1)
    timeout: int | None = Field(default=None, gt=0, description="Max wait in milliseconds")


class BatchItemResult(BaseModel):
    job_id: str
    prompt: str
    status: BatchItemStatus = BatchItemStatus.PENDING
    output_path: str | None = None
    error: str | None = None
    duration_ms: int | None = None


class BatchResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: list[BatchItemResult]
    started_at: str
    finished_at: str
    total_duration_ms: int
