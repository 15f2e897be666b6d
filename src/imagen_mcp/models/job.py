"""Pydantic model for Job records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from imagen_mcp.models.enums import JobStatus, JobType


class Job(BaseModel):
    """One asynchronous unit of work: pending -> running -> completed | failed."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    params: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> int | None:
        """Milliseconds from creation to completion, if completed."""
        if self.completed_at is None:
            return None
        return int((self.completed_at - self.created_at).total_seconds() * 1000)
