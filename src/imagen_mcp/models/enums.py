"""String enums for job and batch records."""

from enum import StrEnum


class JobType(StrEnum):
    GENERATE = "generate"
    EDIT = "edit"
    CUSTOMIZE = "customize"
    UPSCALE = "upscale"
    GENERATE_AND_UPSCALE = "generate_and_upscale"


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class BatchItemStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not BatchItemStatus.PENDING


ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)
TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)
