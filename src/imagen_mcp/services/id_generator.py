"""Job ID generation."""

import uuid

JOB_ID_PREFIX = "job_"


def generate_id(prefix: str = JOB_ID_PREFIX) -> str:
    """Return ``prefix`` followed by 16 random hex characters, e.g. ``job_a1b2c3d4e5f6a7b8``."""
    return f"{prefix}{uuid.uuid4().hex[:16]}"
