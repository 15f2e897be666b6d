"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from imagen_mcp.db.models.image_history import ImageHistoryRow
from imagen_mcp.db.models.job import JobRow

__all__ = ["ImageHistoryRow", "JobRow"]
