"""Image history table: one row per saved image file."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from imagen_mcp.db.base import Base, utcnow


class ImageHistoryRow(Base):
    __tablename__ = "image_history"

    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    tool_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    model: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    aspect_ratio: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sample_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sample_image_size: Mapped[str | None] = mapped_column(String(8), nullable=True)
    safety_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    person_generation: Mapped[str | None] = mapped_column(String(32), nullable=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    parameters: Mapped[dict] = mapped_column(JSON, nullable=False)
    params_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
