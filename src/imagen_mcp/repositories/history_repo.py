"""Image history repository and store."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from imagen_mcp.db.base import as_utc
from imagen_mcp.db.models.image_history import ImageHistoryRow
from imagen_mcp.models.history import HistoryFilters, HistorySortField, ImageRecord, SortOrder
from imagen_mcp.repositories.base import BaseRepository
from imagen_mcp.repositories.job_repo import JobStore


def row_to_record(row: ImageHistoryRow) -> ImageRecord:
    return ImageRecord(
        uuid=row.uuid,
        file_path=row.file_path,
        tool_name=row.tool_name,
        prompt=row.prompt,
        created_at=as_utc(row.created_at),
        model=row.model,
        aspect_ratio=row.aspect_ratio,
        sample_count=row.sample_count,
        sample_image_size=row.sample_image_size,
        safety_level=row.safety_level,
        person_generation=row.person_generation,
        language=row.language,
        parameters=row.parameters or {},
        params_hash=row.params_hash,
        success=row.success,
        error_message=row.error_message,
        file_size=row.file_size,
        mime_type=row.mime_type,
    )


def _utc(value: datetime) -> datetime:
    # Stored timestamps are UTC; naive bounds are taken as UTC too
    return as_utc(value).astimezone(timezone.utc)


def _filter_criteria(filters: HistoryFilters | None) -> list[Any]:
    if filters is None:
        return []
    criteria: list[Any] = []
    if filters.tool_name:
        criteria.append(ImageHistoryRow.tool_name == filters.tool_name)
    if filters.model:
        criteria.append(ImageHistoryRow.model == filters.model)
    if filters.aspect_ratio:
        criteria.append(ImageHistoryRow.aspect_ratio == filters.aspect_ratio)
    if filters.date_from:
        criteria.append(ImageHistoryRow.created_at >= _utc(filters.date_from))
    if filters.date_to:
        criteria.append(ImageHistoryRow.created_at <= _utc(filters.date_to))
    return criteria


class HistoryRepository(BaseRepository[ImageHistoryRow]):
    """Session-scoped image history queries. Callers own the commit."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ImageHistoryRow)

    async def insert(self, record: ImageRecord) -> ImageHistoryRow:
        return await self.create(**record.model_dump())

    async def list_filtered(
        self,
        filters: HistoryFilters | None = None,
        sort_by: HistorySortField = "created_at",
        sort_order: SortOrder = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> list[ImageHistoryRow]:
        column = getattr(ImageHistoryRow, sort_by)
        return await self.select_where(
            *_filter_criteria(filters),
            order_by=column.asc() if sort_order == "asc" else column.desc(),
            limit=limit,
            offset=offset,
        )

    async def search(
        self, query: str, filters: HistoryFilters | None = None, limit: int = 50
    ) -> list[ImageHistoryRow]:
        """Case-insensitive substring match on the prompt, newest first."""
        return await self.select_where(
            ImageHistoryRow.prompt.ilike(f"%{query}%"),
            *_filter_criteria(filters),
            order_by=ImageHistoryRow.created_at.desc(),
            limit=limit,
        )


class HistoryStore:
    """Image history kept in the job database.

    Shares the job store's session factory and lock, so history writes never
    interleave with a job transaction on the same connection.
    """

    def __init__(self, store: JobStore):
        self._store = store

    async def record_image(self, record: ImageRecord) -> None:
        async with self._store.session() as session:
            await HistoryRepository(session).insert(record)

    async def get_image(self, uuid: str) -> ImageRecord | None:
        async with self._store.session() as session:
            row = await HistoryRepository(session).get_by_pk(uuid)
            return row_to_record(row) if row else None

    async def list_images(
        self,
        filters: HistoryFilters | None = None,
        sort_by: HistorySortField = "created_at",
        sort_order: SortOrder = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> list[ImageRecord]:
        async with self._store.session() as session:
            rows = await HistoryRepository(session).list_filtered(
                filters, sort_by, sort_order, limit, offset
            )
            return [row_to_record(r) for r in rows]

    async def search_images(
        self, query: str, filters: HistoryFilters | None = None, limit: int = 50
    ) -> list[ImageRecord]:
        async with self._store.session() as session:
            rows = await HistoryRepository(session).search(query, filters, limit)
            return [row_to_record(r) for r in rows]
