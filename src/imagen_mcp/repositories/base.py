"""Base repository: session-scoped ORM helpers that flush but never commit."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from imagen_mcp.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Generic async repository for one mapped class."""

    def __init__(self, session: AsyncSession, model_class: type[T]):
        self.session = session
        self.model_class = model_class

    async def get_by_pk(self, pk_value: Any) -> T | None:
        return await self.session.get(self.model_class, pk_value)

    async def create(self, **kwargs: Any) -> T:
        """Add a new row and flush so constraint errors surface here."""
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **kwargs: Any) -> T:
        for key, value in kwargs.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def select_where(
        self,
        *criteria: Any,
        order_by: Any = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[T]:
        """Rows matching all ``criteria``, optionally ordered and paged."""
        stmt = select(self.model_class)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
