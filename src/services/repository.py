"""Soft-delete aware repository for reference records.

Queries state explicitly whether they want current or deleted rows instead of
relying on implicit interception at the ORM level.
"""

from datetime import datetime, timezone
from typing import Generic, Sequence, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.interfaces import LoaderOption

from src.models import SoftDeleteMixin

ModelT = TypeVar("ModelT", bound=SoftDeleteMixin)


class SoftDeleteRepository(Generic[ModelT]):
    """Wraps a soft-deletable model with current-row lookups."""

    def __init__(self, session: AsyncSession, model: type[ModelT]):
        self.session = session
        self.model = model

    def current(self) -> Select:
        """SELECT over rows that are not marked deleted."""
        return select(self.model).where(self.model.deleted_at.is_(None))

    def deleted(self) -> Select:
        """SELECT over rows that are marked deleted."""
        return select(self.model).where(self.model.deleted_at.is_not(None))

    async def get(self, entity_id: int, *options: LoaderOption) -> ModelT | None:
        """First current row with this id, or None."""
        stmt = self.current().where(self.model.id == entity_id)
        if options:
            stmt = stmt.options(*options)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list(self, *criteria) -> Sequence[ModelT]:
        result = await self.session.execute(self.current().where(*criteria))
        return result.scalars().all()

    def soft_delete(self, entity: ModelT) -> ModelT:
        """Mark entity deleted; the caller commits."""
        entity.deleted_at = datetime.now(timezone.utc)
        return entity

    def restore(self, entity: ModelT) -> ModelT:
        entity.deleted_at = None
        return entity


__all__ = ["SoftDeleteRepository"]
