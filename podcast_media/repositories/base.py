"""Base repository pattern."""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from podcast_media.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """CRUD by primary key plus small query helpers for subclasses.

    Repositories only flush; the caller owns the transaction.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def _first(self, stmt: Select) -> Optional[ModelType]:
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def _all(self, stmt: Select) -> List[ModelType]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, id: Any) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def create(self, **values) -> ModelType:
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: Any, **values) -> Optional[ModelType]:
        """Set the given columns on one row; None when the row is missing."""
        instance = await self.get(id)
        if instance is None:
            return None
        for column, value in values.items():
            setattr(instance, column, value)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete(self, id: Any) -> bool:
        """Delete one row; False when there was nothing to delete."""
        instance = await self.get(id)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True
