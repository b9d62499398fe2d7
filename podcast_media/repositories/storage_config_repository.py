"""Repository for StorageConfigRow models."""

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from podcast_media.db.models import StorageConfigRow
from podcast_media.repositories.base import BaseRepository


class StorageConfigRepository(BaseRepository[StorageConfigRow]):
    """Repository for cloud drive storage configurations."""

    def __init__(self, session: AsyncSession):
        super().__init__(StorageConfigRow, session)

    async def get_active(self) -> Optional[StorageConfigRow]:
        return await self._first(
            select(self.model)
            .where(self.model.is_active.is_(True))
            .order_by(self.model.updated_at.desc())
        )

    async def list_newest_first(self) -> List[StorageConfigRow]:
        return await self._all(select(self.model).order_by(self.model.created_at.desc(), self.model.id))

    async def deactivate_all(self) -> None:
        await self.session.execute(update(self.model).values(is_active=False))
