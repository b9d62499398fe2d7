"""Repository for MediaAssetRow models."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from podcast_media.db.models import MediaAssetRow
from podcast_media.repositories.base import BaseRepository


class MediaAssetRepository(BaseRepository[MediaAssetRow]):
    """Repository for accessing media asset metadata."""

    def __init__(self, session: AsyncSession):
        super().__init__(MediaAssetRow, session)

    async def get_by_location_key(self, location_key: str) -> Optional[MediaAssetRow]:
        return await self._first(select(self.model).where(self.model.location_key == location_key))

    async def list_by_podcast(self, podcast_id: str) -> List[MediaAssetRow]:
        return await self._all(
            select(self.model)
            .where(self.model.podcast_id == podcast_id)
            .order_by(self.model.created_at.desc())
        )

    async def list_by_episode(self, episode_id: str) -> List[MediaAssetRow]:
        return await self._all(
            select(self.model)
            .where(self.model.episode_id == episode_id)
            .order_by(self.model.created_at.desc())
        )
