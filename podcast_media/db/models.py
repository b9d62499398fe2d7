"""SQLAlchemy models for the application."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from podcast_media.db.base import Base
from podcast_media.schemas.media import AssetKind, BackendKind


def _new_id() -> str:
    return str(uuid.uuid4())


class MediaAssetRow(Base):
    """One stored binary object. Rows are never updated in place."""
    __tablename__ = "media_assets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Loose back-references: the episode may not exist yet at upload time
    podcast_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    episode_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    kind: Mapped[AssetKind] = mapped_column(SAEnum(AssetKind, name="media_asset_kind"), nullable=False)
    backend_kind: Mapped[BackendKind] = mapped_column(SAEnum(BackendKind, name="storage_backend_kind"), nullable=False)
    location_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    public_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False
    )


class StorageConfigRow(Base):
    """Cloud drive configuration. At most one row is active."""
    __tablename__ = "storage_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    service_account_email: Mapped[str] = mapped_column(String(320), nullable=False)
    service_account_key: Mapped[str] = mapped_column(Text, nullable=False)  # JSON key file content
    folder_id_images: Mapped[str] = mapped_column(String(255), nullable=False)
    folder_id_audio: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
        nullable=False
    )
