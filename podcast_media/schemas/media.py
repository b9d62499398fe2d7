"""Domain models shared by storage backends, the metadata store and the API."""

import json
import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class AssetKind(str, Enum):
    """Logical kind of an uploaded asset."""
    COVER_ART = "COVER_ART"
    EPISODE_AUDIO = "EPISODE_AUDIO"

    @property
    def category(self) -> str:
        """Storage category (local subdirectory / drive folder slot)."""
        return "images" if self is AssetKind.COVER_ART else "audio"

    @classmethod
    def from_category(cls, category: str) -> "AssetKind":
        for kind in cls:
            if kind.category == category:
                return kind
        raise ValueError(f"Unknown media category: {category}")


class BackendKind(str, Enum):
    """Storage backend that holds an asset's bytes."""
    LOCAL = "LOCAL"
    CLOUD_DRIVE = "CLOUD_DRIVE"


class StoredObject(BaseModel):
    """Location descriptor returned by ``StorageBackend.store``.

    ``location_key`` is opaque outside the backend that produced it.
    """
    model_config = ConfigDict(frozen=True)

    backend_kind: BackendKind
    location_key: str
    public_url: Optional[str] = None
    size_bytes: int
    checksum: Optional[str] = None


class NewMediaAsset(BaseModel):
    """A media asset row before the metadata store assigns id/created_at."""
    owner_id: str
    podcast_id: Optional[str] = None
    episode_id: Optional[str] = None
    kind: AssetKind
    backend_kind: BackendKind
    location_key: str
    public_url: Optional[str] = None
    mime_type: str
    size_bytes: int
    checksum: Optional[str] = None


class MediaAsset(NewMediaAsset):
    """Authoritative record of one stored binary object."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


# ============================================================================
# Storage configuration (cloud drive credentials and folders)
# ============================================================================

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_REQUIRED_KEY_FIELDS = ("project_id", "private_key", "client_email")


def validate_service_account_key(value: str) -> str:
    """Check that a string is a Google service-account JSON key."""
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        raise ValueError("Invalid service account key JSON")
    if not isinstance(parsed, dict) or parsed.get("type") != "service_account":
        raise ValueError("Invalid service account key JSON")
    missing = [field for field in _REQUIRED_KEY_FIELDS if not parsed.get(field)]
    if missing:
        raise ValueError(f"Service account key is missing: {', '.join(missing)}")
    return value


def validate_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid service account email")
    return value


class StorageConfig(BaseModel):
    """Persisted storage configuration record."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_account_email: str
    service_account_key: str
    folder_id_images: str
    folder_id_audio: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class StorageConfigTest(BaseModel):
    """Credentials and folders to verify against the Drive API."""
    service_account_email: str
    service_account_key: str
    folder_id_images: str
    folder_id_audio: str

    @field_validator("service_account_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("service_account_key")
    @classmethod
    def check_key(cls, v: str) -> str:
        return validate_service_account_key(v)

    @field_validator("folder_id_images", "folder_id_audio")
    @classmethod
    def check_folder(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Folder ID is required")
        return v.strip()


class StorageConfigCreate(StorageConfigTest):
    is_active: bool = True


class StorageConfigUpdate(BaseModel):
    """Partial update. Blank strings mean "leave unchanged"."""
    service_account_email: Optional[str] = None
    service_account_key: Optional[str] = None
    folder_id_images: Optional[str] = None
    folder_id_audio: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("service_account_email", "service_account_key",
                     "folder_id_images", "folder_id_audio", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("service_account_email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return validate_email(v) if v is not None else v

    @field_validator("service_account_key")
    @classmethod
    def check_key(cls, v: Optional[str]) -> Optional[str]:
        return validate_service_account_key(v) if v is not None else v

    def changes(self) -> dict:
        """Fields explicitly set to a non-empty value."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}
