"""FastAPI dependencies for caller identity, upload intake validation and services."""

import os
from typing import Callable, Optional

from fastapi import Depends, File, Header, UploadFile, status
from pydantic import BaseModel

from podcast_media.core.config import settings
from podcast_media.core.errors import ErrorCode, auth_error, upload_error
from podcast_media.core.logging_config import get_logger
from podcast_media.db.metadata_store import SqlMetadataStore, get_metadata_store
from podcast_media.schemas.media import AssetKind
from podcast_media.services.media_orchestrator import MediaOrchestrator, get_media_orchestrator
from podcast_media.storage import build_drive_backend
from podcast_media.storage.resolver import BackendFactory


logger = get_logger(__name__)

ADMIN_ROLE = "admin"


# ============================================================================
# Caller identity
# ============================================================================


class CallerContext(BaseModel):
    """Caller identity asserted by the upstream auth layer.

    The gateway in front of this service authenticates the user and forwards
    the result as X-User-ID / X-User-Role headers.
    """
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == ADMIN_ROLE


def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CallerContext:
    """Caller context from trusted identity headers.

    Raises:
        ServiceError: 401 if no user id was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        raise auth_error(
            ErrorCode.AUTH_MISSING_IDENTITY,
            "Caller identity is required",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return CallerContext(user_id=x_user_id.strip(), role=(x_user_role or "user").strip())


def require_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    """Raises 403 unless the caller carries the admin role."""
    if not caller.is_admin:
        logger.warning("admin_access_denied", user_id=caller.user_id, role=caller.role)
        raise auth_error(ErrorCode.AUTH_ADMIN_REQUIRED, "Administrator role required")
    return caller


# ============================================================================
# Upload intake
# ============================================================================


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


def check_media_upload(file: Optional[UploadFile], kind: AssetKind) -> UploadFile:
    """Apply the kind-specific MIME allow-list and size ceiling.

    The declared content type is checked; bytes are not sniffed.

    Raises:
        ServiceError: 400 missing file, 415 disallowed type, 413 too large
    """
    if file is None or not file.filename:
        raise upload_error(ErrorCode.UPLOAD_MISSING_FILE, "No file uploaded")

    if kind is AssetKind.COVER_ART:
        allowed = settings.ALLOWED_IMAGE_MIME_TYPES
        max_bytes = settings.max_image_size_bytes
        max_mb = settings.MAX_IMAGE_SIZE_MB
    else:
        allowed = settings.ALLOWED_AUDIO_MIME_TYPES
        max_bytes = settings.max_audio_size_bytes
        max_mb = settings.MAX_AUDIO_SIZE_MB

    if file.content_type not in allowed:
        logger.warning(
            "upload_rejected_type",
            kind=kind.value,
            filename=file.filename,
            content_type=file.content_type,
        )
        raise upload_error(
            ErrorCode.UPLOAD_INVALID_TYPE,
            f"Unsupported file type: {file.content_type}. Allowed: {', '.join(allowed)}",
            {"allowed_types": list(allowed)},
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        )

    size = _upload_size(file)
    if size > max_bytes:
        logger.warning(
            "upload_rejected_size",
            kind=kind.value,
            filename=file.filename,
            size_bytes=size,
            max_bytes=max_bytes,
        )
        raise upload_error(
            ErrorCode.UPLOAD_FILE_TOO_LARGE,
            f"File too large. Maximum allowed: {max_mb}MB",
            {"max_size_mb": max_mb, "size_bytes": size},
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    return file


def validated_upload(kind: AssetKind) -> Callable:
    """Dependency factory: the multipart ``file`` field, validated for ``kind``.

    Usage in endpoint:
        @router.post("/cover")
        async def upload_cover(file: UploadFile = Depends(validated_upload(AssetKind.COVER_ART))):
            ...
    """
    def _validated(file: Optional[UploadFile] = File(None)) -> UploadFile:
        return check_media_upload(file, kind)

    return _validated


# ============================================================================
# Service Layer Dependencies
# ============================================================================


def get_orchestrator() -> MediaOrchestrator:
    return get_media_orchestrator()


def get_store() -> SqlMetadataStore:
    return get_metadata_store()


def get_drive_factory() -> BackendFactory:
    """Builds Drive backends for configuration tests; tests override it."""
    return build_drive_backend
