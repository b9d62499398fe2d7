"""
Error Handling

Two layers:
- Domain exceptions raised by storage backends, the metadata store and the
  media orchestrator. They carry no HTTP semantics.
- ``ServiceError`` (an HTTPException with a stable error code) built by the
  API layer from domain exceptions, so clients get a predictable body:

    {
        "code": "MEDIA_001",
        "message": "Media not found",
        "details": {"asset_id": "..."}
    }
"""
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


# ============================================================================
# Domain exceptions
# ============================================================================


class MediaError(Exception):
    """Base class for all media storage errors."""


class StorageUnavailable(MediaError):
    """Backend I/O, authentication or network failure.

    Retryable from the caller's point of view. A save that fails with this
    error never reached the metadata write.
    """


class StorageObjectNotFound(MediaError):
    """The backend has no object at the given location."""

    def __init__(self, location_key: str, message: Optional[str] = None):
        super().__init__(message or f"No stored object at location '{location_key}'")
        self.location_key = location_key


class InvalidLocation(MediaError):
    """A location key that the backend refuses to interpret (e.g. escapes its root)."""


class MetadataPersistenceError(MediaError):
    """The metadata store rejected a write."""


class AssetNotFound(MediaError):
    """No metadata row exists for the given id or location key."""

    def __init__(self, reference: str):
        super().__init__(f"Media asset not found: {reference}")
        self.reference = reference


# ============================================================================
# HTTP errors
# ============================================================================


class ErrorCode(str, Enum):
    """Standardized error codes for the API."""

    # Upload intake (UPLOAD_xxx)
    UPLOAD_FILE_TOO_LARGE = "UPLOAD_001"
    UPLOAD_INVALID_TYPE = "UPLOAD_002"
    UPLOAD_MISSING_FILE = "UPLOAD_003"

    # Media access (MEDIA_xxx)
    MEDIA_NOT_FOUND = "MEDIA_001"
    MEDIA_INVALID_CATEGORY = "MEDIA_002"
    MEDIA_MISSING_FILTER = "MEDIA_003"

    # Storage (STORAGE_xxx)
    STORAGE_WRITE_FAILED = "STORAGE_001"
    STORAGE_READ_FAILED = "STORAGE_002"
    STORAGE_UNAVAILABLE = "STORAGE_003"

    # Storage configuration (CONFIG_xxx)
    CONFIG_NOT_FOUND = "CONFIG_001"
    CONFIG_INVALID = "CONFIG_002"
    CONFIG_SOLE_ACTIVE = "CONFIG_003"
    CONFIG_TEST_FAILED = "CONFIG_004"

    # Caller identity (AUTH_xxx)
    AUTH_MISSING_IDENTITY = "AUTH_001"
    AUTH_ADMIN_REQUIRED = "AUTH_002"
    AUTH_NOT_OWNER = "AUTH_003"


class ServiceError(HTTPException):
    """
    Business error converted by FastAPI into a JSON response with a
    standardized ``{code, message, details}`` body.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details or {}
            }
        )
        self.code = code
        self.user_message = message
        self.error_details = details or {}


def upload_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: int = status.HTTP_400_BAD_REQUEST) -> ServiceError:
    """Create an upload intake error (400 by default, 413/415 when given)."""
    return ServiceError(status_code, code, message, details)


def storage_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a storage error (503 Service Unavailable)."""
    return ServiceError(status.HTTP_503_SERVICE_UNAVAILABLE, code, message, details)


def processing_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a server-side error (500 Internal Server Error)."""
    return ServiceError(status.HTTP_500_INTERNAL_SERVER_ERROR, code, message, details)


def auth_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None,
               status_code: int = status.HTTP_403_FORBIDDEN) -> ServiceError:
    """Create a caller-identity error (403 by default)."""
    return ServiceError(status_code, code, message, details)


def not_found_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a not-found error (404 Not Found)."""
    return ServiceError(status.HTTP_404_NOT_FOUND, code, message, details)


def bad_request_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a generic 400 error."""
    return ServiceError(status.HTTP_400_BAD_REQUEST, code, message, details)
