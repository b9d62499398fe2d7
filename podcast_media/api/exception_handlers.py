"""
Custom FastAPI exception handlers for structured error logging.

ServiceError details are already ``{code, message, details}`` dicts and are
returned as the body unchanged; other HTTP errors are wrapped in the same shape.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from podcast_media.core.logging_config import get_logger


logger = get_logger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Log and render HTTP exceptions (including ServiceError)."""
    detail = getattr(exc, "detail", None)

    logger.warning(
        "http_exception",
        method=request.method,
        path=str(request.url.path),
        status_code=exc.status_code,
        detail=detail,
        client_host=_client_host(request),
    )

    if isinstance(detail, dict) and "code" in detail:
        content = detail
    else:
        content = {
            "code": f"HTTP_{exc.status_code}",
            "message": detail or "An error occurred",
            "details": {},
        }

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(content),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Log and render request validation errors as 422."""
    errors = jsonable_encoder(exc.errors())

    logger.warning(
        "validation_error",
        method=request.method,
        path=str(request.url.path),
        error_count=len(errors),
        errors=errors,
        client_host=_client_host(request),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Validation error",
            "details": {"errors": errors},
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected exceptions with traceback; respond with a generic 500."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=str(request.url.path),
        error_type=type(exc).__name__,
        error_message=str(exc),
        client_host=_client_host(request),
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": {},
        },
    )
