from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.shared.exceptions import (
    AutomationError,
    MalformedInputError,
    ResourceNotFoundError,
)
from src.shared.utils import get_logger

logger = get_logger(__name__)


def _status_for(exc: AutomationError) -> int:
    if exc.retryable:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, ResourceNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, MalformedInputError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def http_exception_handler(request: Request, exc: Exception):
    """Global exception handler for HTTP errors."""
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    if isinstance(exc, AutomationError):
        status_code = _status_for(exc)
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
