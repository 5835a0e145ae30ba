"""Error types surfaced by the API and their JSON rendering."""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from copi.utils.logger import get_logger

logger = get_logger(__name__)


class CopiError(Exception):
    """Base class for errors rendered as ``{"error": message}``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(CopiError):
    """Raised when no caller identity can be resolved from the request."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class InvalidQueryError(CopiError):
    """Raised when a required query parameter is missing or blank."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid query"


class StoreUnreachableError(CopiError):
    """Raised when the record store cannot be reached or a query against it fails."""

    default_message = "Record store is unreachable"


class ServiceNotReadyError(CopiError):
    """Raised when a component created at startup is missing from application state."""

    default_message = "Service is not ready"


async def copi_error_handler(request: Request, exc: CopiError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
