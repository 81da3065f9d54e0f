"""Translation of core errors into HTTP responses."""

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..errors import AuthError, ChatError, NotFoundError, TransientError, ValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)

_STATUS_CODES: dict[type[ChatError], int] = {
    ValidationError: 400,
    AuthError: 401,
    NotFoundError: 404,
    TransientError: 503,
}


def status_for(error: ChatError) -> int:
    return next((code for cls, code in _STATUS_CODES.items() if isinstance(error, cls)), 500)


def _headers_for(error: ChatError) -> dict[str, str] | None:
    if isinstance(error, AuthError):
        return {"WWW-Authenticate": "Bearer"}
    if isinstance(error, TransientError):
        return {"Retry-After": "1"}
    return None


def to_http_exception(error: ChatError) -> HTTPException:
    """Map a ChatError to the HTTPException the route should raise."""
    return HTTPException(
        status_code=status_for(error), detail=error.to_dict(), headers=_headers_for(error)
    )


async def chat_error_handler(request: Request, error: ChatError) -> JSONResponse:
    """Fallback for a ChatError that escaped a route's own translation."""
    logger.warning("%s %s failed: %s", request.method, request.url.path, error.message)
    return JSONResponse(
        status_code=status_for(error),
        content={"detail": error.to_dict()},
        headers=_headers_for(error),
    )
