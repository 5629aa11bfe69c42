"""Domain error taxonomy and its HTTP rendering.

Services raise these exceptions; the handlers registered by
``register_exception_handlers`` turn them into ``{"detail": ...}`` responses.
Anything that is not a ForumError is treated as an internal failure: it is
logged with its traceback and the client only sees a generic message.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class ForumError(Exception):
    """Base class for errors that map to a client-facing status."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(ForumError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(ForumError):
    status_code = 409
    default_detail = "Conflict"


class ForbiddenError(ForumError):
    status_code = 403
    default_detail = "Forbidden"


class InvalidError(ForumError):
    status_code = 422
    default_detail = "Invalid request"


class UnauthenticatedError(ForumError):
    status_code = 401
    default_detail = "Authentication required"


async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    log.info(
        "request_rejected",
        error=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("unhandled_error", error=type(exc).__name__, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ForumError, forum_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)
