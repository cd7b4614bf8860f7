# counsel_intake/core/errors.py
"""
Domain errors raised by services, and the handlers that turn them into
`{"success": false, "message": ...}` responses.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("intake.errors")


class IntakeError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(IntakeError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(IntakeError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(IntakeError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(IntakeError):
    status_code = 403
    default_message = "Insufficient permissions"


class ConflictError(IntakeError):
    status_code = 409
    default_message = "Resource conflict"


class LinkExpiredError(IntakeError):
    """Intake link is past its deadline (or no longer accepting input)."""
    status_code = 410
    default_message = "Intake link has expired."


class UpstreamServiceError(IntakeError):
    """Extraction, transcription or storage provider failed."""
    status_code = 502
    default_message = "Upstream service error"


async def _intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "Validation Error: " + ", ".join(parts)
    logger.info("%s %s -> 400 %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"success": False, "message": message})


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IntakeError, _intake_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
