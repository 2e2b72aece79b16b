"""Error taxonomy and the handlers that turn it into the JSON error envelope."""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkboard.config import Settings
from linkboard.logging_config import get_logger

logger = get_logger(__name__)


class LinkboardError(Exception):
    """Base exception for domain errors raised by the engines."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_form_error: bool = False

    def __init__(self, message: str, error_type: str = "linkboard_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


class ValidationError(LinkboardError):
    """Malformed input; reported as a form error."""

    status_code = status.HTTP_400_BAD_REQUEST
    is_form_error = True

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "validation_error")
        self.field = field


class UnauthorizedError(LinkboardError):
    """Missing or invalid session, or bad credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "unauthorized")


class NotFoundError(LinkboardError):
    """A referenced post or comment does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_type: str, entity_id: int | str | None = None):
        super().__init__(f"{entity_type} not found", "not_found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(LinkboardError):
    """A unique value is already taken."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str):
        super().__init__(message, "conflict")


class InternalError(LinkboardError):
    """The store failed in a way the caller cannot fix."""

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message, "internal_error")


def error_response(
    status_code: int,
    message: str,
    is_form_error: bool = False,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the ``{success: false, error, isFormError}`` envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "isFormError": is_form_error},
        headers=headers,
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install handlers that render every failure as the error envelope."""

    def _drop_stale_session(request: Request, response: JSONResponse) -> JSONResponse:
        # Set by the session dependency when the cookie named no live session
        if getattr(request.state, "stale_session_cookie", False):
            response.delete_cookie(
                settings.session_cookie_name,
                path="/",
                secure=settings.is_production,
                httponly=True,
                samesite="lax",
            )
        return response

    @app.exception_handler(LinkboardError)
    async def _handle_domain_error(request: Request, exc: LinkboardError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error_type=exc.error_type, error=exc.message)
        else:
            logger.warning("request_rejected", path=request.url.path, error_type=exc.error_type, error=exc.message)
        return _drop_stale_session(request, error_response(exc.status_code, exc.message, exc.is_form_error))

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError):
        message = _format_validation_errors(exc)
        logger.warning("request_validation_failed", path=request.url.path, error=message)
        return _drop_stale_session(request, error_response(status.HTTP_400_BAD_REQUEST, message, is_form_error=True))

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
        if settings.is_production:
            message = "Internal Server Error"
        else:
            message = "".join(traceback.format_exception(exc))
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
