"""Binds a request id to the structured log context for each request."""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from linkboard.logging_config import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Echo or mint ``X-Request-ID`` and attach it to every log line of the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_request_context(request_id, method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info("request_completed", status_code=response.status_code)
            return response
        finally:
            clear_request_context()
