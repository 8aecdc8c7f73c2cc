"""
Error Sanitization Middleware

Keeps stack traces and framework error pages out of responses.
"""

from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from saasbase.config import logger


def internal_error_response(request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "request_id": request_id},
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Outermost guard against information leakage.

    Unhandled exceptions become the generic JSON error envelope. In
    production, non-JSON 5xx bodies are replaced as well; JSON bodies are
    already shaped by the application's exception handlers.
    """

    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled exception in request %s: %s", request_id, exc)
            if self.debug:
                raise
            return internal_error_response(request_id)

        if response.status_code >= 500 and not self.debug:
            content_type = response.headers.get("content-type", "")
            if not content_type.startswith("application/json"):
                return internal_error_response(getattr(request.state, "request_id", "unknown"))

        return response
