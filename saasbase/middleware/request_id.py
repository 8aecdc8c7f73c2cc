"""
Request ID Middleware

Injects a unique request ID into each request for tracing.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from saasbase.core.security.constants import REQUEST_ID_HEADER
from saasbase.core.security.utils import get_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an ID for log correlation.

    A well-formed incoming ``X-Request-ID`` is kept; otherwise one is
    generated. The ID is echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = get_request_id(request)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
