"""
Rate Limiting Middleware

Global per-IP limit. Each application instance passes in its own limiter.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from saasbase.core.security import RateLimiter, log_security_event


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limiter: Optional[RateLimiter] = None,
        exclude_paths: Optional[set] = None,
    ):
        super().__init__(app)
        self.limiter = limiter or RateLimiter()
        self.exclude_paths = exclude_paths or {"/health", "/healthz", "/ready", "/static"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if any(path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        key = self.limiter.get_key_for_request(request)
        allowed, remaining, reset = self.limiter.is_allowed(key)

        if not allowed:
            log_security_event(
                "rate_limit_exceeded",
                request=request,
                details={"key": key, "reset_seconds": reset},
            )
            return JSONResponse(
                status_code=429,
                content={"success": False, "error": "Rate limit exceeded. Please try again later."},
                headers={
                    "Retry-After": str(reset),
                    "X-RateLimit-Limit": str(self.limiter.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset)
        return response
