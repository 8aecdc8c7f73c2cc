"""
Security Headers Middleware
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# JSON responses never load sub-resources
API_CSP = "default-src 'none'; frame-ancestors 'none'"

# Firebase sign-in loads its SDK from gstatic and opens a firebaseapp.com
# frame; checkout forms post to the PayPal and TokenPay pages.
PAGE_CSP = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' https://www.gstatic.com",
    "frame-src 'self' https://*.firebaseapp.com",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https:",
    "connect-src 'self' https://*.googleapis.com https://*.firebaseapp.com",
    "frame-ancestors 'none'",
    "base-uri 'self'",
    "form-action 'self' https:",
])


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    ``/api`` responses get a locked-down CSP and are never cached. Pages get
    the sign-in and checkout policy and are revalidated on every visit,
    since they render account data. Static assets keep their cache headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        page_csp: Optional[str] = None,
        hsts_max_age: int = 31536000,
    ):
        super().__init__(app)
        self.page_csp = page_csp or PAGE_CSP
        self.hsts_header = f"max-age={hsts_max_age}; includeSubDomains"
        self.permissions_policy = "camera=(), geolocation=(), microphone=(), payment=(self)"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        path = request.url.path
        headers = response.headers

        headers.setdefault("X-Frame-Options", "DENY")
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        headers.setdefault("Strict-Transport-Security", self.hsts_header)
        headers.setdefault("Permissions-Policy", self.permissions_policy)

        if path.startswith("/static"):
            return response

        if path.startswith("/api"):
            headers.setdefault("Content-Security-Policy", API_CSP)
            headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
            headers.setdefault("Pragma", "no-cache")
        else:
            headers.setdefault("Content-Security-Policy", self.page_csp)
            headers.setdefault("Cache-Control", "private, no-cache")

        return response
