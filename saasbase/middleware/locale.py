"""
Locale Redirect Middleware

Page URLs always carry a locale prefix. A page request without one is
redirected to the visitor's preferred supported locale.
"""

import re
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from saasbase.config import DEFAULT_LOCALE
from saasbase.core.locale import locale_from_accept_language, localized_path, resolve_locale

# Looks like a locale code; unsupported ones are left for the router to 404
_LOCALE_LIKE = re.compile(r"^[a-z]{2}(-[a-zA-Z]{2,4})?$")


class LocaleRedirectMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, exclude_prefixes: Optional[tuple] = None):
        super().__init__(app)
        self.exclude_prefixes = exclude_prefixes or (
            "/api", "/static", "/health", "/healthz", "/ready", "/openapi.json", "/favicon.ico",
        )

    def _needs_prefix(self, path: str) -> bool:
        if any(path == p or path.startswith(p + "/") for p in self.exclude_prefixes):
            return False
        _, _, matched = resolve_locale(path)
        if matched:
            return False
        first_segment = path.lstrip("/").split("/", 1)[0]
        return not _LOCALE_LIKE.match(first_segment)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if request.method in ("GET", "HEAD") and self._needs_prefix(path):
            locale = locale_from_accept_language(request.headers.get("Accept-Language")) or DEFAULT_LOCALE
            target = localized_path(locale, path)
            if request.url.query:
                target = f"{target}?{request.url.query}"
            return RedirectResponse(url=target, status_code=307)
        return await call_next(request)
