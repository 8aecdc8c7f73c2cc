"""
Middleware stack for saasbase.

Provides:
- Request ID injection
- Rate limiting
- Security headers (CSP, HSTS, etc.)
- Request/response logging
- Error sanitization
- Locale prefix redirects for pages
"""

from saasbase.middleware.request_id import RequestIDMiddleware
from saasbase.middleware.rate_limit import RateLimitMiddleware
from saasbase.middleware.security_headers import SecurityHeadersMiddleware
from saasbase.middleware.logging import RequestLoggingMiddleware
from saasbase.middleware.error_sanitization import ErrorSanitizationMiddleware
from saasbase.middleware.locale import LocaleRedirectMiddleware

__all__ = [
    "RequestIDMiddleware",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "RequestLoggingMiddleware",
    "ErrorSanitizationMiddleware",
    "LocaleRedirectMiddleware",
]
