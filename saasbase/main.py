"""saasbase - FastAPI Application Entry Point.

Production-hardened with:
- Comprehensive security middleware stack
- Rate limiting
- Request ID tracking
- Security headers (CSP, HSTS, etc.)
- Locale-prefixed pages
- Error sanitization
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from saasbase.config import (
    ALLOWED_HOSTS,
    CORS_ORIGINS,
    DEBUG,
    STATIC_DIR,
    logger,
)
from saasbase.core.context import AppContext
from saasbase.core.errors import AppError
from saasbase.core.openapi import build_openapi
from saasbase.core.security import IDEMPOTENCY_KEY_HEADER, RateLimiter
from saasbase.middleware import (
    ErrorSanitizationMiddleware,
    LocaleRedirectMiddleware,
    RateLimitMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from saasbase.routers import admin, auth, credits, cron, demo, docs, pages, payments, paypal, subscription
from saasbase.schemas import HealthResponse
from saasbase.version import __version__

HEALTH_PATHS = {"/health", "/healthz", "/ready"}


def _error_response(status_code: int, message: str, headers: Optional[dict] = None, **extra) -> JSONResponse:
    content = {"success": False, "error": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# -----------------------------------------------------------------------------
# Application Factory
# -----------------------------------------------------------------------------

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``context`` replaces the Firebase-backed context built at startup
    (tests pass one wired with in-memory collaborators).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown events."""
        logger.info("Starting saasbase v%s", __version__)
        owned = context is None
        app.state.context = context or AppContext.build()
        try:
            yield
        finally:
            if owned:
                await app.state.context.aclose()
            logger.info("Shutting down saasbase")

    # The API document is served at /api/v1/docs; the built-in UIs stay off
    app = FastAPI(
        title="saasbase",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.openapi = lambda: build_openapi(app)
    if context is not None:
        app.state.context = context

    # -------------------------------------------------------------------------
    # Middleware Stack (order matters - first added = last executed)
    # -------------------------------------------------------------------------

    # 1. Error sanitization (outermost - catches all errors)
    app.add_middleware(ErrorSanitizationMiddleware, debug=DEBUG)

    # 2. Request logging
    app.add_middleware(
        RequestLoggingMiddleware,
        exclude_paths=HEALTH_PATHS,
    )

    # 3. Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # 4. Rate limiting
    app.add_middleware(
        RateLimitMiddleware,
        limiter=RateLimiter(),
        exclude_paths=HEALTH_PATHS | {"/static"},
    )

    # 5. Request ID injection
    app.add_middleware(RequestIDMiddleware)

    # 6. Locale prefix for pages
    app.add_middleware(LocaleRedirectMiddleware)

    # 7. Trusted hosts (prevents host header attacks)
    if ALLOWED_HOSTS and ALLOWED_HOSTS != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=ALLOWED_HOSTS,
        )

    # 8. CORS (innermost middleware for preflight handling)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", IDEMPOTENCY_KEY_HEADER],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
        max_age=600,
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Domain errors carry their own status code and message."""
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors with clean messages."""
        errors = exc.errors()
        # Limit error details to prevent information leakage
        clean_errors = [
            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "Invalid value")}
            for err in errors[:5]
        ]
        return _error_response(400, "Validation error", details=clean_errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent format."""
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    # -------------------------------------------------------------------------
    # Health Check Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    @app.get("/healthz", response_model=HealthResponse, include_in_schema=False)
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers and orchestrators."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            timestamp=datetime.now(timezone.utc),
        )

    @app.get("/ready", tags=["Health"])
    async def readiness_check(request: Request):
        """Readiness check - the application context has been built."""
        if getattr(request.app.state, "context", None) is None:
            return _error_response(503, "Not ready")
        return {"status": "ready"}

    # -------------------------------------------------------------------------
    # Static Files & Routers
    # -------------------------------------------------------------------------

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    for module in (auth, credits, paypal, payments, subscription, demo, cron, admin, docs):
        app.include_router(module.router)

    # Catch-all /{locale} routes go last
    app.include_router(pages.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "saasbase.main:app",
        host="0.0.0.0",
        port=8000,
        reload=DEBUG,
        # Security: Limit request size
        limit_concurrency=100,
        limit_max_requests=10000,
    )
