"""
OpenAPI document for the public API.
"""

from typing import Any, Dict

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from saasbase.config import PUBLIC_BASE_URL, SESSION_COOKIE_NAME
from saasbase.version import __version__

API_TITLE = "SaaS Base API"
API_DESCRIPTION = "Authentication, subscriptions, credits and payments."


def build_openapi(app: FastAPI) -> Dict[str, Any]:
    """Generate (once) the schema of every ``/api`` route with bearer auth declared."""
    if app.openapi_schema:
        return app.openapi_schema

    # Included routers are not flattened into app.routes, so filter the output
    schema = get_openapi(
        title=API_TITLE,
        version=__version__,
        description=API_DESCRIPTION,
        routes=app.routes,
        servers=[{"url": PUBLIC_BASE_URL, "description": "API server"}],
    )
    schema["paths"] = {
        path: item for path, item in schema.get("paths", {}).items() if path.startswith("/api/")
    }
    components = schema.setdefault("components", {})
    components["securitySchemes"] = {
        "BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
        "CookieAuth": {"type": "apiKey", "in": "cookie", "name": SESSION_COOKIE_NAME},
    }
    schema["security"] = [{"BearerAuth": []}, {"CookieAuth": []}]

    app.openapi_schema = schema
    return schema
