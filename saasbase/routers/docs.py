from typing import Any, Dict

from fastapi import APIRouter, Request

from saasbase.core.openapi import build_openapi

router = APIRouter(prefix="/api/v1", tags=["Docs"])


@router.get("/docs", include_in_schema=False)
async def openapi_document(request: Request) -> Dict[str, Any]:
    """Generated OpenAPI document for the API."""
    return build_openapi(request.app)
