import hmac
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from saasbase.config import CRON_SECRET
from saasbase.core.context import AppContext, get_context
from saasbase.core.errors import AppError, UnauthorizedError
from saasbase.core.security import log_security_event

router = APIRouter(prefix="/api/v1/cron_job", tags=["Cron"])

JOB_SYNC_PENDING = "sync-pending-orders"


def _authorized(request: Request) -> bool:
    if not CRON_SECRET:
        return False
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header.encode(), f"Bearer {CRON_SECRET}".encode())


@router.get("/sync-pending")
async def sync_pending_orders(
    request: Request,
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Capture pending orders whose payment has settled at the provider."""
    if not _authorized(request):
        log_security_event("cron_secret_mismatch", request=request)
        raise UnauthorizedError()

    cron_log = context.cron_logger(JOB_SYNC_PENDING)
    cron_log.log_start("Starting sync of pending orders")
    try:
        results = await context.billing.sync_pending_orders()
    except AppError as exc:
        cron_log.log_failure(exc)
        raise

    cron_log.log_success(f"Processed {len(results)} orders", {"results": results})
    return {"success": True, "processed": len(results), "results": results}
