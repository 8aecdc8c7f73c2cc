from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from saasbase.core.context import AppContext, get_context
from saasbase.core.idempotency import idempotency_key
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import PlanCaptureRequest, PlanOrderRequest

router = APIRouter(prefix="/api/v1/paypal", tags=["Payments"])


@router.post("/create-order")
async def create_plan_order(
    payload: PlanOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    """Create a PayPal order for a paid plan; free plans are rejected with 400."""
    async def handler() -> Dict[str, Any]:
        return await context.billing.issue_plan_order(user.uid, payload.plan_id)

    return await context.idempotency.run(
        user.uid, "paypal.create-order", idem_key, payload.model_dump(), handler,
    )


@router.post("/capture-order")
async def capture_plan_order(
    payload: PlanCaptureRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    async def handler() -> Dict[str, Any]:
        subscription = await context.billing.capture_direct_plan(user.uid, payload.order_id, payload.plan_id)
        return {"success": True, "subscription": subscription.model_dump(mode="json")}

    return await context.idempotency.run(
        user.uid, "paypal.capture-order", idem_key, payload.model_dump(), handler,
    )
