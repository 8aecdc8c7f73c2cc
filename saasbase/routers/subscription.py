from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from saasbase.core.context import AppContext, get_context
from saasbase.core.idempotency import idempotency_key
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import SubscribeRequest

router = APIRouter(prefix="/api/v1", tags=["Subscription"])


@router.get("/plans")
async def list_plans(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    """Public plan list, cheapest first."""
    plans = context.catalog.list_plans()
    return {"success": True, "data": [plan.model_dump(mode="json") for plan in plans]}


@router.get("/subscription")
async def get_subscription(
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    subscription = context.subscriptions.get_user_subscription(user.uid)
    return {
        "success": True,
        "subscription": subscription.model_dump(mode="json") if subscription else None,
    }


@router.post("/subscription/subscribe")
async def subscribe(
    payload: SubscribeRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    """Switch to a plan that needs no payment; paid plans go through the payment flow."""
    async def handler() -> Dict[str, Any]:
        subscription = context.subscriptions.update_user_subscription(user.uid, payload.plan_id)
        return {"success": True, "subscription": subscription.model_dump(mode="json")}

    return await context.idempotency.run(
        user.uid, "subscription.subscribe", idem_key, payload.model_dump(), handler,
    )
