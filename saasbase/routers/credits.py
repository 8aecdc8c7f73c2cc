from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from saasbase.core.context import AppContext, get_context
from saasbase.core.idempotency import idempotency_key
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import BalanceResponse, CreditCaptureRequest, CreditOrderRequest

router = APIRouter(prefix="/api/v1/credits", tags=["Credits"])


@router.get("/products")
async def list_credit_products(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    products = context.catalog.list_credit_products()
    return {"success": True, "data": [p.model_dump(mode="json") for p in products]}


@router.get("/balance", response_model=BalanceResponse)
async def credit_balance(
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> BalanceResponse:
    return BalanceResponse(balance=context.subscriptions.get_user_credits(user.uid))


@router.post("/create-order")
async def create_credit_order(
    payload: CreditOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    """Create a PayPal order for a credit product; returns the PayPal order as-is."""
    async def handler() -> Dict[str, Any]:
        return await context.billing.issue_credit_order(user.uid, payload.product_id)

    return await context.idempotency.run(
        user.uid, "credits.create-order", idem_key, payload.model_dump(), handler,
    )


@router.post("/capture-order", response_model=BalanceResponse)
async def capture_credit_order(
    payload: CreditCaptureRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    async def handler() -> Dict[str, Any]:
        balance = await context.billing.capture_direct_credits(user.uid, payload.order_id, payload.product_id)
        return {"success": True, "balance": balance.balance}

    return await context.idempotency.run(
        user.uid, "credits.capture-order", idem_key, payload.model_dump(), handler,
    )
