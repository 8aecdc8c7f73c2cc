"""
Tracked payment orders.

Orders are stored locally before the provider is called and can be looked
up and captured only by their owner.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query

from saasbase.core.billing import CreatedOrder
from saasbase.core.context import AppContext, get_context
from saasbase.core.idempotency import idempotency_key
from saasbase.core.payments import DEFAULT_TOKENPAY_CURRENCY, TOKENPAY_CURRENCIES
from saasbase.core.repositories import PaymentType
from saasbase.core.security import validate_identifier
from saasbase.core.session import CurrentUser, get_current_user
from saasbase.schemas import CaptureOrderRequest, CheckoutRequest, PaymentOrderRequest

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


def _provider_order(created: CreatedOrder) -> Dict[str, Any]:
    return {
        "id": created.handle.provider_order_id,
        "status": created.handle.status,
        "redirectUrl": created.handle.redirect_url,
    }


@router.get("/currencies")
async def list_currencies() -> Dict[str, Any]:
    """Crypto currencies accepted by TokenPay."""
    return {"success": True, "data": TOKENPAY_CURRENCIES, "default": DEFAULT_TOKENPAY_CURRENCY}


@router.post("/create-order")
async def create_payment_order(
    payload: PaymentOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    async def handler() -> Dict[str, Any]:
        created = await context.billing.create_payment_order(
            user.uid,
            payload.type,
            payload.product_id,
            provider_name=payload.provider,
            currency=payload.currency,
        )
        return {
            "success": True,
            "order": created.order.to_public_dict(),
            "providerOrder": _provider_order(created),
        }

    return await context.idempotency.run(
        user.uid, "payments.create-order", idem_key, payload.model_dump(mode="json"), handler,
    )


@router.post("/checkout")
async def checkout(
    payload: CheckoutRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    """Create one order for the cart; prices come from the catalog."""
    async def handler() -> Dict[str, Any]:
        created = await context.billing.checkout(
            user.uid,
            [item.to_line() for item in payload.items],
            provider_name=payload.payment_method,
            currency=payload.currency,
        )
        return {
            "success": True,
            "orderId": created.order.id,
            "redirectUrl": created.handle.redirect_url,
            "providerOrderId": created.handle.provider_order_id,
        }

    return await context.idempotency.run(
        user.uid, "payments.checkout", idem_key, payload.model_dump(mode="json"), handler,
    )


@router.post("/capture-order")
async def capture_payment_order(
    payload: CaptureOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    async def handler() -> Dict[str, Any]:
        outcome = await context.billing.capture_order(user.uid, payload.order_id)
        return {"success": True, "order": outcome.order.to_public_dict()}

    return await context.idempotency.run(
        user.uid, "payments.capture-order", idem_key, payload.model_dump(), handler,
    )


@router.get("/orders")
async def list_orders(
    type: Optional[PaymentType] = Query(default=None),
    limit: int = Query(default=20),
    offset: int = Query(default=0),
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    orders = context.billing.list_user_orders(user.uid, type, limit=limit, offset=offset)
    return {
        "success": True,
        "data": [order.to_public_dict() for order in orders],
        "pagination": {"limit": limit, "offset": offset, "count": len(orders)},
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str = Path(..., max_length=100),
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Order owned by the caller; anyone else's order is reported as not found."""
    order = context.billing.get_user_order(user.uid, validate_identifier(order_id, "orderId"))
    return {"success": True, "data": order.to_public_dict()}


@router.post("/orders/{order_id}/capture")
async def capture_order(
    order_id: str = Path(..., max_length=100),
    user: CurrentUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
    idem_key: Optional[str] = Depends(idempotency_key),
) -> Dict[str, Any]:
    order_id = validate_identifier(order_id, "orderId")

    async def handler() -> Dict[str, Any]:
        outcome = await context.billing.capture_order(user.uid, order_id)
        response: Dict[str, Any] = {"success": True, "data": outcome.order.to_public_dict()}
        if outcome.message:
            response["message"] = outcome.message
        return response

    return await context.idempotency.run(
        user.uid, "payments.orders.capture", idem_key, {"orderId": order_id}, handler,
    )
