from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder

from saasbase.core.context import AppContext, get_context
from saasbase.core.repositories import PaymentStatus, PaymentType
from saasbase.core.session import CurrentUser, require_admin
from saasbase.schemas import (
    BalanceUpdateRequest,
    CreditProductCreateRequest,
    CreditProductUpdateRequest,
    OrderStatusUpdateRequest,
    PlanCreateRequest,
    PlanUpdateRequest,
    SubscriptionUpdateRequest,
)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _data(payload: Any) -> Dict[str, Any]:
    return {"success": True, "data": payload}


def _page(items, limit: int, offset: int, total: Optional[int] = None) -> Dict[str, Any]:
    pagination: Dict[str, Any] = {"limit": limit, "offset": offset}
    if total is not None:
        pagination["total"] = total
    return {"success": True, "data": items, "pagination": pagination}


# -----------------------------------------------------------------------------
# Plans
# -----------------------------------------------------------------------------

@router.get("/plans")
async def list_plans(
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Every plan regardless of status, cheapest first."""
    return _data([p.model_dump(mode="json") for p in context.admin.list_plans()])


@router.post("/plans", status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    plan = context.admin.create_plan(payload.model_dump(exclude_none=True), admin.uid)
    return _data(plan.model_dump(mode="json"))


@router.get("/plans/{plan_id}")
async def get_plan(
    plan_id: str,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    return _data(context.admin.get_plan(plan_id).model_dump(mode="json"))


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: str,
    payload: PlanUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    plan = context.admin.update_plan(plan_id, payload.model_dump(exclude_unset=True), admin.uid)
    return _data(plan.model_dump(mode="json"))


# -----------------------------------------------------------------------------
# Credit products
# -----------------------------------------------------------------------------

@router.get("/credit-products")
async def list_credit_products(
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    return _data([p.model_dump(mode="json") for p in context.admin.list_credit_products()])


@router.post("/credit-products", status_code=status.HTTP_201_CREATED)
async def create_credit_product(
    payload: CreditProductCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    product = context.admin.create_credit_product(payload.model_dump(exclude_none=True), admin.uid)
    return _data(product.model_dump(mode="json"))


@router.get("/credit-products/{product_id}")
async def get_credit_product(
    product_id: str,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    return _data(context.admin.get_credit_product(product_id).model_dump(mode="json"))


@router.put("/credit-products/{product_id}")
async def update_credit_product(
    product_id: str,
    payload: CreditProductUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    product = context.admin.update_credit_product(product_id, payload.model_dump(exclude_unset=True), admin.uid)
    return _data(product.model_dump(mode="json"))


# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------

@router.get("/orders")
async def list_orders(
    order_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_type: Optional[PaymentType] = Query(None, alias="type"),
    user_id: Optional[str] = Query(None, max_length=128),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Orders of every user, newest first."""
    orders, total = context.admin.list_orders(
        status=order_status, payment_type=payment_type, user_id=user_id, limit=limit, offset=offset,
    )
    return _page([o.to_public_dict() for o in orders], limit, offset, total)


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    return _data(context.admin.get_order(order_id).to_public_dict())


@router.put("/orders/{order_id}")
async def update_order(
    order_id: str,
    payload: OrderStatusUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    """Force an order status. Completing an order here grants nothing."""
    return _data(context.admin.update_order_status(order_id, payload.status, admin.uid).to_public_dict())


# -----------------------------------------------------------------------------
# Subscriptions and credits
# -----------------------------------------------------------------------------

@router.get("/subscriptions")
async def list_subscriptions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    subscriptions = context.admin.list_subscriptions(limit=limit, offset=offset)
    return _page([s.model_dump(mode="json", exclude={"plan"}) for s in subscriptions], limit, offset)


@router.put("/subscriptions/{user_id}")
async def update_subscription(
    user_id: str,
    payload: SubscriptionUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    subscription = context.admin.update_subscription(
        user_id,
        admin.uid,
        plan_id=payload.plan_id,
        status=payload.status,
        current_period_end=payload.current_period_end,
    )
    return _data(subscription.model_dump(mode="json", exclude={"plan"}))


@router.get("/user-credits")
async def list_user_credits(
    user_id: Optional[str] = Query(None, max_length=128),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    balances = context.admin.list_credits(user_id=user_id, limit=limit, offset=offset)
    return _page([b.model_dump(mode="json") for b in balances], limit, offset)


@router.put("/user-credits/{user_id}")
async def set_user_credits(
    user_id: str,
    payload: BalanceUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    return _data(context.admin.set_balance(user_id, payload.balance, admin.uid).model_dump(mode="json"))


# -----------------------------------------------------------------------------
# Job log
# -----------------------------------------------------------------------------

@router.get("/logs")
async def list_cron_logs(
    job_name: Optional[str] = Query(None, max_length=100),
    log_status: Optional[str] = Query(None, alias="status", max_length=20),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    entries = context.admin.list_cron_logs(job_name=job_name, status=log_status, limit=limit, offset=offset)
    return _page(jsonable_encoder(entries), limit, offset)
