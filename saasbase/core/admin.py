"""
Back-office operations.

Catalog maintenance and manual corrections of orders, subscriptions and
credit balances. Callers are expected to have checked the admin claim.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import ValidationError as PydanticValidationError

from saasbase.config import logger
from saasbase.core.catalog import CatalogService, CreditProduct, Plan
from saasbase.core.cron_log import CronLogRepository
from saasbase.core.errors import NotFoundError, ValidationError
from saasbase.core.repositories import (
    AccountRepository,
    CreditBalance,
    Order,
    OrderRepository,
    PaymentStatus,
    PaymentType,
    Subscription,
)

SUBSCRIPTION_STATUSES = ("active", "cancelled", "expired", "past_due")

CatalogItem = Union[Plan, CreditProduct]


def _validated(model: Type[CatalogItem], data: Dict[str, Any]) -> CatalogItem:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()[:5]]
        raise ValidationError(f"Invalid {model.__name__}", details={"errors": errors}) from e


class AdminService:
    def __init__(
        self,
        catalog: CatalogService,
        orders: OrderRepository,
        accounts: AccountRepository,
        cron_logs: CronLogRepository,
    ):
        self.catalog = catalog
        self.orders = orders
        self.accounts = accounts
        self.cron_logs = cron_logs

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_plans(self) -> List[Plan]:
        return self.catalog.list_all_plans()

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.catalog.find_any_plan(plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    def create_plan(self, data: Dict[str, Any], admin_id: str) -> Plan:
        plan = _validated(Plan, data)
        if self.catalog.find_any_plan(plan.id) is not None:
            raise ValidationError("Plan already exists", field="id")
        self.catalog.save(plan)
        logger.info("Plan %s created by admin %s", plan.id, admin_id)
        return plan

    def update_plan(self, plan_id: str, changes: Dict[str, Any], admin_id: str) -> Plan:
        """Apply a partial update; the id never changes."""
        existing = self.get_plan(plan_id)
        plan = _validated(Plan, {**existing.model_dump(), **changes, "id": existing.id})
        self.catalog.save(plan)
        logger.info("Plan %s updated by admin %s: %s", plan.id, admin_id, sorted(changes))
        return plan

    def list_credit_products(self) -> List[CreditProduct]:
        return self.catalog.list_all_credit_products()

    def get_credit_product(self, product_id: str) -> CreditProduct:
        product = self.catalog.find_any_credit_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def create_credit_product(self, data: Dict[str, Any], admin_id: str) -> CreditProduct:
        product = _validated(CreditProduct, data)
        if self.catalog.find_any_credit_product(product.id) is not None:
            raise ValidationError("Product already exists", field="id")
        self.catalog.save(product)
        logger.info("Credit product %s created by admin %s", product.id, admin_id)
        return product

    def update_credit_product(self, product_id: str, changes: Dict[str, Any], admin_id: str) -> CreditProduct:
        existing = self.get_credit_product(product_id)
        product = _validated(CreditProduct, {**existing.model_dump(), **changes, "id": existing.id})
        self.catalog.save(product)
        logger.info("Credit product %s updated by admin %s: %s", product.id, admin_id, sorted(changes))
        return product

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def list_orders(
        self,
        status: Optional[PaymentStatus] = None,
        payment_type: Optional[PaymentType] = None,
        user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        return self.orders.list_all(status=status, payment_type=payment_type, user_id=user_id,
                                    limit=limit, offset=offset)

    def get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def update_order_status(self, order_id: str, status: PaymentStatus, admin_id: str) -> Order:
        """
        Force an order's status.

        Marking an order completed records ``completed_at`` but grants nothing;
        fulfillment only happens through a provider capture.
        """
        self.get_order(order_id)
        fields: Dict[str, Any] = {"status": status}
        if status == PaymentStatus.COMPLETED:
            fields["completed_at"] = datetime.now(timezone.utc)
        order = self.orders.update(order_id, fields)
        logger.warning("Order %s set to %s by admin %s", order_id, status.value, admin_id)
        return order

    # ------------------------------------------------------------------
    # Subscriptions and credits
    # ------------------------------------------------------------------

    def list_subscriptions(self, limit: int = 20, offset: int = 0) -> List[Subscription]:
        return self.accounts.list_subscriptions(limit=limit, offset=offset)

    def update_subscription(
        self,
        user_id: str,
        admin_id: str,
        plan_id: Optional[str] = None,
        status: Optional[str] = None,
        current_period_end: Optional[datetime] = None,
    ) -> Subscription:
        existing = self.accounts.get_subscription(user_id)
        if existing is None:
            raise NotFoundError("Subscription not found")
        changes: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc), "plan": None}
        if plan_id is not None:
            changes["plan_id"] = self.get_plan(plan_id).id
        if status is not None:
            if status not in SUBSCRIPTION_STATUSES:
                raise ValidationError("Invalid subscription status", field="status")
            changes["status"] = status
        if current_period_end is not None:
            changes["current_period_end"] = current_period_end
        subscription = self.accounts.replace_subscription(existing.model_copy(update=changes))
        logger.warning("Subscription of %s updated by admin %s", user_id, admin_id)
        return subscription

    def list_credits(self, user_id: Optional[str] = None, limit: int = 10, offset: int = 0) -> List[CreditBalance]:
        return self.accounts.list_balances(user_id=user_id, limit=limit, offset=offset)

    def set_balance(self, user_id: str, balance: int, admin_id: str) -> CreditBalance:
        if balance < 0:
            raise ValidationError("Balance cannot be negative", field="balance")
        result = self.accounts.set_balance(user_id, balance)
        logger.warning("Credit balance of %s set to %d by admin %s", user_id, balance, admin_id)
        return result

    # ------------------------------------------------------------------
    # Job log
    # ------------------------------------------------------------------

    def list_cron_logs(
        self,
        job_name: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        return self.cron_logs.list(job_name=job_name, status=status, limit=limit, offset=offset)
