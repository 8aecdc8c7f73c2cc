"""
Billing Service

Order issuance, lookup and fulfillment.

Two flows are supported:

- Direct (card) orders: the provider order payload is returned to the
  browser and nothing is stored locally until capture. Captures are recorded
  in a ledger keyed on the provider order id so each one is applied once.
- Tracked orders: a local ``pending`` order is written first and moved to
  ``completed`` in the same transaction that grants credits or replaces the
  subscription.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from saasbase.config import DEFAULT_CURRENCY, logger
from saasbase.core.catalog import CatalogService, CreditProduct, Plan
from saasbase.core.errors import AppError, NotFoundError, ValidationError
from saasbase.core.payments import (
    DEFAULT_PROVIDER,
    DEFAULT_TOKENPAY_CURRENCY,
    OrderHandle,
    PaymentOrder,
    ProviderRegistry,
)
from saasbase.core.payments.tokenpay import PROVIDER_NAME as TOKENPAY, is_supported_currency
from saasbase.core.repositories import (
    AccountRepository,
    CreditBalance,
    Order,
    OrderRepository,
    PaymentStatus,
    PaymentType,
    Subscription,
    new_order_id,
)
from saasbase.core.security import MAX_CART_ITEMS, MAX_ITEM_QUANTITY
from saasbase.core.subscriptions import new_subscription

MAX_PAGE_SIZE = 100

# Provider statuses after which a pending order can never complete
TERMINAL_PROVIDER_STATUSES = frozenset({"failed", "expired", "cancelled", "canceled", "voided"})


class CartLine(BaseModel):
    """One checkout line. Prices always come from the catalog."""

    id: str = Field(..., min_length=1, max_length=100)
    type: PaymentType
    quantity: int = Field(default=1, ge=1, le=MAX_ITEM_QUANTITY)


class CreatedOrder(BaseModel):
    order: Order
    handle: OrderHandle


class CaptureOutcome(BaseModel):
    order: Order
    applied: bool
    message: Optional[str] = None
    balance: Optional[int] = None
    subscription: Optional[Subscription] = None


def captured_amount(raw: Dict[str, Any]) -> Optional[str]:
    """Amount of the first capture in a PayPal capture payload, if present."""
    try:
        captures = raw["purchase_units"][0]["payments"]["captures"]
        return captures[0]["amount"]["value"]
    except (KeyError, IndexError, TypeError):
        return None


def _same_amount(value: str, expected: str) -> bool:
    try:
        return Decimal(value) == Decimal(expected)
    except InvalidOperation:
        return False


class BillingService:
    def __init__(
        self,
        catalog: CatalogService,
        orders: OrderRepository,
        accounts: AccountRepository,
        providers: ProviderRegistry,
    ):
        self.catalog = catalog
        self.orders = orders
        self.accounts = accounts
        self.providers = providers

    # ------------------------------------------------------------------
    # Direct orders
    # ------------------------------------------------------------------

    def _payable_plan(self, plan_id: str) -> Plan:
        plan = self.catalog.get_plan(plan_id)
        if plan.is_free:
            raise ValidationError("Free plan does not require payment", field="planId")
        return plan

    async def issue_plan_order(self, user_id: str, plan_id: str) -> Dict[str, Any]:
        """Create a card order for a paid plan and return the provider payload."""
        plan = self._payable_plan(plan_id)
        provider = self.providers.get(DEFAULT_PROVIDER)
        handle = await provider.create_order(PaymentOrder(
            user_id=user_id,
            amount_cents=plan.price_cents,
            currency=plan.currency,
            type=PaymentType.SUBSCRIPTION,
            items=[{"id": plan.id, "name": plan.name, "quantity": 1}],
        ))
        logger.info("Issued %s order %s for plan %s (user %s)", provider.name, handle.provider_order_id, plan.id, user_id)
        return handle.raw

    async def issue_credit_order(self, user_id: str, product_id: str) -> Dict[str, Any]:
        product = self.catalog.get_credit_product(product_id)
        provider = self.providers.get(DEFAULT_PROVIDER)
        handle = await provider.create_order(PaymentOrder(
            user_id=user_id,
            amount_cents=product.price_cents,
            currency=product.currency,
            type=PaymentType.CREDITS,
            items=[{"id": product.id, "name": product.name, "quantity": 1}],
        ))
        logger.info(
            "Issued %s order %s for product %s (user %s)",
            provider.name, handle.provider_order_id, product.id, user_id,
        )
        return handle.raw

    async def _capture_direct(self, provider_order_id: str, expected_amount: str) -> None:
        provider = self.providers.get(DEFAULT_PROVIDER)
        result = await provider.capture_order(provider_order_id)
        if not result.success:
            raise ValidationError(f"Payment not completed: {result.status}")
        amount = captured_amount(result.raw)
        if amount is not None and not _same_amount(amount, expected_amount):
            logger.error(
                "Captured amount %s for %s does not match expected %s",
                amount, provider_order_id, expected_amount,
            )
            raise ValidationError("Amount mismatch")

    async def capture_direct_plan(self, user_id: str, provider_order_id: str, plan_id: str) -> Subscription:
        """Capture a direct plan order and assign the plan to the user."""
        plan = self._payable_plan(plan_id)
        await self._capture_direct(provider_order_id, plan.amount)

        subscription, applied = self.accounts.fulfill_direct_subscription(
            DEFAULT_PROVIDER, provider_order_id, new_subscription(user_id, plan.id),
        )
        if applied:
            logger.info("User %s subscribed to %s via order %s", user_id, plan.id, provider_order_id)
        else:
            logger.warning("Order %s was already captured; subscription unchanged", provider_order_id)
        return subscription.model_copy(update={"plan": self.catalog.find_plan(subscription.plan_id)})

    async def capture_direct_credits(self, user_id: str, provider_order_id: str, product_id: str) -> CreditBalance:
        """Capture a direct credit order and add the credits to the user's balance."""
        product = self.catalog.get_credit_product(product_id)
        await self._capture_direct(provider_order_id, product.amount)

        balance, applied = self.accounts.fulfill_direct_credits(
            DEFAULT_PROVIDER, provider_order_id, user_id, product.credits_amount, product.id,
        )
        if applied:
            logger.info("Added %d credits to %s via order %s", product.credits_amount, user_id, provider_order_id)
        else:
            logger.warning("Order %s was already captured; balance unchanged", provider_order_id)
        return balance

    # ------------------------------------------------------------------
    # Tracked orders
    # ------------------------------------------------------------------

    def _resolve_currency(self, provider_name: str, requested: Optional[str], catalog_currency: str) -> str:
        if provider_name == TOKENPAY:
            if requested and not is_supported_currency(requested):
                raise ValidationError("Unsupported currency", field="currency")
            return requested or DEFAULT_TOKENPAY_CURRENCY
        return catalog_currency or DEFAULT_CURRENCY

    def _resolve_line(self, line: CartLine) -> Tuple[Any, int, Dict[str, Any]]:
        """Catalog item, line total in cents and the stored line snapshot."""
        item: Any
        if line.type == PaymentType.SUBSCRIPTION:
            item = self.catalog.get_plan(line.id)
            if item.is_free:
                raise ValidationError("Free plan does not require payment", field="productId")
            if line.quantity != 1:
                raise ValidationError("Subscriptions are purchased one at a time", field="quantity")
        else:
            item = self.catalog.get_credit_product(line.id)

        snapshot = {
            "id": item.id,
            "name": item.name,
            "type": line.type.value,
            "quantity": line.quantity,
            "price_cents": item.price_cents,
        }
        if isinstance(item, CreditProduct):
            snapshot["credits"] = item.credits_amount * line.quantity
        return item, item.price_cents * line.quantity, snapshot

    async def _issue_tracked(
        self,
        user_id: str,
        lines: List[CartLine],
        provider_name: Optional[str],
        currency: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CreatedOrder:
        provider = self.providers.get(provider_name)

        resolved = [self._resolve_line(line) for line in lines]
        payment_types = {line.type for line in lines}
        if len(payment_types) != 1:
            raise ValidationError("All cart items must be of the same type", field="items")
        payment_type = payment_types.pop()
        if payment_type == PaymentType.SUBSCRIPTION and len(lines) != 1:
            raise ValidationError("Subscriptions are purchased one at a time", field="items")

        first, _, _ = resolved[0]
        amount_cents = sum(total for _, total, _ in resolved)
        items = [snapshot for _, _, snapshot in resolved]
        name = first.name if len(items) == 1 else f"{first.name} and {len(items) - 1} more"

        order_metadata = dict(metadata or {})
        order_metadata["items"] = items
        if payment_type == PaymentType.CREDITS:
            order_metadata["credits"] = sum(item["credits"] for item in items)

        order = self.orders.create(Order(
            id=new_order_id(),
            user_id=user_id,
            type=payment_type,
            provider=provider.name,
            status=PaymentStatus.PENDING,
            amount_cents=amount_cents,
            currency=self._resolve_currency(provider.name, currency, first.currency),
            product_id=first.id,
            product_type=payment_type.value,
            product_name=name,
            metadata=order_metadata,
            created_at=datetime.now(timezone.utc),
        ))

        try:
            handle = await provider.create_order(PaymentOrder(
                id=order.id,
                user_id=user_id,
                amount_cents=order.amount_cents,
                currency=order.currency,
                type=payment_type,
                items=items,
                metadata=order_metadata,
            ))
        except AppError as e:
            self.orders.update(order.id, {
                "status": PaymentStatus.FAILED,
                "metadata": {**order_metadata, "error": e.message},
            })
            logger.warning("Provider %s rejected order %s: %s", provider.name, order.id, e.message)
            raise

        order = self.orders.update(order.id, {"provider_order_id": handle.provider_order_id})
        logger.info("Created %s order %s (%s) for user %s", provider.name, order.id, handle.provider_order_id, user_id)
        return CreatedOrder(order=order, handle=handle)

    async def create_payment_order(
        self,
        user_id: str,
        payment_type: PaymentType,
        product_id: str,
        provider_name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> CreatedOrder:
        """Create a tracked order for a single plan or credit product."""
        line = CartLine(id=product_id, type=payment_type, quantity=1)
        return await self._issue_tracked(user_id, [line], provider_name, currency)

    async def checkout(
        self,
        user_id: str,
        items: List[CartLine],
        provider_name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> CreatedOrder:
        """Create one tracked order for the whole cart."""
        if not items:
            raise ValidationError("Cart is empty", field="items")
        if len(items) > MAX_CART_ITEMS:
            raise ValidationError(f"Cart cannot contain more than {MAX_CART_ITEMS} items", field="items")
        return await self._issue_tracked(
            user_id, items, provider_name, currency, metadata={"source": "checkout"},
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_user_order(self, user_id: str, order_id: str) -> Order:
        """Order owned by ``user_id``; foreign and missing orders look the same."""
        order = self.orders.get_for_user(order_id, user_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list_user_orders(
        self,
        user_id: str,
        payment_type: Optional[PaymentType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
        if offset < 0:
            raise ValidationError("offset must not be negative", field="offset")
        return self.orders.list_for_user(user_id, payment_type, limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Capture / fulfillment
    # ------------------------------------------------------------------

    def _order_credits(self, order: Order) -> int:
        credits = order.metadata.get("credits")
        if isinstance(credits, int) and credits > 0:
            return credits
        return self.catalog.get_credit_product(order.product_id).credits_amount

    async def _capture_tracked(self, order: Order, mark_failed: bool = True) -> CaptureOutcome:
        if order.status == PaymentStatus.COMPLETED:
            return CaptureOutcome(order=order, applied=False, message="Order already completed")
        if order.status.is_terminal_failure:
            raise ValidationError(f"Order is in {order.status.value} state")
        if not order.provider_order_id:
            raise ValidationError("Order has no provider reference")

        plan: Optional[Plan] = None
        if order.type == PaymentType.SUBSCRIPTION:
            plan = self.catalog.get_plan(order.product_id)
            if plan.price_cents != order.amount_cents:
                raise ValidationError("Amount mismatch")

        provider = self.providers.get(order.provider)
        result = await provider.capture_order(order.provider_order_id)
        if not result.success:
            settled = mark_failed or result.status.lower() in TERMINAL_PROVIDER_STATUSES
            if settled:
                self.orders.update(order.id, {"status": PaymentStatus.FAILED})
            order_status = PaymentStatus.FAILED if settled else PaymentStatus.PENDING
            raise ValidationError(
                f"Payment not completed: {result.status}",
                details={"order_status": order_status.value},
            )

        if plan is not None:
            completed, subscription, applied = self.orders.fulfill_subscription(
                order.id, new_subscription(order.user_id, plan.id),
            )
            outcome = CaptureOutcome(
                order=completed,
                applied=applied,
                subscription=subscription.model_copy(update={"plan": plan}),
            )
        else:
            completed, balance, applied = self.orders.fulfill_credits(order.id, self._order_credits(order))
            outcome = CaptureOutcome(order=completed, applied=applied, balance=balance.balance)

        if applied:
            logger.info("Order %s fulfilled for user %s", order.id, order.user_id)
        else:
            outcome.message = "Order already completed"
            logger.warning("Order %s was completed concurrently; nothing applied", order.id)
        return outcome

    async def capture_order(self, user_id: str, order_id: str) -> CaptureOutcome:
        """Capture a tracked order owned by ``user_id`` and fulfill it once."""
        order = self.get_user_order(user_id, order_id)
        return await self._capture_tracked(order)

    async def sync_pending_orders(self) -> List[Dict[str, Any]]:
        """
        Try to capture every pending order.

        Orders whose provider has not settled yet stay pending; per-order
        failures are collected rather than raised.
        """
        results: List[Dict[str, Any]] = []
        for order in self.orders.list_pending():
            try:
                outcome = await self._capture_tracked(order, mark_failed=False)
                results.append({"orderId": order.id, "status": outcome.order.status.value})
            except ValidationError as e:
                status = e.details.get("order_status", PaymentStatus.PENDING.value)
                results.append({"orderId": order.id, "status": status, "message": e.message})
            except AppError as e:
                logger.error("Sync of order %s failed: %s", order.id, e.message)
                results.append({"orderId": order.id, "status": "error", "message": e.message})
        return results
