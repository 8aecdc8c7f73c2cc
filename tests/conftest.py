"""
Shared fixtures: an application context wired with in-memory collaborators.

Run with: pytest tests/ -v
"""

from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from google.api_core.exceptions import AlreadyExists, NotFound

from saasbase.core.catalog import CatalogService, CatalogStatus, CreditProduct, Plan
from saasbase.core.catalog.service import DEFAULT_CREDIT_PRODUCTS, DEFAULT_PLANS
from saasbase.core.context import AppContext
from saasbase.core.cron_log import CronLogger
from saasbase.core.errors import NotFoundError
from saasbase.core.idempotency import IdempotencyStore
from saasbase.core.payments import (
    CaptureResult,
    OrderHandle,
    PaymentOrder,
    PaymentProvider,
    ProviderOrderRecord,
    ProviderRegistry,
)
from saasbase.core.repositories import (
    CreditBalance,
    Order,
    PaymentStatus,
    PaymentType,
    Subscription,
    UsageRecord,
    usage_period,
)
from saasbase.main import create_app


# -----------------------------------------------------------------------------
# Firestore document store (create/set/update/delete/add only)
# -----------------------------------------------------------------------------

class FakeSnapshot:
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, docs: Dict[str, Dict[str, Any]], doc_id: str):
        self._docs = docs
        self.id = doc_id

    def create(self, data: Dict[str, Any]) -> None:
        if self.id in self._docs:
            raise AlreadyExists(f"Document {self.id} already exists")
        self._docs[self.id] = dict(data)

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        if merge and self.id in self._docs:
            self._docs[self.id].update(data)
        else:
            self._docs[self.id] = dict(data)

    def update(self, data: Dict[str, Any]) -> None:
        if self.id not in self._docs:
            raise NotFound(f"Document {self.id} not found")
        self._docs[self.id].update(data)

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._docs.get(self.id))

    def delete(self) -> None:
        self._docs.pop(self.id, None)


class FakeCollection:
    def __init__(self, docs: Dict[str, Dict[str, Any]]):
        self.docs = docs
        self._ids = count(1)

    def document(self, doc_id: str) -> FakeDocumentRef:
        return FakeDocumentRef(self.docs, doc_id)

    def add(self, data: Dict[str, Any]):
        ref = self.document(f"auto-{next(self._ids)}")
        ref.set(data)
        return None, ref


class FakeFirestore:
    def __init__(self):
        self._collections: Dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        return self._collections.setdefault(name, FakeCollection({}))


# -----------------------------------------------------------------------------
# Identity provider
# -----------------------------------------------------------------------------

class FakeIdentity:
    """ID tokens and session cookies issued for registered test users."""

    def __init__(self):
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.closed = False

    def add_user(self, uid: str, email: Optional[str] = None, **custom_claims: Any) -> str:
        token = f"token-{uid}"
        self.tokens[token] = {"uid": uid, "email": email or f"{uid}@example.com", "email_verified": True}
        self.tokens[token].update(custom_claims)
        return token

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        if id_token not in self.tokens:
            raise ValueError("Invalid ID token")
        return dict(self.tokens[id_token])

    def verify_session_cookie(self, session_cookie: str) -> Dict[str, Any]:
        if session_cookie not in self.sessions:
            raise ValueError("Invalid session cookie")
        return dict(self.sessions[session_cookie])

    def create_session_cookie(self, id_token: str, expires_in) -> str:
        claims = self.verify_id_token(id_token)
        cookie = f"session-{claims['uid']}"
        self.sessions[cookie] = claims
        return cookie

    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        for claims in self.tokens.values():
            if claims["uid"] == uid:
                return {"uid": uid, "email": claims["email"], "email_verified": True}
        return None

    def close(self) -> None:
        self.closed = True


# -----------------------------------------------------------------------------
# Catalog / repositories
# -----------------------------------------------------------------------------

class FakeCatalogRepository:
    def __init__(self, plans: List[Plan], products: List[CreditProduct]):
        self._plans = {p.id: p for p in plans}
        self._products = {p.id: p for p in products}
        self.saved: List[Any] = []

    def plans(self) -> Dict[str, Plan]:
        return {k: p for k, p in self._plans.items() if p.status == CatalogStatus.ACTIVE}

    def credit_products(self) -> Dict[str, CreditProduct]:
        return {k: p for k, p in self._products.items() if p.status == CatalogStatus.ACTIVE}

    def all_plans(self) -> Dict[str, Plan]:
        return dict(self._plans)

    def all_credit_products(self) -> Dict[str, CreditProduct]:
        return dict(self._products)

    def invalidate(self) -> None:
        pass

    def save(self, item) -> None:
        self.saved.append(item)
        target = self._plans if isinstance(item, Plan) else self._products
        target[item.id] = item


class FakeAccountRepository:
    def __init__(self):
        self.subscriptions: Dict[str, Subscription] = {}
        self.balances: Dict[str, int] = {}
        self.usage: Dict[Tuple[str, str, str], int] = {}
        self.captured: Dict[str, Dict[str, Any]] = {}
        self.favorites: Dict[str, List[Dict[str, Any]]] = {}

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        sub = self.subscriptions.get(user_id)
        return sub.model_copy() if sub else None

    def replace_subscription(self, subscription: Subscription) -> Subscription:
        self.subscriptions[subscription.user_id] = subscription.model_copy(update={"plan": None})
        return subscription

    def get_balance(self, user_id: str) -> int:
        return self.balances.get(user_id, 0)

    def add_credits(self, user_id: str, amount: int) -> CreditBalance:
        self.balances[user_id] = self.get_balance(user_id) + amount
        return CreditBalance(user_id=user_id, balance=self.balances[user_id])

    def consume_credit(self, user_id: str, amount: int = 1) -> Optional[int]:
        current = self.get_balance(user_id)
        if current < amount:
            return None
        self.balances[user_id] = current - amount
        return self.balances[user_id]

    def get_usage(self, user_id: str, feature_name: str, period: Optional[str] = None) -> int:
        return self.usage.get((user_id, feature_name, period or usage_period()), 0)

    def increment_usage(self, user_id: str, feature_name: str, period: Optional[str] = None) -> int:
        key = (user_id, feature_name, period or usage_period())
        self.usage[key] = self.usage.get(key, 0) + 1
        return self.usage[key]

    def list_usage(self, user_id: str) -> List[UsageRecord]:
        return [
            UsageRecord(user_id=uid, feature_name=feature, usage_count=value, period=period)
            for (uid, feature, period), value in self.usage.items()
            if uid == user_id
        ]

    def fulfill_direct_credits(self, provider, provider_order_id, user_id, credits, product_id):
        key = f"{provider}__{provider_order_id}"
        if key in self.captured:
            return CreditBalance(user_id=user_id, balance=self.get_balance(user_id)), False
        self.captured[key] = {"user_id": user_id, "type": "credits", "product_id": product_id}
        return self.add_credits(user_id, credits), True

    def fulfill_direct_subscription(self, provider, provider_order_id, subscription):
        key = f"{provider}__{provider_order_id}"
        if key in self.captured:
            return self.get_subscription(subscription.user_id) or subscription, False
        self.captured[key] = {"user_id": subscription.user_id, "type": "subscription"}
        self.replace_subscription(subscription)
        return subscription, True

    def list_subscriptions(self, limit: int = 20, offset: int = 0) -> List[Subscription]:
        return list(self.subscriptions.values())[offset:offset + limit]

    def set_balance(self, user_id: str, balance: int) -> CreditBalance:
        self.balances[user_id] = balance
        return CreditBalance(user_id=user_id, balance=balance)

    def list_balances(self, user_id: Optional[str] = None, limit: int = 10, offset: int = 0) -> List[CreditBalance]:
        users = [user_id] if user_id else sorted(self.balances)
        return [
            CreditBalance(user_id=uid, balance=self.balances[uid]) for uid in users if uid in self.balances
        ][offset:offset + limit]

    def list_favorites(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self.favorites.get(user_id, [])[:limit]


class FakeOrderRepository:
    def __init__(self, accounts: FakeAccountRepository):
        self.accounts = accounts
        self.orders: Dict[str, Order] = {}

    def create(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)

    def get_for_user(self, order_id: str, user_id: str) -> Optional[Order]:
        order = self.get(order_id)
        if order is None or order.user_id != user_id:
            return None
        return order

    def list_for_user(self, user_id, payment_type=None, limit=20, offset=0) -> List[Order]:
        orders = [
            o for o in self.orders.values()
            if o.user_id == user_id and (payment_type is None or o.type == payment_type)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[offset:offset + limit]

    def list_pending(self, provider: Optional[str] = None, limit: int = 200) -> List[Order]:
        return [
            o for o in self.orders.values()
            if o.status == PaymentStatus.PENDING and (provider is None or o.provider == provider)
        ][:limit]

    def list_all(self, status=None, payment_type=None, user_id=None, limit=20, offset=0) -> Tuple[List[Order], int]:
        orders = [
            o for o in self.orders.values()
            if (status is None or o.status == status)
            and (payment_type is None or o.type == payment_type)
            and (user_id is None or o.user_id == user_id)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[offset:offset + limit], len(orders)

    def update(self, order_id: str, fields: Dict[str, Any]) -> Order:
        if order_id not in self.orders:
            raise NotFoundError("Order not found")
        updated = self.orders[order_id].model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self.orders[order_id] = updated
        return updated

    def _complete(self, order_id: str) -> Tuple[Order, bool]:
        order = self.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.status == PaymentStatus.COMPLETED:
            return order, False
        now = datetime.now(timezone.utc)
        completed = order.model_copy(update={"status": PaymentStatus.COMPLETED, "completed_at": now})
        self.orders[order_id] = completed
        return completed, True

    def fulfill_credits(self, order_id: str, credits: int):
        order, applied = self._complete(order_id)
        if not applied:
            return order, CreditBalance(user_id=order.user_id, balance=self.accounts.get_balance(order.user_id)), False
        return order, self.accounts.add_credits(order.user_id, credits), True

    def fulfill_subscription(self, order_id: str, subscription: Subscription):
        order, applied = self._complete(order_id)
        if not applied:
            return order, self.accounts.get_subscription(order.user_id) or subscription, False
        self.accounts.replace_subscription(subscription)
        return order, subscription, True


class FakeCronLogRepository:
    """Reads the entries CronLogger wrote to the fake Firestore."""

    def __init__(self, db: FakeFirestore):
        self.db = db

    def list(self, job_name=None, status=None, limit=50, offset=0) -> List[Dict[str, Any]]:
        entries = [
            {**entry, "id": doc_id}
            for doc_id, entry in self.db.collection("cron_job_logs").docs.items()
            if (job_name is None or entry["job_name"] == job_name) and (status is None or entry["status"] == status)
        ]
        entries.sort(key=lambda e: e["created_at"], reverse=True)
        return entries[offset:offset + limit]


# -----------------------------------------------------------------------------
# Payment providers
# -----------------------------------------------------------------------------

class FakeProvider(PaymentProvider):
    """Records calls; capture outcome is set per test."""

    def __init__(self, name: str):
        self.name = name
        self.created: List[PaymentOrder] = []
        self.captured: List[str] = []
        self.capture_success = True
        self.capture_status = "COMPLETED"
        self.capture_raw: Dict[str, Any] = {}
        self.create_error: Optional[Exception] = None
        self._ids = count(1)

    async def create_order(self, order: PaymentOrder) -> OrderHandle:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(order)
        provider_order_id = f"{self.name}-{next(self._ids)}"
        return OrderHandle(
            provider=self.name,
            provider_order_id=provider_order_id,
            status="CREATED",
            redirect_url=f"https://pay.example.com/{provider_order_id}",
            raw={"id": provider_order_id, "status": "CREATED", "amount": order.amount},
        )

    async def capture_order(self, provider_order_id: str) -> CaptureResult:
        self.captured.append(provider_order_id)
        return CaptureResult(success=self.capture_success, status=self.capture_status, raw=self.capture_raw)

    async def get_order(self, provider_order_id: str) -> ProviderOrderRecord:
        return ProviderOrderRecord(provider=self.name, provider_order_id=provider_order_id, status=self.capture_status)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
def firestore_db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def catalog_repo() -> FakeCatalogRepository:
    return FakeCatalogRepository(DEFAULT_PLANS, DEFAULT_CREDIT_PRODUCTS)


@pytest.fixture
def catalog(catalog_repo) -> CatalogService:
    return CatalogService(catalog_repo)


@pytest.fixture
def accounts() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def orders(accounts) -> FakeOrderRepository:
    return FakeOrderRepository(accounts)


@pytest.fixture
def paypal() -> FakeProvider:
    return FakeProvider("paypal")


@pytest.fixture
def tokenpay() -> FakeProvider:
    provider = FakeProvider("tokenpay")
    provider.capture_status = "completed"
    return provider


@pytest.fixture
def providers(paypal, tokenpay) -> ProviderRegistry:
    return ProviderRegistry([paypal, tokenpay])


@pytest.fixture
def context(identity, catalog, orders, accounts, providers, firestore_db) -> AppContext:
    return AppContext(
        identity=identity,
        catalog=catalog,
        orders=orders,
        accounts=accounts,
        providers=providers,
        idempotency=IdempotencyStore(firestore_db),
        cron_logger=lambda job_name: CronLogger(firestore_db, job_name),
        cron_logs=FakeCronLogRepository(firestore_db),
    )


@pytest.fixture
def client(context):
    with TestClient(create_app(context=context)) as test_client:
        yield test_client


@pytest.fixture
def alice(identity) -> Dict[str, str]:
    """Bearer headers for user ``alice``."""
    return {"Authorization": f"Bearer {identity.add_user('alice')}"}


@pytest.fixture
def bob(identity) -> Dict[str, str]:
    return {"Authorization": f"Bearer {identity.add_user('bob')}"}


@pytest.fixture
def admin(identity) -> Dict[str, str]:
    """Bearer headers for a user carrying the ``admin`` custom claim."""
    return {"Authorization": f"Bearer {identity.add_user('root', admin=True)}"}


def _make_order(
    order_id: str = "order-1",
    user_id: str = "alice",
    payment_type: PaymentType = PaymentType.CREDITS,
    provider: str = "paypal",
    status: PaymentStatus = PaymentStatus.PENDING,
    amount_cents: int = 500,
    product_id: str = "credits-100",
    credits: int = 100,
) -> Order:
    metadata = {"credits": credits} if payment_type == PaymentType.CREDITS else {}
    return Order(
        id=order_id,
        user_id=user_id,
        type=payment_type,
        provider=provider,
        provider_order_id=f"{provider}-{order_id}",
        status=status,
        amount_cents=amount_cents,
        product_id=product_id,
        product_type=payment_type.value,
        product_name=product_id,
        metadata=metadata,
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def make_order():
    """Factory for stored orders (defaults: pending 100-credit PayPal order of alice)."""
    return _make_order
