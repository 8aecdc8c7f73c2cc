"""
Application context.

Every long-lived collaborator (identity provider, Firestore repositories,
payment providers) is constructed once at startup, stored on
``app.state.context`` and released at shutdown. Request handlers reach it
through ``get_context``.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import Request

from saasbase.config import logger
from saasbase.core.admin import AdminService
from saasbase.core.billing import BillingService
from saasbase.core.catalog import CatalogRepository, CatalogService
from saasbase.core.cron_log import CronLogger, CronLogRepository
from saasbase.core.firebase_client import FirebaseClient
from saasbase.core.idempotency import IdempotencyStore
from saasbase.core.payments import ProviderRegistry
from saasbase.core.repositories import AccountRepository, OrderRepository
from saasbase.core.subscriptions import SubscriptionService


@dataclass
class AppContext:
    identity: FirebaseClient
    catalog: CatalogService
    orders: OrderRepository
    accounts: AccountRepository
    providers: ProviderRegistry
    idempotency: IdempotencyStore
    cron_logger: Callable[[str], CronLogger]
    cron_logs: CronLogRepository
    billing: BillingService = field(init=False)
    subscriptions: SubscriptionService = field(init=False)
    admin: AdminService = field(init=False)

    def __post_init__(self) -> None:
        self.billing = BillingService(self.catalog, self.orders, self.accounts, self.providers)
        self.subscriptions = SubscriptionService(self.catalog, self.accounts)
        self.admin = AdminService(self.catalog, self.orders, self.accounts, self.cron_logs)

    @classmethod
    def build(cls, firebase: Optional[FirebaseClient] = None) -> "AppContext":
        """Wire the production context on top of Firebase."""
        firebase = firebase or FirebaseClient.from_config()
        db = firebase.db
        return cls(
            identity=firebase,
            catalog=CatalogService(CatalogRepository(db)),
            orders=OrderRepository(db),
            accounts=AccountRepository(db),
            providers=ProviderRegistry.from_config(),
            idempotency=IdempotencyStore(db),
            cron_logger=lambda job_name: CronLogger(db, job_name),
            cron_logs=CronLogRepository(db),
        )

    async def aclose(self) -> None:
        await self.providers.aclose()
        self.identity.close()
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context built at startup."""
    return request.app.state.context
