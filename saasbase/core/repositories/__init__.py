"""
Firestore repositories for billing state.
"""

from saasbase.core.repositories.accounts import AccountRepository, usage_period
from saasbase.core.repositories.models import (
    CreditBalance,
    Order,
    PaymentStatus,
    PaymentType,
    Subscription,
    UsageRecord,
)
from saasbase.core.repositories.orders import OrderRepository, new_order_id

__all__ = [
    "AccountRepository",
    "usage_period",
    "CreditBalance",
    "Order",
    "PaymentStatus",
    "PaymentType",
    "Subscription",
    "UsageRecord",
    "OrderRepository",
    "new_order_id",
]
