"""
Payments Module

Hosted payment providers behind one capability.
"""

from saasbase.core.payments.base import (
    CaptureResult,
    OrderHandle,
    PaymentOrder,
    PaymentProvider,
    ProviderOrderRecord,
)
from saasbase.core.payments.paypal import PayPalClient, PayPalProvider
from saasbase.core.payments.registry import DEFAULT_PROVIDER, ProviderRegistry
from saasbase.core.payments.tokenpay import (
    DEFAULT_TOKENPAY_CURRENCY,
    TOKENPAY_CURRENCIES,
    TokenPayProvider,
)

__all__ = [
    "CaptureResult",
    "OrderHandle",
    "PaymentOrder",
    "PaymentProvider",
    "ProviderOrderRecord",
    "PayPalClient",
    "PayPalProvider",
    "DEFAULT_PROVIDER",
    "ProviderRegistry",
    "DEFAULT_TOKENPAY_CURRENCY",
    "TOKENPAY_CURRENCIES",
    "TokenPayProvider",
]
