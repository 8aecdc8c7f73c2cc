"""
Provider registry.

Owns the shared ``httpx.AsyncClient`` used by every provider; built at
startup and closed at shutdown together with the rest of the context.
"""

from typing import Dict, Iterable, List, Optional

import httpx

from saasbase.config import PAYMENT_HTTP_TIMEOUT, logger
from saasbase.core.errors import ValidationError
from saasbase.core.payments.base import PaymentProvider
from saasbase.core.payments.paypal import PayPalClient, PayPalProvider
from saasbase.core.payments.tokenpay import TokenPayProvider

DEFAULT_PROVIDER = "paypal"


class ProviderRegistry:
    def __init__(self, providers: Iterable[PaymentProvider], http: Optional[httpx.AsyncClient] = None):
        self._providers: Dict[str, PaymentProvider] = {p.name: p for p in providers}
        self._http = http

    @classmethod
    def from_config(cls, timeout: float = PAYMENT_HTTP_TIMEOUT) -> "ProviderRegistry":
        http = httpx.AsyncClient(timeout=timeout)
        providers: List[PaymentProvider] = [
            PayPalProvider(PayPalClient(http)),
            TokenPayProvider(http),
        ]
        logger.info("Payment providers registered: %s", ", ".join(p.name for p in providers))
        return cls(providers, http=http)

    @property
    def names(self) -> List[str]:
        return sorted(self._providers)

    def get(self, name: Optional[str]) -> PaymentProvider:
        provider = self._providers.get((name or DEFAULT_PROVIDER).strip().lower())
        if provider is None:
            raise ValidationError("Unsupported payment provider", field="provider")
        return provider

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
