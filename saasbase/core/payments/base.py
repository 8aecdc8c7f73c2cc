"""
Payment provider capability.

Every provider (card, crypto) implements the same three coroutines so the
billing layer never branches on which one it is talking to.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from saasbase.config import DEFAULT_CURRENCY
from saasbase.core.catalog.models import cents_to_amount
from saasbase.core.repositories.models import PaymentType


class PaymentOrder(BaseModel):
    """What a provider is asked to charge for."""

    id: Optional[str] = None  # local order id; None for untracked direct orders
    user_id: str
    amount_cents: int = Field(..., ge=0)
    currency: str = DEFAULT_CURRENCY
    type: PaymentType
    items: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def amount(self) -> str:
        return cents_to_amount(self.amount_cents)

    @property
    def description(self) -> str:
        return ", ".join(str(item.get("name", "")) for item in self.items if item.get("name"))


class OrderHandle(BaseModel):
    """Provider reference for a created order; ``raw`` is the provider payload."""

    provider: str
    provider_order_id: str
    status: str = "CREATED"
    redirect_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class CaptureResult(BaseModel):
    success: bool
    status: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class ProviderOrderRecord(BaseModel):
    provider: str
    provider_order_id: str
    status: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class PaymentProvider(ABC):
    """A hosted payment provider."""

    name: str = ""

    @abstractmethod
    async def create_order(self, order: PaymentOrder) -> OrderHandle:
        """Create an order at the provider. Raises PaymentProviderError."""

    @abstractmethod
    async def capture_order(self, provider_order_id: str) -> CaptureResult:
        """Capture (or confirm) payment for a provider order."""

    @abstractmethod
    async def get_order(self, provider_order_id: str) -> ProviderOrderRecord:
        """Read back a provider order."""
