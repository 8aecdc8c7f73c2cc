"""
Pydantic models for request/response validation.

Request bodies use the camelCase field names the browser client sends.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from saasbase.core.billing import CartLine
from saasbase.core.catalog import CatalogStatus
from saasbase.core.errors import ValidationError
from saasbase.core.repositories import PaymentStatus, PaymentType
from saasbase.core.security import (
    MAX_CART_ITEMS,
    MAX_IDENTIFIER_LENGTH,
    MAX_ITEM_QUANTITY,
    sanitize_text,
    validate_identifier,
)


# -----------------------------------------------------------------------------
# Base Models
# -----------------------------------------------------------------------------

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )


def _identifier(value: str, field: str) -> str:
    try:
        return validate_identifier(value, field)
    except ValidationError as e:
        raise ValueError(e.message) from e


# -----------------------------------------------------------------------------
# Direct card orders
# -----------------------------------------------------------------------------

class PlanOrderRequest(BaseSchema):
    """Create a card order for a subscription plan."""
    plan_id: str = Field(..., alias="planId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("plan_id")
    @classmethod
    def validate_plan_id(cls, v: str) -> str:
        return _identifier(v, "planId")


class CreditOrderRequest(BaseSchema):
    """Create a card order for a credit product."""
    product_id: str = Field(..., alias="productId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        return _identifier(v, "productId")


class PlanCaptureRequest(PlanOrderRequest):
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("order_id")
    @classmethod
    def validate_order_id(cls, v: str) -> str:
        return _identifier(v, "orderId")


class CreditCaptureRequest(CreditOrderRequest):
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("order_id")
    @classmethod
    def validate_order_id(cls, v: str) -> str:
        return _identifier(v, "orderId")


# -----------------------------------------------------------------------------
# Tracked orders
# -----------------------------------------------------------------------------

class PaymentOrderRequest(BaseSchema):
    """Create a tracked order for one plan or credit product."""
    type: PaymentType
    product_id: str = Field(..., alias="productId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    provider: Optional[str] = Field(default=None, max_length=50)
    currency: Optional[str] = Field(default=None, max_length=50)

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        return _identifier(v, "productId")


class CheckoutItem(BaseSchema):
    """Cart line. Any client-sent price is ignored."""
    id: str = Field(..., min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    type: PaymentType
    quantity: int = Field(default=1, ge=1, le=MAX_ITEM_QUANTITY)

    @field_validator("id")
    @classmethod
    def validate_item_id(cls, v: str) -> str:
        return _identifier(v, "id")

    def to_line(self) -> CartLine:
        return CartLine(id=self.id, type=self.type, quantity=self.quantity)


class CheckoutRequest(BaseSchema):
    items: List[CheckoutItem] = Field(default_factory=list, max_length=MAX_CART_ITEMS)
    payment_method: str = Field(default="paypal", alias="paymentMethod", max_length=50)
    currency: Optional[str] = Field(default=None, max_length=50)


class CaptureOrderRequest(BaseSchema):
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("order_id")
    @classmethod
    def validate_order_id(cls, v: str) -> str:
        return _identifier(v, "orderId")


# -----------------------------------------------------------------------------
# Subscriptions / demo
# -----------------------------------------------------------------------------

class SubscribeRequest(BaseSchema):
    plan_id: str = Field(..., alias="planId", min_length=1, max_length=MAX_IDENTIFIER_LENGTH)

    @field_validator("plan_id")
    @classmethod
    def validate_plan_id(cls, v: str) -> str:
        return _identifier(v, "planId")


class DemoRequest(BaseSchema):
    prompt: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("prompt")
    @classmethod
    def clean_prompt(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v) or None


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------

class PlanCreateRequest(BaseSchema):
    """Request to create a new plan."""
    id: str = Field(..., min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price_cents: int = Field(..., ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    tier: str = Field(default="free", max_length=50)
    features: Dict[str, bool] = Field(default_factory=dict)
    quotas: Dict[str, int] = Field(default_factory=dict)
    status: CatalogStatus = CatalogStatus.ACTIVE
    sort_order: int = 0


class PlanUpdateRequest(BaseSchema):
    """Request to update an existing plan; only the fields sent change."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price_cents: Optional[int] = Field(None, ge=0)
    tier: Optional[str] = Field(None, max_length=50)
    features: Optional[Dict[str, bool]] = None
    quotas: Optional[Dict[str, int]] = None
    status: Optional[CatalogStatus] = None
    sort_order: Optional[int] = None


class CreditProductCreateRequest(BaseSchema):
    id: str = Field(..., min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price_cents: int = Field(..., gt=0)
    credits_amount: int = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    status: CatalogStatus = CatalogStatus.ACTIVE


class CreditProductUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price_cents: Optional[int] = Field(None, gt=0)
    credits_amount: Optional[int] = Field(None, gt=0)
    status: Optional[CatalogStatus] = None


class OrderStatusUpdateRequest(BaseSchema):
    status: PaymentStatus


class SubscriptionUpdateRequest(BaseSchema):
    plan_id: Optional[str] = Field(None, min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    status: Optional[Literal["active", "cancelled", "expired", "past_due"]] = None
    current_period_end: Optional[datetime] = None


class BalanceUpdateRequest(BaseSchema):
    balance: int = Field(..., ge=0)


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: datetime


class NonceResponse(BaseModel):
    nonce: str


class BalanceResponse(BaseModel):
    success: bool = True
    balance: int


class UserResponse(BaseModel):
    success: bool = True
    user: Dict[str, Any]
