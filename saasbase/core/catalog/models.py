"""
Catalog Models

Type-safe models for subscription plans and credit products.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from saasbase.config import DEFAULT_CURRENCY

_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def cents_to_amount(cents: int) -> str:
    """Convert minor currency units to a two-decimal amount string (1999 -> "19.99")."""
    if cents < 0:
        raise ValueError("Amount in cents cannot be negative")
    amount = (Decimal(cents) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(amount)


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalize Firestore timestamps into aware datetimes."""
    if value is None or isinstance(value, (datetime, str)):
        return value
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    if hasattr(value, "seconds"):
        return datetime.fromtimestamp(value.seconds, tz=timezone.utc)
    return None


class CatalogStatus(str, Enum):
    """Catalog entry status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class Plan(BaseModel):
    """Represents a subscription plan."""

    id: str = Field(..., description="Plan identifier (e.g., 'free', 'pro')")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    description: Optional[str] = Field(None, max_length=500)
    price_cents: int = Field(..., ge=0, description="Price per period in minor currency units")
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=10)
    tier: str = Field(default="free", description="Tier name used for gating")
    features: Dict[str, bool] = Field(default_factory=dict)
    quotas: Dict[str, int] = Field(default_factory=dict)
    status: CatalogStatus = Field(default=CatalogStatus.ACTIVE)
    sort_order: int = Field(default=0)
    updated_at: Optional[datetime] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate plan ID format."""
        v = (v or "").strip().lower()
        if not _ID_PATTERN.match(v):
            raise ValueError("Plan ID must be lowercase alphanumeric with underscores/hyphens")
        return v

    @field_validator("quotas")
    @classmethod
    def validate_quotas(cls, v: Dict[str, int]) -> Dict[str, int]:
        for key, value in v.items():
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"Quota '{key}' must be a non-negative integer")
        return v

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0

    @property
    def amount(self) -> str:
        return cents_to_amount(self.price_cents)

    def has_feature(self, feature_name: str) -> bool:
        return bool(self.features.get(feature_name))

    def get_quota(self, quota_key: str) -> Optional[int]:
        return self.quotas.get(quota_key)

    def to_firestore_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["status"] = self.status.value
        return data

    @classmethod
    def from_firestore_dict(cls, data: Dict[str, Any]) -> "Plan":
        payload = dict(data)
        payload["updated_at"] = to_datetime(payload.get("updated_at"))
        return cls.model_validate(payload)


class CreditProduct(BaseModel):
    """Represents a purchasable pack of credits."""

    id: str = Field(..., description="Product identifier (e.g., 'credits-100')")
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price_cents: int = Field(..., gt=0)
    credits_amount: int = Field(..., gt=0, description="Credits granted on purchase")
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=10)
    status: CatalogStatus = Field(default=CatalogStatus.ACTIVE)
    updated_at: Optional[datetime] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not _ID_PATTERN.match(v):
            raise ValueError("Product ID must be lowercase alphanumeric with underscores/hyphens")
        return v

    @property
    def amount(self) -> str:
        return cents_to_amount(self.price_cents)

    def to_firestore_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["status"] = self.status.value
        return data

    @classmethod
    def from_firestore_dict(cls, data: Dict[str, Any]) -> "CreditProduct":
        payload = dict(data)
        payload["updated_at"] = to_datetime(payload.get("updated_at"))
        return cls.model_validate(payload)
