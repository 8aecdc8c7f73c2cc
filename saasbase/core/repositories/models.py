"""
Pydantic models for billing records stored in Firestore.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from saasbase.config import DEFAULT_CURRENCY
from saasbase.core.catalog.models import Plan, to_datetime


class PaymentType(str, Enum):
    SUBSCRIPTION = "subscription"
    CREDITS = "credits"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal_failure(self) -> bool:
        return self in (PaymentStatus.FAILED, PaymentStatus.CANCELLED)


class _FirestoreModel(BaseModel):
    model_config = ConfigDict(use_enum_values=False)

    @model_validator(mode="before")
    @classmethod
    def normalize_timestamps(cls, data: Any) -> Any:
        """Convert Firestore Timestamp values into datetimes."""
        if isinstance(data, dict):
            data = dict(data)
            for key, value in data.items():
                if key.endswith("_at") or key.endswith("_end"):
                    data[key] = to_datetime(value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create from Firestore document dictionary."""
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Firestore-compatible dictionary."""
        return self.model_dump(mode="python")


class Order(_FirestoreModel):
    """A provider-tracked payment intent tied to a user and a catalog item."""

    id: str = Field(..., min_length=1, max_length=100)
    user_id: str = Field(..., min_length=1, max_length=128)
    type: PaymentType
    provider: str = Field(..., min_length=1, max_length=50)
    provider_order_id: Optional[str] = Field(None, max_length=200)
    status: PaymentStatus = PaymentStatus.PENDING
    amount_cents: int = Field(..., ge=0)
    currency: str = Field(default=DEFAULT_CURRENCY)
    product_id: str = Field(..., min_length=1, max_length=100)
    product_type: str = Field(..., min_length=1, max_length=50)
    product_name: str = Field(default="", max_length=300)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["type"] = self.type.value
        data["status"] = self.status.value
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for API responses."""
        return self.model_dump(mode="json")


class Subscription(_FirestoreModel):
    """A user's current plan assignment; replaced wholesale on change."""

    user_id: str
    plan_id: str
    status: str = "active"
    current_period_end: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan: Optional[Plan] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="python", exclude={"plan"})
        return data


class CreditBalance(_FirestoreModel):
    user_id: str
    balance: int = Field(default=0, ge=0)
    updated_at: Optional[datetime] = None


class UsageRecord(_FirestoreModel):
    user_id: str
    feature_name: str
    usage_count: int = Field(default=0, ge=0)
    period: Optional[str] = None  # UTC day, YYYY-MM-DD
    updated_at: Optional[datetime] = None
