"""
Subscriptions, credits and usage quotas.

A user's plan gates features (``Plan.features``) and caps daily usage
(``Plan.quotas``). Usage past the cap is paid for with purchased credits,
one credit per request.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel

from saasbase.config import SUBSCRIPTION_PERIOD_DAYS, logger
from saasbase.core.catalog import CatalogService
from saasbase.core.errors import ForbiddenError, QuotaExceededError, ValidationError
from saasbase.core.repositories import AccountRepository, Subscription, UsageRecord

# Usage features that count against a plan quota
FEATURE_QUOTAS = {
    "api_request": "daily_requests",
}


class QuotaCheck(BaseModel):
    allowed: bool
    current_usage: int = 0
    limit: Optional[int] = None
    using_credits: bool = False
    credit_balance: Optional[int] = None
    error: Optional[str] = None


def new_subscription(user_id: str, plan_id: str, now: Optional[datetime] = None) -> Subscription:
    """Active subscription record starting now for one billing period."""
    now = now or datetime.now(timezone.utc)
    return Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status="active",
        current_period_end=now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS),
        updated_at=now,
    )


class SubscriptionService:
    def __init__(self, catalog: CatalogService, accounts: AccountRepository):
        self.catalog = catalog
        self.accounts = accounts

    def get_user_subscription(self, user_id: str) -> Optional[Subscription]:
        """Current subscription with its plan embedded, or None."""
        subscription = self.accounts.get_subscription(user_id)
        if subscription is None:
            return None
        plan = self.catalog.find_plan(subscription.plan_id)
        if plan is None:
            logger.warning("Subscription of %s references unknown plan %s", user_id, subscription.plan_id)
            return None
        return subscription.model_copy(update={"plan": plan})

    def update_user_subscription(self, user_id: str, plan_id: str, is_paid_action: bool = False) -> Subscription:
        """
        Replace the user's subscription with ``plan_id``.

        Paid plans are only assigned by a verified payment (``is_paid_action``);
        an active paid subscription is never downgraded to a free plan here.
        """
        target = self.catalog.get_plan(plan_id)

        if not target.is_free and not is_paid_action:
            raise ValidationError("This plan requires a verified payment. Please use the payment flow.")

        current = self.get_user_subscription(user_id)
        if current is not None and current.plan is not None and not current.plan.is_free and target.is_free:
            raise ValidationError(
                "You already have an active paid subscription. Downgrading to Free is not allowed here."
            )

        subscription = new_subscription(user_id, target.id)
        self.accounts.replace_subscription(subscription)
        logger.info("User %s subscribed to plan %s", user_id, target.id)
        return subscription.model_copy(update={"plan": target})

    def check_feature_permission(self, user_id: str, feature_name: str) -> bool:
        subscription = self.get_user_subscription(user_id)
        if subscription is None or subscription.plan is None:
            return False
        return subscription.plan.has_feature(feature_name)

    def check_quota(self, user_id: str, feature_name: str, quota_key: str) -> QuotaCheck:
        subscription = self.get_user_subscription(user_id)
        if subscription is None or subscription.plan is None:
            return QuotaCheck(allowed=False, error="No subscription found")

        current_usage = self.accounts.get_usage(user_id, feature_name)
        limit = subscription.plan.get_quota(quota_key)
        if limit is None:
            return QuotaCheck(allowed=True, current_usage=current_usage)

        if current_usage >= limit:
            balance = self.accounts.get_balance(user_id)
            if balance > 0:
                return QuotaCheck(
                    allowed=True,
                    current_usage=current_usage,
                    limit=limit,
                    using_credits=True,
                    credit_balance=balance,
                )
            return QuotaCheck(
                allowed=False,
                current_usage=current_usage,
                limit=limit,
                credit_balance=balance,
                error=f"Quota exceeded for {feature_name}",
            )

        return QuotaCheck(allowed=True, current_usage=current_usage, limit=limit)

    def increment_usage(self, user_id: str, feature_name: str) -> QuotaCheck:
        """
        Record one use of ``feature_name``.

        Within the plan quota the daily counter is incremented; past it one
        purchased credit is consumed instead.
        """
        subscription = self.get_user_subscription(user_id)
        if subscription is None or subscription.plan is None:
            raise ForbiddenError("No active subscription")

        quota_key = FEATURE_QUOTAS.get(feature_name)
        limit = subscription.plan.get_quota(quota_key) if quota_key else None
        current_usage = self.accounts.get_usage(user_id, feature_name)

        if limit is not None and current_usage >= limit:
            remaining = self.accounts.consume_credit(user_id)
            if remaining is None:
                raise QuotaExceededError("Quota exceeded and no credits available")
            return QuotaCheck(
                allowed=True,
                current_usage=current_usage,
                limit=limit,
                using_credits=True,
                credit_balance=remaining,
            )

        usage = self.accounts.increment_usage(user_id, feature_name)
        return QuotaCheck(allowed=True, current_usage=usage, limit=limit)

    def get_user_credits(self, user_id: str) -> int:
        return self.accounts.get_balance(user_id)

    def get_user_usage(self, user_id: str) -> List[UsageRecord]:
        return self.accounts.list_usage(user_id)
