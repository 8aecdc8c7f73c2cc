"""
Account repository for Firestore.

Per-user billing state: the current subscription, the purchased credit
balance, daily feature usage, and the ledger of directly captured provider
orders.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter, Transaction

from saasbase.core.errors import UpstreamError
from saasbase.core.repositories.models import CreditBalance, Subscription, UsageRecord

logger = logging.getLogger(__name__)


def usage_period(as_of: Optional[datetime] = None) -> str:
    """Usage is tracked per UTC day."""
    as_of = as_of or datetime.now(timezone.utc)
    return as_of.strftime("%Y-%m-%d")


class AccountRepository:
    """Repository for subscriptions, credits and usage."""

    SUBSCRIPTIONS_COLLECTION = "subscriptions"
    CREDITS_COLLECTION = "user_credits"
    USAGE_COLLECTION = "usage_records"
    CAPTURES_COLLECTION = "captured_orders"
    FAVORITES_COLLECTION = "favorites"

    def __init__(self, db: firestore.Client):
        self.db = db

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def get_subscription(self, user_id: str) -> Optional[Subscription]:
        snap = self.db.collection(self.SUBSCRIPTIONS_COLLECTION).document(user_id).get()
        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        data["user_id"] = user_id
        return Subscription.from_dict(data)

    def replace_subscription(self, subscription: Subscription) -> Subscription:
        """Overwrite the user's subscription document (no merge)."""
        try:
            self.db.collection(self.SUBSCRIPTIONS_COLLECTION).document(subscription.user_id).set(
                subscription.to_dict()
            )
        except Exception as e:
            logger.error("Subscription update failed for %s: %s", subscription.user_id, e, exc_info=True)
            raise UpstreamError("Failed to update subscription") from e
        return subscription

    def list_subscriptions(self, limit: int = 20, offset: int = 0) -> List[Subscription]:
        query = self.db.collection(self.SUBSCRIPTIONS_COLLECTION).order_by(
            "updated_at", direction=firestore.Query.DESCENDING
        )
        if offset:
            query = query.offset(offset)
        results = []
        for doc in query.limit(limit).stream():
            data = doc.to_dict() or {}
            data["user_id"] = doc.id
            results.append(Subscription.from_dict(data))
        return results

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> int:
        snap = self.db.collection(self.CREDITS_COLLECTION).document(user_id).get()
        if not snap.exists:
            return 0
        return int((snap.to_dict() or {}).get("balance", 0))

    def add_credits(self, user_id: str, amount: int) -> CreditBalance:
        ref = self.db.collection(self.CREDITS_COLLECTION).document(user_id)

        @firestore.transactional
        def _run(transaction: Transaction) -> CreditBalance:
            snap = ref.get(transaction=transaction)
            current = int((snap.to_dict() or {}).get("balance", 0)) if snap.exists else 0
            now = datetime.now(timezone.utc)
            transaction.set(ref, {"user_id": user_id, "balance": current + amount, "updated_at": now}, merge=True)
            return CreditBalance(user_id=user_id, balance=current + amount, updated_at=now)

        return _run(self.db.transaction())

    def consume_credit(self, user_id: str, amount: int = 1) -> Optional[int]:
        """Deduct credits; returns the new balance, or None when insufficient."""
        ref = self.db.collection(self.CREDITS_COLLECTION).document(user_id)

        @firestore.transactional
        def _run(transaction: Transaction) -> Optional[int]:
            snap = ref.get(transaction=transaction)
            current = int((snap.to_dict() or {}).get("balance", 0)) if snap.exists else 0
            if current < amount:
                return None
            transaction.set(
                ref,
                {"user_id": user_id, "balance": current - amount, "updated_at": datetime.now(timezone.utc)},
                merge=True,
            )
            return current - amount

        return _run(self.db.transaction())

    def set_balance(self, user_id: str, balance: int) -> CreditBalance:
        """Overwrite the balance (back-office correction)."""
        now = datetime.now(timezone.utc)
        try:
            self.db.collection(self.CREDITS_COLLECTION).document(user_id).set(
                {"user_id": user_id, "balance": balance, "updated_at": now}, merge=True
            )
        except Exception as e:
            logger.error("Balance update failed for %s: %s", user_id, e, exc_info=True)
            raise UpstreamError("Failed to update credits") from e
        return CreditBalance(user_id=user_id, balance=balance, updated_at=now)

    def list_balances(self, user_id: Optional[str] = None, limit: int = 10, offset: int = 0) -> List[CreditBalance]:
        """Balances, most recently changed first; ``user_id`` narrows to one document."""
        collection = self.db.collection(self.CREDITS_COLLECTION)
        if user_id:
            snap = collection.document(user_id).get()
            if not snap.exists:
                return []
            return [CreditBalance(user_id=user_id, **self._balance_fields(snap.to_dict()))]
        query = collection.order_by("updated_at", direction=firestore.Query.DESCENDING)
        if offset:
            query = query.offset(offset)
        return [
            CreditBalance(user_id=doc.id, **self._balance_fields(doc.to_dict()))
            for doc in query.limit(limit).stream()
        ]

    @staticmethod
    def _balance_fields(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        data = data or {}
        return {"balance": int(data.get("balance", 0)), "updated_at": data.get("updated_at")}

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def _usage_ref(self, user_id: str, feature_name: str, period: str):
        return self.db.collection(self.USAGE_COLLECTION).document(f"{user_id}__{feature_name}__{period}")

    def get_usage(self, user_id: str, feature_name: str, period: Optional[str] = None) -> int:
        snap = self._usage_ref(user_id, feature_name, period or usage_period()).get()
        if not snap.exists:
            return 0
        return int((snap.to_dict() or {}).get("usage_count", 0))

    def increment_usage(self, user_id: str, feature_name: str, period: Optional[str] = None) -> int:
        period = period or usage_period()
        ref = self._usage_ref(user_id, feature_name, period)
        ref.set(
            {
                "user_id": user_id,
                "feature_name": feature_name,
                "period": period,
                "usage_count": firestore.Increment(1),
                "updated_at": datetime.now(timezone.utc),
            },
            merge=True,
        )
        return self.get_usage(user_id, feature_name, period)

    def list_usage(self, user_id: str) -> List[UsageRecord]:
        query = self.db.collection(self.USAGE_COLLECTION).where(filter=FieldFilter("user_id", "==", user_id))
        return [UsageRecord.from_dict(doc.to_dict() or {}) for doc in query.stream()]

    # ------------------------------------------------------------------
    # Directly captured provider orders
    # ------------------------------------------------------------------

    def _capture_ref(self, provider: str, provider_order_id: str):
        return self.db.collection(self.CAPTURES_COLLECTION).document(f"{provider}__{provider_order_id}")

    def fulfill_direct_credits(
        self,
        provider: str,
        provider_order_id: str,
        user_id: str,
        credits: int,
        product_id: str,
    ) -> Tuple[CreditBalance, bool]:
        """Grant credits for a captured provider order once; replays return the stored balance."""
        capture_ref = self._capture_ref(provider, provider_order_id)
        credits_ref = self.db.collection(self.CREDITS_COLLECTION).document(user_id)

        @firestore.transactional
        def _run(transaction: Transaction) -> Tuple[CreditBalance, bool]:
            capture_snap = capture_ref.get(transaction=transaction)
            credits_snap = credits_ref.get(transaction=transaction)
            current = int((credits_snap.to_dict() or {}).get("balance", 0)) if credits_snap.exists else 0
            if capture_snap.exists:
                return CreditBalance(user_id=user_id, balance=current), False
            now = datetime.now(timezone.utc)
            transaction.set(capture_ref, self._capture_record(user_id, "credits", product_id, now))
            transaction.set(credits_ref, {"user_id": user_id, "balance": current + credits, "updated_at": now}, merge=True)
            return CreditBalance(user_id=user_id, balance=current + credits, updated_at=now), True

        return _run(self.db.transaction())

    def fulfill_direct_subscription(
        self,
        provider: str,
        provider_order_id: str,
        subscription: Subscription,
    ) -> Tuple[Subscription, bool]:
        capture_ref = self._capture_ref(provider, provider_order_id)
        sub_ref = self.db.collection(self.SUBSCRIPTIONS_COLLECTION).document(subscription.user_id)

        @firestore.transactional
        def _run(transaction: Transaction) -> Tuple[Subscription, bool]:
            capture_snap = capture_ref.get(transaction=transaction)
            sub_snap = sub_ref.get(transaction=transaction)
            if capture_snap.exists:
                current = Subscription.from_dict(sub_snap.to_dict()) if sub_snap.exists else subscription
                return current, False
            now = datetime.now(timezone.utc)
            transaction.set(
                capture_ref,
                self._capture_record(subscription.user_id, "subscription", subscription.plan_id, now),
            )
            transaction.set(sub_ref, subscription.to_dict())
            return subscription, True

        return _run(self.db.transaction())

    @staticmethod
    def _capture_record(user_id: str, kind: str, product_id: str, now: datetime) -> Dict[str, Any]:
        return {"user_id": user_id, "type": kind, "product_id": product_id, "captured_at": now}

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def list_favorites(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        query = (
            self.db.collection(self.FAVORITES_COLLECTION)
            .where(filter=FieldFilter("user_id", "==", user_id))
            .order_by("created_at", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        results: List[Dict[str, Any]] = []
        for doc in query.stream():
            payload = doc.to_dict() or {}
            payload["id"] = doc.id
            results.append(payload)
        return results
