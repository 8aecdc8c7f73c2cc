"""
Order repository for Firestore.

Orders live in the top-level ``orders`` collection. Fulfillment runs in a
Firestore transaction that flips the order to ``completed`` together with the
credit or subscription mutation, so a paid order is applied exactly once.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter, Transaction

from saasbase.core.errors import NotFoundError, UpstreamError
from saasbase.core.repositories.accounts import AccountRepository
from saasbase.core.repositories.models import (
    CreditBalance,
    Order,
    PaymentStatus,
    PaymentType,
    Subscription,
)

logger = logging.getLogger(__name__)


def new_order_id() -> str:
    return uuid.uuid4().hex


class OrderRepository:
    """Repository for payment orders."""

    COLLECTION = "orders"

    def __init__(self, db: firestore.Client):
        self.db = db
        self.collection = db.collection(self.COLLECTION)

    def _from_snapshot(self, snap) -> Order:
        data = snap.to_dict() or {}
        data["id"] = snap.id
        return Order.from_dict(data)

    def create(self, order: Order) -> Order:
        try:
            self.collection.document(order.id).set(order.to_dict())
        except Exception as e:
            logger.error("Failed to create order %s: %s", order.id, e, exc_info=True)
            raise UpstreamError("Failed to create order") from e
        logger.debug("Created order %s for user %s", order.id, order.user_id)
        return order

    def get(self, order_id: str) -> Optional[Order]:
        snap = self.collection.document(order_id).get()
        if not snap.exists:
            return None
        return self._from_snapshot(snap)

    def get_for_user(self, order_id: str, user_id: str) -> Optional[Order]:
        """
        Fetch an order owned by ``user_id``.

        Absence and ownership mismatch both return None.
        """
        order = self.get(order_id)
        if order is None or order.user_id != user_id:
            return None
        return order

    def list_for_user(
        self,
        user_id: str,
        payment_type: Optional[PaymentType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Order]:
        query = self.collection.where(filter=FieldFilter("user_id", "==", user_id))
        if payment_type is not None:
            query = query.where(filter=FieldFilter("type", "==", payment_type.value))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if offset:
            query = query.offset(offset)
        query = query.limit(limit)
        return [self._from_snapshot(doc) for doc in query.stream()]

    def list_pending(self, provider: Optional[str] = None, limit: int = 200) -> List[Order]:
        query = self.collection.where(filter=FieldFilter("status", "==", PaymentStatus.PENDING.value))
        if provider:
            query = query.where(filter=FieldFilter("provider", "==", provider))
        return [self._from_snapshot(doc) for doc in query.limit(limit).stream()]

    def list_all(
        self,
        status: Optional[PaymentStatus] = None,
        payment_type: Optional[PaymentType] = None,
        user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        """Newest orders of every user matching the filters, with the total match count."""
        query = self.collection
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))
        if payment_type is not None:
            query = query.where(filter=FieldFilter("type", "==", payment_type.value))
        if user_id:
            query = query.where(filter=FieldFilter("user_id", "==", user_id))
        total = query.count().get()[0][0].value
        page = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if offset:
            page = page.offset(offset)
        return [self._from_snapshot(doc) for doc in page.limit(limit).stream()], int(total)

    def update(self, order_id: str, fields: Dict[str, Any]) -> Order:
        doc_ref = self.collection.document(order_id)
        update_data = dict(fields)
        for key, value in update_data.items():
            if isinstance(value, (PaymentStatus, PaymentType)):
                update_data[key] = value.value
        update_data["updated_at"] = datetime.now(timezone.utc)
        try:
            doc_ref.update(update_data)
        except Exception as e:
            logger.error("Failed to update order %s: %s", order_id, e, exc_info=True)
            raise UpstreamError("Failed to update order") from e
        order = self.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    def _completed_fields(self, now: datetime) -> Dict[str, Any]:
        return {
            "status": PaymentStatus.COMPLETED.value,
            "completed_at": now,
            "updated_at": now,
        }

    def fulfill_credits(self, order_id: str, credits: int) -> Tuple[Order, CreditBalance, bool]:
        """
        Mark the order completed and add ``credits`` to its owner's balance.

        Returns (order, balance, applied); ``applied`` is False when the order
        was already completed and nothing changed.
        """
        order_ref = self.collection.document(order_id)

        @firestore.transactional
        def _run(transaction: Transaction):
            order_snap = order_ref.get(transaction=transaction)
            if not order_snap.exists:
                raise NotFoundError("Order not found")
            order = self._from_snapshot(order_snap)
            credits_ref = self.db.collection(AccountRepository.CREDITS_COLLECTION).document(order.user_id)
            credits_snap = credits_ref.get(transaction=transaction)
            current = int((credits_snap.to_dict() or {}).get("balance", 0)) if credits_snap.exists else 0

            if order.status == PaymentStatus.COMPLETED:
                return order, CreditBalance(user_id=order.user_id, balance=current), False

            now = datetime.now(timezone.utc)
            new_balance = current + credits
            transaction.set(
                credits_ref,
                {"user_id": order.user_id, "balance": new_balance, "updated_at": now},
                merge=True,
            )
            transaction.update(order_ref, self._completed_fields(now))
            completed = order.model_copy(update={
                "status": PaymentStatus.COMPLETED, "completed_at": now, "updated_at": now,
            })
            return completed, CreditBalance(user_id=order.user_id, balance=new_balance, updated_at=now), True

        return _run(self.db.transaction())

    def fulfill_subscription(self, order_id: str, subscription: Subscription) -> Tuple[Order, Subscription, bool]:
        """Mark the order completed and replace its owner's subscription."""
        order_ref = self.collection.document(order_id)
        sub_ref = self.db.collection(AccountRepository.SUBSCRIPTIONS_COLLECTION).document(subscription.user_id)

        @firestore.transactional
        def _run(transaction: Transaction):
            order_snap = order_ref.get(transaction=transaction)
            if not order_snap.exists:
                raise NotFoundError("Order not found")
            order = self._from_snapshot(order_snap)
            sub_snap = sub_ref.get(transaction=transaction)

            if order.status == PaymentStatus.COMPLETED:
                current = Subscription.from_dict(sub_snap.to_dict()) if sub_snap.exists else subscription
                return order, current, False

            now = datetime.now(timezone.utc)
            transaction.set(sub_ref, subscription.to_dict())
            transaction.update(order_ref, self._completed_fields(now))
            completed = order.model_copy(update={
                "status": PaymentStatus.COMPLETED, "completed_at": now, "updated_at": now,
            })
            return completed, subscription, True

        return _run(self.db.transaction())
