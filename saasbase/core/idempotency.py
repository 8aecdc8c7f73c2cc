"""
Idempotency keys for mutating billing routes.

A client may send ``Idempotency-Key``; the first request with a key stores
its response, a retry with the same key and body replays it, and a retry
with a different body is rejected.
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Header
from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from saasbase.config import logger
from saasbase.core.errors import ValidationError
from saasbase.core.security import IDEMPOTENCY_KEY_HEADER, validate_idempotency_key

STATE_IN_PROGRESS = "in_progress"
STATE_COMPLETED = "completed"


def request_signature(payload: Dict[str, Any]) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()


class IdempotencyStore:
    COLLECTION = "idempotency_keys"

    def __init__(self, db: firestore.Client):
        self.db = db

    def _ref(self, user_id: str, scope: str, key: str):
        doc_id = hashlib.sha256(f"{user_id}:{scope}:{key}".encode()).hexdigest()
        return self.db.collection(self.COLLECTION).document(doc_id)

    def reserve(self, user_id: str, scope: str, key: str, signature: str) -> Optional[Dict[str, Any]]:
        """
        Claim ``key`` for this request.

        Returns the stored response for a completed replay, or None when the
        caller now owns the key and should run the request.
        """
        ref = self._ref(user_id, scope, key)
        try:
            ref.create({
                "user_id": user_id,
                "scope": scope,
                "signature": signature,
                "state": STATE_IN_PROGRESS,
                "created_at": datetime.now(timezone.utc),
            })
            return None
        except AlreadyExists:
            pass

        record = ref.get().to_dict() or {}
        if record.get("signature") != signature:
            raise ValidationError("Idempotency-Key was already used with a different request")
        if record.get("state") != STATE_COMPLETED:
            raise ValidationError("A request with this Idempotency-Key is still in progress")
        logger.info("Replaying stored response for idempotent %s request of %s", scope, user_id)
        return record.get("response") or {}

    def complete(self, user_id: str, scope: str, key: str, response: Dict[str, Any]) -> None:
        self._ref(user_id, scope, key).update({
            "state": STATE_COMPLETED,
            "response": response,
            "completed_at": datetime.now(timezone.utc),
        })

    def release(self, user_id: str, scope: str, key: str) -> None:
        """Drop a reservation so a failed request can be retried with the same key."""
        self._ref(user_id, scope, key).delete()

    async def run(
        self,
        user_id: str,
        scope: str,
        key: Optional[str],
        payload: Dict[str, Any],
        handler: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        """Run ``handler`` at most once per (user, scope, key)."""
        if not key:
            return await handler()

        stored = self.reserve(user_id, scope, key, request_signature(payload))
        if stored is not None:
            return stored

        try:
            response = await handler()
        except Exception:
            self.release(user_id, scope, key)
            raise
        self.complete(user_id, scope, key, response)
        return response


async def idempotency_key(
    key: Optional[str] = Header(default=None, alias=IDEMPOTENCY_KEY_HEADER),
) -> Optional[str]:
    """FastAPI dependency reading and validating the ``Idempotency-Key`` header."""
    return validate_idempotency_key(key)
