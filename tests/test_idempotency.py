"""
Tests for the Idempotency-Key store.
"""

import pytest

from saasbase.core.errors import ValidationError
from saasbase.core.idempotency import IdempotencyStore, request_signature


@pytest.fixture
def store(firestore_db):
    return IdempotencyStore(firestore_db)


class Handler:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise ValidationError("boom")
        return {"success": True, "call": self.calls}


class TestIdempotencyStore:

    def test_signature_ignores_key_order(self):
        assert request_signature({"a": 1, "b": 2}) == request_signature({"b": 2, "a": 1})
        assert request_signature({"a": 1}) != request_signature({"a": 2})

    @pytest.mark.asyncio
    async def test_without_key_every_call_runs(self, store):
        handler = Handler()
        await store.run("alice", "scope", None, {}, handler)
        await store.run("alice", "scope", None, {}, handler)
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_replay_returns_stored_response(self, store):
        handler = Handler()
        first = await store.run("alice", "scope", "k1", {"x": 1}, handler)
        second = await store.run("alice", "scope", "k1", {"x": 1}, handler)
        assert first == second == {"success": True, "call": 1}
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_key_reuse_with_other_payload(self, store):
        await store.run("alice", "scope", "k1", {"x": 1}, Handler())
        with pytest.raises(ValidationError) as exc_info:
            await store.run("alice", "scope", "k1", {"x": 2}, Handler())
        assert "different request" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_keys_are_scoped_per_user_and_route(self, store):
        handler = Handler()
        await store.run("alice", "scope", "k1", {}, handler)
        await store.run("bob", "scope", "k1", {}, handler)
        await store.run("alice", "other", "k1", {}, handler)
        assert handler.calls == 3

    @pytest.mark.asyncio
    async def test_failure_releases_key(self, store):
        with pytest.raises(ValidationError):
            await store.run("alice", "scope", "k1", {}, Handler(fail=True))
        retry = Handler()
        assert await store.run("alice", "scope", "k1", {}, retry) == {"success": True, "call": 1}

    def test_in_progress_key_is_rejected(self, store):
        signature = request_signature({})
        assert store.reserve("alice", "scope", "k1", signature) is None
        with pytest.raises(ValidationError) as exc_info:
            store.reserve("alice", "scope", "k1", signature)
        assert "in progress" in exc_info.value.message
