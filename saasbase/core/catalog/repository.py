"""
Catalog Repository

Data access layer for plans and credit products in Firestore.
Rows are loaded into explicit id -> model mappings and cached in memory.
"""

import time
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Generic, Optional, Type, TypeVar, Union

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter
from pydantic import ValidationError as PydanticValidationError

from saasbase.config import logger
from saasbase.core.catalog.models import CatalogStatus, CreditProduct, Plan

T = TypeVar("T", Plan, CreditProduct)


class _CachedCollection(Generic[T]):
    """TTL-cached mapping of active documents in one collection."""

    def __init__(
        self,
        collection_getter: Callable[[], firestore.CollectionReference],
        model: Type[T],
        ttl_seconds: int,
    ):
        self._collection_getter = collection_getter
        self._model = model
        self._ttl_seconds = ttl_seconds
        self._cache: Dict[str, T] = {}
        self._lock = Lock()
        self._last_update: Optional[float] = None

    def _is_valid(self) -> bool:
        if self._last_update is None:
            return False
        return time.time() - self._last_update < self._ttl_seconds

    def invalidate(self) -> None:
        with self._lock:
            self._cache = {}
            self._last_update = None

    def mapping(self) -> Dict[str, T]:
        with self._lock:
            if self._is_valid():
                return dict(self._cache)

            docs = self._collection_getter().where(
                filter=FieldFilter("status", "==", CatalogStatus.ACTIVE.value)
            ).stream()

            fresh: Dict[str, T] = {}
            for doc in docs:
                data = doc.to_dict() or {}
                data["id"] = doc.id
                try:
                    item = self._model.from_firestore_dict(data)
                except PydanticValidationError as e:
                    logger.error("Failed to parse %s %s: %s", self._model.__name__, doc.id, e)
                    continue
                fresh[item.id] = item

            self._cache = fresh
            self._last_update = time.time()
            logger.debug("%s cache refreshed: %d entries", self._model.__name__, len(fresh))
            return dict(fresh)


class CatalogRepository:
    """
    Repository for catalog data access with in-memory caching.

    Thread-safe; the cache is dropped on every write made through this
    repository.
    """

    PLANS_COLLECTION = "plans"
    CREDIT_PRODUCTS_COLLECTION = "credit_products"

    def __init__(self, db: firestore.Client, cache_ttl_seconds: int = 300):
        self.db = db
        self._plans = _CachedCollection(
            lambda: self.db.collection(self.PLANS_COLLECTION), Plan, cache_ttl_seconds
        )
        self._products = _CachedCollection(
            lambda: self.db.collection(self.CREDIT_PRODUCTS_COLLECTION), CreditProduct, cache_ttl_seconds
        )

    def plans(self) -> Dict[str, Plan]:
        """Active plans keyed by id."""
        return self._plans.mapping()

    def credit_products(self) -> Dict[str, CreditProduct]:
        """Active credit products keyed by id."""
        return self._products.mapping()

    def _all(self, collection: str, model):
        items = {}
        for doc in self.db.collection(collection).stream():
            data = doc.to_dict() or {}
            data["id"] = doc.id
            try:
                item = model.from_firestore_dict(data)
            except PydanticValidationError as e:
                logger.error("Failed to parse %s %s: %s", model.__name__, doc.id, e)
                continue
            items[item.id] = item
        return items

    def all_plans(self) -> Dict[str, Plan]:
        """Every plan regardless of status, uncached."""
        return self._all(self.PLANS_COLLECTION, Plan)

    def all_credit_products(self) -> Dict[str, CreditProduct]:
        return self._all(self.CREDIT_PRODUCTS_COLLECTION, CreditProduct)

    def invalidate(self) -> None:
        self._plans.invalidate()
        self._products.invalidate()
        logger.debug("Catalog cache invalidated")

    def save(self, item: Union[Plan, CreditProduct]) -> None:
        """Create or overwrite a catalog entry."""
        collection = (
            self.PLANS_COLLECTION if isinstance(item, Plan) else self.CREDIT_PRODUCTS_COLLECTION
        )
        item.updated_at = datetime.now(timezone.utc)
        self.db.collection(collection).document(item.id).set(item.to_firestore_dict())
        self.invalidate()
        logger.info("Saved %s %s", collection, item.id)
