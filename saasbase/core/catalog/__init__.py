"""
Catalog Module

Subscription plans and credit products stored in Firestore, with cached
typed lookups.
"""

from saasbase.core.catalog.models import CatalogStatus, CreditProduct, Plan, cents_to_amount
from saasbase.core.catalog.repository import CatalogRepository
from saasbase.core.catalog.service import CatalogService

__all__ = [
    "CatalogStatus",
    "CreditProduct",
    "Plan",
    "cents_to_amount",
    "CatalogRepository",
    "CatalogService",
]
