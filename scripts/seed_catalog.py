#!/usr/bin/env python3
"""
Seed Script: Initialize the Catalog in Firestore

Creates the default subscription plans and credit packs that do not exist
yet, then lists what the catalog contains.

Usage:
    python scripts/seed_catalog.py
"""

import sys
from pathlib import Path

# Add parent directory to path to import saasbase modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from saasbase.config import logger
from saasbase.core.catalog import CatalogRepository, CatalogService
from saasbase.core.firebase_client import FirebaseClient


def main():
    """Run catalog seeding."""
    logger.info("Starting catalog seeding...")

    firebase = FirebaseClient.from_config()
    catalog = CatalogService(CatalogRepository(firebase.db, cache_ttl_seconds=0))

    try:
        catalog.ensure_default_catalog()
        logger.info("Default catalog ensured")

        plans = catalog.list_plans()
        logger.info("Found %d plans in Firestore:", len(plans))
        for plan in plans:
            logger.info(
                "  - %s (%s): %s/day, %s %s, status=%s",
                plan.id,
                plan.name,
                plan.get_quota("daily_requests"),
                plan.amount,
                plan.currency,
                plan.status.value,
            )

        products = catalog.list_credit_products()
        logger.info("Found %d credit products in Firestore:", len(products))
        for product in products:
            logger.info(
                "  - %s (%s): %d credits, %s %s",
                product.id,
                product.name,
                product.credits_amount,
                product.amount,
                product.currency,
            )

        logger.info("Catalog seeding completed successfully")
        return 0

    except Exception as e:
        logger.error("Catalog seeding failed: %s", e, exc_info=True)
        return 1

    finally:
        firebase.close()


if __name__ == "__main__":
    sys.exit(main())
