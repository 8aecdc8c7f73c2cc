"""
Catalog Service

Typed lookups of purchasable plans and credit products.
"""

from typing import List, Optional, Union

from saasbase.config import logger
from saasbase.core.catalog.models import CreditProduct, Plan
from saasbase.core.catalog.repository import CatalogRepository
from saasbase.core.errors import NotFoundError

DEFAULT_PLANS = [
    Plan(
        id="free",
        name="Free",
        description="Try the product with a small daily allowance",
        price_cents=0,
        tier="free",
        features={"api_access": False, "advanced_features": False},
        quotas={"daily_requests": 10},
        sort_order=0,
    ),
    Plan(
        id="pro",
        name="Pro",
        description="API access and a generous daily allowance",
        price_cents=1999,
        tier="pro",
        features={"api_access": True, "advanced_features": True},
        quotas={"daily_requests": 1000},
        sort_order=1,
    ),
]

DEFAULT_CREDIT_PRODUCTS = [
    CreditProduct(id="credits-100", name="100 Credits", price_cents=500, credits_amount=100),
    CreditProduct(id="credits-500", name="500 Credits", price_cents=2000, credits_amount=500),
]


class CatalogService:
    """Read access to the catalog; lookups fail with NotFoundError."""

    def __init__(self, repository: CatalogRepository):
        self._repo = repository

    def list_plans(self) -> List[Plan]:
        """Active plans, cheapest first."""
        return sorted(self._repo.plans().values(), key=lambda p: (p.price_cents, p.sort_order, p.id))

    def find_plan(self, plan_id: str) -> Optional[Plan]:
        return self._repo.plans().get((plan_id or "").strip().lower())

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.find_plan(plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    def list_credit_products(self) -> List[CreditProduct]:
        return sorted(self._repo.credit_products().values(), key=lambda p: (p.price_cents, p.id))

    def get_credit_product(self, product_id: str) -> CreditProduct:
        product = self._repo.credit_products().get((product_id or "").strip().lower())
        if product is None:
            raise NotFoundError("Product not found")
        return product

    # ------------------------------------------------------------------
    # Every status (back-office)
    # ------------------------------------------------------------------

    def list_all_plans(self) -> List[Plan]:
        return sorted(self._repo.all_plans().values(), key=lambda p: (p.price_cents, p.sort_order, p.id))

    def list_all_credit_products(self) -> List[CreditProduct]:
        return sorted(self._repo.all_credit_products().values(), key=lambda p: (p.price_cents, p.id))

    def find_any_plan(self, plan_id: str) -> Optional[Plan]:
        return self._repo.all_plans().get((plan_id or "").strip().lower())

    def find_any_credit_product(self, product_id: str) -> Optional[CreditProduct]:
        return self._repo.all_credit_products().get((product_id or "").strip().lower())

    def save(self, item: Union[Plan, CreditProduct]) -> None:
        self._repo.save(item)

    def ensure_default_catalog(self) -> None:
        """
        Seed default plans and credit packs that do not exist yet.

        Rows of any status count as existing; an archived plan stays archived.
        """
        plans = self._repo.all_plans()
        for plan in DEFAULT_PLANS:
            if plan.id not in plans:
                self._repo.save(plan.model_copy())
                logger.info("Created default plan: %s", plan.id)

        products = self._repo.all_credit_products()
        for product in DEFAULT_CREDIT_PRODUCTS:
            if product.id not in products:
                self._repo.save(product.model_copy())
                logger.info("Created default credit product: %s", product.id)
