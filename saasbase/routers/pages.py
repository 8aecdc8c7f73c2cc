"""
Localized pages.

Every page lives under ``/{locale}/...`` and is rendered with Jinja2 from
the same services the JSON API uses. Protected pages send anonymous
visitors to the login page of their locale.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from saasbase.config import (
    FIREBASE_AUTH_DOMAIN,
    FIREBASE_PROJECT_ID,
    FIREBASE_WEB_API_KEY,
    SUPPORTED_LOCALES,
    TEMPLATES_DIR,
    logger,
)
from saasbase.core.catalog import cents_to_amount
from saasbase.core.context import AppContext, get_context
from saasbase.core.errors import AppError
from saasbase.core.locale import localized_path, translate
from saasbase.core.openapi import build_openapi
from saasbase.core.payments import DEFAULT_TOKENPAY_CURRENCY, TOKENPAY_CURRENCIES
from saasbase.core.repositories import PaymentType
from saasbase.core.security import sanitize_redirect_path, validate_identifier
from saasbase.core.session import CurrentUser, get_optional_user, login_redirect, require_page_user

router = APIRouter(include_in_schema=False)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = cents_to_amount

HTTP_METHODS = ("get", "post", "put", "patch", "delete")


def _locale(locale: str) -> str:
    if locale not in SUPPORTED_LOCALES:
        raise StarletteHTTPException(status_code=404, detail="Not Found")
    return locale


def _render(
    request: Request,
    locale: str,
    template: str,
    user: Optional[CurrentUser] = None,
    status_code: int = 200,
    **extra: Any,
) -> HTMLResponse:
    path = request.url.path
    stripped = path[len(locale) + 1:] or "/"
    context: Dict[str, Any] = {
        "locale": locale,
        "locales": SUPPORTED_LOCALES,
        "current_path": stripped,
        "user": user,
        "t": lambda key: translate(locale, key),
        "url": lambda page: localized_path(locale, page),
    }
    context.update(extra)
    return templates.TemplateResponse(request, template, context, status_code=status_code)


def _next_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


# -----------------------------------------------------------------------------
# Public pages
# -----------------------------------------------------------------------------

@router.get("/{locale}", response_class=HTMLResponse)
async def home_page(
    request: Request,
    locale: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    context: AppContext = Depends(get_context),
):
    locale = _locale(locale)
    return _render(request, locale, "home.html", user, plans=context.catalog.list_plans())


@router.get("/{locale}/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    locale: str,
    next: Optional[str] = Query(default=None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    locale = _locale(locale)
    return _render(
        request,
        locale,
        "login.html",
        user,
        next_path=sanitize_redirect_path(next, default=localized_path(locale, "/")),
        firebase_config={
            "apiKey": FIREBASE_WEB_API_KEY,
            "authDomain": FIREBASE_AUTH_DOMAIN,
            "projectId": FIREBASE_PROJECT_ID,
        },
    )


@router.get("/{locale}/auth/auth-code-error", response_class=HTMLResponse)
async def auth_error_page(
    request: Request,
    locale: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    locale = _locale(locale)
    return _render(request, locale, "auth_error.html", user, status_code=400)


@router.get("/{locale}/api-docs", response_class=HTMLResponse)
async def api_docs_page(
    request: Request,
    locale: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    """Server-rendered endpoint reference built from the OpenAPI document."""
    locale = _locale(locale)
    schema = build_openapi(request.app)
    endpoints = [
        {
            "method": method.upper(),
            "path": path,
            "summary": operation.get("summary", ""),
            "description": operation.get("description", ""),
            "tags": operation.get("tags", []),
        }
        for path, item in sorted(schema.get("paths", {}).items())
        for method, operation in item.items()
        if method in HTTP_METHODS
    ]
    return _render(request, locale, "api_docs.html", user, endpoints=endpoints, info=schema.get("info", {}))


# -----------------------------------------------------------------------------
# Account pages
# -----------------------------------------------------------------------------

@router.get("/{locale}/pricing", response_class=HTMLResponse)
async def pricing_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    return _render(
        request,
        locale,
        "pricing.html",
        user,
        plans=context.catalog.list_plans(),
        subscription=context.subscriptions.get_user_subscription(user.uid),
    )


@router.get("/{locale}/checkout", response_class=HTMLResponse)
async def checkout_page(
    request: Request,
    locale: str,
    plan: Optional[str] = Query(default=None, max_length=100),
    product: Optional[str] = Query(default=None, max_length=100),
    context: AppContext = Depends(get_context),
):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))

    item: Any = None
    item_type: Optional[PaymentType] = None
    if plan:
        item = context.catalog.get_plan(validate_identifier(plan, "plan"))
        item_type = PaymentType.SUBSCRIPTION
    elif product:
        item = context.catalog.get_credit_product(validate_identifier(product, "product"))
        item_type = PaymentType.CREDITS

    return _render(
        request,
        locale,
        "checkout.html",
        user,
        item=item,
        item_type=item_type.value if item_type else None,
        providers=context.providers.names,
        currencies=TOKENPAY_CURRENCIES,
        default_currency=DEFAULT_TOKENPAY_CURRENCY,
    )


@router.get("/{locale}/credits", response_class=HTMLResponse)
async def credits_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    return _render(
        request,
        locale,
        "credits.html",
        user,
        balance=context.subscriptions.get_user_credits(user.uid),
        products=context.catalog.list_credit_products(),
    )


@router.get("/{locale}/orders", response_class=HTMLResponse)
async def orders_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    orders = context.billing.list_user_orders(user.uid, limit=50)
    return _render(request, locale, "orders.html", user, orders=orders)


@router.get("/{locale}/orders/{order_id}", response_class=HTMLResponse)
async def order_detail_page(
    request: Request,
    locale: str,
    order_id: str,
    context: AppContext = Depends(get_context),
):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    order = context.billing.get_user_order(user.uid, validate_identifier(order_id, "orderId"))
    return _render(request, locale, "order_detail.html", user, order=order)


@router.get("/{locale}/profile", response_class=HTMLResponse)
async def profile_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    return _render(
        request,
        locale,
        "profile.html",
        user,
        subscription=context.subscriptions.get_user_subscription(user.uid),
        balance=context.subscriptions.get_user_credits(user.uid),
        usage=context.subscriptions.get_user_usage(user.uid),
    )


@router.get("/{locale}/favorites", response_class=HTMLResponse)
async def favorites_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    return _render(request, locale, "favorites.html", user, favorites=context.accounts.list_favorites(user.uid))


@router.get("/{locale}/dashboard/demo", response_class=HTMLResponse)
async def demo_page(request: Request, locale: str, context: AppContext = Depends(get_context)):
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))
    subscriptions = context.subscriptions
    return _render(
        request,
        locale,
        "demo.html",
        user,
        subscription=subscriptions.get_user_subscription(user.uid),
        has_api_access=subscriptions.check_feature_permission(user.uid, "api_access"),
        quota=subscriptions.check_quota(user.uid, "api_request", "daily_requests"),
    )


# -----------------------------------------------------------------------------
# Provider return pages
# -----------------------------------------------------------------------------

@router.get("/{locale}/payment/success", response_class=HTMLResponse)
async def payment_success_page(
    request: Request,
    locale: str,
    order_id: Optional[str] = Query(default=None, max_length=100),
    context: AppContext = Depends(get_context),
) -> Response:
    """Landing page after provider approval; captures the returned order for its owner."""
    locale = _locale(locale)
    user = require_page_user(request, context)
    if user is None:
        return login_redirect(locale, _next_path(request))

    order = None
    error: Optional[str] = None
    if order_id:
        try:
            outcome = await context.billing.capture_order(user.uid, validate_identifier(order_id, "orderId"))
            order = outcome.order
        except AppError as e:
            logger.warning("Capture on return failed for order %s: %s", order_id, e.message)
            error = e.message
    return _render(request, locale, "payment_result.html", user, outcome="success", order=order, error=error)


@router.get("/{locale}/payment/cancel", response_class=HTMLResponse)
async def payment_cancel_page(
    request: Request,
    locale: str,
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    locale = _locale(locale)
    return _render(request, locale, "payment_result.html", user, outcome="cancel", order=None, error=None)
