"""
Locale resolution and page translations.

Pages live under ``/{locale}/...``. The first path segment selects the
locale; anything else falls back to the default locale.
"""

from typing import Dict, Optional, Tuple

from saasbase.config import DEFAULT_LOCALE, SUPPORTED_LOCALES


def normalize_locale(value: Optional[str]) -> str:
    """Return ``value`` when it is a supported locale, else the default."""
    if value and value.lower() in SUPPORTED_LOCALES:
        return value.lower()
    return DEFAULT_LOCALE


def resolve_locale(path: str) -> Tuple[str, str, bool]:
    """
    Split a request path into (locale, path without prefix, matched).

    ``/zh/pricing`` -> ("zh", "/pricing", True)
    ``/en`` -> ("en", "/", True)
    ``/pricing`` -> (DEFAULT_LOCALE, "/pricing", False)
    """
    path = path or "/"
    if not path.startswith("/"):
        path = "/" + path

    segment, sep, rest = path[1:].partition("/")
    if segment in SUPPORTED_LOCALES:
        return segment, "/" + rest if sep else "/", True
    return DEFAULT_LOCALE, path, False


def locale_from_accept_language(header: Optional[str]) -> Optional[str]:
    """First supported primary language tag in an Accept-Language header, by q-value."""
    if not header:
        return None

    candidates = []
    for position, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        primary = tag.strip().split("-")[0].lower()
        if not primary or primary == "*":
            continue
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                quality = 0.0
        candidates.append((-quality, position, primary))

    for _, _, primary in sorted(candidates):
        if primary in SUPPORTED_LOCALES:
            return primary
    return None


def localized_path(locale: str, path: str) -> str:
    """Prefix ``path`` with ``locale`` (``("zh", "/pricing")`` -> ``/zh/pricing``)."""
    path = path if path.startswith("/") else "/" + path
    return f"/{locale}" if path == "/" else f"/{locale}{path}"


MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "app.name": "SaaS Base",
        "nav.home": "Home",
        "nav.pricing": "Pricing",
        "nav.credits": "Credits",
        "nav.orders": "Orders",
        "nav.profile": "Profile",
        "nav.favorites": "Favorites",
        "nav.demo": "Demo",
        "nav.api_docs": "API Docs",
        "nav.login": "Sign in",
        "nav.logout": "Sign out",
        "home.title": "Ship your SaaS faster",
        "home.subtitle": "Authentication, subscriptions and credits out of the box.",
        "login.title": "Sign in",
        "login.subtitle": "Use your account to continue.",
        "auth.error_title": "Sign-in failed",
        "auth.error_body": "We could not complete your sign-in. Please try again.",
        "pricing.title": "Pricing",
        "pricing.current": "Current plan",
        "pricing.subscribe": "Subscribe",
        "pricing.free": "Free",
        "checkout.title": "Checkout",
        "checkout.pay": "Pay now",
        "checkout.method": "Payment method",
        "checkout.currency": "Crypto currency (TokenPay)",
        "checkout.empty": "Choose a plan or a credit pack first.",
        "credits.title": "Credits",
        "credits.balance": "Your balance",
        "credits.buy": "Buy",
        "orders.title": "Order history",
        "orders.empty": "You have no orders yet.",
        "orders.detail": "Order details",
        "orders.status": "Status",
        "orders.amount": "Amount",
        "orders.created": "Created",
        "orders.product": "Product",
        "orders.provider": "Provider",
        "orders.check_payment": "Check payment",
        "profile.title": "Profile",
        "profile.email": "Email",
        "profile.plan": "Plan",
        "profile.usage": "Usage today",
        "favorites.title": "Favorites",
        "favorites.empty": "Nothing saved yet.",
        "demo.title": "API demo",
        "demo.send": "Send request",
        "demo.no_access": "Your current plan does not have API access.",
        "api_docs.title": "API documentation",
        "payment.success": "Payment received",
        "payment.success_body": "Thank you! Your order is being processed.",
        "payment.cancel": "Payment cancelled",
        "payment.cancel_body": "No charge was made. You can try again at any time.",
    },
    "zh": {
        "app.name": "SaaS Base",
        "nav.home": "首页",
        "nav.pricing": "价格",
        "nav.credits": "积分",
        "nav.orders": "订单",
        "nav.profile": "个人资料",
        "nav.favorites": "收藏",
        "nav.demo": "演示",
        "nav.api_docs": "API 文档",
        "nav.login": "登录",
        "nav.logout": "退出登录",
        "home.title": "更快上线你的 SaaS",
        "home.subtitle": "开箱即用的认证、订阅与积分。",
        "login.title": "登录",
        "login.subtitle": "使用你的账户继续。",
        "auth.error_title": "登录失败",
        "auth.error_body": "无法完成登录，请重试。",
        "pricing.title": "价格",
        "pricing.current": "当前套餐",
        "pricing.subscribe": "订阅",
        "pricing.free": "免费",
        "checkout.title": "结算",
        "checkout.pay": "立即支付",
        "checkout.method": "支付方式",
        "checkout.currency": "加密货币 (TokenPay)",
        "checkout.empty": "请先选择套餐或积分包。",
        "credits.title": "积分",
        "credits.balance": "你的余额",
        "credits.buy": "购买",
        "orders.title": "订单历史",
        "orders.empty": "暂无订单。",
        "orders.detail": "订单详情",
        "orders.status": "状态",
        "orders.amount": "金额",
        "orders.created": "创建时间",
        "orders.product": "商品",
        "orders.provider": "支付渠道",
        "orders.check_payment": "查询支付状态",
        "profile.title": "个人资料",
        "profile.email": "邮箱",
        "profile.plan": "套餐",
        "profile.usage": "今日用量",
        "favorites.title": "收藏",
        "favorites.empty": "还没有收藏内容。",
        "demo.title": "API 演示",
        "demo.send": "发送请求",
        "demo.no_access": "你当前的套餐不包含 API 访问权限。",
        "api_docs.title": "API 文档",
        "payment.success": "支付成功",
        "payment.success_body": "谢谢！你的订单正在处理中。",
        "payment.cancel": "支付已取消",
        "payment.cancel_body": "未产生任何费用，你可以随时重试。",
    },
}


def translate(locale: str, key: str) -> str:
    """Message for ``key``; falls back to the default locale, then to the key."""
    messages = MESSAGES.get(locale) or {}
    if key in messages:
        return messages[key]
    return MESSAGES.get(DEFAULT_LOCALE, {}).get(key, key)
