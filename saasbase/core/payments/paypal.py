"""
PayPal (card) payments.

``PayPalClient`` talks to the PayPal Orders v2 REST API; ``PayPalProvider``
adapts it to the provider capability.
"""

import json
from typing import Any, Dict, Optional

import httpx

from saasbase.config import (
    DEFAULT_CURRENCY,
    PAYPAL_API_BASE,
    PAYPAL_CLIENT_ID,
    PAYPAL_SECRET,
    PUBLIC_BASE_URL,
    logger,
)
from saasbase.core.errors import PaymentProviderError
from saasbase.core.payments.base import (
    CaptureResult,
    OrderHandle,
    PaymentOrder,
    PaymentProvider,
    ProviderOrderRecord,
)

PROVIDER_NAME = "paypal"


class PayPalClient:
    """Thin async client for the PayPal REST API."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str = PAYPAL_CLIENT_ID,
        secret: str = PAYPAL_SECRET,
        api_base: str = PAYPAL_API_BASE,
    ):
        self._http = http
        self._client_id = client_id
        self._secret = secret
        self._api_base = api_base.rstrip("/")

    async def _access_token(self) -> str:
        if not self._client_id or not self._secret:
            raise PaymentProviderError("PayPal credentials missing", provider=PROVIDER_NAME)

        response = await self._request(
            "POST",
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._secret),
        )
        token = response.get("access_token")
        if not token:
            raise PaymentProviderError("PayPal did not return an access token", provider=PROVIDER_NAME)
        return token

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self._api_base}{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("PayPal request %s %s failed: %s", method, path, e)
            raise PaymentProviderError(f"PayPal request failed: {e}", provider=PROVIDER_NAME) from e

        if response.status_code not in (200, 201):
            logger.warning("PayPal %s %s returned %d: %s", method, path, response.status_code, response.text)
            raise PaymentProviderError(response.text, provider=PROVIDER_NAME)
        return response.json()

    async def _authorized(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        token = await self._access_token()
        return await self._request(
            method,
            path,
            json=json,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        )

    async def create_order(
        self,
        amount: str,
        currency: str = DEFAULT_CURRENCY,
        return_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a CAPTURE-intent order for ``amount`` (two-decimal string)."""
        payload: Dict[str, Any] = {
            "intent": "CAPTURE",
            "purchase_units": [
                {"amount": {"currency_code": currency, "value": amount}},
            ],
        }
        if return_url:
            payload["application_context"] = {"return_url": return_url, "cancel_url": cancel_url or return_url}
        return await self._authorized("POST", "/v2/checkout/orders", json=payload)

    async def capture_order(self, order_id: str) -> Dict[str, Any]:
        return await self._authorized("POST", f"/v2/checkout/orders/{order_id}/capture")

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        return await self._authorized("GET", f"/v2/checkout/orders/{order_id}")


def approve_link(paypal_order: Dict[str, Any]) -> Optional[str]:
    for link in paypal_order.get("links") or []:
        if link.get("rel") == "approve":
            return link.get("href")
    return None


def paypal_issue(message: str) -> str:
    """Issue code of a PayPal error body (``ORDER_NOT_APPROVED``), or ``ERROR``; never a terminal status."""
    try:
        body = json.loads(message)
    except ValueError:
        return "ERROR"
    details = body.get("details") if isinstance(body, dict) else None
    if details and isinstance(details[0], dict) and details[0].get("issue"):
        return str(details[0]["issue"])
    if isinstance(body, dict) and body.get("name"):
        return str(body["name"])
    return "ERROR"


class PayPalProvider(PaymentProvider):
    name = PROVIDER_NAME

    def __init__(self, client: PayPalClient, public_base_url: str = PUBLIC_BASE_URL):
        self.client = client
        self._public_base_url = public_base_url.rstrip("/")

    async def create_order(self, order: PaymentOrder) -> OrderHandle:
        return_url = cancel_url = None
        if order.id:
            return_url = f"{self._public_base_url}/payment/success?order_id={order.id}"
            cancel_url = f"{self._public_base_url}/payment/cancel?order_id={order.id}"
        paypal_order = await self.client.create_order(order.amount, order.currency, return_url, cancel_url)
        return OrderHandle(
            provider=self.name,
            provider_order_id=paypal_order["id"],
            status=paypal_order.get("status", "CREATED"),
            redirect_url=approve_link(paypal_order),
            raw=paypal_order,
        )

    async def capture_order(self, provider_order_id: str) -> CaptureResult:
        try:
            capture = await self.client.capture_order(provider_order_id)
        except PaymentProviderError as e:
            logger.warning("PayPal capture of %s failed: %s", provider_order_id, e.message)
            return CaptureResult(success=False, status=paypal_issue(e.message), raw={"error": e.message})
        status = capture.get("status", "UNKNOWN")
        return CaptureResult(success=status == "COMPLETED", status=status, raw=capture)

    async def get_order(self, provider_order_id: str) -> ProviderOrderRecord:
        paypal_order = await self.client.get_order(provider_order_id)
        return ProviderOrderRecord(
            provider=self.name,
            provider_order_id=paypal_order.get("id", provider_order_id),
            status=paypal_order.get("status", "UNKNOWN"),
            raw=paypal_order,
        )
