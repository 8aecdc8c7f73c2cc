"""
TokenPay (crypto) payments.
"""

from typing import Any, Dict, List, Optional

import httpx

from saasbase.config import (
    PUBLIC_BASE_URL,
    TOKENPAY_API_KEY,
    TOKENPAY_DEFAULT_CURRENCY,
    TOKENPAY_URL,
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

PROVIDER_NAME = "tokenpay"

TOKENPAY_CURRENCIES: List[Dict[str, str]] = [
    {"label": "ETH (Mainnet)", "value": "EVM_ETH_ETH", "network": "ETH"},
    {"label": "USDT (ERC20)", "value": "EVM_ETH_USDT_ERC20", "network": "ETH"},
    {"label": "USDC (ERC20)", "value": "EVM_ETH_USDC_ERC20", "network": "ETH"},
    {"label": "BNB (BSC)", "value": "EVM_BSC_BNB", "network": "BSC"},
    {"label": "USDT (BEP20)", "value": "EVM_BSC_USDT_BEP20", "network": "BSC"},
    {"label": "USDC (BEP20)", "value": "EVM_BSC_USDC_BEP20", "network": "BSC"},
]

DEFAULT_TOKENPAY_CURRENCY = TOKENPAY_DEFAULT_CURRENCY

_CURRENCY_VALUES = frozenset(c["value"] for c in TOKENPAY_CURRENCIES)


def is_supported_currency(currency: Optional[str]) -> bool:
    return currency in _CURRENCY_VALUES


class TokenPayProvider(PaymentProvider):
    name = PROVIDER_NAME

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str = TOKENPAY_URL,
        api_key: str = TOKENPAY_API_KEY,
        public_base_url: str = PUBLIC_BASE_URL,
    ):
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._public_base_url = public_base_url.rstrip("/")

    def _check_config(self) -> None:
        if not self._base_url or not self._api_key:
            raise PaymentProviderError("TokenPay configuration missing", provider=self.name)

    async def _call(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        self._check_config()
        try:
            response = await self._http.request(
                method,
                f"{self._base_url}{path}",
                headers={"x-api-key": self._api_key},
                **kwargs,
            )
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("TokenPay request %s %s failed: %s", method, path, e)
            raise PaymentProviderError(f"TokenPay request failed: {e}", provider=self.name) from e

    async def create_order(self, order: PaymentOrder) -> OrderHandle:
        if not order.id:
            raise PaymentProviderError("TokenPay orders must be tracked locally", provider=self.name)

        payload = {
            "amount": order.amount,
            "currency": order.currency,
            "order_id": order.id,
            "title": f"Order #{order.id[:8]}",
            "description": order.description,
            "success_url": f"{self._public_base_url}/payment/success?order_id={order.id}",
            "cancel_url": f"{self._public_base_url}/payment/cancel?order_id={order.id}",
        }
        data = await self._call("POST", "/api/v1/order/create", json=payload)

        if data.get("code") != 200:
            raise PaymentProviderError(
                data.get("message") or "Failed to create TokenPay order", provider=self.name
            )

        body = data.get("data") or {}
        return OrderHandle(
            provider=self.name,
            provider_order_id=str(body.get("order_id")),
            status=body.get("status", "pending"),
            redirect_url=body.get("payment_url"),
            raw=data,
        )

    async def get_order(self, provider_order_id: str) -> ProviderOrderRecord:
        data = await self._call("GET", "/api/v1/order/check", params={"order_id": provider_order_id})
        body = data.get("data") or {}
        return ProviderOrderRecord(
            provider=self.name,
            provider_order_id=provider_order_id,
            status=body.get("status") or "unknown",
            raw=data,
        )

    async def capture_order(self, provider_order_id: str) -> CaptureResult:
        # Crypto payments settle on-chain; capture is a status check.
        try:
            record = await self.get_order(provider_order_id)
        except PaymentProviderError as e:
            logger.warning("TokenPay status check for %s failed: %s", provider_order_id, e.message)
            return CaptureResult(success=False, status="error", raw={"error": e.message})
        return CaptureResult(success=record.status == "completed", status=record.status, raw=record.raw)
