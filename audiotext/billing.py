# audiotext/billing.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from audiotext.errors import NotImplementedFeature, UpstreamError

log = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"


def _metadata(meta: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {f"metadata[{k}]": str(v) for k, v in (meta or {}).items()}


class StripeClient:
    """
    Thin Stripe REST proxy (form-encoded bodies, bearer auth). When no secret
    key is configured every call raises NotImplementedFeature (501).
    """

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        prices: Optional[Dict[str, Optional[str]]] = None,
        base_url: str = STRIPE_API,
        timeout: float = 30.0,
    ) -> None:
        self.secret_key = secret_key
        self.prices = {k: v for k, v in (prices or {}).items() if v}
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def price_for(self, plan: str) -> str:
        price = self.prices.get(plan)
        if not price:
            raise NotImplementedFeature(f"No Stripe price configured for plan '{plan}'")
        return price

    def plan_for_price(self, price_id: Optional[str]) -> Optional[str]:
        for plan, price in self.prices.items():
            if price == price_id:
                return plan
        return None

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        if not self.configured:
            raise NotImplementedFeature("Billing is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                    data=data,
                    params=params,
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Stripe unreachable: {type(e).__name__}") from e
        if resp.status_code // 100 != 2:
            log.error("[stripe] %s %s -> %d %s", method, path, resp.status_code, resp.text[:300])
            raise UpstreamError(f"Stripe API error: {resp.status_code}")
        return resp.json()

    async def create_customer(
        self, email: str, name: Optional[str] = None, metadata: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        data = {"email": email, **_metadata(metadata)}
        if name:
            data["name"] = name
        return await self._request("POST", "/customers", data)

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        *,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        data = {
            "customer": customer_id,
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "success_url": success_url,
            "cancel_url": cancel_url,
            **_metadata(metadata),
        }
        return await self._request("POST", "/checkout/sessions", data)

    async def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/subscriptions/{subscription_id}")

    async def list_customer_subscriptions(self, customer_id: str) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/subscriptions", params={"customer": customer_id, "status": "all"})
        return list(body.get("data") or [])

    async def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/subscriptions/{subscription_id}")
