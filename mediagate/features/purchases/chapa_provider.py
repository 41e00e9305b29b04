"""
Chapa payment provider implementation.

Implements PaymentProvider over the Chapa REST API:
- POST {base}/transaction/initialize -> hosted checkout URL
- GET  {base}/transaction/verify/{tx_ref} -> authoritative status
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import logging

import httpx

from mediagate.core.config import settings
from mediagate.features.purchases.provider import (
    CheckoutRequest,
    PaymentProviderError,
    VerifiedTransaction,
)


logger = logging.getLogger(__name__)


class ChapaProvider:
    """Chapa implementation of PaymentProvider protocol."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        subaccount_id: Optional[str] = None,
        split_share: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.secret_key = secret_key or settings.CHAPA_SECRET_KEY
        self.base_url = (base_url or settings.CHAPA_BASE_URL).rstrip("/")
        self.subaccount_id = subaccount_id or settings.CHAPA_SUBACCOUNT_ID
        self.split_share = split_share if split_share is not None else settings.PARTNER_STAKEHOLDER_SHARE
        self.timeout = timeout or settings.CHAPA_TIMEOUT_SECONDS

        if not self.secret_key:
            raise PaymentProviderError("CHAPA_SECRET_KEY not configured")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.request(method, url, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Chapa request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 300:
            logger.error(
                "[chapa] request rejected",
                extra={"path": path, "status": response.status_code, "gateway_message": body.get("message")},
            )
            raise PaymentProviderError(f"Chapa returned {response.status_code}: {body.get('message') or response.text}")
        return body

    def initialize(self, checkout: CheckoutRequest) -> str:
        """Start a Chapa hosted checkout and return its URL."""
        payload: Dict[str, Any] = {
            "amount": f"{checkout.amount:.2f}",
            "currency": checkout.currency,
            "tx_ref": checkout.transaction_ref,
            "callback_url": checkout.callback_url,
            "return_url": checkout.return_url,
            "customization": {"title": checkout.customization_title},
            "meta": checkout.metadata,
        }
        if checkout.customer_email:
            payload["email"] = checkout.customer_email
        if self.subaccount_id:
            payload["subaccounts"] = {
                "id": self.subaccount_id,
                "split_type": "percentage",
                "split_value": self.split_share,
            }

        body = self._request("POST", "/transaction/initialize", payload)
        checkout_url = (body.get("data") or {}).get("checkout_url")
        if body.get("status") != "success" or not checkout_url:
            raise PaymentProviderError("Chapa did not return a checkout URL")
        return checkout_url

    def verify(self, transaction_ref: str) -> VerifiedTransaction:
        """Fetch the status of `transaction_ref` from Chapa."""
        body = self._request("GET", f"/transaction/verify/{transaction_ref}")
        data = body.get("data") or {}
        status = data.get("status") or body.get("status") or "failed"
        return VerifiedTransaction(
            reference=data.get("tx_ref") or transaction_ref,
            status=str(status).lower(),
            amount=_parse_amount(data.get("amount")),
            currency=data.get("currency"),
        )


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None
