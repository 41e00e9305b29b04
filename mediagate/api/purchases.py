"""
Purchase API routes.

Minimal surface:
- POST /api/purchases:                 Start a checkout
- POST /api/purchases/webhook:         Gateway callback (tx_ref in body or query)
- GET  /api/purchases/verify-redirect: Customer return URL; redirects to the app
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from mediagate.api.access import require_user_id
from mediagate.core.config import settings
from mediagate.core.errors import InvalidRequestError
from mediagate.core.logging import log_event
from mediagate.features.purchases.service import InitiatedPurchase, PurchaseService
from mediagate.features.purchases.validation import validate_purchase_request

router = APIRouter(prefix="/api/purchases", tags=["purchases"])


def get_purchase_service() -> PurchaseService:
    return PurchaseService()


@router.post("", response_model=InitiatedPurchase, status_code=201)
def initiate_purchase(
    payload: Dict[str, Any],
    user_id: str = Depends(require_user_id),
    service: PurchaseService = Depends(get_purchase_service),
):
    """
    Start a purchase and return the gateway checkout URL.

    Errors:
        400: Invalid payload, content not for sale, already entitled, duration too short
        404: Unknown content
        502: Gateway refused the checkout
    """
    result = validate_purchase_request(payload)
    if not result.ok:
        raise InvalidRequestError("; ".join(result.errors))
    request = result.value
    return service.initiate(
        user_id,
        request.content_id,
        request.access_type,
        request.duration_days,
        email=request.email,
    )


@router.post("/webhook")
async def purchase_webhook(
    request: Request,
    service: PurchaseService = Depends(get_purchase_service),
):
    """Gateway callback. Always 200 so the gateway does not retry forever."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict) or not body:
        body = dict(request.query_params)

    tx_ref = body.get("tx_ref") or body.get("trx_ref")
    verified = service.verify_and_grant(tx_ref)
    log_event("info", "purchase.webhook", event_type="purchase.webhook", extra={"transaction_ref": tx_ref, "verified": verified})
    return {"received": True, "verified": verified}


@router.get("/verify-redirect")
def verify_redirect(
    tx_ref: Optional[str] = Query(None),
    service: PurchaseService = Depends(get_purchase_service),
):
    verified = service.verify_and_grant(tx_ref) if tx_ref else False
    target = settings.PURCHASE_SUCCESS_URL if verified else settings.PURCHASE_FAILED_URL
    return RedirectResponse(url=target, status_code=302)
