"""Tests for the purchase routes (checkout, webhook, redirect)."""
from decimal import Decimal

import pytest

from mediagate.api.purchases import get_purchase_service
from mediagate.core.config import settings
from mediagate.features.content.store import SqlContentStore
from mediagate.features.purchases.service import PurchaseService
from mediagate.features.purchases.store import SqlPurchaseStore
from mediagate.main import app
from mediagate.models.content import ContentKind
from mediagate.models.pricing import PricingPlan
from mediagate.tests.mocks import FakePaymentProvider


@pytest.fixture
def provider(client):
    store = SqlContentStore()
    store.create(ContentKind.MOVIE, "Movie", content_id="movie-1")
    store.lock("movie-1", PricingPlan(content_id="movie-1", base_price=Decimal("100")))

    fake = FakePaymentProvider()
    app.dependency_overrides[get_purchase_service] = lambda: PurchaseService(provider=fake)
    return fake


def start_purchase(client):
    resp = client.post(
        "/api/purchases",
        json={"content_id": "movie-1", "access_type": "TEMPORARY", "duration_days": 15},
        headers={"X-User-Id": "user-1"},
    )
    assert resp.status_code == 201
    return resp.json()


def test_initiate_returns_checkout(client, provider):
    body = start_purchase(client)
    assert body["checkout_url"].endswith(body["transaction_ref"])
    assert body["content_id"] == "movie-1"
    assert len(provider.checkouts) == 1


def test_invalid_payload_is_400(client, provider):
    resp = client.post(
        "/api/purchases",
        json={"content_id": "movie-1", "duration_days": -3},
        headers={"X-User-Id": "user-1"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_request"
    assert "duration_days" in resp.json()["error"]["message"]


def test_webhook_verifies_and_grants(client, provider):
    tx_ref = start_purchase(client)["transaction_ref"]

    resp = client.post("/api/purchases/webhook", json={"tx_ref": tx_ref})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "verified": True}
    assert SqlPurchaseStore().get_by_ref(tx_ref) is not None

    access = client.get("/api/content/movie-1/access", headers={"X-User-Id": "user-1"})
    assert access.json()["action"] == "WATCH"


def test_webhook_accepts_query_params(client, provider):
    tx_ref = start_purchase(client)["transaction_ref"]
    resp = client.post(f"/api/purchases/webhook?tx_ref={tx_ref}")
    assert resp.json()["verified"] is True


def test_verify_redirect_targets_app(client, provider):
    tx_ref = start_purchase(client)["transaction_ref"]

    ok = client.get("/api/purchases/verify-redirect", params={"tx_ref": tx_ref}, follow_redirects=False)
    assert ok.status_code == 302
    assert ok.headers["location"] == settings.PURCHASE_SUCCESS_URL

    missing = client.get("/api/purchases/verify-redirect", follow_redirects=False)
    assert missing.headers["location"] == settings.PURCHASE_FAILED_URL
