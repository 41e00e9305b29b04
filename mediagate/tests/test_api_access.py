"""Tests for the content access routes."""
from decimal import Decimal

import pytest

from mediagate.features.content.store import SqlContentStore
from mediagate.features.entitlements.service import EntitlementService
from mediagate.models.content import ContentKind
from mediagate.models.entitlement import AccessType, ContentScope
from mediagate.models.pricing import PricingPlan


@pytest.fixture
def catalog(client):
    store = SqlContentStore()
    store.create(ContentKind.SERIES, "Series", content_id="series-1")
    store.create(ContentKind.SEASON, "Season 1", parent_id="series-1", content_id="season-1")
    store.create(
        ContentKind.EPISODE,
        "Episode 1",
        parent_id="season-1",
        content_id="ep-1",
        video_url="https://cdn/ep-1.mp4",
    )
    store.lock("series-1", PricingPlan(content_id="series-1", base_price=Decimal("100")))
    return store


def test_missing_user_header_is_unauthorized(client, catalog):
    resp = client.get("/api/content/ep-1/access")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "unauthorized"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_locked_episode_offers_unlock(client, catalog):
    resp = client.get("/api/content/ep-1/access", headers={"X-User-Id": "user-1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["has_access"] is False
    assert body["action"] == "UNLOCK"
    assert Decimal(body["unlock_price"]) == Decimal("100")
    assert body["base_duration_days"] == 15


def test_granted_user_can_watch(client, catalog):
    EntitlementService().grant("user-1", "series-1", ContentScope.SERIES, AccessType.PERMANENT)
    resp = client.get("/api/content/ep-1/access", headers={"X-User-Id": "user-1"})
    body = resp.json()
    assert body["action"] == "WATCH"
    assert body["access_type"] == "PERMANENT"
    assert body["expires_at"] is None


def test_unknown_content_is_404(client, catalog):
    resp = client.get("/api/content/missing/access", headers={"X-User-Id": "user-1"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_tree_strips_locked_media(client, catalog):
    resp = client.get("/api/content/series-1/tree", headers={"X-User-Id": "user-1"})
    assert resp.status_code == 200
    episode = resp.json()["children"][0]["children"][0]
    assert episode["content"]["id"] == "ep-1"
    assert episode["content"]["video_url"] is None
    assert episode["is_locked"] is True
