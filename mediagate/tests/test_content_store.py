"""Tests for the SQL content store and the lock/unlock/delete lifecycle."""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mediagate.core.database import content, get_db_session, pricing_plans
from mediagate.core.errors import InvalidRequestError, NotFoundError
from mediagate.features.content.store import SqlContentStore
from mediagate.models.content import ContentKind
from mediagate.models.pricing import PricingPlan, PricingTier


def series_plan(content_id="series-1"):
    return PricingPlan(
        content_id=content_id,
        base_price=Decimal("100"),
        base_duration_days=15,
        additional_tiers=[PricingTier(days=30, price=Decimal("50"))],
        permanent_price=Decimal("400"),
        is_vat_added=False,
    )


@pytest.fixture
def store(db):
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
    return store


def test_create_and_get(store):
    node = store.get("ep-1")
    assert node.kind == ContentKind.EPISODE
    assert node.parent_id == "season-1"
    assert node.video_url == "https://cdn/ep-1.mp4"
    assert node.is_locked is False
    assert [c.id for c in store.children("series-1")] == ["season-1"]


def test_create_under_missing_parent_fails(store):
    with pytest.raises(NotFoundError):
        store.create(ContentKind.EPISODE, "Orphan", parent_id="nope")


def test_lock_stores_plan(store):
    node = store.lock("series-1", series_plan())
    assert node.is_locked is True
    plan = store.get_pricing("series-1")
    assert plan.base_price == Decimal("100")
    assert plan.additional_tiers == [PricingTier(days=30, price=Decimal("50"))]
    assert plan.permanent_price == Decimal("400")
    assert plan.is_vat_added is False


def test_relock_replaces_plan(store):
    store.lock("series-1", series_plan())
    store.lock("series-1", PricingPlan(content_id="series-1", base_price=Decimal("80")))
    assert store.get_pricing("series-1").base_price == Decimal("80")
    assert store.get_pricing("series-1").additional_tiers == []


def test_only_top_level_kinds_can_be_locked(store):
    with pytest.raises(InvalidRequestError):
        store.lock("season-1", series_plan("season-1"))


def test_plan_must_match_content(store):
    with pytest.raises(InvalidRequestError):
        store.lock("series-1", series_plan("other"))


def test_unlock_keeps_plan(store):
    store.lock("series-1", series_plan())
    assert store.unlock("series-1").is_locked is False
    assert store.get_pricing("series-1") is not None


def test_delete_cascades_to_descendants_and_plans(store):
    store.lock("series-1", series_plan())
    assert store.delete("series-1") == 3
    with get_db_session() as session:
        assert session.execute(select(func.count()).select_from(content)).scalar() == 0
        assert session.execute(select(func.count()).select_from(pricing_plans)).scalar() == 0


def test_delete_missing_content_fails(db):
    with pytest.raises(NotFoundError):
        SqlContentStore().delete("missing")
