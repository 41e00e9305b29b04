"""Tests for the idempotent daily settlement run and its scheduled job."""
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select

from mediagate.core.database import daily_settlements, get_db_session, job_runs
from mediagate.features.purchases.store import SqlPurchaseStore
from mediagate.features.settlements.service import run_daily_settlement, settlements_report
from mediagate.features.settlements.store import SqlSettlementStore
from mediagate.models.settlement import SettlementStatus
from mediagate.tests.mocks import FakePurchaseStore, FakeSettlementStore, make_purchase
from mediagate.workers.daily_settlement import settle_yesterday


DAY = date(2026, 3, 1)
NOON = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_settles_only_purchases_of_that_day():
    purchases = FakePurchaseStore([
        make_purchase("p1", "100", created_at=NOON),
        make_purchase("p2", "200", created_at=NOON + timedelta(hours=11, minutes=59)),
        make_purchase("late", "999", created_at=NOON + timedelta(hours=12)),
        make_purchase("early", "999", created_at=NOON - timedelta(hours=12, seconds=1)),
    ])
    record = run_daily_settlement(DAY, purchases, FakeSettlementStore())
    assert record.total_transactions == 2
    assert record.total_net_for_split == Decimal("300")
    assert record.primary_share == Decimal("210.00")
    assert record.partner_share == Decimal("90.00")
    assert record.status == SettlementStatus.COMPLETED


def test_second_run_is_a_noop():
    purchases = FakePurchaseStore([make_purchase("p1", "100", created_at=NOON)])
    settlements = FakeSettlementStore()
    first = run_daily_settlement(DAY, purchases, settlements)
    purchases.purchases.append(make_purchase("p2", "50", created_at=NOON))
    second = run_daily_settlement(DAY, purchases, settlements)
    assert second == first
    assert settlements.add_calls == 1


def test_day_without_purchases_is_skipped():
    settlements = FakeSettlementStore()
    assert run_daily_settlement(DAY, FakePurchaseStore(), settlements) is None
    assert settlements.records == {}


def test_job_settles_yesterday_and_records_run(db):
    store = SqlPurchaseStore()
    store.add(make_purchase("p1", "100", created_at=NOON, vat="15", fee="4.03"))
    store.add(make_purchase("p2", "200", created_at=NOON + timedelta(hours=2)))

    now = datetime(2026, 3, 2, 0, 5, tzinfo=timezone.utc)
    stats = settle_yesterday(now=now)
    assert stats == {"settlement_date": "2026-03-01", "settled": True, "total_transactions": 2}

    settle_yesterday(now=now)

    with get_db_session() as session:
        settled_rows = session.execute(select(func.count()).select_from(daily_settlements)).scalar()
        runs = session.execute(select(job_runs)).fetchall()
    assert settled_rows == 1
    assert len(runs) == 2
    assert all(r.status == "success" for r in runs)
    assert json.loads(runs[0].stats_json)["settled"] is True

    report = settlements_report(DAY, DAY, settlement_store=SqlSettlementStore())
    assert report.total_primary_share == Decimal("210.00")
    assert report.total_partner_share == Decimal("90.00")
    assert [r.settlement_date for r in report.daily_records] == [DAY]


def test_stored_shares_are_rounded_to_cents():
    purchases = FakePurchaseStore([make_purchase("p1", "10.05", created_at=NOON)])
    record = run_daily_settlement(DAY, purchases, FakeSettlementStore())
    assert record.total_net_for_split == Decimal("10.05")
    assert record.primary_share == Decimal("7.04")
    assert record.partner_share == Decimal("3.02")
