"""
mediagate/features/settlements/service.py

Settlement aggregation and revenue reports.

Handles:
- Aggregating purchases and splitting net revenue between two stakeholders
- Per-stakeholder ledgers and summaries
- The idempotent daily settlement run
- Reconciliation and settlement range reports

A non-zero discrepancy is an accounting anomaly: it is returned in the
report (and logged above tolerance), never raised.
"""

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from math import ceil
from typing import Dict, Iterable, List, Optional, Sequence
import logging

from mediagate.core.config import settings
from mediagate.core.errors import ConflictError, InvalidRequestError, NotFoundError
from mediagate.features.pricing.service import ZERO, money, to_decimal, Rate
from mediagate.features.purchases.store import PurchaseStore, SqlPurchaseStore
from mediagate.features.settlements.store import SettlementStore, SqlSettlementStore
from mediagate.models.purchase import PurchaseRecord
from mediagate.models.settlement import (
    DailySettlement,
    LedgerItem,
    PageMeta,
    ReconciliationReport,
    SettlementReport,
    SettlementsReport,
    SettlementStatus,
    StakeholderLedger,
    StakeholderSummary,
    TopEarningContent,
)


logger = logging.getLogger(__name__)


def _tolerance() -> Decimal:
    return to_decimal(settings.SETTLEMENT_DISCREPANCY_TOLERANCE)


def aggregate(
    purchases: Iterable[PurchaseRecord],
    share_a: Rate,
    share_b: Rate,
) -> SettlementReport:
    """Sum the purchases and split total net revenue by `share_a` / `share_b`."""
    records = list(purchases)
    total_gross = sum((p.gross_amount for p in records), ZERO)
    total_base = sum((p.base_amount for p in records), ZERO)
    total_vat = sum((p.vat_amount for p in records), ZERO)
    total_fees = sum((p.transaction_fee for p in records), ZERO)
    total_net = sum((p.net_amount_for_split for p in records), ZERO)

    # Unrounded; cents are applied when a settlement is stored.
    split_a = total_net * to_decimal(share_a)
    split_b = total_net * to_decimal(share_b)
    discrepancy = total_net - (split_a + split_b)

    if abs(discrepancy) > _tolerance():
        logger.warning(
            "[settlement] discrepancy above tolerance",
            extra={"discrepancy": str(discrepancy), "transaction_count": len(records)},
        )

    return SettlementReport(
        transaction_count=len(records),
        total_gross=total_gross,
        total_base=total_base,
        total_vat=total_vat,
        total_fees=total_fees,
        total_net_for_split=total_net,
        split_a=split_a,
        split_b=split_b,
        discrepancy=discrepancy,
    )


def _share_for(stakeholder_id: str, shares: Optional[Dict[str, Rate]]) -> Decimal:
    table = shares if shares is not None else settings.stakeholder_shares
    if stakeholder_id not in table:
        raise NotFoundError(f"Stakeholder '{stakeholder_id}' not found.")
    return to_decimal(table[stakeholder_id])


def stakeholder_ledger(
    stakeholder_id: str,
    purchases: Sequence[PurchaseRecord],
    shares: Optional[Dict[str, Rate]] = None,
    page: int = 1,
    limit: int = 20,
) -> StakeholderLedger:
    """Itemized earnings of one stakeholder, newest purchase first.

    Totals cover every purchase; `items` holds only the requested page.
    """
    if page < 1 or limit < 1:
        raise InvalidRequestError("page and limit must be positive")
    share = _share_for(stakeholder_id, shares)

    ordered = sorted(purchases, key=lambda p: p.created_at, reverse=True)
    total_gross = sum((p.gross_amount for p in ordered), ZERO)
    total_net = sum((p.net_amount_for_split for p in ordered), ZERO)

    window = ordered[(page - 1) * limit:page * limit]
    items = [
        LedgerItem(
            purchase_id=p.id,
            date=p.created_at,
            description=f"{p.access_type.value.title()} unlock of {p.content_id}",
            content_id=p.content_id,
            customer_paid=p.gross_amount,
            vat_portion=p.vat_amount,
            transaction_fee=p.transaction_fee,
            net_for_split=p.net_amount_for_split,
            your_net_earning=money(p.net_amount_for_split * share),
        )
        for p in window
    ]
    return StakeholderLedger(
        stakeholder_id=stakeholder_id,
        share=share,
        total_gross=total_gross,
        total_net_for_split=total_net,
        total_net_earning=money(total_net * share),
        meta=PageMeta(
            total_items=len(ordered),
            item_count=len(items),
            items_per_page=limit,
            total_pages=ceil(len(ordered) / limit),
            current_page=page,
        ),
        items=items,
    )


def stakeholder_summary(
    stakeholder_id: str,
    purchases: Sequence[PurchaseRecord],
    start: datetime,
    end: datetime,
    shares: Optional[Dict[str, Rate]] = None,
) -> StakeholderSummary:
    share = _share_for(stakeholder_id, shares)

    net_by_content: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for p in purchases:
        net_by_content[p.content_id] += p.net_amount_for_split

    top = None
    if net_by_content:
        content_id, net = max(net_by_content.items(), key=lambda kv: (kv[1], kv[0]))
        top = TopEarningContent(content_id=content_id, net_earnings=money(net * share))

    total_net = sum(net_by_content.values(), ZERO)
    return StakeholderSummary(
        stakeholder_id=stakeholder_id,
        start=start,
        end=end,
        total_gross_sales=sum((p.gross_amount for p in purchases), ZERO),
        total_net_earnings=money(total_net * share),
        total_transactions=len(purchases),
        top_earning_content=top,
    )


def day_window(settlement_date: date):
    """[00:00, next 00:00) of `settlement_date` in UTC."""
    start = datetime.combine(settlement_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def run_daily_settlement(
    settlement_date: date,
    purchase_store: Optional[PurchaseStore] = None,
    settlement_store: Optional[SettlementStore] = None,
) -> Optional[DailySettlement]:
    """
    Settle one UTC day.

    Returns the stored record (existing or new), or None when the day had no
    purchases. Running it twice for the same date never writes twice.
    """
    purchase_store = purchase_store or SqlPurchaseStore()
    settlement_store = settlement_store or SqlSettlementStore()

    existing = settlement_store.get(settlement_date)
    if existing is not None:
        logger.info("[settlement] already settled", extra={"settlement_date": settlement_date.isoformat()})
        return existing

    start, end = day_window(settlement_date)
    purchases = purchase_store.list_between(start, end)
    if not purchases:
        logger.info("[settlement] no purchases", extra={"settlement_date": settlement_date.isoformat()})
        return None

    report = aggregate(purchases, settings.PRIMARY_STAKEHOLDER_SHARE, settings.PARTNER_STAKEHOLDER_SHARE)
    record = DailySettlement(
        settlement_date=settlement_date,
        total_gross=report.total_gross,
        total_net_for_split=report.total_net_for_split,
        total_transactions=report.transaction_count,
        primary_share=money(report.split_a),
        partner_share=money(report.split_b),
        status=SettlementStatus.COMPLETED,
    )
    try:
        settlement_store.add(record)
    except ConflictError:
        # Another run got there first.
        return settlement_store.get(settlement_date)

    logger.info(
        "[settlement] completed",
        extra={
            "settlement_date": settlement_date.isoformat(),
            "total_transactions": record.total_transactions,
            "total_net_for_split": str(record.total_net_for_split),
        },
    )
    return record


def reconciliation_report(
    start: datetime,
    end: datetime,
    purchase_store: Optional[PurchaseStore] = None,
) -> ReconciliationReport:
    if end <= start:
        raise InvalidRequestError("end must be after start")
    purchase_store = purchase_store or SqlPurchaseStore()
    purchases = purchase_store.list_between(start, end)
    return ReconciliationReport(
        start=start,
        end=end,
        primary_stakeholder_id=settings.PRIMARY_STAKEHOLDER_ID,
        partner_stakeholder_id=settings.PARTNER_STAKEHOLDER_ID,
        summary=aggregate(purchases, settings.PRIMARY_STAKEHOLDER_SHARE, settings.PARTNER_STAKEHOLDER_SHARE),
    )


def settlements_report(
    start_date: date,
    end_date: date,
    settlement_store: Optional[SettlementStore] = None,
) -> SettlementsReport:
    """Completed daily settlements in [start_date, end_date], newest first."""
    if end_date < start_date:
        raise InvalidRequestError("end_date must not be before start_date")
    settlement_store = settlement_store or SqlSettlementStore()
    records: List[DailySettlement] = settlement_store.list_between(
        start_date, end_date, status=SettlementStatus.COMPLETED
    )
    return SettlementsReport(
        start_date=start_date,
        end_date=end_date,
        total_primary_share=sum((r.primary_share for r in records), ZERO),
        total_partner_share=sum((r.partner_share for r in records), ZERO),
        daily_records=records,
    )
