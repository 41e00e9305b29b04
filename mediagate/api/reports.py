"""
Revenue report API routes.

- GET /api/reports/reconciliation
- GET /api/reports/settlements
- GET /api/reports/stakeholders/{stakeholder_id}/ledger
- GET /api/reports/stakeholders/{stakeholder_id}/summary
"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from mediagate.core.errors import InvalidRequestError
from mediagate.features.purchases.store import PurchaseStore, SqlPurchaseStore
from mediagate.features.settlements.service import (
    reconciliation_report,
    settlements_report,
    stakeholder_ledger,
    stakeholder_summary,
)
from mediagate.features.settlements.store import SettlementStore, SqlSettlementStore
from mediagate.models.entitlement import as_utc
from mediagate.models.settlement import (
    ReconciliationReport,
    SettlementsReport,
    StakeholderLedger,
    StakeholderSummary,
)


router = APIRouter(prefix="/api/reports", tags=["reports"])


def get_purchase_store() -> PurchaseStore:
    return SqlPurchaseStore()


def get_settlement_store() -> SettlementStore:
    return SqlSettlementStore()


def _range(start: datetime, end: datetime):
    start, end = as_utc(start), as_utc(end)
    if end <= start:
        raise InvalidRequestError("end must be after start")
    return start, end


@router.get("/reconciliation", response_model=ReconciliationReport)
def get_reconciliation(
    start: datetime = Query(...),
    end: datetime = Query(...),
    store: PurchaseStore = Depends(get_purchase_store),
):
    start, end = _range(start, end)
    return reconciliation_report(start, end, purchase_store=store)


@router.get("/settlements", response_model=SettlementsReport)
def get_settlements(
    start_date: date = Query(...),
    end_date: date = Query(...),
    store: SettlementStore = Depends(get_settlement_store),
):
    return settlements_report(start_date, end_date, settlement_store=store)


@router.get("/stakeholders/{stakeholder_id}/ledger", response_model=StakeholderLedger)
def get_stakeholder_ledger(
    stakeholder_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    store: PurchaseStore = Depends(get_purchase_store),
):
    """
    Itemized earnings of one stakeholder.

    Errors:
        404: Unknown stakeholder
    """
    start, end = _range(start, end)
    return stakeholder_ledger(stakeholder_id, store.list_between(start, end), page=page, limit=limit)


@router.get("/stakeholders/{stakeholder_id}/summary", response_model=StakeholderSummary)
def get_stakeholder_summary(
    stakeholder_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    store: PurchaseStore = Depends(get_purchase_store),
):
    start, end = _range(start, end)
    return stakeholder_summary(stakeholder_id, store.list_between(start, end), start, end)
