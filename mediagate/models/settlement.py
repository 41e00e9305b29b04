"""
mediagate/models/settlement.py

Settlement, reconciliation and stakeholder ledger models.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class SettlementStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    FAILED = "FAILED"


class SettlementReport(BaseModel):
    """
    Aggregated revenue over a set of purchases, split between two stakeholders.

    `discrepancy` should be 0; anything else is an accounting anomaly kept
    for manual reconciliation.
    """
    model_config = ConfigDict(frozen=True)

    transaction_count: int
    total_gross: Decimal
    total_base: Decimal
    total_vat: Decimal
    total_fees: Decimal
    total_net_for_split: Decimal
    split_a: Decimal
    split_b: Decimal
    discrepancy: Decimal


class DailySettlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    settlement_date: date
    total_gross: Decimal
    total_net_for_split: Decimal
    total_transactions: int
    primary_share: Decimal
    partner_share: Decimal
    status: SettlementStatus = SettlementStatus.PENDING


class LedgerItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    purchase_id: str
    date: datetime
    description: str
    content_id: str
    customer_paid: Decimal
    vat_portion: Decimal
    transaction_fee: Decimal
    net_for_split: Decimal
    your_net_earning: Decimal


class PageMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_items: int
    item_count: int
    items_per_page: int
    total_pages: int
    current_page: int


class StakeholderLedger(BaseModel):
    model_config = ConfigDict(frozen=True)

    stakeholder_id: str
    share: Decimal
    total_gross: Decimal
    total_net_for_split: Decimal
    total_net_earning: Decimal
    meta: PageMeta
    items: List[LedgerItem]


class TopEarningContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_id: str
    net_earnings: Decimal


class StakeholderSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    stakeholder_id: str
    start: datetime
    end: datetime
    total_gross_sales: Decimal
    total_net_earnings: Decimal
    total_transactions: int
    top_earning_content: Optional[TopEarningContent] = None


class ReconciliationReport(BaseModel):
    """Revenue over [start, end) with the split between both stakeholders."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    primary_stakeholder_id: str
    partner_stakeholder_id: str
    summary: SettlementReport


class SettlementsReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    total_primary_share: Decimal
    total_partner_share: Decimal
    daily_records: List[DailySettlement]
