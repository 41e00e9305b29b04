"""
mediagate/features/settlements/store.py

Daily settlement records (`daily_settlements`).
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError

from mediagate.core.database import get_db_session, daily_settlements
from mediagate.core.errors import ConflictError
from mediagate.models.settlement import DailySettlement, SettlementStatus


class SettlementStore(Protocol):

    def get(self, settlement_date: date) -> Optional[DailySettlement]:
        ...

    def add(self, settlement: DailySettlement) -> DailySettlement:
        """Raises ConflictError if a record already exists for the date."""
        ...

    def list_between(
        self,
        start: date,
        end: date,
        status: Optional[SettlementStatus] = None,
    ) -> List[DailySettlement]:
        """Records with start <= settlement_date <= end, newest first."""
        ...


def _row_to_settlement(row) -> DailySettlement:
    return DailySettlement(
        settlement_date=row.settlement_date,
        total_gross=Decimal(str(row.total_gross)),
        total_net_for_split=Decimal(str(row.total_net_for_split)),
        total_transactions=row.total_transactions,
        primary_share=Decimal(str(row.primary_share)),
        partner_share=Decimal(str(row.partner_share)),
        status=SettlementStatus(row.status),
    )


class SqlSettlementStore:

    def get(self, settlement_date: date) -> Optional[DailySettlement]:
        with get_db_session() as session:
            row = session.execute(
                select(daily_settlements).where(daily_settlements.c.settlement_date == settlement_date)
            ).first()
        return _row_to_settlement(row) if row else None

    def add(self, settlement: DailySettlement) -> DailySettlement:
        try:
            with get_db_session() as session:
                session.execute(
                    insert(daily_settlements).values(
                        settlement_date=settlement.settlement_date,
                        total_gross=settlement.total_gross,
                        total_net_for_split=settlement.total_net_for_split,
                        total_transactions=settlement.total_transactions,
                        primary_share=settlement.primary_share,
                        partner_share=settlement.partner_share,
                        status=settlement.status.value,
                    )
                )
        except IntegrityError:
            raise ConflictError(f"Settlement for {settlement.settlement_date} already exists")
        return settlement

    def list_between(
        self,
        start: date,
        end: date,
        status: Optional[SettlementStatus] = None,
    ) -> List[DailySettlement]:
        query = (
            select(daily_settlements)
            .where(daily_settlements.c.settlement_date >= start)
            .where(daily_settlements.c.settlement_date <= end)
        )
        if status is not None:
            query = query.where(daily_settlements.c.status == status.value)
        with get_db_session() as session:
            rows = session.execute(query.order_by(daily_settlements.c.settlement_date.desc())).fetchall()
        return [_row_to_settlement(r) for r in rows]
