"""
mediagate/features/purchases/store.py

Persistence for pending checkouts and completed purchases.

Completing a purchase writes the purchase row and its entitlement and
removes the pending row in a single transaction.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy import select, insert, delete
from sqlalchemy.exc import IntegrityError

from mediagate.core.database import (
    get_db_session,
    content_entitlements,
    pending_transactions,
    purchases,
)
from mediagate.core.errors import ConflictError
from mediagate.features.entitlements.store import entitlement_values
from mediagate.models.entitlement import AccessType, ContentScope, Entitlement, as_utc
from mediagate.models.purchase import PendingTransaction, PurchaseRecord


class PendingTransactionStore(Protocol):

    def add(self, pending: PendingTransaction) -> PendingTransaction:
        ...

    def get(self, transaction_ref: str) -> Optional[PendingTransaction]:
        ...

    def remove(self, transaction_ref: str) -> bool:
        ...


class PurchaseStore(Protocol):

    def get_by_ref(self, transaction_ref: str) -> Optional[PurchaseRecord]:
        ...

    def add(self, purchase: PurchaseRecord) -> PurchaseRecord:
        """Raises ConflictError if the transaction_ref is already recorded."""
        ...

    def list_between(self, start: datetime, end: datetime) -> List[PurchaseRecord]:
        """Purchases with start <= created_at < end, oldest first."""
        ...

    def complete(self, purchase: PurchaseRecord, entitlement: Entitlement) -> PurchaseRecord:
        """Record a confirmed purchase with its entitlement and drop the pending row atomically."""
        ...


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc)


def _dec(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _row_to_pending(row) -> PendingTransaction:
    return PendingTransaction(
        transaction_ref=row.transaction_ref,
        user_id=row.user_id,
        content_id=row.content_id,
        content_scope=ContentScope(row.content_scope),
        access_type=AccessType(row.access_type),
        duration_days=row.duration_days,
        base_amount=_dec(row.base_amount),
        vat_amount=_dec(row.vat_amount),
        gross_amount=_dec(row.gross_amount),
        created_at=as_utc(row.created_at),
    )


def _row_to_purchase(row) -> PurchaseRecord:
    return PurchaseRecord(
        id=row.id,
        user_id=row.user_id,
        content_id=row.content_id,
        content_scope=ContentScope(row.content_scope) if row.content_scope else None,
        access_type=AccessType(row.access_type),
        duration_days=row.duration_days,
        amount_paid=_dec(row.amount_paid),
        gross_amount=_dec(row.gross_amount),
        base_amount=_dec(row.base_amount),
        vat_amount=_dec(row.vat_amount),
        transaction_fee=_dec(row.transaction_fee),
        net_amount_for_split=_dec(row.net_amount_for_split),
        transaction_ref=row.transaction_ref,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
    )


def _purchase_values(purchase: PurchaseRecord) -> dict:
    return dict(
        id=purchase.id,
        user_id=purchase.user_id,
        content_id=purchase.content_id,
        content_scope=purchase.content_scope.value if purchase.content_scope else None,
        access_type=purchase.access_type.value,
        duration_days=purchase.duration_days,
        amount_paid=purchase.amount_paid,
        gross_amount=purchase.gross_amount,
        base_amount=purchase.base_amount,
        vat_amount=purchase.vat_amount,
        transaction_fee=purchase.transaction_fee,
        net_amount_for_split=purchase.net_amount_for_split,
        transaction_ref=purchase.transaction_ref,
        expires_at=_utc(purchase.expires_at),
        created_at=_utc(purchase.created_at),
    )


class SqlPendingTransactionStore:
    """PendingTransactionStore backed by `pending_transactions`."""

    def add(self, pending: PendingTransaction) -> PendingTransaction:
        with get_db_session() as session:
            session.execute(
                insert(pending_transactions).values(
                    transaction_ref=pending.transaction_ref,
                    user_id=pending.user_id,
                    content_id=pending.content_id,
                    content_scope=pending.content_scope.value,
                    access_type=pending.access_type.value,
                    duration_days=pending.duration_days,
                    base_amount=pending.base_amount,
                    vat_amount=pending.vat_amount,
                    gross_amount=pending.gross_amount,
                    created_at=_utc(pending.created_at) or datetime.now(timezone.utc),
                )
            )
        return pending

    def get(self, transaction_ref: str) -> Optional[PendingTransaction]:
        with get_db_session() as session:
            row = session.execute(
                select(pending_transactions).where(pending_transactions.c.transaction_ref == transaction_ref)
            ).first()
        return _row_to_pending(row) if row else None

    def remove(self, transaction_ref: str) -> bool:
        with get_db_session() as session:
            result = session.execute(
                delete(pending_transactions).where(pending_transactions.c.transaction_ref == transaction_ref)
            )
        return result.rowcount > 0


class SqlPurchaseStore:
    """PurchaseStore backed by `purchases`."""

    def get_by_ref(self, transaction_ref: str) -> Optional[PurchaseRecord]:
        with get_db_session() as session:
            row = session.execute(
                select(purchases).where(purchases.c.transaction_ref == transaction_ref)
            ).first()
        return _row_to_purchase(row) if row else None

    def add(self, purchase: PurchaseRecord) -> PurchaseRecord:
        try:
            with get_db_session() as session:
                session.execute(insert(purchases).values(**_purchase_values(purchase)))
        except IntegrityError:
            raise ConflictError(f"Transaction {purchase.transaction_ref} already recorded")
        return purchase

    def list_between(self, start: datetime, end: datetime) -> List[PurchaseRecord]:
        with get_db_session() as session:
            rows = session.execute(
                select(purchases)
                .where(purchases.c.created_at >= _utc(start))
                .where(purchases.c.created_at < _utc(end))
                .order_by(purchases.c.created_at.asc(), purchases.c.id.asc())
            ).fetchall()
        return [_row_to_purchase(r) for r in rows]

    def complete(self, purchase: PurchaseRecord, entitlement: Entitlement) -> PurchaseRecord:
        try:
            with get_db_session() as session:
                session.execute(insert(purchases).values(**_purchase_values(purchase)))
                session.execute(insert(content_entitlements).values(**entitlement_values(entitlement)))
                session.execute(
                    delete(pending_transactions)
                    .where(pending_transactions.c.transaction_ref == purchase.transaction_ref)
                )
        except IntegrityError:
            raise ConflictError(f"Transaction {purchase.transaction_ref} already recorded")
        return purchase
