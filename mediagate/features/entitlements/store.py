"""
mediagate/features/entitlements/store.py

Entitlement store: rows of `content_entitlements` as Entitlement models.
"""

from datetime import datetime, timezone
from typing import FrozenSet, List, Protocol, Sequence

from sqlalchemy import select, insert, func, and_, or_, case

from mediagate.core.database import get_db_session, content_entitlements
from mediagate.models.entitlement import (
    AccessType,
    ContentScope,
    Entitlement,
    EntitlementSource,
    as_utc,
)


class EntitlementStore(Protocol):

    def find_valid(self, user_id: str, scope_ids: Sequence[str], now: datetime) -> List[Entitlement]:
        """Entitlements of `user_id` on any of `scope_ids` that are valid at `now`, best first."""
        ...

    def list_valid_content_ids(self, user_id: str, now: datetime) -> FrozenSet[str]:
        ...

    def add(self, entitlement: Entitlement) -> Entitlement:
        ...

    def count_expired(self, now: datetime) -> int:
        ...


def _utc(now: datetime) -> datetime:
    return as_utc(now).astimezone(timezone.utc)


def _row_to_entitlement(row) -> Entitlement:
    return Entitlement(
        id=row.id,
        user_id=row.user_id,
        content_id=row.content_id,
        content_scope=ContentScope(row.content_scope),
        access_type=AccessType(row.access_type),
        valid_from=as_utc(row.valid_from),
        valid_until=as_utc(row.valid_until),
        source=EntitlementSource(row.source),
        purchase_id=row.purchase_id,
    )


def _valid_at(now: datetime):
    return or_(
        content_entitlements.c.access_type == AccessType.PERMANENT.value,
        and_(
            content_entitlements.c.access_type == AccessType.TEMPORARY.value,
            content_entitlements.c.valid_until > now,
        ),
    )


class SqlEntitlementStore:
    """EntitlementStore backed by the `content_entitlements` table."""

    def find_valid(self, user_id: str, scope_ids: Sequence[str], now: datetime) -> List[Entitlement]:
        if not scope_ids:
            return []
        now = _utc(now)
        permanent_first = case(
            (content_entitlements.c.access_type == AccessType.PERMANENT.value, 0),
            else_=1,
        )
        with get_db_session() as session:
            rows = session.execute(
                select(content_entitlements)
                .where(content_entitlements.c.user_id == user_id)
                .where(content_entitlements.c.content_id.in_(list(scope_ids)))
                .where(_valid_at(now))
                .order_by(permanent_first, content_entitlements.c.valid_until.desc())
            ).fetchall()
        return [_row_to_entitlement(r) for r in rows]

    def list_valid_content_ids(self, user_id: str, now: datetime) -> FrozenSet[str]:
        now = _utc(now)
        with get_db_session() as session:
            ids = session.execute(
                select(content_entitlements.c.content_id)
                .where(content_entitlements.c.user_id == user_id)
                .where(_valid_at(now))
            ).scalars().all()
        return frozenset(ids)

    def add(self, entitlement: Entitlement) -> Entitlement:
        with get_db_session() as session:
            session.execute(insert(content_entitlements).values(**entitlement_values(entitlement)))
        return entitlement

    def count_expired(self, now: datetime) -> int:
        now = _utc(now)
        with get_db_session() as session:
            return session.execute(
                select(func.count())
                .select_from(content_entitlements)
                .where(content_entitlements.c.access_type == AccessType.TEMPORARY.value)
                .where(content_entitlements.c.valid_until <= now)
            ).scalar() or 0


def entitlement_values(entitlement: Entitlement) -> dict:
    """Column values for inserting `entitlement` (shared with the purchase flow)."""
    return dict(
        id=entitlement.id,
        user_id=entitlement.user_id,
        content_id=entitlement.content_id,
        content_scope=entitlement.content_scope.value,
        access_type=entitlement.access_type.value,
        valid_from=_utc(entitlement.valid_from),
        valid_until=_utc(entitlement.valid_until) if entitlement.valid_until else None,
        source=entitlement.source.value,
        purchase_id=entitlement.purchase_id,
    )
