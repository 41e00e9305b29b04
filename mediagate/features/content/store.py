"""
mediagate/features/content/store.py

Content store: the collaborator the access evaluator reads the content tree
and pricing plans from, plus the admin lifecycle (create, lock, unlock,
delete with cascade).
"""

import logging
from decimal import Decimal
from typing import List, Optional, Protocol
from uuid import uuid4

from sqlalchemy import select, insert, update, delete

from mediagate.core.database import get_db_session, content, pricing_plans
from mediagate.core.errors import InvalidRequestError, NotFoundError
from mediagate.models.content import ContentKind, ContentNode, LOCKABLE_KINDS
from mediagate.models.pricing import PricingPlan, PricingTier


logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    """Read side of the content tree used by access checks."""

    def get(self, content_id: str) -> Optional[ContentNode]:
        """Return the node or None if it does not exist."""
        ...

    def get_pricing(self, content_id: str) -> Optional[PricingPlan]:
        """Return the pricing plan attached to the node, if any."""
        ...

    def children(self, content_id: str) -> List[ContentNode]:
        """Return direct children ordered by creation time."""
        ...


def _row_to_node(row) -> ContentNode:
    return ContentNode(
        id=row.id,
        kind=ContentKind(row.kind),
        title=row.title,
        parent_id=row.parent_id,
        is_locked=bool(row.is_locked),
        video_url=row.video_url,
        audio_url=row.audio_url,
        pdf_url=row.pdf_url,
        youtube_url=row.youtube_url,
        created_at=row.created_at,
    )


def _row_to_plan(row) -> PricingPlan:
    tiers = [
        PricingTier(days=int(t["days"]), price=Decimal(str(t["price"])))
        for t in (row.additional_tiers or [])
    ]
    return PricingPlan(
        content_id=row.content_id,
        base_price=Decimal(str(row.base_price)),
        base_duration_days=row.base_duration_days,
        additional_tiers=tiers,
        permanent_price=Decimal(str(row.permanent_price)) if row.permanent_price is not None else None,
        is_vat_added=bool(row.is_vat_added),
        currency=row.currency,
    )


class SqlContentStore:
    """ContentStore backed by the `content` and `pricing_plans` tables."""

    def get(self, content_id: str) -> Optional[ContentNode]:
        with get_db_session() as session:
            row = session.execute(
                select(content).where(content.c.id == content_id)
            ).first()
        return _row_to_node(row) if row else None

    def get_pricing(self, content_id: str) -> Optional[PricingPlan]:
        with get_db_session() as session:
            row = session.execute(
                select(pricing_plans).where(pricing_plans.c.content_id == content_id)
            ).first()
        return _row_to_plan(row) if row else None

    def children(self, content_id: str) -> List[ContentNode]:
        with get_db_session() as session:
            rows = session.execute(
                select(content)
                .where(content.c.parent_id == content_id)
                .order_by(content.c.created_at.asc(), content.c.id.asc())
            ).fetchall()
        return [_row_to_node(r) for r in rows]

    def create(
        self,
        kind: ContentKind,
        title: str,
        *,
        parent_id: Optional[str] = None,
        content_id: Optional[str] = None,
        **media: Optional[str],
    ) -> ContentNode:
        if parent_id is not None and self.get(parent_id) is None:
            raise NotFoundError(f"Parent content {parent_id} not found")
        node_id = content_id or str(uuid4())
        with get_db_session() as session:
            session.execute(
                insert(content).values(
                    id=node_id,
                    kind=ContentKind(kind).value,
                    title=title,
                    parent_id=parent_id,
                    is_locked=False,
                    **media,
                )
            )
        return self.get(node_id)

    def lock(self, content_id: str, plan: PricingPlan) -> ContentNode:
        """Attach (or replace) the pricing plan and mark the node locked."""
        node = self.get(content_id)
        if node is None:
            raise NotFoundError(f"Content with ID {content_id} not found")
        if node.kind not in LOCKABLE_KINDS:
            raise InvalidRequestError(
                f"Locking is only permitted for {', '.join(sorted(k.value for k in LOCKABLE_KINDS))}"
            )
        if plan.content_id != content_id:
            raise InvalidRequestError("Pricing plan content_id does not match the locked content")

        with get_db_session() as session:
            session.execute(
                delete(pricing_plans).where(pricing_plans.c.content_id == content_id)
            )
            session.execute(
                insert(pricing_plans).values(
                    content_id=content_id,
                    base_price=plan.base_price,
                    base_duration_days=plan.base_duration_days,
                    additional_tiers=[
                        {"days": t.days, "price": str(t.price)} for t in plan.additional_tiers
                    ],
                    permanent_price=plan.permanent_price,
                    is_vat_added=plan.is_vat_added,
                    currency=plan.currency,
                )
            )
            session.execute(
                update(content).where(content.c.id == content_id).values(is_locked=True)
            )
        logger.info("[content] locked", extra={"content_id": content_id, "base_price": str(plan.base_price)})
        return self.get(content_id)

    def unlock(self, content_id: str) -> ContentNode:
        if self.get(content_id) is None:
            raise NotFoundError(f"Content with ID {content_id} not found")
        with get_db_session() as session:
            session.execute(
                update(content).where(content.c.id == content_id).values(is_locked=False)
            )
        logger.info("[content] unlocked", extra={"content_id": content_id})
        return self.get(content_id)

    def delete(self, content_id: str) -> int:
        """Delete the node, its descendants and their pricing plans. Returns rows removed."""
        if self.get(content_id) is None:
            raise NotFoundError(f"Content with ID {content_id} not found")

        doomed = [content_id]
        frontier = [content_id]
        with get_db_session() as session:
            while frontier:
                child_ids = session.execute(
                    select(content.c.id).where(content.c.parent_id.in_(frontier))
                ).scalars().all()
                doomed.extend(child_ids)
                frontier = list(child_ids)

            session.execute(delete(pricing_plans).where(pricing_plans.c.content_id.in_(doomed)))
            # Children first so the parent foreign key never dangles
            for node_id in reversed(doomed):
                session.execute(delete(content).where(content.c.id == node_id))

        logger.info("[content] deleted", extra={"content_id": content_id, "removed": len(doomed)})
        return len(doomed)
