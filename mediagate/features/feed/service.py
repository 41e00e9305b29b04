"""
mediagate/features/feed/service.py

Feed access: decides whether content is served in full or sanitized.

- get_access_status: single-item check with grant detail (WATCH / UNLOCK)
- render_tree: a series/season subtree checked against one pre-fetched
  entitled set instead of one query per node
- render_listing: a page of top-level items, same pre-fetched strategy
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging

from pydantic import BaseModel, ConfigDict

from mediagate.core.errors import NotFoundError
from mediagate.features.content.hierarchy import (
    effective_lock,
    resolve_ancestors,
    resolve_chain,
)
from mediagate.features.content.store import ContentStore
from mediagate.features.entitlements.service import EntitlementService
from mediagate.models.content import ContentNode
from mediagate.models.entitlement import AccessType
from mediagate.models.pricing import PricingPlan


logger = logging.getLogger(__name__)


class AccessAction(str, Enum):
    WATCH = "WATCH"
    UNLOCK = "UNLOCK"


class AccessStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_access: bool
    action: AccessAction
    access_type: Optional[AccessType] = None
    expires_at: Optional[datetime] = None
    unlock_price: Optional[Decimal] = None
    base_duration_days: Optional[int] = None
    permanent_price: Optional[Decimal] = None
    currency: Optional[str] = None


class RenderedNode(BaseModel):
    """A content node as served to one user."""
    model_config = ConfigDict(frozen=True)

    content: ContentNode
    is_locked: bool
    has_access: bool
    unlock_price: Optional[Decimal] = None
    children: List["RenderedNode"] = []


def sanitize(node: ContentNode) -> ContentNode:
    """Strip media URLs from a node the user may not play and mark it locked."""
    return node.sanitized().model_copy(update={"is_locked": True})


class FeedAccessService:

    def __init__(
        self,
        entitlement_service: Optional[EntitlementService] = None,
        content_store: Optional[ContentStore] = None,
    ) -> None:
        self.entitlements = entitlement_service or EntitlementService(content_store=content_store)
        self.content_store = content_store or self.entitlements.content_store

    def _plan_for(self, chain: Sequence[ContentNode], cache: Dict[str, Optional[PricingPlan]]) -> Optional[PricingPlan]:
        for node in chain:
            if not node.is_locked:
                continue
            if node.id not in cache:
                cache[node.id] = self.content_store.get_pricing(node.id)
            if cache[node.id] is not None:
                return cache[node.id]
        return None

    def get_access_status(
        self,
        content_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> AccessStatus:
        chain = resolve_chain(content_id, self.content_store)
        if not effective_lock(chain):
            return AccessStatus(has_access=True, action=AccessAction.WATCH)

        grant = self.entitlements.find_grant(user_id, [n.id for n in chain], now)
        if grant is not None:
            return AccessStatus(
                has_access=True,
                action=AccessAction.WATCH,
                access_type=grant.access_type,
                expires_at=grant.valid_until,
            )

        plan = self._plan_for(chain, {})
        if plan is not None:
            return AccessStatus(
                has_access=False,
                action=AccessAction.UNLOCK,
                unlock_price=plan.base_price,
                base_duration_days=plan.base_duration_days,
                permanent_price=plan.permanent_price,
                currency=plan.currency,
            )

        # Locked without a price should not happen; refuse rather than guess
        logger.warning("[feed] locked content without pricing", extra={"content_id": content_id})
        raise NotFoundError("Content access status could not be determined.")

    def _render(
        self,
        node: ContentNode,
        ancestors: List[ContentNode],
        entitled_ids: frozenset,
        plan_cache: Dict[str, Optional[PricingPlan]],
    ) -> RenderedNode:
        chain = [node] + ancestors
        locked = effective_lock(chain)
        access = not locked or EntitlementService.has_access(
            node.id, entitled_ids, [a.id for a in ancestors]
        )

        served = node.model_copy(update={"is_locked": False})
        unlock_price = None
        if not access:
            served = sanitize(node)
            plan = self._plan_for(chain, plan_cache)
            unlock_price = plan.base_price if plan else None

        children = [
            self._render(child, chain, entitled_ids, plan_cache)
            for child in self.content_store.children(node.id)
        ]
        return RenderedNode(
            content=served,
            is_locked=not access,
            has_access=access,
            unlock_price=unlock_price,
            children=children,
        )

    def render_tree(self, root_id: str, user_id: str, now: Optional[datetime] = None) -> RenderedNode:
        """Render `root_id` and all its descendants for `user_id`."""
        chain = resolve_chain(root_id, self.content_store)
        entitled_ids = self.entitlements.entitled_content_ids(user_id, now)
        return self._render(chain[0], chain[1:], entitled_ids, {})

    def render_listing(
        self,
        nodes: Sequence[ContentNode],
        user_id: str,
        now: Optional[datetime] = None,
    ) -> List[RenderedNode]:
        """Render a page of items without descending into children."""
        entitled_ids = self.entitlements.entitled_content_ids(user_id, now)
        plan_cache: Dict[str, Optional[PricingPlan]] = {}
        rendered = []
        for node in nodes:
            ancestors = resolve_ancestors(node, self.content_store)
            chain = [node] + ancestors
            locked = effective_lock(chain)
            access = not locked or EntitlementService.has_access(
                node.id, entitled_ids, [a.id for a in ancestors]
            )
            plan = None if access else self._plan_for(chain, plan_cache)
            rendered.append(
                RenderedNode(
                    content=node.model_copy(update={"is_locked": False}) if access else sanitize(node),
                    is_locked=not access,
                    has_access=access,
                    unlock_price=plan.base_price if plan else None,
                )
            )
        return rendered
