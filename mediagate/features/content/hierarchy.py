"""
mediagate/features/content/hierarchy.py

Content hierarchy walker.

Entitlements and pricing plans are attached at a scope (e.g. SERIES) but
gate access to descendants (episodes). Walking up at most two ancestor
levels bounds every access check to three lookups regardless of fan-out.
"""

import logging
from typing import List, Optional, Sequence

from mediagate.core.errors import NotFoundError
from mediagate.features.content.store import ContentStore
from mediagate.models.content import ContentNode
from mediagate.models.pricing import PricingPlan


logger = logging.getLogger(__name__)

MAX_ANCESTOR_LEVELS = 2


def resolve_ancestors(node: ContentNode, store: ContentStore) -> List[ContentNode]:
    """Return [parent, grandparent] of `node` (as many as exist)."""
    ancestors: List[ContentNode] = []
    parent_id = node.parent_id
    while parent_id is not None and len(ancestors) < MAX_ANCESTOR_LEVELS:
        parent = store.get(parent_id)
        if parent is None:
            logger.warning(
                "[hierarchy] dangling parent reference",
                extra={"content_id": node.id, "parent_id": parent_id},
            )
            break
        ancestors.append(parent)
        parent_id = parent.parent_id
    return ancestors


def resolve_chain(content_id: str, store: ContentStore) -> List[ContentNode]:
    """Return the node followed by its ancestors, nearest first.

    Raises:
        NotFoundError: if the content itself does not exist.
    """
    node = store.get(content_id)
    if node is None:
        raise NotFoundError(f"Content with ID {content_id} not found")
    return [node] + resolve_ancestors(node, store)


def resolve_scope_ids(content_id: str, store: ContentStore) -> List[str]:
    """Ids an entitlement may be checked against: the content, its parent, its grandparent."""
    return [n.id for n in resolve_chain(content_id, store)]


def effective_lock(chain: Sequence[ContentNode]) -> bool:
    """A node is locked if it or any ancestor in the chain is locked."""
    return any(n.is_locked for n in chain)


def pricing_source(chain: Sequence[ContentNode], store: ContentStore) -> Optional[PricingPlan]:
    """Pricing plan of the nearest locked node in the chain."""
    for node in chain:
        if not node.is_locked:
            continue
        plan = store.get_pricing(node.id)
        if plan is not None:
            return plan
    return None
