"""
mediagate/features/entitlements/service.py

Entitlement matcher + access check service.

Handles:
- Best-grant selection (permanent over temporary, latest expiry first)
- Hierarchical access checks (episode -> season -> series)
- Pre-fetched entitled sets for list rendering (boolean-only checks)
- Granting new entitlements
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence, FrozenSet, Tuple
from uuid import uuid4
import logging

from mediagate.features.content.hierarchy import resolve_scope_ids
from mediagate.features.content.store import ContentStore, SqlContentStore
from mediagate.features.entitlements.store import EntitlementStore, SqlEntitlementStore
from mediagate.models.entitlement import (
    AccessType,
    ContentScope,
    Entitlement,
    EntitlementSource,
    normalize_now,
)


logger = logging.getLogger(__name__)


def _grant_rank(entitlement: Entitlement) -> Tuple[int, float]:
    if entitlement.is_permanent:
        return (0, 0.0)
    return (1, -entitlement.valid_until.timestamp())


def select_best_grant(
    candidates: Iterable[Entitlement],
    scope_ids: Sequence[str],
    now: datetime,
) -> Optional[Entitlement]:
    """Pick the grant to report among `candidates`.

    Drops grants outside `scope_ids` or outside their validity window, then
    prefers PERMANENT over TEMPORARY and, among TEMPORARY, the latest
    valid_until. Returns None when nothing qualifies.
    """
    now = normalize_now(now)
    scope = set(scope_ids)
    valid = [e for e in candidates if e.content_id in scope and e.is_valid_at(now)]
    if not valid:
        return None
    return min(valid, key=_grant_rank)


class EntitlementService:
    """Access evaluation over injected content and entitlement stores."""

    def __init__(
        self,
        content_store: Optional[ContentStore] = None,
        entitlement_store: Optional[EntitlementStore] = None,
    ) -> None:
        self.content_store = content_store or SqlContentStore()
        self.entitlement_store = entitlement_store or SqlEntitlementStore()

    def find_grant(
        self,
        user_id: str,
        scope_ids: Sequence[str],
        now: Optional[datetime] = None,
    ) -> Optional[Entitlement]:
        normalized_now = normalize_now(now)
        candidates = self.entitlement_store.find_valid(user_id, scope_ids, normalized_now)
        return select_best_grant(candidates, scope_ids, normalized_now)

    def check_user_access(
        self,
        user_id: str,
        content_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[Entitlement]:
        """Return the best valid grant covering `content_id`, or None.

        Raises NotFoundError when the content does not exist; a missing grant
        is not an error.
        """
        scope_ids = resolve_scope_ids(content_id, self.content_store)
        grant = self.find_grant(user_id, scope_ids, now)
        if grant is None:
            logger.info(
                "[entitlement] no grant",
                extra={"user_id": user_id, "content_id": content_id, "scope_ids": scope_ids},
            )
            return None

        logger.info(
            "[entitlement] granted",
            extra={
                "user_id": user_id,
                "content_id": content_id,
                "grant_content_id": grant.content_id,
                "access_type": grant.access_type.value,
            },
        )
        return grant

    def entitled_content_ids(self, user_id: str, now: Optional[datetime] = None) -> FrozenSet[str]:
        """Content ids the user currently holds a valid grant on (computed once per listing)."""
        return self.entitlement_store.list_valid_content_ids(user_id, normalize_now(now))

    @staticmethod
    def has_access(
        content_id: str,
        entitled_ids: FrozenSet[str],
        ancestor_ids: Sequence[str] = (),
    ) -> bool:
        """Membership test against a pre-fetched entitled set; no grant detail."""
        if content_id in entitled_ids:
            return True
        return any(a in entitled_ids for a in ancestor_ids)

    def grant(
        self,
        user_id: str,
        content_id: str,
        content_scope: ContentScope,
        access_type: AccessType,
        *,
        valid_until: Optional[datetime] = None,
        source: EntitlementSource = EntitlementSource.ADMIN,
        purchase_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Entitlement:
        """Create and store a new entitlement."""
        entitlement = Entitlement(
            id=str(uuid4()),
            user_id=user_id,
            content_id=content_id,
            content_scope=content_scope,
            access_type=access_type,
            valid_from=normalize_now(now),
            valid_until=valid_until,
            source=source,
            purchase_id=purchase_id,
        )
        self.entitlement_store.add(entitlement)
        logger.info(
            "[entitlement] created",
            extra={
                "user_id": user_id,
                "content_id": content_id,
                "access_type": access_type.value,
                "source": source.value,
            },
        )
        return entitlement
