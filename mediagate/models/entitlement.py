"""
mediagate/models/entitlement.py

Entitlement model: a grant of access from a user to a content scope.

Entitlements are created when a purchase is verified (or by an admin /
promotion grant), never mutated, and become inert once past their window.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, model_validator


class AccessType(str, Enum):
    PERMANENT = "PERMANENT"
    TEMPORARY = "TEMPORARY"


class EntitlementSource(str, Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    TOP_UP = "TOP_UP"
    PROMOTION = "PROMOTION"
    ADMIN = "ADMIN"


class ContentScope(str, Enum):
    EPISODE = "EPISODE"
    SEASON = "SEASON"
    SERIES = "SERIES"
    BOOK = "BOOK"
    MOVIE = "MOVIE"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_now(now: Optional[datetime] = None) -> datetime:
    """`now` as an aware UTC datetime; the current time when omitted."""
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


class Entitlement(BaseModel):
    """
    Entitlement grants `user_id` access to `content_id` and its descendants.

    Access Types:
    - PERMANENT: valid_until is None, never expires
    - TEMPORARY: valid only while now < valid_until
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    content_id: str
    content_scope: ContentScope
    access_type: AccessType
    valid_from: datetime
    valid_until: Optional[datetime] = None
    source: EntitlementSource
    purchase_id: Optional[str] = None

    @model_validator(mode="after")
    def _window_matches_access_type(self) -> "Entitlement":
        if self.access_type == AccessType.PERMANENT and self.valid_until is not None:
            raise ValueError("PERMANENT entitlements must not have valid_until")
        if self.access_type == AccessType.TEMPORARY and self.valid_until is None:
            raise ValueError("TEMPORARY entitlements require valid_until")
        return self

    @property
    def is_permanent(self) -> bool:
        return self.access_type == AccessType.PERMANENT

    def is_valid_at(self, now: datetime) -> bool:
        if self.is_permanent:
            return True
        return as_utc(now) < as_utc(self.valid_until)


_SCOPE_BY_KIND = {
    "SERIES": ContentScope.SERIES,
    "SEASON": ContentScope.SEASON,
    "EPISODE": ContentScope.EPISODE,
    "PROPHET_HISTORY_EPISODE": ContentScope.EPISODE,
    "BOOK": ContentScope.BOOK,
}


def scope_for_kind(kind) -> ContentScope:
    """Entitlement scope recorded for a content kind; standalone kinds count as MOVIE."""
    key = getattr(kind, "value", kind)
    return _SCOPE_BY_KIND.get(key, ContentScope.MOVIE)
