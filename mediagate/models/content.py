"""
mediagate/models/content.py

Content tree nodes (movies, series, seasons, episodes, books, ...).
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ContentKind(str, Enum):
    MOVIE = "MOVIE"
    MUSIC_VIDEO = "MUSIC_VIDEO"
    SERIES = "SERIES"
    SEASON = "SEASON"
    EPISODE = "EPISODE"
    DAWAH = "DAWAH"
    DOCUMENTARY = "DOCUMENTARY"
    PROPHET_HISTORY = "PROPHET_HISTORY"
    PROPHET_HISTORY_EPISODE = "PROPHET_HISTORY_EPISODE"
    BOOK = "BOOK"


# Only top-level nodes carry a lock and a pricing plan; descendants inherit it.
LOCKABLE_KINDS = frozenset({
    ContentKind.MOVIE,
    ContentKind.SERIES,
    ContentKind.MUSIC_VIDEO,
    ContentKind.DAWAH,
    ContentKind.DOCUMENTARY,
    ContentKind.BOOK,
})

MEDIA_FIELDS = ("video_url", "audio_url", "pdf_url", "youtube_url")


class ContentNode(BaseModel):
    """
    A playable or organizational unit.

    Parent references form a forest of depth <= 3 (series -> season -> episode).
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: ContentKind
    title: str = ""
    parent_id: Optional[str] = None
    is_locked: bool = False
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    pdf_url: Optional[str] = None
    youtube_url: Optional[str] = None
    created_at: Optional[datetime] = None

    def sanitized(self) -> "ContentNode":
        """Copy with every media URL removed."""
        return self.model_copy(update={field: None for field in MEDIA_FIELDS})
