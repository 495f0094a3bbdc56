"""Journal entry data models."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

__all__ = [
    "RESTORE_WINDOW",
    "Classification",
    "Entry",
    "as_utc",
    "new_share_token",
    "utcnow",
]

RESTORE_WINDOW = timedelta(hours=1)
SHARE_TOKEN_BYTES = 18


def utcnow() -> datetime:
    """Return timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from stores without tz support."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_share_token() -> str:
    """Return a fresh URL-safe share token."""

    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)


@dataclass(frozen=True)
class Classification:
    """Validated classifier output mapped onto an entry at creation time."""

    label: str
    description: str
    tags: List[str] = field(default_factory=list)
    confidence: Optional[float] = None


@dataclass(frozen=True)
class Entry:
    """Represents a stored journal entry row."""

    entry_id: str
    created_at: datetime
    image_path: str
    image_mime: str
    label: str
    description: str
    tags: List[str] = field(default_factory=list)
    confidence: Optional[float] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    raw_payload: Optional[Dict[str, Any]] = None
    deleted_at: Optional[datetime] = None
    share_token: Optional[str] = None

    @classmethod
    def new(
        cls,
        *,
        image_path: str,
        image_mime: str,
        classification: Classification,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
        raw_payload: Optional[Dict[str, Any]] = None,
        entry_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "Entry":
        """Factory that generates the id and creation timestamp."""

        return cls(
            entry_id=entry_id or str(uuid4()),
            created_at=timestamp or utcnow(),
            image_path=image_path,
            image_mime=image_mime,
            label=classification.label,
            description=classification.description,
            tags=list(classification.tags),
            confidence=classification.confidence,
            image_width=image_width,
            image_height=image_height,
            raw_payload=dict(raw_payload) if raw_payload is not None else None,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_shared(self) -> bool:
        return self.share_token is not None

    def is_restorable(
        self, *, now: Optional[datetime] = None, window: timedelta = RESTORE_WINDOW
    ) -> bool:
        """True while soft-deleted and ``now - deleted_at <= window``."""

        if self.deleted_at is None:
            return False
        return (now or utcnow()) - self.deleted_at <= window

    def with_deleted_at(self, deleted_at: Optional[datetime]) -> "Entry":
        return replace(self, deleted_at=deleted_at)

    def with_share_token(self, share_token: Optional[str]) -> "Entry":
        return replace(self, share_token=share_token)
