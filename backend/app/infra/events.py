"""Entry lifecycle events (created, deleted, restored, shared, purged)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

from .logging import get_logger

logger = get_logger(__name__)

TOPIC_PREFIX = "journal"


@dataclass(frozen=True)
class LifecycleEvent:
    topic: str
    payload: Dict[str, Any]
    occurred_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }


class EventEmitter(Protocol):  # pragma: no cover - interface only
    def emit(self, topic: str, payload: Dict[str, Any]) -> None: ...


def build_event(topic: str, payload: Dict[str, Any]) -> LifecycleEvent:
    return LifecycleEvent(
        topic=f"{TOPIC_PREFIX}.{topic}",
        payload=dict(payload),
        occurred_at=datetime.now(timezone.utc),
    )


class LoggingEventEmitter:
    """Writes each event envelope to the application log."""

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        event = build_event(topic, payload)
        logger.info("lifecycle_event", extra=event.as_dict())


@dataclass
class InMemoryEventEmitter:
    """Keeps emitted events in order; used by tests and local tooling."""

    events: List[LifecycleEvent] = field(default_factory=list)

    def emit(self, topic: str, payload: Dict[str, Any]) -> None:
        self.events.append(build_event(topic, payload))

    @property
    def topics(self) -> List[str]:
        return [event.topic for event in self.events]


_singleton: LoggingEventEmitter | None = None


def get_event_emitter() -> EventEmitter:
    """Return the process-wide lifecycle-event emitter."""

    global _singleton
    if _singleton is None:
        _singleton = LoggingEventEmitter()
    return _singleton
