"""Retention sweeper: purges expired soft-deleted entries and orphaned images."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from backend.app.domain.entrystore import RESTORE_WINDOW, EntryStoreGateway, utcnow
from backend.app.domain.errors import StorageError
from backend.app.domain.imagestore import LocalImageStore
from backend.app.infra.events import EventEmitter, get_event_emitter
from backend.app.infra.logging import get_logger
from backend.app.infra.metrics import MetricsClient, get_metrics_client

__all__ = [
    "DEFAULT_ORPHAN_GRACE",
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "RetentionSweeper",
    "SweepReport",
    "remove_orphan_images",
    "sweep_expired_entries",
]

logger = get_logger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 600
DEFAULT_ORPHAN_GRACE = timedelta(hours=1)


@dataclass
class SweepReport:
    """Outcome of one sweep pass."""

    started_at: datetime
    cutoff: datetime
    candidates: int = 0
    purged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    image_failures: List[str] = field(default_factory=list)
    orphans_removed: List[str] = field(default_factory=list)

    def as_log_fields(self) -> dict:
        return {
            "cutoff": self.cutoff.isoformat(),
            "candidates": self.candidates,
            "purged": len(self.purged),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "image_failures": len(self.image_failures),
            "orphans_removed": len(self.orphans_removed),
        }


def sweep_expired_entries(
    entry_gateway: EntryStoreGateway,
    image_store: LocalImageStore,
    *,
    now: Optional[datetime] = None,
    restore_window: timedelta = RESTORE_WINDOW,
    metrics: Optional[MetricsClient] = None,
    events: Optional[EventEmitter] = None,
) -> SweepReport:
    """Purge entries soft-deleted longer than ``restore_window`` ago.

    Each record is deleted before its image so a concurrent restore either wins
    outright (the purge matches nothing) or loses to a completed purge.
    """

    metrics = metrics or get_metrics_client()
    events = events or get_event_emitter()
    started_at = now or utcnow()
    cutoff = started_at - restore_window
    report = SweepReport(started_at=started_at, cutoff=cutoff)

    candidates = entry_gateway.find_expired(cutoff)
    report.candidates = len(candidates)
    for entry in candidates:
        try:
            image_path = entry_gateway.purge(entry.entry_id, cutoff=cutoff)
        except StorageError:
            logger.exception(
                "retention_purge_failed", extra={"entry_id": entry.entry_id}
            )
            report.failed.append(entry.entry_id)
            continue
        if image_path is None:
            logger.info(
                "retention_purge_skipped", extra={"entry_id": entry.entry_id}
            )
            report.skipped.append(entry.entry_id)
            continue

        report.purged.append(entry.entry_id)
        events.emit("entry.purged", {"entry_id": entry.entry_id})
        try:
            image_store.remove(image_path)
        except StorageError:
            logger.exception(
                "retention_image_remove_failed",
                extra={"entry_id": entry.entry_id, "reference": image_path},
            )
            report.image_failures.append(image_path)

    metrics.increment("retention_entries_purged_total", len(report.purged))
    if report.image_failures:
        metrics.increment("retention_image_failures_total", len(report.image_failures))
    return report


def remove_orphan_images(
    entry_gateway: EntryStoreGateway,
    image_store: LocalImageStore,
    *,
    now: Optional[datetime] = None,
    grace: timedelta = DEFAULT_ORPHAN_GRACE,
    metrics: Optional[MetricsClient] = None,
) -> List[str]:
    """Remove stored images older than ``grace`` that no entry references."""

    metrics = metrics or get_metrics_client()
    older_than = (now or utcnow()) - grace
    referenced = entry_gateway.list_image_paths()
    removed: List[str] = []
    for reference in image_store.iter_references(older_than=older_than):
        if reference in referenced:
            continue
        try:
            if image_store.remove(reference):
                removed.append(reference)
        except StorageError:
            logger.exception("orphan_image_remove_failed", extra={"reference": reference})
    if removed:
        logger.info("orphan_images_removed", extra={"count": len(removed)})
        metrics.increment("retention_orphans_removed_total", len(removed))
    return removed


class RetentionSweeper:
    """Runs the sweep on a daemon thread, first pass immediately on start."""

    def __init__(
        self,
        *,
        entry_gateway: EntryStoreGateway,
        image_store: LocalImageStore,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        restore_window: timedelta = RESTORE_WINDOW,
        orphan_grace: timedelta = DEFAULT_ORPHAN_GRACE,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsClient] = None,
        events: Optional[EventEmitter] = None,
    ) -> None:
        self._entry_gateway = entry_gateway
        self._image_store = image_store
        self._interval = interval_seconds
        self._restore_window = restore_window
        self._orphan_grace = orphan_grace
        self._clock = clock
        self._metrics = metrics or get_metrics_client()
        self._events = events or get_event_emitter()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="retention-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(
            "retention_sweeper_started", extra={"interval_seconds": self._interval}
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("retention_sweeper_stopped")

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or self._clock()
        started = time.monotonic()
        report = sweep_expired_entries(
            self._entry_gateway,
            self._image_store,
            now=now,
            restore_window=self._restore_window,
            metrics=self._metrics,
            events=self._events,
        )
        report.orphans_removed = remove_orphan_images(
            self._entry_gateway,
            self._image_store,
            now=now,
            grace=self._orphan_grace,
            metrics=self._metrics,
        )
        self._metrics.observe("retention_sweep_seconds", time.monotonic() - started)
        self._metrics.gauge("retention_last_sweep_candidates", report.candidates)
        logger.info("retention_sweep_completed", extra=report.as_log_fields())
        return report

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:  # pragma: no cover - keep the loop alive
                logger.exception("retention_sweep_failed")
            self._stop_event.wait(self._interval)
