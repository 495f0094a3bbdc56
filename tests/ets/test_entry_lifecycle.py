"""End-to-end entry lifecycle against a simulated clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from PIL import Image

from backend.app.domain.capture import capture_image_upload
from backend.app.domain.entrystore import InMemoryEntryStoreGateway
from backend.app.domain.errors import EntryNotFoundError, RestoreWindowExpiredError
from backend.app.domain.imagestore import LocalImageStore
from backend.app.infra.events import InMemoryEventEmitter
from backend.app.infra.llm_gateway import ClassificationResult, parse_classification_text
from backend.app.infra.metrics import InMemoryMetricsClient
from backend.app.jobs.retention_sweeper import RetentionSweeper

pytestmark = [pytest.mark.ets]

MODEL_ANSWER = (
    "Sure! Here you go: "
    '{"label":"Forest","description":"A dense pine forest.",'
    '"tags":["forest","green","trees"],"confidence":0.92} Hope that helps!'
)


class _CannedClassifier:
    """Feeds a prose-wrapped model answer through the real parser."""

    def classify(self, *, data: bytes, mime: str) -> ClassificationResult:
        parsed = parse_classification_text(MODEL_ANSWER)
        return ClassificationResult(
            label=parsed.label,
            description=parsed.description,
            model_used="claude-test",
            tags=parsed.tags,
            confidence=parsed.confidence,
            raw_text=MODEL_ANSWER,
            response={"content": [{"type": "text", "text": MODEL_ANSWER}]},
        )


class _Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def __call__(self) -> datetime:
        return self.now


def _jpeg_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (64, 48), color=(30, 110, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


def test_upload_delete_restore_and_purge(tmp_path):
    clock = _Clock(datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc))
    gateway = InMemoryEntryStoreGateway()
    store = LocalImageStore(tmp_path)
    sweeper = RetentionSweeper(entry_gateway=gateway, image_store=store, clock=clock)

    entry = capture_image_upload(
        data=_jpeg_bytes(),
        mime="image/jpeg",
        entry_gateway=gateway,
        image_store=store,
        classifier=_CannedClassifier(),
        metrics=InMemoryMetricsClient(),
        events=InMemoryEventEmitter(),
        now=clock(),
    )
    assert entry.share_token is None
    assert 3 <= len(entry.tags) <= 6
    assert (entry.image_width, entry.image_height) == (64, 48)

    gateway.soft_delete(entry.entry_id, now=clock.advance(minutes=5))
    assert gateway.list_entries() == []

    gateway.restore(entry.entry_id, now=clock.advance(minutes=30))
    assert [item.entry_id for item in gateway.list_entries()] == [entry.entry_id]

    gateway.soft_delete(entry.entry_id, now=clock.advance(minutes=1))
    first_pass = sweeper.run_once()
    assert first_pass.purged == []
    assert gateway.get_entry(entry.entry_id).is_deleted

    clock.advance(hours=1, seconds=1)
    with pytest.raises(RestoreWindowExpiredError):
        gateway.restore(entry.entry_id, now=clock())

    report = sweeper.run_once()
    assert report.purged == [entry.entry_id]
    with pytest.raises(EntryNotFoundError):
        gateway.get_entry(entry.entry_id)
    assert not (tmp_path / entry.image_path).exists()
