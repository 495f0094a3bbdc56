"""Image capture pipeline: store, classify, record."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...config import ClassifierConfig
from ...infra.events import EventEmitter, get_event_emitter
from ...infra.llm_gateway import (
    ClassificationResult,
    ClassifierGatewayError,
    classify_image,
)
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..entrystore import Classification, Entry, EntryStoreGateway
from ..errors import BadRequestError, UpstreamError
from ..imagestore import LocalImageStore, probe_dimensions

__all__ = [
    "DEFAULT_IMAGE_MIME",
    "ImageClassifier",
    "LlmGatewayClassifier",
    "capture_image_upload",
]

logger = get_logger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"


class ImageClassifier(Protocol):
    def classify(self, *, data: bytes, mime: str) -> ClassificationResult: ...


class LlmGatewayClassifier:
    """Adapter translating gateway failures into ``UpstreamError``."""

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self._config = config

    @property
    def model(self) -> Optional[str]:
        return self._config.model if self._config else None

    def classify(self, *, data: bytes, mime: str) -> ClassificationResult:
        try:
            return classify_image(data, mime, config=self._config)
        except ClassifierGatewayError as exc:
            raise UpstreamError(
                str(exc), code=exc.code, retryable=exc.retryable
            ) from exc


def capture_image_upload(
    *,
    data: bytes,
    mime: Optional[str],
    entry_gateway: EntryStoreGateway,
    image_store: LocalImageStore,
    classifier: ImageClassifier,
    metrics: Optional[MetricsClient] = None,
    events: Optional[EventEmitter] = None,
    now: Optional[datetime] = None,
) -> Entry:
    """Persist an uploaded image as a classified entry.

    The image is written provisionally and removed again unless the entry
    insert succeeds, so a failed capture leaves neither a record nor a file.
    """

    metrics = metrics or get_metrics_client()
    events = events or get_event_emitter()
    if not data:
        logger.warning("image_capture_rejected_empty")
        raise BadRequestError("Image upload is empty")

    mime = (mime or "").strip() or DEFAULT_IMAGE_MIME
    width, height = probe_dimensions(data)

    with image_store.provisional(data, mime) as image:
        try:
            result = classifier.classify(data=data, mime=mime)
        except UpstreamError as exc:
            metrics.increment("classification_failures_total")
            logger.warning(
                "image_classification_failed",
                extra={
                    "reference": image.reference,
                    "code": exc.code,
                    "retryable": exc.retryable,
                    "error": exc.message,
                },
            )
            raise
        entry = entry_gateway.create_entry(
            image_path=image.reference,
            image_mime=mime,
            classification=Classification(
                label=result.label,
                description=result.description,
                tags=list(result.tags),
                confidence=result.confidence,
            ),
            image_width=width,
            image_height=height,
            raw_payload={"model": result.model_used, "response": result.response},
            now=now,
        )
        image.commit()

    metrics.increment("entries_created_total")
    events.emit(
        "entry.created",
        {"entry_id": entry.entry_id, "image_path": entry.image_path, "label": entry.label},
    )
    logger.info(
        "entry_created",
        extra={
            "entry_id": entry.entry_id,
            "reference": entry.image_path,
            "size_bytes": image.size_bytes,
            "model": result.model_used,
        },
    )
    return entry
