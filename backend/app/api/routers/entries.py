"""Journal entry endpoints: capture, browse, delete/restore and sharing."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Path, UploadFile
from pydantic import BaseModel, Field

from ...api.dependencies import (
    get_app_settings,
    get_classifier,
    get_entry_gateway,
    get_image_store,
)
from ...config import Settings
from ...domain.capture import ImageClassifier, capture_image_upload
from ...domain.entrystore import Entry, EntryStoreGateway, new_share_token
from ...domain.errors import BadRequestError, PayloadTooLargeError
from ...domain.imagestore import LocalImageStore
from ...infra.events import get_event_emitter
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client

router = APIRouter(prefix="/api/entries", tags=["entries"])
logger = get_logger(__name__)
metrics = get_metrics_client()
events = get_event_emitter()

MEDIA_URL_PREFIX = "/media"
SHARE_URL_PREFIX = "/share"
EntryId = Annotated[str, Path(..., min_length=1, max_length=64)]


class EntrySummary(BaseModel):
    id: str
    created_at: datetime
    image_url: str
    label: str
    description: str
    confidence: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    shared: bool = False


class EntryDetail(EntrySummary):
    share_url: Optional[str] = None


class EntryEnvelope(BaseModel):
    entry: EntryDetail


class StatusResponse(BaseModel):
    status: str


class ShareRequest(BaseModel):
    enable: bool


@router.get("", response_model=List[EntrySummary], summary="List active entries")
def list_entries(
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
) -> List[EntrySummary]:
    metrics.increment("entries_list_http_total")
    return [serialize_summary(entry) for entry in entry_gateway.list_entries()]


@router.post("", response_model=EntryEnvelope, summary="Upload and classify an image")
def create_entry(
    image: Optional[UploadFile] = File(default=None),
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
    image_store: LocalImageStore = Depends(get_image_store),
    classifier: ImageClassifier = Depends(get_classifier),
    settings: Settings = Depends(get_app_settings),
) -> EntryEnvelope:
    if image is None:
        raise BadRequestError("Missing image field", details={"field": "image"})

    limit = settings.api.max_upload_bytes
    data = image.file.read(limit + 1)
    if len(data) > limit:
        raise PayloadTooLargeError(
            "Image exceeds upload limit", details={"max_bytes": limit}
        )

    entry = capture_image_upload(
        data=data,
        mime=image.content_type,
        entry_gateway=entry_gateway,
        image_store=image_store,
        classifier=classifier,
    )
    logger.info(
        "entry_upload_accepted",
        extra={"entry_id": entry.entry_id, "upload_name": image.filename},
    )
    return EntryEnvelope(entry=serialize_detail(entry))


@router.get("/{entry_id}", response_model=EntryDetail, summary="Retrieve entry detail")
def get_entry_detail(
    entry_id: EntryId,
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
) -> EntryDetail:
    return serialize_detail(entry_gateway.get_entry(entry_id))


@router.post("/{entry_id}/delete", response_model=StatusResponse)
def delete_entry(
    entry_id: EntryId,
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
) -> StatusResponse:
    entry = entry_gateway.soft_delete(entry_id)
    metrics.increment("entries_deleted_total")
    events.emit(
        "entry.deleted",
        {"entry_id": entry.entry_id, "deleted_at": entry.deleted_at.isoformat()},
    )
    logger.info("entry_soft_deleted", extra={"entry_id": entry_id})
    return StatusResponse(status="deleted")


@router.post("/{entry_id}/restore", response_model=StatusResponse)
def restore_entry(
    entry_id: EntryId,
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
    settings: Settings = Depends(get_app_settings),
) -> StatusResponse:
    window = timedelta(seconds=settings.retention.restore_window_seconds)
    entry_gateway.restore(entry_id, window=window)
    metrics.increment("entries_restored_total")
    events.emit("entry.restored", {"entry_id": entry_id})
    logger.info("entry_restored", extra={"entry_id": entry_id})
    return StatusResponse(status="restored")


@router.post("/{entry_id}/share", response_model=EntryEnvelope)
def share_entry(
    entry_id: EntryId,
    payload: ShareRequest,
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
) -> EntryEnvelope:
    was_shared = entry_gateway.get_entry(entry_id).is_shared
    token = new_share_token() if payload.enable else None
    entry = entry_gateway.set_share_token(entry_id, token)
    if entry.is_shared != was_shared:
        topic = "entry.shared" if entry.is_shared else "entry.unshared"
        events.emit(topic, {"entry_id": entry_id})
    logger.info(
        "entry_share_updated", extra={"entry_id": entry_id, "shared": entry.is_shared}
    )
    return EntryEnvelope(entry=serialize_detail(entry))


def serialize_summary(entry: Entry) -> EntrySummary:
    return EntrySummary(
        id=entry.entry_id,
        created_at=entry.created_at,
        image_url=f"{MEDIA_URL_PREFIX}/{entry.image_path}",
        label=entry.label,
        description=entry.description,
        confidence=entry.confidence,
        tags=list(entry.tags),
        shared=entry.is_shared,
    )


def serialize_detail(entry: Entry) -> EntryDetail:
    summary = serialize_summary(entry)
    share_url = (
        f"{SHARE_URL_PREFIX}/{entry.share_token}" if entry.share_token else None
    )
    return EntryDetail(**summary.model_dump(), share_url=share_url)
