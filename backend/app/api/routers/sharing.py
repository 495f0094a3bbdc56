"""Anonymous read endpoints: share links and the public collection."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ...api.dependencies import get_entry_gateway, get_settings_repository
from ...domain.collection_settings import CollectionSettingsRepository
from ...domain.entrystore import EntryStoreGateway
from ...domain.errors import EntryNotFoundError
from .entries import EntryDetail, EntrySummary, serialize_detail, serialize_summary

router = APIRouter(prefix="/api", tags=["sharing"])


@router.get("/share/{token}", response_model=EntryDetail)
def get_shared_entry(
    token: str,
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
) -> EntryDetail:
    return serialize_detail(entry_gateway.get_by_share_token(token))


@router.get("/public/entries", response_model=List[EntrySummary])
def list_public_entries(
    entry_gateway: EntryStoreGateway = Depends(get_entry_gateway),
    settings_repository: CollectionSettingsRepository = Depends(
        get_settings_repository
    ),
) -> List[EntrySummary]:
    if not settings_repository.get().is_public:
        raise EntryNotFoundError("Collection is private")
    return [serialize_summary(entry) for entry in entry_gateway.list_entries()]
