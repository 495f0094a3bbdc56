"""Collection visibility settings endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...api.dependencies import get_settings_repository
from ...domain.collection_settings import CollectionSettingsRepository
from ...infra.logging import get_logger

router = APIRouter(prefix="/api/settings", tags=["settings"])
logger = get_logger(__name__)


class SettingsPayload(BaseModel):
    is_public: bool


@router.get("", response_model=SettingsPayload)
def get_settings(
    repository: CollectionSettingsRepository = Depends(get_settings_repository),
) -> SettingsPayload:
    return SettingsPayload(is_public=repository.get().is_public)


@router.put("", response_model=SettingsPayload)
def update_settings(
    payload: SettingsPayload,
    repository: CollectionSettingsRepository = Depends(get_settings_repository),
) -> SettingsPayload:
    updated = repository.set(payload.is_public)
    logger.info("settings_updated", extra={"is_public": updated.is_public})
    return SettingsPayload(is_public=updated.is_public)
