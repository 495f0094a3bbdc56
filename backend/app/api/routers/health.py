"""System health endpoints for frontend polling."""

from typing import Any

from fastapi import APIRouter, Depends

from ...api.dependencies import get_app_settings
from ...config import Settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def healthcheck(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    """Return liveness plus the configured classifier model."""

    return {"status": "ok", "model": settings.classifier.model}
