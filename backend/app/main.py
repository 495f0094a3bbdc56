"""FastAPI entrypoint for the Fieldnote backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.dependencies import (
    get_app_settings,
    get_entry_gateway,
    get_image_store,
    get_settings_repository,
)
from .api.errors import error_body, register_exception_handlers
from .api.routers import entries, health, settings as settings_router, sharing
from .config import Settings
from .domain.errors import PayloadTooLargeError
from .infra.logging import configure_logging, get_logger
from .jobs.retention_sweeper import RetentionSweeper

logger = get_logger(__name__)


def build_retention_sweeper(settings: Settings) -> RetentionSweeper:
    retention = settings.retention
    return RetentionSweeper(
        entry_gateway=get_entry_gateway(),
        image_store=get_image_store(),
        interval_seconds=retention.sweep_interval_seconds,
        restore_window=timedelta(seconds=retention.restore_window_seconds),
        orphan_grace=timedelta(seconds=retention.orphan_grace_seconds),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Instantiate the FastAPI app and register routers."""

    settings = settings or get_app_settings()
    configure_logging(settings.logging)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        get_image_store().ensure_layout()
        get_settings_repository().ensure_defaults()
        sweeper: Optional[RetentionSweeper] = None
        if settings.retention.sweeper_enabled:
            sweeper = build_retention_sweeper(settings)
            sweeper.start()
        logger.info(
            "application_started",
            extra={
                "environment": settings.environment,
                "model": settings.classifier.model,
            },
        )
        yield
        if sweeper is not None:
            sweeper.stop()
        logger.info("application_stopped")

    application = FastAPI(title="Fieldnote API", version="0.1.0", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.api.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    max_body = settings.api.max_upload_bytes

    @application.middleware("http")
    async def limit_request_body(request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_body:
            logger.warning(
                "request_body_too_large",
                extra={"path": request.url.path, "content_length": int(declared)},
            )
            return JSONResponse(
                status_code=int(PayloadTooLargeError.status_code),
                content=error_body(
                    "Request body exceeds upload limit",
                    PayloadTooLargeError.error_code,
                    {"max_bytes": max_body},
                ),
            )
        return await call_next(request)

    register_exception_handlers(application)
    for router in (
        health.router,
        settings_router.router,
        entries.router,
        sharing.router,
    ):
        application.include_router(router)
    application.mount(
        "/media",
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="media",
    )
    return application


app = create_app()
