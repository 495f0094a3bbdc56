"""Execute a single retention sweep (expired entries plus orphaned images)."""

from datetime import timedelta

from backend.app.config import load_settings
from backend.app.domain.entrystore import build_entry_store_gateway
from backend.app.domain.imagestore import LocalImageStore
from backend.app.infra.logging import configure_logging
from backend.app.jobs.retention_sweeper import RetentionSweeper


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.logging)
    sweeper = RetentionSweeper(
        entry_gateway=build_entry_store_gateway(),
        image_store=LocalImageStore(settings.storage_root, settings.storage.images_dir),
        restore_window=timedelta(seconds=settings.retention.restore_window_seconds),
        orphan_grace=timedelta(seconds=settings.retention.orphan_grace_seconds),
    )
    report = sweeper.run_once()
    print(report.as_log_fields())
