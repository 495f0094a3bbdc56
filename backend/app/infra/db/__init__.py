"""Database connection helpers."""

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

from ...config import load_settings

settings = load_settings()


def build_engine(database_url: str) -> Engine:
    """Create the process engine; pool sizing only applies to server databases."""

    options: Dict[str, Any] = {"echo": False, "future": True, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_size"] = 10
    return create_engine(database_url, **options)


ENGINE = build_engine(settings.database_url)
