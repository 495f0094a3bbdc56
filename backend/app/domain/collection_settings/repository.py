"""Persistence adapters for the collection visibility flag."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from threading import RLock
from typing import Any, Mapping, Optional, Protocol

from sqlalchemy import MetaData, Table, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...infra.db import ENGINE
from ...infra.logging import get_logger
from ..entrystore.models import as_utc, utcnow
from ..errors import StorageError

__all__ = [
    "SETTINGS_ROW_ID",
    "CollectionSettings",
    "CollectionSettingsRepository",
    "InMemoryCollectionSettingsRepository",
    "PostgresCollectionSettingsRepository",
]

logger = get_logger(__name__)

SETTINGS_ROW_ID = 1


@dataclass(frozen=True)
class CollectionSettings:
    is_public: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CollectionSettingsRepository(Protocol):  # pragma: no cover - interface only
    """Singleton settings row access."""

    def get(self) -> CollectionSettings: ...

    def set(self, is_public: bool) -> CollectionSettings: ...

    def ensure_defaults(self) -> CollectionSettings: ...


class InMemoryCollectionSettingsRepository(CollectionSettingsRepository):
    """In-memory adapter primarily used for tests."""

    def __init__(self, *, is_public: Optional[bool] = None) -> None:
        self._lock = RLock()
        self._row: Optional[CollectionSettings] = None
        if is_public is not None:
            now = utcnow()
            self._row = CollectionSettings(
                is_public=is_public, created_at=now, updated_at=now
            )

    def get(self) -> CollectionSettings:
        with self._lock:
            return self._row or CollectionSettings()

    def set(self, is_public: bool) -> CollectionSettings:
        with self._lock:
            current = self.ensure_defaults()
            self._row = replace(current, is_public=is_public, updated_at=utcnow())
            return self._row

    def ensure_defaults(self) -> CollectionSettings:
        with self._lock:
            if self._row is None:
                now = utcnow()
                self._row = CollectionSettings(
                    is_public=False, created_at=now, updated_at=now
                )
            return self._row


class PostgresCollectionSettingsRepository(CollectionSettingsRepository):
    """SQLAlchemy-backed settings adapter over the single ``settings`` row."""

    def __init__(
        self, engine: Optional[Engine] = None, *, table: Optional[Table] = None
    ) -> None:
        self._engine = engine or ENGINE
        if table is not None:
            self._table = table
        else:
            self._table = Table("settings", MetaData(), autoload_with=self._engine)

    def get(self) -> CollectionSettings:
        try:
            with self._engine.begin() as conn:
                row = self._fetch_row(conn)
        except SQLAlchemyError as exc:
            raise _storage_error("get", exc) from exc
        if row is None:
            return CollectionSettings()
        return _row_to_settings(row)

    def set(self, is_public: bool) -> CollectionSettings:
        table = self._table
        stmt = (
            update(table)
            .where(table.c.id == SETTINGS_ROW_ID)
            .values(is_public=is_public, updated_at=utcnow())
            .returning(table)
        )
        try:
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
            if row is None:
                self.ensure_defaults()
                with self._engine.begin() as conn:
                    row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise _storage_error("set", exc) from exc
        if row is None:  # pragma: no cover - defensive
            raise StorageError("Settings row missing after initialisation")
        logger.info("collection_visibility_updated", extra={"is_public": is_public})
        return _row_to_settings(row)

    def ensure_defaults(self) -> CollectionSettings:
        table = self._table
        now = utcnow()
        stmt = insert(table).values(
            id=SETTINGS_ROW_ID, is_public=False, created_at=now, updated_at=now
        )
        try:
            with self._engine.begin() as conn:
                if self._fetch_row(conn) is None:
                    conn.execute(stmt)
                    logger.info("collection_settings_initialised")
        except IntegrityError:
            # Another process inserted the row first.
            logger.debug("collection_settings_already_initialised")
        except SQLAlchemyError as exc:
            raise _storage_error("ensure_defaults", exc) from exc
        return self.get()

    def _fetch_row(self, conn: Connection) -> Optional[Mapping[str, Any]]:
        return (
            conn.execute(select(self._table).where(self._table.c.id == SETTINGS_ROW_ID))
            .mappings()
            .first()
        )


def _row_to_settings(row: Mapping[str, Any]) -> CollectionSettings:
    return CollectionSettings(
        is_public=bool(row["is_public"]),
        created_at=as_utc(row.get("created_at")),
        updated_at=as_utc(row.get("updated_at")),
    )


def _storage_error(operation: str, exc: Exception) -> StorageError:
    logger.error(
        "collection_settings_operation_failed",
        extra={"operation": operation, "error": str(exc)},
    )
    return StorageError(
        f"Settings {operation} failed", details={"operation": operation}
    )
