"""EntryStore gateway implementations.

Every lifecycle transition is a single atomic unit against the backing store:
the in-memory gateway serializes on one lock, the PostgreSQL gateway issues one
conditional statement per transition. Restore and purge are keyed on the same
``deleted_at`` predicate so that a restore racing the retention sweeper resolves
to exactly one winner.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import RLock
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Set

from sqlalchemy import MetaData, Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ...infra.db import ENGINE
from ...infra.logging import get_logger
from ..errors import (
    EntryNotDeletedError,
    EntryNotFoundError,
    JournalError,
    RestoreWindowExpiredError,
    StorageError,
)
from .models import RESTORE_WINDOW, Classification, Entry, as_utc, utcnow

__all__ = [
    "EntryStoreGateway",
    "InMemoryEntryStoreGateway",
    "PostgresEntryStoreGateway",
    "build_entry_store_gateway",
]

logger = get_logger(__name__)


class EntryStoreGateway(Protocol):  # pragma: no cover
    """Durable record store owning all entry lifecycle transitions."""

    def create_entry(
        self,
        *,
        image_path: str,
        image_mime: str,
        classification: Classification,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
        raw_payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Entry: ...

    def list_entries(self, *, include_deleted: bool = False) -> List[Entry]: ...

    def get_entry(self, entry_id: str) -> Entry: ...

    def get_by_share_token(self, token: str) -> Entry: ...

    def soft_delete(self, entry_id: str, *, now: Optional[datetime] = None) -> Entry: ...

    def restore(
        self,
        entry_id: str,
        *,
        now: Optional[datetime] = None,
        window: timedelta = RESTORE_WINDOW,
    ) -> Entry: ...

    def set_share_token(self, entry_id: str, token: Optional[str]) -> Entry: ...

    def purge(self, entry_id: str, *, cutoff: datetime) -> Optional[str]: ...

    def find_expired(self, cutoff: datetime) -> List[Entry]: ...

    def list_image_paths(self) -> Set[str]: ...


class InMemoryEntryStoreGateway(EntryStoreGateway):
    """Simple in-memory EntryStore used for local development and tests."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: Dict[str, Entry] = {}
        self._share_index: Dict[str, str] = {}

    def create_entry(
        self,
        *,
        image_path: str,
        image_mime: str,
        classification: Classification,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
        raw_payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Entry:
        record = Entry.new(
            image_path=image_path,
            image_mime=image_mime,
            classification=classification,
            image_width=image_width,
            image_height=image_height,
            raw_payload=raw_payload,
            timestamp=now or utcnow(),
        )
        with self._lock:
            self._entries[record.entry_id] = record
        return record

    def list_entries(self, *, include_deleted: bool = False) -> List[Entry]:
        with self._lock:
            records = list(self._entries.values())
        if not include_deleted:
            records = [entry for entry in records if not entry.is_deleted]
        records.sort(key=lambda entry: (entry.created_at, entry.entry_id), reverse=True)
        return records

    def get_entry(self, entry_id: str) -> Entry:
        with self._lock:
            record = self._entries.get(entry_id)
        if record is None:
            raise _not_found(entry_id)
        return record

    def get_by_share_token(self, token: str) -> Entry:
        with self._lock:
            entry_id = self._share_index.get(token)
            record = self._entries.get(entry_id) if entry_id else None
        if record is None:
            raise EntryNotFoundError(
                "Share link not found", details={"share_token": token}
            )
        return record

    def soft_delete(self, entry_id: str, *, now: Optional[datetime] = None) -> Entry:
        with self._lock:
            record = self._entries.get(entry_id)
            if record is None or record.is_deleted:
                raise _not_found(entry_id)
            updated = record.with_deleted_at(now or utcnow())
            self._entries[entry_id] = updated
        return updated

    def restore(
        self,
        entry_id: str,
        *,
        now: Optional[datetime] = None,
        window: timedelta = RESTORE_WINDOW,
    ) -> Entry:
        with self._lock:
            record = self._entries.get(entry_id)
            if record is None or not record.is_restorable(now=now, window=window):
                raise _restore_failure(
                    entry_id,
                    exists=record is not None,
                    deleted_at=record.deleted_at if record else None,
                )
            updated = record.with_deleted_at(None)
            self._entries[entry_id] = updated
        return updated

    def set_share_token(self, entry_id: str, token: Optional[str]) -> Entry:
        with self._lock:
            record = self._entries.get(entry_id)
            if record is None:
                raise _not_found(entry_id)
            if token is None:
                if record.share_token is not None:
                    self._share_index.pop(record.share_token, None)
                updated = record.with_share_token(None)
            elif record.share_token is not None:
                updated = record
            else:
                if token in self._share_index:
                    raise StorageError(
                        "Share token collision", details={"entry_id": entry_id}
                    )
                self._share_index[token] = entry_id
                updated = record.with_share_token(token)
            self._entries[entry_id] = updated
        return updated

    def purge(self, entry_id: str, *, cutoff: datetime) -> Optional[str]:
        with self._lock:
            record = self._entries.get(entry_id)
            if record is None or not _is_expired(record, cutoff):
                return None
            del self._entries[entry_id]
            if record.share_token is not None:
                self._share_index.pop(record.share_token, None)
        return record.image_path

    def find_expired(self, cutoff: datetime) -> List[Entry]:
        with self._lock:
            records = [
                entry for entry in self._entries.values() if _is_expired(entry, cutoff)
            ]
        records.sort(key=lambda entry: entry.deleted_at)
        return records

    def list_image_paths(self) -> Set[str]:
        with self._lock:
            return {entry.image_path for entry in self._entries.values()}


class PostgresEntryStoreGateway(EntryStoreGateway):
    """SQLAlchemy-backed adapter that persists entries to PostgreSQL."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        table: Optional[Table] = None,
    ) -> None:
        self._engine = engine or ENGINE
        if table is not None:
            self._entries = table
            self._metadata = table.metadata
        else:
            self._metadata = MetaData()
            self._entries = Table("entries", self._metadata, autoload_with=self._engine)

    # ------------------------------------------------------------------
    # Entry creation + lookups
    # ------------------------------------------------------------------
    def create_entry(
        self,
        *,
        image_path: str,
        image_mime: str,
        classification: Classification,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
        raw_payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Entry:
        entry = Entry.new(
            image_path=image_path,
            image_mime=image_mime,
            classification=classification,
            image_width=image_width,
            image_height=image_height,
            raw_payload=raw_payload,
            timestamp=now or utcnow(),
        )
        insert_stmt = (
            insert(self._entries)
            .values(
                entry_id=entry.entry_id,
                created_at=entry.created_at,
                image_path=entry.image_path,
                image_mime=entry.image_mime,
                image_width=entry.image_width,
                image_height=entry.image_height,
                label=entry.label,
                description=entry.description,
                confidence=entry.confidence,
                tags=entry.tags,
                raw_payload=entry.raw_payload,
                deleted_at=None,
                share_token=None,
            )
            .returning(self._entries)
        )
        with _storage_errors("create", entry.entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(insert_stmt).mappings().first()
        if row is None:  # pragma: no cover - defensive
            raise StorageError("failed to insert entry")
        return _row_to_entry(row)

    def list_entries(self, *, include_deleted: bool = False) -> List[Entry]:
        table = self._entries
        stmt = select(table).order_by(table.c.created_at.desc(), table.c.entry_id.desc())
        if not include_deleted:
            stmt = stmt.where(table.c.deleted_at.is_(None))
        with _storage_errors("list"):
            with self._engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [_row_to_entry(row) for row in rows]

    def get_entry(self, entry_id: str) -> Entry:
        stmt = select(self._entries).where(self._entries.c.entry_id == entry_id)
        with _storage_errors("get", entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise _not_found(entry_id)
        return _row_to_entry(row)

    def get_by_share_token(self, token: str) -> Entry:
        stmt = select(self._entries).where(self._entries.c.share_token == token)
        with _storage_errors("get_by_share_token"):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise EntryNotFoundError(
                "Share link not found", details={"share_token": token}
            )
        return _row_to_entry(row)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------
    def soft_delete(self, entry_id: str, *, now: Optional[datetime] = None) -> Entry:
        table = self._entries
        stmt = (
            update(table)
            .where(table.c.entry_id == entry_id, table.c.deleted_at.is_(None))
            .values(deleted_at=now or utcnow())
            .returning(table)
        )
        with _storage_errors("soft_delete", entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise _not_found(entry_id)
        return _row_to_entry(row)

    def restore(
        self,
        entry_id: str,
        *,
        now: Optional[datetime] = None,
        window: timedelta = RESTORE_WINDOW,
    ) -> Entry:
        table = self._entries
        cutoff = (now or utcnow()) - window
        stmt = (
            update(table)
            .where(
                table.c.entry_id == entry_id,
                table.c.deleted_at.is_not(None),
                table.c.deleted_at >= cutoff,
            )
            .values(deleted_at=None)
            .returning(table)
        )
        probe = select(table.c.deleted_at).where(table.c.entry_id == entry_id)
        with _storage_errors("restore", entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
                current = conn.execute(probe).first() if row is None else None
        if row is None:
            raise _restore_failure(
                entry_id,
                exists=current is not None,
                deleted_at=as_utc(current[0]) if current is not None else None,
            )
        return _row_to_entry(row)

    def set_share_token(self, entry_id: str, token: Optional[str]) -> Entry:
        table = self._entries
        share_value = (
            None if token is None else func.coalesce(table.c.share_token, token)
        )
        stmt = (
            update(table)
            .where(table.c.entry_id == entry_id)
            .values(share_token=share_value)
            .returning(table)
        )
        with _storage_errors("set_share_token", entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise _not_found(entry_id)
        return _row_to_entry(row)

    def purge(self, entry_id: str, *, cutoff: datetime) -> Optional[str]:
        table = self._entries
        stmt = (
            delete(table)
            .where(
                table.c.entry_id == entry_id,
                table.c.deleted_at.is_not(None),
                table.c.deleted_at < cutoff,
            )
            .returning(table.c.image_path)
        )
        with _storage_errors("purge", entry_id):
            with self._engine.begin() as conn:
                row = conn.execute(stmt).first()
        if row is None:
            return None
        return row[0]

    # ------------------------------------------------------------------
    # Retention queries
    # ------------------------------------------------------------------
    def find_expired(self, cutoff: datetime) -> List[Entry]:
        table = self._entries
        stmt = (
            select(table)
            .where(table.c.deleted_at.is_not(None), table.c.deleted_at < cutoff)
            .order_by(table.c.deleted_at.asc())
        )
        with _storage_errors("find_expired"):
            with self._engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [_row_to_entry(row) for row in rows]

    def list_image_paths(self) -> Set[str]:
        stmt = select(self._entries.c.image_path)
        with _storage_errors("list_image_paths"):
            with self._engine.begin() as conn:
                return set(conn.execute(stmt).scalars().all())


def build_entry_store_gateway(engine: Optional[Engine] = None) -> EntryStoreGateway:
    """Return the PostgreSQL gateway bound to ``engine`` (the process engine by default)."""

    return PostgresEntryStoreGateway(engine)


@contextmanager
def _storage_errors(operation: str, entry_id: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception(
            "entry_store_operation_failed",
            extra={"operation": operation, "entry_id": entry_id},
        )
        raise StorageError(
            f"Entry store {operation} failed",
            details={"operation": operation},
        ) from exc


def _row_to_entry(row: Mapping[str, Any]) -> Entry:
    confidence = row.get("confidence")
    return Entry(
        entry_id=str(row["entry_id"]),
        created_at=as_utc(row["created_at"]),
        image_path=row["image_path"],
        image_mime=row["image_mime"],
        label=row["label"],
        description=row["description"],
        tags=list(row.get("tags") or []),
        confidence=float(confidence) if confidence is not None else None,
        image_width=row.get("image_width"),
        image_height=row.get("image_height"),
        raw_payload=row.get("raw_payload"),
        deleted_at=as_utc(row.get("deleted_at")),
        share_token=row.get("share_token"),
    )


def _is_expired(entry: Entry, cutoff: datetime) -> bool:
    return entry.deleted_at is not None and entry.deleted_at < cutoff


def _not_found(entry_id: str) -> EntryNotFoundError:
    return EntryNotFoundError(
        f"Entry '{entry_id}' not found", details={"entry_id": entry_id}
    )


def _restore_failure(
    entry_id: str, *, exists: bool, deleted_at: Optional[datetime]
) -> JournalError:
    if not exists:
        return _not_found(entry_id)
    if deleted_at is None:
        return EntryNotDeletedError(
            f"Entry '{entry_id}' is not deleted", details={"entry_id": entry_id}
        )
    return RestoreWindowExpiredError(
        "Restore window expired",
        details={"entry_id": entry_id, "deleted_at": deleted_at.isoformat()},
    )
