"""Entry records and the store that owns their lifecycle."""

from .gateway import (
    EntryStoreGateway,
    InMemoryEntryStoreGateway,
    PostgresEntryStoreGateway,
    build_entry_store_gateway,
)
from .models import (
    RESTORE_WINDOW,
    Classification,
    Entry,
    as_utc,
    new_share_token,
    utcnow,
)

__all__ = [
    "RESTORE_WINDOW",
    "Classification",
    "Entry",
    "EntryStoreGateway",
    "InMemoryEntryStoreGateway",
    "PostgresEntryStoreGateway",
    "as_utc",
    "build_entry_store_gateway",
    "new_share_token",
    "utcnow",
]
