"""Collection-wide visibility settings."""

from .repository import (
    SETTINGS_ROW_ID,
    CollectionSettings,
    CollectionSettingsRepository,
    InMemoryCollectionSettingsRepository,
    PostgresCollectionSettingsRepository,
)

__all__ = [
    "SETTINGS_ROW_ID",
    "CollectionSettings",
    "CollectionSettingsRepository",
    "InMemoryCollectionSettingsRepository",
    "PostgresCollectionSettingsRepository",
]
