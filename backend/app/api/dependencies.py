"""Shared API dependencies."""

from __future__ import annotations

from functools import lru_cache

from ..config import Settings, load_settings
from ..domain.capture import ImageClassifier, LlmGatewayClassifier
from ..domain.collection_settings import (
    CollectionSettingsRepository,
    PostgresCollectionSettingsRepository,
)
from ..domain.entrystore import EntryStoreGateway, build_entry_store_gateway
from ..domain.imagestore import LocalImageStore

__all__ = [
    "get_app_settings",
    "get_classifier",
    "get_entry_gateway",
    "get_image_store",
    "get_settings_repository",
]


@lru_cache()
def _app_settings_singleton() -> Settings:
    return load_settings()


def get_app_settings() -> Settings:
    """Return the process-wide settings loaded from the active profile."""

    return _app_settings_singleton()


@lru_cache()
def _entry_gateway_singleton() -> EntryStoreGateway:
    return build_entry_store_gateway()


def get_entry_gateway() -> EntryStoreGateway:
    """Return the process-wide EntryStore gateway instance."""

    return _entry_gateway_singleton()


@lru_cache()
def _image_store_singleton() -> LocalImageStore:
    settings = get_app_settings()
    return LocalImageStore(settings.storage_root, settings.storage.images_dir)


def get_image_store() -> LocalImageStore:
    return _image_store_singleton()


@lru_cache()
def _classifier_singleton() -> ImageClassifier:
    return LlmGatewayClassifier(get_app_settings().classifier)


def get_classifier() -> ImageClassifier:
    """Return the image classifier backed by the configured LLM provider."""

    return _classifier_singleton()


@lru_cache()
def _settings_repository_singleton() -> CollectionSettingsRepository:
    return PostgresCollectionSettingsRepository()


def get_settings_repository() -> CollectionSettingsRepository:
    return _settings_repository_singleton()
