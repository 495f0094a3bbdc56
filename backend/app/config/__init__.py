"""Config package exporting loader helpers."""

from .loader import (
    ApiConfig,
    ClassifierConfig,
    RetentionConfig,
    Settings,
    StorageConfig,
    load_settings,
)

__all__ = [
    "ApiConfig",
    "ClassifierConfig",
    "RetentionConfig",
    "Settings",
    "StorageConfig",
    "load_settings",
]
