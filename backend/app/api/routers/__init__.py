"""Router exports for FastAPI composition."""

from . import entries, health, settings, sharing

__all__ = ["entries", "health", "settings", "sharing"]
