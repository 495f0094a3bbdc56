"""On-disk image storage for journal entries."""

from .probe import probe_dimensions
from .store import LocalImageStore, ProvisionalImage, extension_for_mime

__all__ = [
    "LocalImageStore",
    "ProvisionalImage",
    "extension_for_mime",
    "probe_dimensions",
]
