"""Local filesystem image store.

Images are written once under a fresh UUID and referenced by a path relative
to the storage root (``images/<uuid>.<ext>``). The entry store is the source of
truth for which references are live; this module keeps no index of its own.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional
from uuid import uuid4

from ...infra.logging import get_logger
from ..errors import StorageError

__all__ = ["LocalImageStore", "ProvisionalImage", "extension_for_mime"]

logger = get_logger(__name__)

DEFAULT_EXTENSION = "jpg"
MIME_EXTENSIONS = {
    "image/png": "png",
    "image/webp": "webp",
}


def extension_for_mime(mime: str | None) -> str:
    """Map an upload MIME type to the stored file extension."""

    if not mime:
        return DEFAULT_EXTENSION
    return MIME_EXTENSIONS.get(mime.split(";", 1)[0].strip().lower(), DEFAULT_EXTENSION)


@dataclass
class ProvisionalImage:
    """Handle for an image written ahead of its entry record."""

    reference: str
    size_bytes: int
    committed: bool = False

    def commit(self) -> None:
        self.committed = True


class LocalImageStore:
    """Stores uploaded image bytes beneath ``<root>/<images_dir>``."""

    def __init__(self, root: str | Path, images_dir: str = "images") -> None:
        self.root = Path(root).expanduser()
        self.images_dir = images_dir

    @property
    def images_path(self) -> Path:
        return self.root / self.images_dir

    def ensure_layout(self) -> Path:
        try:
            self.images_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                "Unable to create image directory",
                details={"path": str(self.images_path)},
            ) from exc
        return self.images_path

    def store(self, data: bytes, mime: str | None) -> str:
        """Write ``data`` under a new id and return its relative reference."""

        self.ensure_layout()
        reference = f"{self.images_dir}/{uuid4()}.{extension_for_mime(mime)}"
        target = self.root / reference
        try:
            with target.open("xb") as handle:
                handle.write(data)
        except OSError as exc:
            logger.error(
                "image_store_write_failed",
                extra={"reference": reference, "error": str(exc)},
            )
            raise StorageError(
                "Failed to store image", details={"reference": reference}
            ) from exc
        logger.info(
            "image_stored", extra={"reference": reference, "size_bytes": len(data)}
        )
        return reference

    def remove(self, reference: str) -> bool:
        """Delete a stored image; returns False when it was already gone."""

        target = self.resolve(reference)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("image_already_missing", extra={"reference": reference})
            return False
        except OSError as exc:
            raise StorageError(
                "Failed to remove image", details={"reference": reference}
            ) from exc
        logger.info("image_removed", extra={"reference": reference})
        return True

    @contextmanager
    def provisional(self, data: bytes, mime: str | None) -> Iterator[ProvisionalImage]:
        """Store ``data`` and remove it again unless the caller commits."""

        handle = ProvisionalImage(reference=self.store(data, mime), size_bytes=len(data))
        try:
            yield handle
        finally:
            if not handle.committed:
                self._compensate(handle.reference)

    def resolve(self, reference: str) -> Path:
        """Return the absolute path for ``reference``; rejects traversal."""

        relative = PurePosixPath(reference)
        if (
            not reference
            or relative.is_absolute()
            or ".." in relative.parts
            or relative.parts[0] != self.images_dir
        ):
            raise StorageError(
                "Invalid image reference", details={"reference": reference}
            )
        return self.root.joinpath(*relative.parts)

    def iter_references(self, older_than: Optional[datetime] = None) -> Iterator[str]:
        """Yield stored references, optionally only those modified before ``older_than``."""

        if not self.images_path.is_dir():
            return
        threshold = older_than.timestamp() if older_than is not None else None
        for path in sorted(self.images_path.iterdir()):
            if not path.is_file():
                continue
            if threshold is not None:
                try:
                    modified = path.stat().st_mtime
                except FileNotFoundError:
                    continue
                if modified >= threshold:
                    continue
            yield f"{self.images_dir}/{path.name}"

    def _compensate(self, reference: str) -> None:
        try:
            self.remove(reference)
        except StorageError:
            logger.exception(
                "image_compensation_failed", extra={"reference": reference}
            )
        else:
            logger.info("image_compensated", extra={"reference": reference})
