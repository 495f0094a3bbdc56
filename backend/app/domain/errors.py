"""Domain exceptions surfaced to API handlers."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict

__all__ = [
    "JournalError",
    "BadRequestError",
    "EntryNotDeletedError",
    "EntryNotFoundError",
    "PayloadTooLargeError",
    "RestoreWindowExpiredError",
    "StorageError",
    "UpstreamError",
]


class JournalError(Exception):
    """Base class carrying the HTTP status and a stable error code."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "FN-INTERNAL"

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BadRequestError(JournalError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "FN-BAD-REQUEST"


class EntryNotDeletedError(BadRequestError):
    """Restore requested for an entry that is still active."""

    error_code = "FN-NOT-DELETED"


class EntryNotFoundError(JournalError):
    """No entry (or share token) matched, or the operation's precondition failed."""

    status_code = HTTPStatus.NOT_FOUND
    error_code = "FN-NOT-FOUND"


class RestoreWindowExpiredError(JournalError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "FN-RESTORE-EXPIRED"


class PayloadTooLargeError(JournalError):
    status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    error_code = "FN-PAYLOAD-TOO-LARGE"


class UpstreamError(JournalError):
    """The classifier could not produce a usable result."""

    status_code = HTTPStatus.BAD_GATEWAY
    error_code = "FN-UPSTREAM"

    def __init__(
        self,
        message: str,
        *,
        code: str = "upstream_error",
        retryable: bool = False,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.code = code
        self.retryable = retryable


class StorageError(JournalError):
    """Durable store or filesystem failure."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code = "FN-STORAGE"
