"""Application-level exception types.

Convention:
- ``ContentStoreError`` and its subclasses: failures reported by (or on the
  way to) the remote content store. ``NotFoundError`` on delete is absorbed by
  the store client; ``ConflictError`` earns exactly one re-read-and-retry;
  ``UnauthorizedError`` clears the saved credential; ``TransientError`` has
  already been retried at the transport boundary when it reaches a caller.
- ``ValidationError`` / ``ParseError``: subclasses of ``ValueError`` whose
  message is safe to show to the operator. The global ``ValueError`` handler
  returns ``str(exc)`` as the 422 detail.
- ``IndexError`` (builtin): out-of-range local collection operation.
"""

from __future__ import annotations


class ContentStoreError(Exception):
    """Raised when the remote content store rejects or fails an operation."""

    def __init__(self, message: str, *, path: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class NotFoundError(ContentStoreError):
    """The addressed path does not exist in the store."""


class ConflictError(ContentStoreError):
    """The expected version token no longer matches the stored object."""


class UnauthorizedError(ContentStoreError):
    """The credential is missing or was rejected by the remote."""


class TransientError(ContentStoreError):
    """Network failure or 5xx response that outlived the retry budget."""


class ValidationError(ValueError):
    """Bad filename, bad token format, empty commit message or similar input."""


class ParseError(ValueError):
    """The manifest text could not be decoded."""


class SyncInProgressError(RuntimeError):
    """A synchronization attempt is already in flight."""
