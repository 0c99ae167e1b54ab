"""Base protocol and data classes for the remote content store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Self, runtime_checkable


@dataclass(frozen=True)
class StoredObject:
    """Current bytes of a stored path and the token identifying that revision."""

    content: bytes
    version: str


@runtime_checkable
class ContentStore(Protocol):
    """Key-addressed content store with optimistic concurrency."""

    async def __aenter__(self) -> Self: ...

    async def __aexit__(self, *args: object) -> None: ...

    async def read(self, path: str) -> StoredObject:
        """Return the object at ``path``. Raises NotFoundError if absent."""
        ...

    async def version(self, path: str) -> str | None:
        """Return the current version token of ``path``, or None if absent."""
        ...

    async def write(
        self,
        path: str,
        content: bytes,
        expected_version: str | None,
        message: str,
    ) -> str:
        """Create (no expected version) or update an object; return its new version.

        Raises ConflictError when ``expected_version`` is stale.
        """
        ...

    async def delete(self, path: str, version: str, message: str) -> bool:
        """Delete an object. Returns False when it was already gone."""
        ...
