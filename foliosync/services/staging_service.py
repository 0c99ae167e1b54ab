"""Staging state: the local working copy of all collections and its diff.

Uploads, deletions, reorders and title edits only touch this state. The
commit orchestrator takes a ``StagedDiff`` from it, pushes that to the
store and hands the same diff back to ``reconcile`` once the remote side
has accepted it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from foliosync.exceptions import ValidationError
from foliosync.models.asset import (
    COLLECTION_ORDER,
    DEFAULT_COLLECTION_SPECS,
    AssetRecord,
    CollectionId,
    Collections,
    PendingContent,
    empty_collections,
    extract_title,
    split_extension,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from foliosync.models.asset import CollectionSpec

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp", "video/mp4", "video/webm"}
)


def _millis() -> int:
    return time.time_ns() // 1_000_000


def validate_filename(filename: str) -> str:
    """Reject names that cannot be a single file in a collection directory."""
    name = filename.strip()
    if not name or name in {".", ".."}:
        msg = f"Invalid filename: {filename!r}"
        raise ValidationError(msg)
    if "/" in name or "\\" in name or "\x00" in name:
        msg = f"Filename must not contain path separators: {filename!r}"
        raise ValidationError(msg)
    return name


def validate_content_type(content_type: str | None) -> None:
    """Reject media types outside the upload allow-list."""
    if content_type is None:
        return
    if content_type.split(";", 1)[0].strip().lower() not in ALLOWED_CONTENT_TYPES:
        msg = f"Invalid file type: {content_type}"
        raise ValidationError(msg)


@dataclass(frozen=True)
class PendingUpload:
    """A record whose pending content must be written to ``path``."""

    collection: CollectionId
    record: AssetRecord
    path: str
    content: bytes


@dataclass(frozen=True)
class StagedDiff:
    """What one synchronization attempt has to do."""

    uploads: tuple[PendingUpload, ...]
    deletions: tuple[str, ...]
    manifest: Collections
    dirty: bool

    @property
    def add_count(self) -> int:
        return len(self.uploads)

    @property
    def delete_count(self) -> int:
        return len(self.deletions)

    @property
    def is_empty(self) -> bool:
        return not self.dirty


@dataclass
class StagingState:
    """Working copy of the three collections plus the last committed snapshot."""

    specs: Mapping[CollectionId, CollectionSpec] = field(
        default_factory=lambda: dict(DEFAULT_COLLECTION_SPECS)
    )
    clock: Callable[[], int] = _millis
    collections: dict[CollectionId, list[AssetRecord]] = field(
        default_factory=lambda: {collection: [] for collection in COLLECTION_ORDER}
    )
    committed: Collections = field(default_factory=empty_collections)
    pending_deletions: set[str] = field(default_factory=set)
    dirty: bool = False

    @classmethod
    def from_manifest(
        cls,
        manifest: Collections,
        specs: Mapping[CollectionId, CollectionSpec] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> StagingState:
        """Start a session from the last committed manifest."""
        state = cls(specs=dict(specs or DEFAULT_COLLECTION_SPECS), clock=clock or _millis)
        for collection in COLLECTION_ORDER:
            entries = list(manifest.get(collection, []))
            state.collections[collection] = [AssetRecord.from_entry(e) for e in entries]
            state.committed[collection] = entries
        return state

    # ── Accessors ────────────────────────────────────

    def records(self, collection: CollectionId) -> list[AssetRecord]:
        """Return the live list of records of ``collection``."""
        return self.collections[CollectionId(collection)]

    def path_of(self, collection: CollectionId, src: str) -> str:
        return self.specs[collection].remote_path(src)

    def snapshot(self) -> Collections:
        """Return the current collections as persisted entries only."""
        return {
            collection: [record.to_entry() for record in self.collections[collection]]
            for collection in COLLECTION_ORDER
        }

    def pending_records(self) -> list[tuple[CollectionId, AssetRecord]]:
        return [
            (collection, record)
            for collection in COLLECTION_ORDER
            for record in self.collections[collection]
            if record.is_pending
        ]

    def _check_index(self, records: list[AssetRecord], index: int, name: str) -> None:
        if not 0 <= index < len(records):
            msg = f"{name} {index} out of range for collection of length {len(records)}"
            raise IndexError(msg)

    def _referenced_paths(self) -> set[str]:
        return {
            self.path_of(collection, record.src)
            for collection in COLLECTION_ORDER
            for record in self.collections[collection]
        }

    def _committed_paths(self) -> set[str]:
        return {
            self.path_of(collection, entry.src)
            for collection in COLLECTION_ORDER
            for entry in self.committed[collection]
        }

    def _queue_deletion(self, path: str) -> None:
        if path in self._referenced_paths():
            logger.info("Not deleting %s: still referenced by another record", path)
            return
        self.pending_deletions.add(path)
        logger.info("Marked for deletion: %s", path)

    # ── Mutations ────────────────────────────────────

    def unique_source(self, collection: CollectionId, src: str) -> str:
        """Return ``src`` or a timestamped variant not used in ``collection``."""
        existing = {record.src.lower() for record in self.records(collection)}
        if src.lower() not in existing:
            return src
        stem, ext = split_extension(src)
        stamp = self.clock()
        candidate = f"{stem}_{stamp}{ext}"
        while candidate.lower() in existing:
            stamp += 1
            candidate = f"{stem}_{stamp}{ext}"
        return candidate

    def insert(self, collection: CollectionId, record: AssetRecord) -> str | None:
        """Insert ``record`` at the head of ``collection``.

        Returns a notice when the source identifier had to be renamed.
        """
        collection = CollectionId(collection)
        notice: str | None = None
        unique = self.unique_source(collection, record.src)
        if unique != record.src:
            notice = f"File renamed to {unique} to avoid conflicts"
            logger.warning("%s (collection %s)", notice, collection)
            record.src = unique

        self.records(collection).insert(0, record)
        if record.is_pending:
            # The upload overwrites the path, so it must not also be deleted.
            self.pending_deletions.discard(self.path_of(collection, record.src))
        self.dirty = True
        return notice

    def stage_upload(
        self,
        collection: CollectionId,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        title: str | None = None,
    ) -> tuple[AssetRecord, str | None]:
        """Validate and stage a new file; return the record and any rename notice."""
        name = validate_filename(filename)
        validate_content_type(content_type)
        record = AssetRecord(
            src=name,
            title=title if title is not None else extract_title(name),
            pending=PendingContent(data, content_type),
        )
        notice = self.insert(collection, record)
        return record, notice

    def remove(self, collection: CollectionId, index: int) -> AssetRecord:
        """Remove and return the record at ``index``.

        A pending upload drops its payload. The remote path is queued for
        deletion when it holds a committed file that no remaining record
        points at, which covers a pending upload that replaced one.
        """
        records = self.records(collection)
        self._check_index(records, index, "index")
        record = records.pop(index)
        self.dirty = True

        path = self.path_of(collection, record.src)
        if record.is_pending:
            record.release_pending()
            logger.info("Discarded pending upload %s from %s", record.src, collection)
            if path not in self._committed_paths():
                return record

        self._queue_deletion(path)
        return record

    def move(self, collection: CollectionId, from_index: int, to_index: int) -> None:
        """Move a record, keeping the relative order of all others."""
        records = self.records(collection)
        self._check_index(records, from_index, "from_index")
        self._check_index(records, to_index, "to_index")
        record = records.pop(from_index)
        records.insert(to_index, record)
        self.dirty = True

    def retitle(self, collection: CollectionId, index: int, title: str) -> AssetRecord:
        """Change the display title of a record."""
        records = self.records(collection)
        self._check_index(records, index, "index")
        new_title = title.strip()
        if not new_title:
            msg = "Title must not be empty"
            raise ValidationError(msg)
        record = records[index]
        record.title = new_title
        self.dirty = True
        return record

    # ── Synchronization hooks ────────────────────────

    def diff(self) -> StagedDiff:
        """Capture what a synchronization attempt has to push right now."""
        uploads = tuple(
            PendingUpload(
                collection,
                record,
                self.path_of(collection, record.src),
                record.pending.data if record.pending is not None else b"",
            )
            for collection, record in self.pending_records()
        )
        return StagedDiff(
            uploads=uploads,
            deletions=tuple(sorted(self.pending_deletions)),
            manifest=self.snapshot(),
            dirty=self.dirty,
        )

    def reconcile(self, diff: StagedDiff) -> None:
        """Advance the committed snapshot to what ``diff`` wrote."""
        for upload in diff.uploads:
            upload.record.release_pending()
        self.pending_deletions.difference_update(diff.deletions)
        self.committed = {
            collection: list(diff.manifest[collection]) for collection in COLLECTION_ORDER
        }
        # Uploads removed while the attempt was in flight are now remote files.
        for upload in diff.uploads:
            if upload.path not in self._referenced_paths():
                self.pending_deletions.add(upload.path)
                logger.info("Marked for deletion: %s", upload.path)
        # Edits made while the attempt was in flight stay staged.
        self.dirty = bool(self.pending_deletions) or bool(self.pending_records()) or (
            self.snapshot() != self.committed
        )
