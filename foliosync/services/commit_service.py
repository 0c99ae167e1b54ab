"""Commit orchestrator: push staged changes to the content store.

One synchronization attempt runs through these states::

    idle -> awaiting_credential -> confirming -> deleting -> uploading
         -> rewriting_manifest -> reconciling -> idle

and ends in ``failed`` when a fatal error interrupts it. The store has no
multi-file transaction, so the order is best effort: deletions first (their
failures only warn), then all uploads concurrently (any failure aborts), then
the manifest. Uploads already written are not rolled back when the manifest
write fails; running the attempt again converges because every step is an
idempotent overwrite or delete.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

from foliosync.exceptions import (
    ConflictError,
    ContentStoreError,
    SyncInProgressError,
    UnauthorizedError,
    ValidationError,
)
from foliosync.services.manifest_service import default_commit_message, encode

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from foliosync.services.staging_service import PendingUpload, StagedDiff, StagingState
    from foliosync.store.base import ContentStore
    from foliosync.store.credentials import CredentialStore

    ConfirmCallback = Callable[["SyncPreview"], Awaitable[str | None]]
    CredentialCallback = Callable[[], Awaitable[str | None]]
    StoreFactory = Callable[[str], ContentStore]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncState(StrEnum):
    """Where the orchestrator is within a synchronization attempt."""

    IDLE = "idle"
    AWAITING_CREDENTIAL = "awaiting_credential"
    CONFIRMING = "confirming"
    DELETING = "deleting"
    UPLOADING = "uploading"
    REWRITING_MANIFEST = "rewriting_manifest"
    RECONCILING = "reconciling"
    FAILED = "failed"


class SyncStatus(StrEnum):
    """How a synchronization attempt ended."""

    SUCCESS = "success"
    NOOP = "noop"
    CANCELLED = "cancelled"
    CREDENTIAL_REQUIRED = "credential_required"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncPreview:
    """What an attempt is about to do, shown to the operator for confirmation."""

    uploads: tuple[str, ...]
    deletions: tuple[str, ...]
    manifest_path: str
    manifest_text: str
    default_message: str

    @property
    def add_count(self) -> int:
        return len(self.uploads)

    @property
    def delete_count(self) -> int:
        return len(self.deletions)


@dataclass(frozen=True)
class UploadOutcome:
    """Result of writing one pending upload."""

    path: str
    version: str | None = None
    created: bool = False
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of deleting one path. ``deleted`` is False when it was already gone."""

    path: str
    deleted: bool = False
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class SyncResult:
    """Outcome of one synchronization attempt."""

    status: SyncStatus
    message: str = ""
    uploaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    manifest_version: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.SUCCESS, SyncStatus.NOOP)


@dataclass
class _AttemptLog:
    deleted: list[str] = field(default_factory=list)
    uploaded: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


async def with_conflict_retry(
    store: ContentStore,
    path: str,
    version: str | None,
    operation: Callable[[str | None], Awaitable[T]],
) -> T:
    """Run a conditional operation; on a stale token re-read once and retry."""
    try:
        return await operation(version)
    except ConflictError:
        logger.warning("Version conflict on %s, re-reading and retrying once", path)
        fresh = await store.version(path)
        return await operation(fresh)


class CommitOrchestrator:
    """Runs synchronization attempts for one staging session.

    At most one attempt is in flight at a time. Cancelling is only possible
    while waiting for a credential or for confirmation; once the first remote
    write has been issued the attempt runs to success or failure.
    """

    def __init__(
        self,
        staging: StagingState,
        store_factory: StoreFactory,
        credentials: CredentialStore,
        *,
        manifest_path: str,
        attempt_timeout: float | None = None,
    ) -> None:
        self.staging = staging
        self.store_factory = store_factory
        self.credentials = credentials
        self.manifest_path = manifest_path
        self.attempt_timeout = attempt_timeout
        self.state = SyncState.IDLE
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _transition(self, state: SyncState) -> None:
        logger.info("Sync state %s -> %s", self.state, state)
        self.state = state

    def preview(self, diff: StagedDiff | None = None) -> SyncPreview:
        """Describe the current diff the way the confirmation step presents it."""
        if diff is None:
            diff = self.staging.diff()
        return SyncPreview(
            uploads=tuple(upload.path for upload in diff.uploads),
            deletions=diff.deletions,
            manifest_path=self.manifest_path,
            manifest_text=encode(diff.manifest, self.staging.specs),
            default_message=default_commit_message(diff.add_count, diff.delete_count),
        )

    async def synchronize(
        self,
        confirm: ConfirmCallback,
        request_credential: CredentialCallback | None = None,
    ) -> SyncResult:
        """Run one synchronization attempt.

        ``confirm`` receives the preview and returns the commit message, or
        None to cancel. ``request_credential`` is awaited when no token is
        known; returning None cancels.
        """
        if self._in_flight:
            msg = "A synchronization is already in progress"
            raise SyncInProgressError(msg)
        self._in_flight = True
        try:
            return await self._attempt(confirm, request_credential)
        except Exception:
            self._transition(SyncState.FAILED)
            logger.exception("Synchronization attempt crashed")
            raise
        finally:
            self._in_flight = False

    async def _attempt(
        self,
        confirm: ConfirmCallback,
        request_credential: CredentialCallback | None,
    ) -> SyncResult:
        if not self.staging.dirty:
            logger.info("No changes to save")
            self._transition(SyncState.IDLE)
            return SyncResult(SyncStatus.NOOP, message="No changes to save")

        token = self.credentials.get()
        if token is None:
            self._transition(SyncState.AWAITING_CREDENTIAL)
            supplied = await request_credential() if request_credential is not None else None
            if supplied is None:
                self._transition(SyncState.IDLE)
                return SyncResult(SyncStatus.CREDENTIAL_REQUIRED, message="GitHub token required")
            try:
                token = self.credentials.set(supplied)
            except ValidationError as exc:
                return self._fail(exc, _AttemptLog())

        self._transition(SyncState.CONFIRMING)
        diff = self.staging.diff()
        message = await confirm(self.preview(diff))
        if message is None:
            self._transition(SyncState.IDLE)
            return SyncResult(SyncStatus.CANCELLED, message="Synchronization cancelled")
        message = message.strip()
        if not message:
            return self._fail(ValidationError("Please enter a commit message"), _AttemptLog())

        log = _AttemptLog()
        try:
            async with asyncio.timeout(self.attempt_timeout):
                async with self.store_factory(token) as store:
                    await self._delete_all(store, diff, log)
                    await self._upload_all(store, diff, log)
                    manifest_version = await self._rewrite_manifest(store, diff, message)
        except (ContentStoreError, TimeoutError) as exc:
            if isinstance(exc, UnauthorizedError):
                self.credentials.clear()
            if isinstance(exc, TimeoutError):
                exc = TimeoutError(f"Synchronization exceeded {self.attempt_timeout}s")
            return self._fail(exc, log)

        self._transition(SyncState.RECONCILING)
        self.staging.reconcile(diff)
        self._transition(SyncState.IDLE)
        summary = f"Successfully committed! {len(log.uploaded)} files uploaded."
        logger.info("%s %d files deleted.", summary, len(log.deleted))
        return SyncResult(
            SyncStatus.SUCCESS,
            message=summary,
            uploaded=log.uploaded,
            deleted=log.deleted,
            warnings=log.warnings,
            manifest_version=manifest_version,
        )

    def _fail(self, exc: Exception, log: _AttemptLog) -> SyncResult:
        self._transition(SyncState.FAILED)
        logger.error("Synchronization failed: %s", exc)
        return SyncResult(
            SyncStatus.FAILED,
            message=str(exc),
            uploaded=log.uploaded,
            deleted=log.deleted,
            warnings=log.warnings,
            error=exc,
        )

    # ── Step 3: deletions ────────────────────────────

    async def _delete_one(self, store: ContentStore, path: str) -> DeleteOutcome:
        async def delete(version: str | None) -> bool:
            if version is None:
                return False
            return await store.delete(path, version, f"Delete {path}")

        try:
            version = await store.version(path)
            deleted = await with_conflict_retry(store, path, version, delete)
        except UnauthorizedError:
            raise
        except ContentStoreError as exc:
            logger.error("Failed to delete file %s: %s", path, exc)
            return DeleteOutcome(path, error=exc)
        if not deleted:
            logger.info("File not found in repository (already deleted?): %s", path)
        return DeleteOutcome(path, deleted=deleted)

    async def _delete_all(self, store: ContentStore, diff: StagedDiff, log: _AttemptLog) -> None:
        self._transition(SyncState.DELETING)
        for path in diff.deletions:
            outcome = await self._delete_one(store, path)
            if not outcome.success:
                log.warnings.append(f"Could not delete {path}: {outcome.error}")
            elif outcome.deleted:
                log.deleted.append(path)
        if log.warnings:
            logger.warning("Some files could not be deleted; continuing with commit")

    # ── Step 4: uploads ──────────────────────────────

    async def _upload_one(self, store: ContentStore, upload: PendingUpload) -> UploadOutcome:
        src = upload.record.src

        async def write(version: str | None) -> str:
            message = f"Update {src}" if version else f"Add {src}"
            return await store.write(upload.path, upload.content, version, message)

        try:
            version = await store.version(upload.path)
            new_version = await with_conflict_retry(store, upload.path, version, write)
        except ContentStoreError as exc:
            logger.error("Failed to upload %s: %s", upload.path, exc)
            return UploadOutcome(upload.path, error=exc)
        logger.info("Uploaded to repository: %s", upload.path)
        return UploadOutcome(upload.path, version=new_version, created=version is None)

    async def _upload_all(self, store: ContentStore, diff: StagedDiff, log: _AttemptLog) -> None:
        self._transition(SyncState.UPLOADING)
        results = await asyncio.gather(
            *(self._upload_one(store, upload) for upload in diff.uploads),
            return_exceptions=True,
        )
        outcomes: list[UploadOutcome] = []
        for upload, result in zip(diff.uploads, results, strict=True):
            if isinstance(result, UploadOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                logger.error("Upload of %s crashed", upload.path, exc_info=result)
                outcomes.append(UploadOutcome(upload.path, error=result))
            else:
                raise result

        failures = [outcome for outcome in outcomes if not outcome.success]
        if not failures:
            log.uploaded.extend(outcome.path for outcome in outcomes)
            return
        for failure in failures:
            if isinstance(failure.error, UnauthorizedError):
                raise failure.error
        detail = ", ".join(f"{failure.path} ({failure.error})" for failure in failures)
        msg = f"Failed to upload: {detail}"
        raise ContentStoreError(msg)

    # ── Step 5: manifest ─────────────────────────────

    async def _rewrite_manifest(self, store: ContentStore, diff: StagedDiff, message: str) -> str:
        self._transition(SyncState.REWRITING_MANIFEST)
        content = encode(diff.manifest, self.staging.specs).encode("utf-8")
        path = self.manifest_path

        async def write(version: str | None) -> str:
            return await store.write(path, content, version, message)

        version = await store.version(path)
        new_version = await with_conflict_retry(store, path, version, write)
        logger.info("Updated %s in repository", path)
        return new_version
