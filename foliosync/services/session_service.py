"""The single operator session: loaded staging state plus its orchestrator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from foliosync.exceptions import SyncInProgressError, UnauthorizedError
from foliosync.services.commit_service import CommitOrchestrator, SyncState
from foliosync.services.loader_service import load_staging
from foliosync.store.github import GitHubContentStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from foliosync.config import Settings
    from foliosync.services.staging_service import StagingState
    from foliosync.store.base import ContentStore
    from foliosync.store.credentials import CredentialStore

logger = logging.getLogger(__name__)


def github_store_factory(settings: Settings) -> Callable[[str], ContentStore]:
    """Return a factory opening a GitHub store for a given credential."""

    def factory(token: str) -> ContentStore:
        return GitHubContentStore(settings.store_config(token))

    return factory


class AdminSession:
    """Owns the staging state once the committed manifest has been loaded.

    Until then ``staging`` is None, so an empty working copy can never be
    committed over the remote manifest.
    """

    def __init__(
        self,
        settings: Settings,
        store_factory: Callable[[str], ContentStore],
        credentials: CredentialStore,
    ) -> None:
        self.settings = settings
        self.store_factory = store_factory
        self.credentials = credentials
        self.staging: StagingState | None = None
        self.orchestrator: CommitOrchestrator | None = None

    @property
    def loaded(self) -> bool:
        return self.staging is not None

    @property
    def sync_state(self) -> SyncState:
        if self.orchestrator is None:
            return SyncState.IDLE
        return self.orchestrator.state

    async def load(self) -> StagingState:
        """(Re)load the committed manifest, replacing any staged changes."""
        if self.orchestrator is not None and self.orchestrator.in_flight:
            msg = "Cannot reload while a synchronization is in progress"
            raise SyncInProgressError(msg)
        token = self.credentials.get()
        if token is None:
            msg = "No GitHub credential configured"
            raise UnauthorizedError(msg)

        try:
            staging = await load_staging(
                self.store_factory,
                token,
                self.settings.manifest_path,
                self.settings.collection_specs(),
            )
        except UnauthorizedError:
            self.credentials.clear()
            raise

        self.staging = staging
        self.orchestrator = CommitOrchestrator(
            staging,
            self.store_factory,
            self.credentials,
            manifest_path=self.settings.manifest_path,
            attempt_timeout=self.settings.sync_attempt_timeout_seconds,
        )
        logger.info("Loaded committed manifest from %s", self.settings.manifest_path)
        return staging
