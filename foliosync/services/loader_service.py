"""Load the last committed manifest from the store into a staging session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from foliosync.exceptions import NotFoundError
from foliosync.models.asset import empty_collections
from foliosync.services.manifest_service import load_manifest_text
from foliosync.services.staging_service import StagingState

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from foliosync.models.asset import CollectionId, Collections, CollectionSpec
    from foliosync.store.base import ContentStore

logger = logging.getLogger(__name__)


async def load_committed_manifest(
    store: ContentStore,
    manifest_path: str,
    specs: Mapping[CollectionId, CollectionSpec] | None = None,
) -> Collections:
    """Read and decode the remote manifest.

    A missing manifest or one that cannot be decoded yields empty collections.
    Store errors other than NotFoundError propagate.
    """
    try:
        stored = await store.read(manifest_path)
    except NotFoundError:
        logger.info("No manifest at %s yet, starting with empty collections", manifest_path)
        return empty_collections()

    try:
        text = stored.content.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Manifest %s is not valid UTF-8: %s", manifest_path, exc)
        return empty_collections()
    return load_manifest_text(text, specs)


async def load_staging(
    store_factory: Callable[[str], ContentStore],
    token: str,
    manifest_path: str,
    specs: Mapping[CollectionId, CollectionSpec] | None = None,
) -> StagingState:
    """Open a fresh staging session on top of the committed manifest."""
    async with store_factory(token) as store:
        manifest = await load_committed_manifest(store, manifest_path, specs)
    return StagingState.from_manifest(manifest, specs)
