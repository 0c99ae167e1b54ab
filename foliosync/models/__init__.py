"""Domain models for foliosync."""

from foliosync.models.asset import (
    COLLECTION_ORDER,
    DEFAULT_COLLECTION_SPECS,
    AssetRecord,
    CollectionId,
    Collections,
    CollectionSpec,
    ManifestEntry,
    PendingContent,
    empty_collections,
    extract_title,
    remote_path,
)

__all__ = [
    "COLLECTION_ORDER",
    "DEFAULT_COLLECTION_SPECS",
    "AssetRecord",
    "CollectionId",
    "CollectionSpec",
    "Collections",
    "ManifestEntry",
    "PendingContent",
    "empty_collections",
    "extract_title",
    "remote_path",
]
