"""Asset-related schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from foliosync.models.asset import COLLECTION_ORDER, CollectionId

if TYPE_CHECKING:
    from foliosync.models.asset import AssetRecord
    from foliosync.services.staging_service import StagingState


class AssetItem(BaseModel):
    """One record of a collection, in display order."""

    index: int = Field(ge=0)
    src: str
    title: str
    pending: bool = False
    size: int | None = None

    @classmethod
    def from_record(cls, index: int, record: AssetRecord) -> AssetItem:
        return cls(
            index=index,
            src=record.src,
            title=record.title,
            pending=record.is_pending,
            size=record.pending.size if record.pending is not None else None,
        )


class CollectionResponse(BaseModel):
    """Records of a single collection."""

    collection: CollectionId
    items: list[AssetItem]

    @classmethod
    def from_staging(cls, staging: StagingState, collection: CollectionId) -> CollectionResponse:
        records = staging.records(collection)
        return cls(
            collection=collection,
            items=[AssetItem.from_record(i, record) for i, record in enumerate(records)],
        )


class AssetsResponse(BaseModel):
    """Full working copy with its staged changes."""

    collections: list[CollectionResponse]
    pending_deletions: list[str] = Field(default_factory=list)
    dirty: bool = False

    @classmethod
    def from_staging(cls, staging: StagingState) -> AssetsResponse:
        return cls(
            collections=[
                CollectionResponse.from_staging(staging, collection)
                for collection in COLLECTION_ORDER
            ],
            pending_deletions=sorted(staging.pending_deletions),
            dirty=staging.dirty,
        )


class UploadResponse(BaseModel):
    """Files staged by an upload request."""

    collection: CollectionId
    items: list[AssetItem]
    notices: list[str] = Field(default_factory=list)


class RemoveResponse(BaseModel):
    """A removed record and the remote paths now queued for deletion."""

    removed: AssetItem
    pending_deletions: list[str] = Field(default_factory=list)


class MoveRequest(BaseModel):
    """Request to reorder a record within its collection."""

    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


class RetitleRequest(BaseModel):
    """Request to change a record's display title."""

    title: str = Field(min_length=1, max_length=500)
