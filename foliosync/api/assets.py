"""Asset API endpoints for the staged collections."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import PlainTextResponse

from foliosync.api.deps import get_admin_session, get_settings, require_staging
from foliosync.config import Settings
from foliosync.models.asset import CollectionId
from foliosync.schemas.assets import (
    AssetItem,
    AssetsResponse,
    CollectionResponse,
    MoveRequest,
    RemoveResponse,
    RetitleRequest,
    UploadResponse,
)
from foliosync.services.manifest_service import encode
from foliosync.services.session_service import AdminSession
from foliosync.services.staging_service import (
    StagingState,
    validate_content_type,
    validate_filename,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assets", tags=["assets"])
manifest_router = APIRouter(prefix="/api/manifest", tags=["manifest"])


@router.get("", response_model=AssetsResponse)
async def list_assets(
    staging: Annotated[StagingState, Depends(require_staging)],
) -> AssetsResponse:
    """List all three collections with their staged changes."""
    return AssetsResponse.from_staging(staging)


@router.post("/reload", response_model=AssetsResponse)
async def reload_assets(
    session: Annotated[AdminSession, Depends(get_admin_session)],
    discard: Annotated[bool, Query()] = False,
) -> AssetsResponse:
    """Re-read the committed manifest from the repository.

    Refused while changes are staged unless ``discard`` is set.
    """
    if session.staging is not None and session.staging.dirty and not discard:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Unsaved changes would be lost. Pass discard=true to reload anyway.",
        )
    staging = await session.load()
    return AssetsResponse.from_staging(staging)


@router.get("/{collection}", response_model=CollectionResponse)
async def get_collection(
    collection: CollectionId,
    staging: Annotated[StagingState, Depends(require_staging)],
) -> CollectionResponse:
    """List the records of one collection in display order."""
    return CollectionResponse.from_staging(staging, collection)


@router.post("/{collection}", response_model=UploadResponse, status_code=201)
async def upload_assets(
    collection: CollectionId,
    staging: Annotated[StagingState, Depends(require_staging)],
    settings: Annotated[Settings, Depends(get_settings)],
    files: Annotated[list[UploadFile], File()],
) -> UploadResponse:
    """Stage uploaded files at the head of a collection.

    Every file is checked before any is staged, so a rejected file leaves the
    collection untouched. The batch keeps its upload order.
    """
    max_size = settings.max_upload_size
    accepted: list[tuple[str, bytes, str | None]] = []
    for upload in files:
        if upload.filename is None:
            raise HTTPException(status_code=400, detail="Uploaded file has no filename")
        name = validate_filename(upload.filename)
        validate_content_type(upload.content_type)
        data = await upload.read(max_size + 1)
        if len(data) > max_size:
            raise HTTPException(
                status_code=413,
                detail=f"File too large (max {max_size} bytes): {name}",
            )
        accepted.append((name, data, upload.content_type))

    notices: list[str] = []
    for name, data, content_type in reversed(accepted):
        _, notice = staging.stage_upload(collection, name, data, content_type)
        if notice is not None:
            notices.append(notice)
    notices.reverse()

    logger.info("Staged %d file(s) in %s", len(accepted), collection)
    records = staging.records(collection)[: len(accepted)]
    return UploadResponse(
        collection=collection,
        items=[AssetItem.from_record(i, record) for i, record in enumerate(records)],
        notices=notices,
    )


@router.delete("/{collection}/{index}", response_model=RemoveResponse)
async def remove_asset(
    collection: CollectionId,
    index: int,
    staging: Annotated[StagingState, Depends(require_staging)],
) -> RemoveResponse:
    """Remove a record; committed files are queued for deletion on the next commit."""
    record = staging.remove(collection, index)
    return RemoveResponse(
        removed=AssetItem.from_record(index, record),
        pending_deletions=sorted(staging.pending_deletions),
    )


@router.post("/{collection}/move", response_model=CollectionResponse)
async def move_asset(
    collection: CollectionId,
    body: MoveRequest,
    staging: Annotated[StagingState, Depends(require_staging)],
) -> CollectionResponse:
    """Move a record to a new position within its collection."""
    staging.move(collection, body.from_index, body.to_index)
    return CollectionResponse.from_staging(staging, collection)


@router.patch("/{collection}/{index}", response_model=AssetItem)
async def retitle_asset(
    collection: CollectionId,
    index: int,
    body: RetitleRequest,
    staging: Annotated[StagingState, Depends(require_staging)],
) -> AssetItem:
    """Change the display title of a record."""
    record = staging.retitle(collection, index, body.title)
    return AssetItem.from_record(index, record)


@manifest_router.get("/export", response_class=PlainTextResponse)
async def export_manifest(
    staging: Annotated[StagingState, Depends(require_staging)],
) -> PlainTextResponse:
    """Return the manifest text the current working copy would commit."""
    return PlainTextResponse(
        encode(staging.snapshot(), staging.specs),
        media_type="text/javascript; charset=utf-8",
    )
