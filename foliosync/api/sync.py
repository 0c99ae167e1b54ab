"""Sync API endpoints: preview and commit the staged changes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from foliosync.api.deps import require_orchestrator, require_staging
from foliosync.exceptions import (
    ConflictError,
    SyncInProgressError,
    UnauthorizedError,
    ValidationError,
)
from foliosync.schemas.sync import SyncCommitRequest, SyncCommitResponse, SyncPreviewResponse
from foliosync.services.commit_service import CommitOrchestrator, SyncStatus
from foliosync.services.manifest_service import compose_commit_message

if TYPE_CHECKING:
    from foliosync.services.commit_service import SyncPreview, SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


def _status_code(result: SyncResult) -> int:
    """Map a synchronization outcome to an HTTP status code."""
    if result.status is SyncStatus.CREDENTIAL_REQUIRED:
        return 401
    if result.status is not SyncStatus.FAILED:
        return 200
    error = result.error
    if isinstance(error, UnauthorizedError):
        return 401
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, TimeoutError):
        return 504
    return 502


@router.get(
    "/preview",
    response_model=SyncPreviewResponse,
    dependencies=[Depends(require_staging)],
)
async def sync_preview(
    orchestrator: Annotated[CommitOrchestrator, Depends(require_orchestrator)],
) -> SyncPreviewResponse:
    """Show what the next commit would push to the repository."""
    preview = orchestrator.preview()
    return SyncPreviewResponse(
        dirty=orchestrator.staging.dirty,
        state=str(orchestrator.state),
        add_count=preview.add_count,
        delete_count=preview.delete_count,
        uploads=list(preview.uploads),
        deletions=list(preview.deletions),
        manifest_path=preview.manifest_path,
        manifest_text=preview.manifest_text,
        default_message=preview.default_message,
    )


@router.post(
    "/commit",
    response_model=SyncCommitResponse,
    dependencies=[Depends(require_staging)],
)
async def sync_commit(
    body: SyncCommitRequest,
    orchestrator: Annotated[CommitOrchestrator, Depends(require_orchestrator)],
) -> JSONResponse:
    """Push staged changes to the repository.

    Without a ``title`` the default message for the diff is used. A blank
    title is rejected.
    """

    async def confirm(preview: SyncPreview) -> str:
        if body.title is None:
            return compose_commit_message(preview.default_message, body.description)
        if not body.title.strip():
            return ""
        return compose_commit_message(body.title, body.description)

    try:
        result = await orchestrator.synchronize(confirm)
    except SyncInProgressError as exc:
        logger.warning("Rejected commit: %s", exc)
        response = SyncCommitResponse(status=str(SyncStatus.FAILED), message=str(exc))
        return JSONResponse(status_code=409, content=response.model_dump())

    response = SyncCommitResponse(
        status=str(result.status),
        message=result.message,
        uploaded=result.uploaded,
        deleted=result.deleted,
        warnings=result.warnings,
        manifest_version=result.manifest_version,
    )
    return JSONResponse(status_code=_status_code(result), content=response.model_dump())
