"""Credential endpoints for the GitHub token."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response

from foliosync.api.deps import get_admin_session, get_credentials
from foliosync.exceptions import ContentStoreError, SyncInProgressError
from foliosync.schemas.sync import CredentialRequest, CredentialResponse
from foliosync.services.session_service import AdminSession
from foliosync.store.credentials import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/credential", tags=["credential"])


@router.get("", response_model=CredentialResponse)
async def get_credential(
    credentials: Annotated[CredentialStore, Depends(get_credentials)],
    session: Annotated[AdminSession, Depends(get_admin_session)],
) -> CredentialResponse:
    """Report whether a token is configured. The value is never returned."""
    return CredentialResponse(
        configured=credentials.get() is not None,
        loaded=session.loaded,
    )


@router.put("", response_model=CredentialResponse)
async def put_credential(
    body: CredentialRequest,
    credentials: Annotated[CredentialStore, Depends(get_credentials)],
    session: Annotated[AdminSession, Depends(get_admin_session)],
) -> CredentialResponse:
    """Save a token and load the committed manifest if nothing is loaded yet."""
    credentials.set(body.token)
    message = "GitHub token saved"
    if not session.loaded:
        try:
            await session.load()
        except (ContentStoreError, SyncInProgressError) as exc:
            logger.error("Initial manifest load failed: %s", exc)
            message = f"GitHub token saved, but the manifest could not be loaded: {exc}"
        else:
            message = "GitHub token saved and manifest loaded"
    return CredentialResponse(
        configured=credentials.get() is not None,
        loaded=session.loaded,
        message=message,
    )


@router.delete("", status_code=204)
async def delete_credential(
    credentials: Annotated[CredentialStore, Depends(get_credentials)],
) -> Response:
    """Forget the token; the next commit will ask for a new one."""
    credentials.clear()
    return Response(status_code=204)
