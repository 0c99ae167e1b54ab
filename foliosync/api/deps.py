"""Shared API dependencies read from app state."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from foliosync.config import Settings
from foliosync.services.commit_service import CommitOrchestrator
from foliosync.services.session_service import AdminSession
from foliosync.services.staging_service import StagingState
from foliosync.store.credentials import CredentialStore


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_credentials(request: Request) -> CredentialStore:
    """Get the credential store from app state."""
    credentials: CredentialStore = request.app.state.credentials
    return credentials


def get_admin_session(request: Request) -> AdminSession:
    """Get the operator session from app state."""
    session: AdminSession = request.app.state.admin_session
    return session


def require_staging(
    session: Annotated[AdminSession, Depends(get_admin_session)],
) -> StagingState:
    """Require a loaded manifest. Raises 409 until one has been loaded."""
    if session.staging is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Manifest not loaded. Configure a GitHub token first.",
        )
    return session.staging


def require_orchestrator(
    session: Annotated[AdminSession, Depends(get_admin_session)],
) -> CommitOrchestrator:
    """Return the orchestrator bound to the loaded staging state."""
    if session.orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Manifest not loaded. Configure a GitHub token first.",
        )
    return session.orchestrator
