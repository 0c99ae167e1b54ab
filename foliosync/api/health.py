"""Health check endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from foliosync.api.deps import get_admin_session
from foliosync.services.session_service import AdminSession

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    manifest_loaded: bool
    sync_state: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AdminSession, Depends(get_admin_session)],
) -> HealthResponse:
    """Health check endpoint for monitoring."""
    return HealthResponse(
        status="ok" if session.loaded else "degraded",
        version="0.1.0",
        manifest_loaded=session.loaded,
        sync_state=str(session.sync_state),
    )
