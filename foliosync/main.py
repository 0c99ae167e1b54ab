"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from foliosync.api.assets import manifest_router
from foliosync.api.assets import router as assets_router
from foliosync.api.credential import router as credential_router
from foliosync.api.health import router as health_router
from foliosync.api.sync import router as sync_router
from foliosync.config import Settings
from foliosync.exceptions import (
    ConflictError,
    ContentStoreError,
    NotFoundError,
    SyncInProgressError,
    TransientError,
    UnauthorizedError,
)
from foliosync.services.session_service import AdminSession, github_store_factory
from foliosync.store.credentials import CredentialStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from foliosync.store.base import ContentStore

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.INFO if debug else logging.WARNING)


def _store_error_status(exc: ContentStoreError) -> int:
    if isinstance(exc, UnauthorizedError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, TransientError):
        return 503
    return 502


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: load the committed manifest when a token is known."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    logger.info(
        "Starting foliosync for %s/%s@%s (debug=%s)",
        settings.github_owner,
        settings.github_repo,
        settings.github_branch,
        settings.debug,
    )

    session: AdminSession = app.state.admin_session
    if app.state.credentials.get() is not None:
        try:
            await session.load()
        except ContentStoreError as exc:
            logger.error("Initial manifest load failed: %s", exc)
    else:
        logger.warning("No GitHub token configured; set one via PUT /api/credential")

    yield

    logger.info("Shutting down foliosync")


def create_app(
    settings: Settings | None = None,
    store_factory: Callable[[str], ContentStore] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()
    if store_factory is None:
        store_factory = github_store_factory(settings)

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="foliosync",
        description="Stage and commit portfolio assets to a GitHub repository",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    credentials = CredentialStore(settings.credential_file, seed=settings.github_token)
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.admin_session = AdminSession(settings, store_factory, credentials)

    app.include_router(health_router)
    app.include_router(assets_router)
    app.include_router(manifest_router)
    app.include_router(credential_router)
    app.include_router(sync_router)

    # Global exception handlers

    @app.exception_handler(ContentStoreError)
    async def content_store_error_handler(
        request: Request, exc: ContentStoreError
    ) -> JSONResponse:
        logger.error(
            "ContentStoreError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=_store_error_status(exc),
            content={"detail": str(exc) or "Content store error"},
        )

    @app.exception_handler(SyncInProgressError)
    async def sync_in_progress_handler(request: Request, exc: SyncInProgressError) -> JSONResponse:
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc)},
        )

    @app.exception_handler(IndexError)
    async def index_error_handler(request: Request, exc: IndexError) -> JSONResponse:
        logger.warning("IndexError in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=404,
            content={"detail": str(exc) or "Index out of range"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error("ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    @app.exception_handler(OSError)
    async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
        if isinstance(exc, (ConnectionError, TimeoutError)):
            raise exc
        logger.error("OSError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "File system error"},
        )

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "foliosync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
