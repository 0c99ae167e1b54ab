"""Shared test fixtures for foliosync."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from foliosync.config import Settings
from foliosync.main import create_app
from foliosync.services.staging_service import StagingState
from foliosync.store.credentials import CredentialStore
from tests.test_services._store_helpers import InMemoryContentStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

TEST_TOKEN = "ghp_testtoken0123456789"


@asynccontextmanager
async def create_test_client(
    settings: Settings,
    store: InMemoryContentStore,
    *,
    load: bool = True,
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client backed by an in-memory content store.

    Performs the manifest load of the application lifespan manually because
    ASGITransport does not trigger it.
    """
    app = create_app(settings, store_factory=store.factory)
    if load and app.state.credentials.get() is not None:
        await app.state.admin_session.load()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        ac.app = app  # type: ignore[attr-defined]
        yield ac


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment with a temporary credential file."""
    return Settings(
        _env_file=None,
        debug=True,
        github_token=TEST_TOKEN,
        credential_file=tmp_path / "credentials.json",
        store_retry_backoff_seconds=0,
    )


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def credentials(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "credentials.json", seed=TEST_TOKEN)


@pytest.fixture
def staging() -> StagingState:
    """An empty staging state with a deterministic clock."""
    return StagingState.from_manifest({}, clock=lambda: 1700000000000)
