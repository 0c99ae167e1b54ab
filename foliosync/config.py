"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from foliosync.models.asset import (
    DEFAULT_COLLECTION_SPECS,
    CollectionId,
    CollectionSpec,
)
from foliosync.store.github import StoreConfig


class Settings(BaseSettings):
    """foliosync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    # Remote content store
    github_api_url: str = "https://api.github.com"
    github_owner: str = "shekar-visualizer"
    github_repo: str = "shekar-portfolio.com"
    github_branch: str = "main"
    github_token: str | None = None
    credential_file: Path = Path("./.foliosync-credentials.json")

    # Repository layout
    manifest_path: str = "assestsName.js"
    design_dir: str = DEFAULT_COLLECTION_SPECS[CollectionId.DESIGN].remote_dir
    motion_dir: str = DEFAULT_COLLECTION_SPECS[CollectionId.MOTION].remote_dir
    slides_dir: str = DEFAULT_COLLECTION_SPECS[CollectionId.SLIDES].remote_dir

    # Transport and synchronization knobs
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    store_max_retries: int = Field(default=2, ge=0, le=10)
    store_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    sync_attempt_timeout_seconds: float | None = Field(default=None, gt=0)

    # Uploads
    max_upload_size: int = Field(default=25 * 1024 * 1024, ge=1)

    def collection_specs(self) -> dict[CollectionId, CollectionSpec]:
        """Return the per-collection remote layout."""
        dirs = {
            CollectionId.DESIGN: self.design_dir,
            CollectionId.MOTION: self.motion_dir,
            CollectionId.SLIDES: self.slides_dir,
        }
        return {
            collection: CollectionSpec(
                id=collection,
                remote_dir=dirs[collection],
                manifest_name=DEFAULT_COLLECTION_SPECS[collection].manifest_name,
            )
            for collection in DEFAULT_COLLECTION_SPECS
        }

    def store_config(self, token: str | None) -> StoreConfig:
        """Build the immutable store configuration for one credential."""
        return StoreConfig(
            owner=self.github_owner,
            repo=self.github_repo,
            branch=self.github_branch,
            token=token,
            api_url=self.github_api_url,
            timeout=self.request_timeout_seconds,
            max_retries=self.store_max_retries,
            retry_backoff_seconds=self.store_retry_backoff_seconds,
        )
