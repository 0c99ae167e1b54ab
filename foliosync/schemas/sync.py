"""Synchronization and credential schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CredentialRequest(BaseModel):
    """A GitHub token supplied by the operator."""

    token: str = Field(min_length=1, max_length=500)


class CredentialResponse(BaseModel):
    """Whether a credential is available; the value itself is never returned."""

    configured: bool
    loaded: bool = False
    message: str = ""


class SyncPreviewResponse(BaseModel):
    """Diff shown before confirming a commit."""

    dirty: bool
    state: str
    add_count: int = Field(ge=0)
    delete_count: int = Field(ge=0)
    uploads: list[str]
    deletions: list[str]
    manifest_path: str
    manifest_text: str
    default_message: str


class SyncCommitRequest(BaseModel):
    """Confirmation of a commit, with an optional edited message."""

    title: str | None = Field(default=None, max_length=200)
    description: str = Field(default="", max_length=5000)


class SyncCommitResponse(BaseModel):
    """Outcome of a synchronization attempt."""

    status: str
    message: str = ""
    uploaded: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    manifest_version: str | None = None
