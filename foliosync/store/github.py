"""Content store backed by the GitHub repository contents REST API."""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from foliosync.exceptions import (
    ConflictError,
    ContentStoreError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
)
from foliosync.store.base import StoredObject

if TYPE_CHECKING:
    from typing import Self

logger = logging.getLogger(__name__)

_GITHUB_MEDIA_TYPE = "application/vnd.github+json"
_GITHUB_RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
_GITHUB_API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class StoreConfig:
    """Immutable connection settings for one repository branch and credential."""

    owner: str
    repo: str
    branch: str
    token: str | None
    api_url: str = "https://api.github.com"
    timeout: float = 30.0
    max_retries: int = 2
    retry_backoff_seconds: float = 0.5

    def __repr__(self) -> str:
        token = "set" if self.token else "unset"
        return (
            f"StoreConfig(owner={self.owner!r}, repo={self.repo!r}, "
            f"branch={self.branch!r}, token={token})"
        )


def _is_transient(resp: httpx.Response) -> bool:
    """Return True for responses worth retrying, including exhausted rate limits."""
    if resp.status_code >= 500 or resp.status_code == 429:
        return True
    return resp.status_code == 403 and resp.headers.get("x-ratelimit-remaining") == "0"


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""


def _raise_for_status(resp: httpx.Response, path: str) -> None:
    """Translate a GitHub error response into the store's exception taxonomy."""
    if resp.is_success:
        return
    code = resp.status_code
    detail = _error_message(resp)
    msg = f"GitHub API error {code} for {path}: {detail or resp.reason_phrase}"
    if code in (401, 403):
        raise UnauthorizedError(msg, path=path, status_code=code)
    if code == 404:
        raise NotFoundError(msg, path=path, status_code=code)
    # 409: sha does not match; 422: sha missing for an existing file.
    if code == 409 or (code == 422 and "sha" in detail.lower()):
        raise ConflictError(msg, path=path, status_code=code)
    raise ContentStoreError(msg, path=path, status_code=code)


class GitHubContentStore:
    """Repository file access through the contents API, one commit per write."""

    def __init__(
        self,
        config: StoreConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        headers = {
            "Accept": _GITHUB_MEDIA_TYPE,
            "X-GitHub-Api-Version": _GITHUB_API_VERSION,
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.api_url.rstrip("/"),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _contents_url(self, path: str) -> str:
        return (
            f"/repos/{quote(self.config.owner)}/{quote(self.config.repo)}"
            f"/contents/{quote(path.lstrip('/'))}"
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request, retrying transient failures with exponential backoff."""
        if not self.config.token:
            msg = "No GitHub credential configured"
            raise UnauthorizedError(msg, path=path)

        url = self._contents_url(path)
        attempts = self.config.max_retries + 1
        failure = TransientError(f"{method} {path} was not attempted", path=path)
        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                failure = TransientError(f"{method} {path} failed: {exc}", path=path)
            else:
                if not _is_transient(resp):
                    return resp
                failure = TransientError(
                    f"{method} {path} failed with HTTP {resp.status_code}",
                    path=path,
                    status_code=resp.status_code,
                )
            if attempt + 1 < attempts:
                delay = self.config.retry_backoff_seconds * 2**attempt
                logger.warning("%s; retrying in %.2fs", failure, delay)
                await asyncio.sleep(delay)
        raise failure

    async def read(self, path: str) -> StoredObject:
        """Return current bytes and sha of ``path``. Raises NotFoundError if absent."""
        params = {"ref": self.config.branch}
        resp = await self._send("GET", path, params=params)
        _raise_for_status(resp, path)
        data = resp.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            msg = f"Path is not a file: {path}"
            raise ContentStoreError(msg, path=path, status_code=resp.status_code)

        sha = str(data["sha"])
        if data.get("encoding") == "base64":
            content = base64.b64decode(data.get("content", ""))
        else:
            # Files over 1 MB come back without inline content.
            raw = await self._send(
                "GET", path, params=params, headers={"Accept": _GITHUB_RAW_MEDIA_TYPE}
            )
            _raise_for_status(raw, path)
            content = raw.content
        return StoredObject(content=content, version=sha)

    async def version(self, path: str) -> str | None:
        """Return the sha of ``path``, or None when it does not exist.

        Only the metadata response is fetched; large files never trigger the
        raw download ``read`` needs.
        """
        resp = await self._send("GET", path, params={"ref": self.config.branch})
        try:
            _raise_for_status(resp, path)
        except NotFoundError:
            return None
        data = resp.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            msg = f"Path is not a file: {path}"
            raise ContentStoreError(msg, path=path, status_code=resp.status_code)
        return str(data["sha"])

    async def write(
        self,
        path: str,
        content: bytes,
        expected_version: str | None,
        message: str,
    ) -> str:
        """Create or update ``path`` in one commit and return the new sha."""
        body: dict[str, str] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.config.branch,
        }
        if expected_version is not None:
            body["sha"] = expected_version
        resp = await self._send("PUT", path, json=body)
        _raise_for_status(resp, path)
        result: str = resp.json()["content"]["sha"]
        logger.debug("Wrote %s (%d bytes) as %s", path, len(content), result)
        return result

    async def delete(self, path: str, version: str, message: str) -> bool:
        """Delete ``path`` at ``version``. Returns False when it was already gone."""
        body = {"message": message, "sha": version, "branch": self.config.branch}
        resp = await self._send("DELETE", path, json=body)
        try:
            _raise_for_status(resp, path)
        except NotFoundError:
            logger.info("File not found in repository (already deleted?): %s", path)
            return False
        return True
