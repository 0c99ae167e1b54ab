"""Tests for the GitHub contents API store, using httpx.MockTransport."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from foliosync.exceptions import (
    ConflictError,
    ContentStoreError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
)
from foliosync.store.base import ContentStore
from foliosync.store.github import GitHubContentStore, StoreConfig

if TYPE_CHECKING:
    from collections.abc import Callable

CONTENTS = "/repos/owner/site/contents/"


def _config(token: str | None = "ghp_abc", max_retries: int = 2) -> StoreConfig:
    return StoreConfig(
        owner="owner",
        repo="site",
        branch="main",
        token=token,
        api_url="https://api.github.test",
        max_retries=max_retries,
        retry_backoff_seconds=0,
    )


def _store(
    handler: Callable[[httpx.Request], httpx.Response],
    **kwargs: object,
) -> GitHubContentStore:
    return GitHubContentStore(_config(**kwargs), transport=httpx.MockTransport(handler))  # type: ignore[arg-type]


def _file_body(content: bytes, sha: str) -> dict[str, object]:
    return {
        "type": "file",
        "sha": sha,
        "encoding": "base64",
        "content": base64.b64encode(content).decode("ascii"),
    }


class TestGitHubContentStore:
    def test_satisfies_protocol(self) -> None:
        store = _store(lambda request: httpx.Response(200))
        assert isinstance(store, ContentStore)

    def test_config_repr_hides_token(self) -> None:
        assert "ghp_abc" not in repr(_config())

    async def test_read_decodes_content(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_file_body(b"hello", "sha1"))

        async with _store(handler) as store:
            stored = await store.read("assestsName.js")

        assert stored.content == b"hello"
        assert stored.version == "sha1"
        request = seen[0]
        assert request.url.path == CONTENTS + "assestsName.js"
        assert request.url.params["ref"] == "main"
        assert request.headers["Authorization"] == "Bearer ghp_abc"

    async def test_read_large_file_uses_raw_media_type(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers["Accept"] == "application/vnd.github.raw+json":
                return httpx.Response(200, content=b"raw bytes")
            return httpx.Response(200, json={"type": "file", "sha": "big", "encoding": "none"})

        async with _store(handler) as store:
            stored = await store.read("assets/img/portfolio/videos/reel.mp4")

        assert stored.content == b"raw bytes"
        assert stored.version == "big"

    async def test_version_of_large_file_skips_raw_download(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Accept"])
            return httpx.Response(200, json={"type": "file", "sha": "big", "encoding": "none"})

        async with _store(handler) as store:
            version = await store.version("assets/img/portfolio/videos/reel.mp4")

        assert version == "big"
        assert seen == ["application/vnd.github+json"]

    async def test_version_of_missing_file_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        async with _store(handler) as store:
            assert await store.version("assets/img/portfolio/images/gone.png") is None

    async def test_write_sends_base64_branch_and_sha(self) -> None:
        bodies: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"content": {"sha": "new-sha"}})

        async with _store(handler) as store:
            version = await store.write("a.png", b"\x89PNG", "old-sha", "Update a.png")

        assert version == "new-sha"
        assert bodies == [
            {
                "message": "Update a.png",
                "content": base64.b64encode(b"\x89PNG").decode("ascii"),
                "branch": "main",
                "sha": "old-sha",
            }
        ]

    async def test_create_omits_sha(self) -> None:
        bodies: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"content": {"sha": "created"}})

        async with _store(handler) as store:
            assert await store.write("a.png", b"x", None, "Add a.png") == "created"
        assert "sha" not in bodies[0]

    async def test_delete_missing_returns_false_every_time(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        async with _store(handler) as store:
            assert await store.delete("gone.png", "sha", "Delete gone.png") is False
            assert await store.delete("gone.png", "sha", "Delete gone.png") is False

    async def test_delete_success(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            assert json.loads(request.content)["sha"] == "sha1"
            return httpx.Response(200, json={"commit": {}})

        async with _store(handler) as store:
            assert await store.delete("a.png", "sha1", "Delete a.png") is True
        assert methods == ["DELETE"]

    @pytest.mark.parametrize(
        ("status", "body", "expected"),
        [
            (401, {"message": "Bad credentials"}, UnauthorizedError),
            (403, {"message": "Resource not accessible"}, UnauthorizedError),
            (404, {"message": "Not Found"}, NotFoundError),
            (409, {"message": "a.png does not match sha"}, ConflictError),
            (422, {"message": "Invalid request. \"sha\" wasn't supplied."}, ConflictError),
            (422, {"message": "Invalid path"}, ContentStoreError),
        ],
    )
    async def test_status_mapping(
        self, status: int, body: dict[str, str], expected: type[Exception]
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json=body)

        async with _store(handler) as store:
            with pytest.raises(expected) as exc_info:
                await store.write("a.png", b"x", None, "Add a.png")
        assert type(exc_info.value) is expected

    async def test_transient_failures_are_retried(self) -> None:
        responses = [
            httpx.Response(502),
            httpx.Response(403, headers={"x-ratelimit-remaining": "0"}),
            httpx.Response(200, json=_file_body(b"ok", "sha")),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        async with _store(handler, max_retries=2) as store:
            stored = await store.read("a.png")

        assert stored.content == b"ok"
        assert responses == []

    async def test_transient_failures_surface_after_budget(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        async with _store(handler, max_retries=1) as store:
            with pytest.raises(TransientError):
                await store.read("a.png")
        assert calls == 2

    async def test_missing_token_fails_before_network(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200)

        async with _store(handler, token=None) as store:
            with pytest.raises(UnauthorizedError):
                await store.write("a.png", b"x", None, "Add a.png")
        assert calls == 0
