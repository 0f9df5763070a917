"""Tests for the cached, retrying REST client."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest

from devrank.cache_store import CacheStore
from devrank.config import GitHubSettings
from devrank.github_client import CrawlCancelled, GitHubAuthError, GitHubClientError, GitHubRestClient


@pytest.fixture
def sleeps(monkeypatch):
    recorded: list[float] = []

    async def fake_sleep(duration: float) -> None:  # pragma: no cover - patched behaviour
        recorded.append(duration)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


def _responses(*responses: httpx.Response):
    queue = list(responses)
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        requests.append(request)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return handler, requests


def _client(handler, cache: CacheStore | None = None, **kwargs) -> GitHubRestClient:
    settings = GitHubSettings(token="abc", request_timeout=5.0)
    return GitHubRestClient(settings, cache, transport=httpx.MockTransport(handler), **kwargs)


def test_fetch_sends_credentials_and_parses_json(sleeps):
    handler, requests = _responses(httpx.Response(200, json={"login": "octocat"}))

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("users/octocat")

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.data == {"login": "octocat"}
    assert result.retry_count == 0
    assert str(requests[0].url) == "https://api.github.com/users/octocat"
    assert requests[0].headers["Authorization"] == "token abc"
    assert requests[0].headers["Accept"] == "application/vnd.github.v3+json"
    assert sleeps == []


def test_transient_failures_rebuild_client_then_succeed(sleeps):
    served, requests = _responses(
        httpx.Response(503, text="unavailable"),
        httpx.Response(503, text="unavailable"),
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, json={"login": "octocat"}),
    )
    cache = CacheStore(None, timedelta(days=7))
    cache_sizes: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        cache_sizes.append(len(cache))
        return served(request)

    async def runner():
        async with _client(handler, cache) as client:
            result = await client.fetch("users/octocat")
            return result, client

    result, client = asyncio.run(runner())

    assert result.is_success is True
    assert result.retry_count == 3
    assert client.client_rebuilds == 1
    assert sleeps == [5.0, 10.0, 600.0]
    assert len(requests) == 4
    assert cache_sizes == [0, 0, 0, 0]
    assert cache.get("https://api.github.com/users/octocat").payload == {"login": "octocat"}
    assert client.stats.long_waits == 1
    assert client.stats.total_calls == 1


def test_empty_bodies_back_off_faster(sleeps):
    handler, _ = _responses(
        httpx.Response(200, text=""),
        httpx.Response(200, text=""),
        httpx.Response(200, json={"ok": True}),
    )

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("users/octocat")

    result = asyncio.run(runner())

    assert result.data == {"ok": True}
    assert sleeps == [2.0, 4.0]


def test_network_errors_are_retried(sleeps):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=[{"login": "acme"}])

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("users/octocat/orgs", expect=list)

    result = asyncio.run(runner())

    assert result.data == [{"login": "acme"}]
    assert result.retry_count == 1
    assert sleeps == [5.0]


def test_cache_hit_skips_network_and_statistics(sleeps):
    handler, requests = _responses(httpx.Response(500))
    cache = CacheStore(None, timedelta(days=7))
    cache.put("https://api.github.com/orgs/acme/repos?direction=desc&per_page=100&sort=stars", [{"name": "app"}])

    async def runner():
        async with _client(handler, cache) as client:
            result = await client.fetch("orgs/acme/repos?sort=stars&direction=desc&per_page=100", expect=list)
            return result, client

    result, client = asyncio.run(runner())

    assert result.from_cache is True
    assert result.data == [{"name": "app"}]
    assert requests == []
    assert client.stats.cache_hits == 1
    assert client.stats.total_calls == 0


def test_searches_are_never_cached(sleeps):
    handler, requests = _responses(httpx.Response(200, json={"items": []}))
    cache = CacheStore(None, timedelta(days=7))

    async def runner():
        async with _client(handler, cache) as client:
            await client.fetch("search/users?q=location:Taiwan&page=1")
            await client.fetch("search/users?q=location:Taiwan&page=1")

    asyncio.run(runner())

    assert len(requests) == 2
    assert len(cache) == 0


def test_object_where_list_expected_is_empty_list(sleeps):
    handler, _ = _responses(httpx.Response(200, json={}))

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("repos/acme/app/contributors?per_page=100&page=1", expect=list)

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.data == []


def test_accepted_response_is_not_cached(sleeps):
    handler, _ = _responses(httpx.Response(202, json={}))
    cache = CacheStore(None, timedelta(days=7))

    async def runner():
        async with _client(handler, cache) as client:
            return await client.fetch("repos/acme/app/contributors?per_page=100&page=1", expect=list)

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.data == []
    assert len(cache) == 0


def test_unauthorized_raises():
    handler, _ = _responses(httpx.Response(401, json={"message": "Bad credentials"}))

    async def runner():
        async with _client(handler) as client:
            await client.fetch("users/octocat")

    with pytest.raises(GitHubAuthError):
        asyncio.run(runner())


def test_rate_limit_waits_for_retry_after(sleeps):
    handler, requests = _responses(
        httpx.Response(
            403,
            json={"message": "API rate limit exceeded"},
            headers={"X-RateLimit-Remaining": "0", "Retry-After": "7"},
        ),
        httpx.Response(200, json={"login": "octocat"}),
    )

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("users/octocat")

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.retry_count == 1
    assert sleeps == [7.0]
    assert len(requests) == 2


def test_statistics_endpoint_gives_up_with_empty_list(sleeps):
    handler, requests = _responses(httpx.Response(502, text="bad gateway"))

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("repos/acme/app/stats/contributors", expect=list)

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.data == []
    assert len(requests) == 3
    assert sleeps == [5.0, 10.0]


def test_terminal_failure_is_returned_as_value(sleeps):
    handler, _ = _responses(httpx.Response(404, json={"message": "Not Found"}))

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("repos/acme/missing")

    result = asyncio.run(runner())

    assert result.is_success is False
    assert result.status_code == 404
    assert "404" in result.error
    assert sleeps == []


def test_too_large_contributor_list_is_flagged(sleeps):
    handler, _ = _responses(
        httpx.Response(403, json={"message": "The history or contributor list is too large to list contributors"})
    )

    async def runner():
        async with _client(handler) as client:
            return await client.fetch("repos/torvalds/linux/contributors?per_page=100&page=1", expect=list)

    result = asyncio.run(runner())

    assert result.is_success is False
    assert result.list_too_large is True


def test_cancellation_interrupts_waits():
    handler, _ = _responses(httpx.Response(503, text="unavailable"))

    async def runner():
        event = asyncio.Event()
        event.set()
        async with _client(handler, cancel_event=event) as client:
            await client.fetch("users/octocat")

    with pytest.raises(CrawlCancelled):
        asyncio.run(runner())


def test_success_status_with_unavailable_page_is_retried(sleeps):
    handler, requests = _responses(
        httpx.Response(200, text="No server is currently available to service your request"),
        httpx.Response(200, json={"login": "octocat"}),
    )
    cache = CacheStore(None, timedelta(days=7))

    async def runner():
        async with _client(handler, cache) as client:
            return await client.fetch("users/octocat")

    result = asyncio.run(runner())

    assert result.is_success is True
    assert result.data == {"login": "octocat"}
    assert result.retry_count == 1
    assert len(requests) == 2
    assert sleeps == [5.0]
    assert cache.get("https://api.github.com/users/octocat").payload == {"login": "octocat"}


def test_cached_payload_is_fitted_to_expected_shape(sleeps):
    handler, requests = _responses(httpx.Response(200, json=[{"login": "octocat"}]))
    cache = CacheStore(None, timedelta(days=7))
    cache.put("https://api.github.com/repos/acme/app/contributors?page=1&per_page=100", {"message": "pending"})
    cache.put("https://api.github.com/users/octocat/orgs", [{"login": "acme"}])

    async def runner():
        async with _client(handler, cache) as client:
            contributors = await client.fetch("repos/acme/app/contributors?per_page=100&page=1", expect=list)
            orgs = await client.fetch("users/octocat/orgs")
            return contributors, orgs

    contributors, orgs = asyncio.run(runner())

    assert contributors.from_cache is True
    assert contributors.data == []
    assert orgs.from_cache is False
    assert orgs.is_success is False
    assert len(requests) == 1


def test_statistics_endpoint_keeps_retrying_network_errors(sleeps):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - synchronous handler
        nonlocal calls
        calls += 1
        if calls <= 3:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json=[{"author": {"login": "alice"}, "total": 3}])

    async def runner():
        async with _client(handler) as client:
            result = await client.fetch("repos/acme/app/stats/contributors", expect=list)
            return result, client

    result, client = asyncio.run(runner())

    assert result.data == [{"author": {"login": "alice"}, "total": 3}]
    assert client.client_rebuilds == 1
    assert sleeps == [5.0, 10.0, 600.0]


def test_verify_token_returns_login():
    handler, requests = _responses(httpx.Response(200, json={"login": "octocat"}))

    async def runner():
        async with _client(handler) as client:
            return await client.verify_token()

    assert asyncio.run(runner()) == "octocat"
    assert str(requests[0].url) == "https://api.github.com/user"


def test_verify_token_rejects_bad_credentials():
    handler, _ = _responses(httpx.Response(401, json={"message": "Bad credentials"}))

    async def runner():
        async with _client(handler) as client:
            await client.verify_token()

    with pytest.raises(GitHubAuthError):
        asyncio.run(runner())


def test_verify_token_reports_other_failures():
    handler, _ = _responses(httpx.Response(500, text=""))

    async def runner():
        async with _client(handler) as client:
            await client.verify_token()

    with pytest.raises(GitHubClientError) as excinfo:
        asyncio.run(runner())
    assert not isinstance(excinfo.value, GitHubAuthError)
