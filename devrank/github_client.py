"""HTTP client for interacting with GitHub's REST API."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import httpx

from .cache_store import CacheStore, canonical_cache_key, is_cacheable
from .config import GitHubSettings, UTC
from .rate_limiter import RateLimitSnapshot, rate_limit_wait
from .retry_policy import (
    Calling,
    Classification,
    RebuildingClient,
    ResponseOutcome,
    RetryPolicy,
    RetryState,
    Step,
    Terminal,
    classify_response,
    coerce_payload,
    next_step,
)
from .stats import ApiStats, endpoint_name

LOGGER = logging.getLogger(__name__)


class GitHubClientError(RuntimeError):
    """Base class for errors that stop a request from being retried."""


class GitHubAuthError(GitHubClientError):
    """Raised on HTTP 401; credentials cannot recover by retrying."""


class CrawlCancelled(GitHubClientError):
    """Raised when the cancellation event is set during a wait."""


@dataclass(slots=True)
class ApiResult:
    data: Any
    is_success: bool
    status_code: int | None = None
    error: str = ""
    retry_count: int = 0
    from_cache: bool = False
    list_too_large: bool = False
    rate_limit: RateLimitSnapshot | None = None


class GitHubRestClient:
    """Cached REST client that retries through rate limits and outages.

    Requests are issued one at a time. Transient failures back off linearly;
    after ``max_transient_attempts`` consecutive failures the underlying
    ``httpx.AsyncClient`` is rebuilt and the client pauses for ``long_wait``
    before trying again, indefinitely.
    """

    def __init__(
        self,
        settings: GitHubSettings,
        cache: CacheStore | None = None,
        stats: ApiStats | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cancel_event: asyncio.Event | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.api_url.rstrip("/")
        self._cache = cache
        self.stats = stats or ApiStats()
        self._transport = transport
        self._cancel_event = cancel_event
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._policy = RetryPolicy.from_settings(settings)
        self._client = self._build_client()
        self.client_rebuilds = 0

    async def __aenter__(self) -> "GitHubRestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def fetch(self, url: str, *, expect: type = dict) -> ApiResult:
        """GET ``url`` and return its JSON body, normalized to ``expect``.

        Terminal HTTP failures come back as ``ApiResult(is_success=False)``;
        only a 401 (``GitHubAuthError``) or cancellation raises.
        """

        url = self.url(url)
        cache_key = canonical_cache_key(url)
        cacheable = self._cache is not None and is_cacheable(url)
        if cacheable:
            entry = self._cache.get(cache_key)
            payload = coerce_payload(entry.payload, expect) if entry is not None else None
            if payload is not None:
                self.stats.record_cache_hit()
                LOGGER.debug("Cache hit for %s", cache_key)
                return ApiResult(data=payload, is_success=True, status_code=200, from_cache=True)
            if entry is not None:
                LOGGER.debug("Ignoring cached %s: payload does not match the expected shape", cache_key)

        endpoint = endpoint_name(url)
        statistics_request = "/stats/" in url and expect is list
        started = time.perf_counter()
        state = RetryState()
        step: Step = Calling()

        while True:
            status_code: int | None = None
            rate_limit: RateLimitSnapshot | None = None
            try:
                response = await self._client.get(url)
            except httpx.TransportError as exc:
                outcome = ResponseOutcome(
                    Classification.NETWORK_TRANSIENT,
                    message=f"{type(exc).__name__}: {exc}",
                )
            else:
                status_code = response.status_code
                rate_limit = RateLimitSnapshot.from_headers(response.headers, self._clock())
                outcome = classify_response(status_code, response.text, rate_limit, expect=expect)

            delay = 0.0
            if outcome.classification is Classification.RATE_LIMITED:
                delay = rate_limit_wait(
                    rate_limit or RateLimitSnapshot(),
                    self._clock(),
                    buffer=self._settings.rate_limit_buffer,
                    fallback=self._settings.rate_limit_fallback_wait,
                )

            state, step = next_step(
                state,
                outcome,
                self._policy,
                rate_limit_delay=delay,
                # Statistics give up only on server errors; network failures keep retrying.
                give_up_transient=statistics_request and status_code is not None and status_code >= 500,
            )
            if isinstance(step, Terminal):
                break

            self.stats.record_retry()
            if outcome.classification.is_transient:
                self.stats.record_error(f"{outcome.classification.value}_{status_code or 'network'}")

            if isinstance(step, RebuildingClient):
                LOGGER.warning(
                    "%s kept failing (%s); rebuilding HTTP client and waiting %.0fs",
                    endpoint,
                    outcome.message,
                    step.duration,
                )
                self.stats.record_long_wait()
                await self.rebuild_client()
            elif outcome.classification is Classification.RATE_LIMITED:
                LOGGER.warning(
                    "GitHub rate limit hit on %s (%s remaining); sleeping %.1fs",
                    endpoint,
                    rate_limit.remaining if rate_limit else None,
                    step.duration,
                )
            else:
                LOGGER.info(
                    "Transient failure on %s (%s), retry %s in %.1fs",
                    endpoint,
                    outcome.message,
                    state.attempt,
                    step.duration,
                )
            await self.pause(step.duration)

        self.stats.record_call(endpoint, (time.perf_counter() - started) * 1000)

        if outcome.classification is Classification.CLIENT_FATAL:
            raise GitHubAuthError(
                f"GitHub rejected the credentials ({outcome.message}). Check that the token is valid and not expired."
            )

        if step.gave_up:
            LOGGER.warning("Giving up on %s after %s transient failures", endpoint, state.attempt)
            return ApiResult(data=[], is_success=True, status_code=status_code, retry_count=state.retries)

        if step.success:
            if cacheable and outcome.classification is Classification.SUCCESS:
                self._cache.put(cache_key, outcome.data)
            return ApiResult(
                data=outcome.data,
                is_success=True,
                status_code=status_code,
                retry_count=state.retries,
                rate_limit=rate_limit,
            )

        LOGGER.warning("Request to %s failed: %s", endpoint, outcome.message)
        return ApiResult(
            data=None,
            is_success=False,
            status_code=status_code,
            error=outcome.message,
            retry_count=state.retries,
            list_too_large=outcome.classification is Classification.LIST_TOO_LARGE,
            rate_limit=rate_limit,
        )

    async def verify_token(self) -> str:
        """Check the credentials against ``/user`` and return the authenticated login.

        Runs once before a crawl, outside the retry loop and the cache.
        """

        try:
            response = await self._client.get(self.url("user"))
        except httpx.TransportError as exc:
            raise GitHubClientError(f"Could not reach GitHub to validate the token: {exc}") from exc
        if response.status_code == 401:
            raise GitHubAuthError(f"GitHub rejected the token: {response.text.strip() or 'Bad credentials'}")
        if not response.is_success:
            raise GitHubClientError(f"Token validation failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        login = payload.get("login", "") if isinstance(payload, dict) else ""
        LOGGER.info("Authenticated as %s", login or "an unknown user")
        return str(login)

    async def rebuild_client(self) -> None:
        """Replace the underlying connection pool with a fresh one."""

        await self._client.aclose()
        self._client = self._build_client()
        self.client_rebuilds += 1

    async def pause(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless the cancellation event fires first."""

        if self._cancel_event is not None and self._cancel_event.is_set():
            raise CrawlCancelled("Crawl cancelled")
        if seconds <= 0:
            return
        if self._cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise CrawlCancelled("Crawl cancelled while waiting")

    def _build_client(self) -> httpx.AsyncClient:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self._settings.user_agent,
        }
        if self._settings.token:
            headers["Authorization"] = f"token {self._settings.token}"
        return httpx.AsyncClient(
            headers=headers,
            timeout=self._settings.request_timeout,
            transport=self._transport,
        )


__all__ = [
    "ApiResult",
    "CrawlCancelled",
    "GitHubAuthError",
    "GitHubClientError",
    "GitHubRestClient",
]
