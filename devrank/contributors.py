"""Resolve a developer's commit rank among a repository's contributors."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Protocol

from .github_client import ApiResult
from .models import ContributorRankInfo

LOGGER = logging.getLogger(__name__)


class RestGateway(Protocol):
    async def fetch(self, url: str, *, expect: type = dict) -> ApiResult: ...

    async def pause(self, seconds: float) -> None: ...


def rank_contributors(pairs: Iterable[tuple[str, int]], username: str) -> ContributorRankInfo:
    """Rank ``username`` within ``(login, count)`` pairs.

    Pairs are ordered by count, highest first; equal counts keep the order in
    which GitHub returned them.
    """

    ordered = sorted(pairs, key=lambda pair: pair[1], reverse=True)
    wanted = username.lower()
    for index, (login, count) in enumerate(ordered):
        if login.lower() == wanted:
            return ContributorRankInfo(
                is_contributor=True,
                rank=index + 1,
                total_contributors=len(ordered),
                commit_count=count,
            )
    return ContributorRankInfo(is_contributor=False, rank=0, total_contributors=len(ordered))


class ContributorRankResolver:
    """Looks up contributor ranks, caching every answer for the process lifetime.

    The per-contributor statistics endpoint is tried first. When GitHub has no
    statistics to offer (still computing, or the repository is too large) the
    paginated contributors list is used instead, which stops after
    ``page_limit`` pages of 100 and therefore undercounts very large projects.
    """

    def __init__(self, client: RestGateway, *, page_limit: int = 10, page_delay: float = 0.05) -> None:
        self._client = client
        self._page_limit = page_limit
        self._page_delay = page_delay
        self._cache: dict[tuple[str, str], ContributorRankInfo] = {}
        self._lock = asyncio.Lock()

    def cached(self, username: str, repo_full_name: str) -> ContributorRankInfo | None:
        return self._cache.get((repo_full_name, username))

    async def resolve(self, username: str, repo_full_name: str) -> ContributorRankInfo:
        key = (repo_full_name, username)
        async with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            LOGGER.debug("Using cached rank of %s in %s", username, repo_full_name)
            return cached

        pairs = await self._statistics_pairs(repo_full_name)
        if not pairs:
            pairs = await self._contributor_pairs(repo_full_name)
        info = rank_contributors(pairs, username)

        if info.is_contributor:
            LOGGER.info(
                "%s ranks %s/%s in %s (%s commits)",
                username,
                info.rank,
                info.total_contributors,
                repo_full_name,
                info.commit_count,
            )
        async with self._lock:
            self._cache[key] = info
        return info

    async def _statistics_pairs(self, repo_full_name: str) -> list[tuple[str, int]]:
        result = await self._client.fetch(f"repos/{repo_full_name}/stats/contributors", expect=list)
        if not result.is_success:
            LOGGER.info("Contributor statistics unavailable for %s: %s", repo_full_name, result.error)
            return []
        pairs = [
            (login, total)
            for entry in result.data or []
            if (login := _author_login(entry)) and (total := _as_count(entry.get("total"))) > 0
        ]
        if not pairs:
            LOGGER.info("No contributor statistics for %s yet; using the contributors list", repo_full_name)
        return pairs

    async def _contributor_pairs(self, repo_full_name: str) -> list[tuple[str, int]]:
        pairs: list[tuple[str, int]] = []
        for page in range(1, self._page_limit + 1):
            result = await self._client.fetch(
                f"repos/{repo_full_name}/contributors?per_page=100&page={page}", expect=list
            )
            if not result.is_success:
                if result.list_too_large:
                    LOGGER.info("Contributor list of %s is too large to list", repo_full_name)
                break
            if not result.data:
                break
            for entry in result.data:
                if not isinstance(entry, dict):
                    continue
                login = entry.get("login")
                contributions = _as_count(entry.get("contributions"))
                if login and contributions > 0:
                    pairs.append((str(login), contributions))
            await self._client.pause(self._page_delay)
        return pairs


def _author_login(entry: Any) -> str | None:
    if not isinstance(entry, dict):
        return None
    author = entry.get("author") or {}
    login = author.get("login") if isinstance(author, dict) else None
    return str(login) if login else None


def _as_count(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


__all__ = ["ContributorRankResolver", "RestGateway", "rank_contributors"]
