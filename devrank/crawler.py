"""High level orchestration for ranking a region's developers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .cache_store import CacheStore
from .collector import RepositoryCollector
from .config import AppConfig, UTC
from .contributors import ContributorRankResolver
from .github_client import CrawlCancelled, GitHubAuthError, GitHubRestClient
from .models import GitHubUser, RegionProject
from .projects import build_region_projects
from .regions import RegionConfig
from .reports import write_reports
from .scoring import ScoreResult, rank_users, score_user
from .snapshot import UserSnapshotStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CrawlResult:
    ranked_users: list[GitHubUser]
    projects: list[RegionProject]
    processed: int
    failed: int
    finished_at: datetime
    reports: list[Path] = field(default_factory=list)


def publish_rankings(
    users: list[GitHubUser],
    region: RegionConfig,
    directory: Path,
    *,
    processed: int = 0,
    failed: int = 0,
) -> CrawlResult:
    """Rank ``users`` in one filtering pass and write both Markdown reports."""

    ranked = rank_users(users)
    projects = build_region_projects(ranked, region)
    finished_at = datetime.now(tz=UTC)
    reports = write_reports(directory, ranked, projects, region, finished_at)
    LOGGER.info("Ranked %s developers and %s projects", len(ranked), len(projects))
    return CrawlResult(
        ranked_users=ranked,
        projects=projects,
        processed=processed,
        failed=failed,
        finished_at=finished_at,
        reports=reports,
    )


class RegionCrawler:
    """Discovers a region's developers, scores them and writes the rankings.

    Everything runs sequentially: one user, one repository and one request at a
    time, with short pauses in between to stay clear of abuse detection.
    """

    def __init__(
        self,
        config: AppConfig,
        region: RegionConfig,
        client: GitHubRestClient,
        snapshot: UserSnapshotStore,
        *,
        cache: CacheStore | None = None,
        collector: RepositoryCollector | None = None,
    ) -> None:
        self._config = config
        self._settings = config.crawl
        self._region = region
        self._client = client
        self._snapshot = snapshot
        self._cache = cache
        if collector is None:
            resolver = ContributorRankResolver(
                client,
                page_limit=self._settings.contributor_page_limit,
                page_delay=self._settings.contributor_page_delay,
            )
            collector = RepositoryCollector(client, resolver, self._settings)
        self._collector = collector

    @property
    def region_directory(self) -> Path:
        return self._settings.output_dir / self._region.directory_name

    async def crawl(self, *, skip_until: str | None = None, refresh: bool = False) -> CrawlResult:
        if self._cache is not None:
            self._cache.sweep()

        known = self._snapshot.load()
        users = list(known)
        seen = {user.login.lower() for user in users}
        for user in await self.discover_users():
            if user.login.lower() not in seen:
                seen.add(user.login.lower())
                users.append(user)
        LOGGER.info("Found %s developers in %s (%s from the previous snapshot)", len(users), self._region.name, len(known))

        processed = failed = 0
        skipping = bool(skip_until)
        target = (skip_until or "").lower()
        for index, user in enumerate(users, start=1):
            if skipping:
                if target not in (user.login.lower(), (user.name or "").lower()):
                    LOGGER.debug("Skipping %s/%s: %s", index, len(users), user.login)
                    continue
                skipping = False
                LOGGER.info("Reached %s, resuming processing", user.login)
            if user.scored_at is not None and not refresh:
                continue

            LOGGER.info("Processing %s/%s: %s", index, len(users), user.login)
            try:
                await self.process_user(user)
                processed += 1
            except (GitHubAuthError, CrawlCancelled):
                self._snapshot.save(self._persistable(users))
                raise
            except Exception:
                failed += 1
                LOGGER.exception("Failed to process %s; continuing with the next developer", user.login)
            self._snapshot.save(self._persistable(users))
            await self._client.pause(self._settings.user_delay)

        if skipping:
            LOGGER.warning("Developer '%s' was not found; every developer was skipped", skip_until)

        self._snapshot.save(self._persistable(users))
        result = publish_rankings(users, self._region, self.region_directory, processed=processed, failed=failed)
        self._client.stats.log_summary()
        if self._cache is not None:
            valid, expired = self._cache.counts()
            LOGGER.info("Cache: %s valid, %s expired entries, TTL %s", valid, expired, self._cache.ttl)
        return result

    async def discover_users(self) -> list[GitHubUser]:
        """Run every search query of the region and return users in discovery order."""

        users: list[GitHubUser] = []
        seen: set[str] = set()
        for query in self._region.search_queries(self._settings.min_followers):
            LOGGER.info("Searching users: %s", query)
            for user in await self._search_users(query):
                if user.login.lower() not in seen:
                    seen.add(user.login.lower())
                    users.append(user)
            await self._client.pause(self._settings.query_delay)
        return users

    async def process_user(self, user: GitHubUser) -> ScoreResult:
        """Refresh, collect and score ``user`` in place."""

        detail = await self._client.fetch(f"users/{user.login}")
        if detail.is_success and isinstance(detail.data, dict) and detail.data.get("login"):
            user.update_profile(GitHubUser.from_api(detail.data))
        else:
            LOGGER.warning("Could not refresh the profile of %s; using search data", user.login)

        if user.is_organization:
            LOGGER.info("Skipping organization %s", user.login)
            result = ScoreResult(score=0.0, accept=False, reason="organization")
        else:
            collection = await self._collector.collect(user.login)
            user.top_repositories = collection.top_owned
            user.top_organization_repositories = collection.top_organization
            user.top_contributed_repositories = collection.top_contributed
            user.all_repositories = collection.all
            result = score_user(user, minimum_other_score=self._settings.minimum_other_score)

        user.score = result.score if result.accept else 0.0
        user.accepted = result.accept
        user.scored_at = datetime.now(tz=UTC)
        return result

    async def _search_users(self, query: str) -> list[GitHubUser]:
        users: list[GitHubUser] = []
        for page in range(1, self._settings.search_page_limit + 1):
            result = await self._client.fetch(
                f"search/users?q={query}&sort=followers&order=desc&page={page}&per_page=100"
            )
            if not result.is_success:
                LOGGER.warning("User search '%s' stopped at page %s: %s", query, page, result.error)
                break
            items = (result.data or {}).get("items") or []
            if not items:
                break
            users.extend(GitHubUser.from_api(item) for item in items if isinstance(item, dict) and item.get("login"))
            await self._client.pause(self._settings.page_delay)
        return users

    @staticmethod
    def _persistable(users: list[GitHubUser]) -> list[GitHubUser]:
        return [user for user in users if not user.is_organization]


__all__ = ["CrawlResult", "RegionCrawler", "publish_rankings"]
