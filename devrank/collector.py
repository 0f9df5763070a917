"""Gather the repositories a developer owns or contributes to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .config import CrawlSettings
from .contributors import ContributorRankResolver, RestGateway
from .models import ORGANIZATION, Repository

LOGGER = logging.getLogger(__name__)


def top_by_popularity(repositories: Iterable[Repository], count: int) -> list[Repository]:
    """Return the ``count`` repositories with the most stars plus forks."""

    return sorted(repositories, key=lambda repo: repo.popularity, reverse=True)[:count]


@dataclass(slots=True)
class RepositoryCollection:
    owned: list[Repository] = field(default_factory=list)
    organization: list[Repository] = field(default_factory=list)
    contributed: list[Repository] = field(default_factory=list)
    top_count: int = 5

    @property
    def top_owned(self) -> list[Repository]:
        return top_by_popularity(self.owned, self.top_count)

    @property
    def top_organization(self) -> list[Repository]:
        return top_by_popularity(self.organization, self.top_count)

    @property
    def top_contributed(self) -> list[Repository]:
        return top_by_popularity(self.contributed, self.top_count)

    @property
    def all(self) -> list[Repository]:
        return [*self.owned, *self.organization, *self.contributed]


class RepositoryCollector:
    """Collects owned, organization and externally contributed repositories."""

    def __init__(
        self,
        client: RestGateway,
        resolver: ContributorRankResolver,
        settings: CrawlSettings | None = None,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._settings = settings or CrawlSettings()

    async def collect(self, username: str) -> RepositoryCollection:
        owned = await self.owned_repositories(username)
        organization = await self.organization_repositories(username)
        contributed = await self.contributed_repositories(username)
        LOGGER.info(
            "%s: %s owned, %s organization, %s contributed repositories",
            username,
            len(owned),
            len(organization),
            len(contributed),
        )
        return RepositoryCollection(
            owned=owned,
            organization=organization,
            contributed=contributed,
            top_count=self._settings.top_repository_count,
        )

    async def owned_repositories(self, username: str) -> list[Repository]:
        """Non-fork repositories, plus the parent projects of forks the user contributed to."""

        repositories: list[Repository] = []
        min_stars = self._settings.min_stars
        for page in range(1, self._settings.owned_page_limit + 1):
            result = await self._client.fetch(
                f"users/{username}/repos?page={page}&per_page=100&sort=stars&direction=desc",
                expect=list,
            )
            if not result.is_success or not result.data:
                break
            for payload in result.data:
                if not isinstance(payload, dict):
                    continue
                repo = Repository.from_api(payload)
                if not repo.is_fork:
                    if repo.stars >= min_stars:
                        repositories.append(repo)
                    continue
                parent = await self._fork_parent(payload)
                if parent is None or parent.stars < min_stars:
                    continue
                info = await self._resolver.resolve(username, parent.full_name)
                if info.is_contributor:
                    LOGGER.info("%s contributes to %s (found through fork %s)", username, parent.full_name, repo.full_name)
                    repositories.append(parent.with_rank(info))
            await self._client.pause(self._settings.page_delay)
        return repositories

    async def organization_repositories(self, username: str) -> list[Repository]:
        repositories: list[Repository] = []
        result = await self._client.fetch(f"users/{username}/orgs", expect=list)
        if not result.is_success:
            return repositories

        for org in result.data or []:
            org_login = org.get("login") if isinstance(org, dict) else None
            if not org_login:
                continue
            repos_result = await self._client.fetch(
                f"orgs/{org_login}/repos?sort=stars&direction=desc&per_page=100", expect=list
            )
            if repos_result.is_success:
                candidates = [Repository.from_api(item) for item in repos_result.data or [] if isinstance(item, dict)]
                candidates.sort(key=lambda repo: repo.stars, reverse=True)
                for repo in candidates[: self._settings.organization_repo_limit]:
                    if not repo.full_name:
                        continue
                    info = await self._resolver.resolve(username, repo.full_name)
                    if info.is_contributor and repo.stars >= self._settings.min_stars:
                        repositories.append(
                            repo.model_copy(
                                update={
                                    "owner_login": repo.owner_login or str(org_login),
                                    "is_organization_owned": True,
                                    "contributor_rank": info.rank,
                                    "total_contributors": info.total_contributors,
                                }
                            )
                        )
                    await self._client.pause(self._settings.organization_repo_delay)
            await self._client.pause(self._settings.organization_delay)
        return repositories

    async def contributed_repositories(self, username: str) -> list[Repository]:
        """Personal repositories of other users that received pull requests from ``username``."""

        repositories: list[Repository] = []
        result = await self._client.fetch(
            f"search/issues?q=is:pr+author:{username}&sort=updated&order=desc&per_page=100"
        )
        if not result.is_success:
            LOGGER.warning("Pull request search for %s failed: %s", username, result.error)
            return repositories

        items = (result.data or {}).get("items") or []
        LOGGER.info("%s authored %s pull requests in the search window", username, len(items))
        examined: set[str] = set()
        wanted = username.lower()
        for item in items:
            if len(examined) >= self._settings.contributed_repo_limit:
                break
            repo_url = item.get("repository_url") if isinstance(item, dict) else None
            if not repo_url:
                continue
            repo_result = await self._client.fetch(repo_url)
            if not repo_result.is_success:
                continue
            payload = repo_result.data
            repo = Repository.from_api(payload)
            owner_type = (payload.get("owner") or {}).get("type")
            if owner_type == ORGANIZATION or repo.owner_login.lower() == wanted:
                continue
            if not repo.full_name or repo.full_name in examined:
                continue
            examined.add(repo.full_name)

            info = await self._resolver.resolve(username, repo.full_name)
            if info.is_contributor and repo.stars >= self._settings.min_stars:
                repositories.append(repo.with_rank(info))
            await self._client.pause(self._settings.contributed_repo_delay)
        return repositories

    async def _fork_parent(self, payload: dict[str, Any]) -> Repository | None:
        parent = payload.get("parent")
        if not isinstance(parent, dict):
            full_name = payload.get("full_name")
            if not full_name:
                return None
            # The repository list omits ``parent``; the detail endpoint has it.
            result = await self._client.fetch(f"repos/{full_name}")
            if not result.is_success:
                return None
            parent = result.data.get("parent")
            if not isinstance(parent, dict):
                return None
        repo = Repository.from_api(parent)
        if not repo.full_name:
            return None
        return repo.model_copy(update={"is_fork": False})


__all__ = ["RepositoryCollection", "RepositoryCollector", "top_by_popularity"]
