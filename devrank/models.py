"""Domain models used by the crawler.

REST payloads are untyped JSON. Every field is resolved once, in the
``from_api`` constructors below, so the rest of the code only deals with
fully-populated models:

* counts (stars, forks, followers, ...) default to ``0`` when missing, null
  or not numeric;
* strings default to ``""``; a user's ``name`` defaults to the login;
* ``fork`` accepts booleans or ``"true"``/``"false"`` strings;
* an owner whose ``type`` is ``"Organization"`` marks the repository as
  organization-owned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from pydantic import BaseModel, Field


ORGANIZATION = "Organization"
USER = "User"


@dataclass(slots=True, frozen=True)
class ContributorRankInfo:
    """Position of a user among a repository's contributors."""

    is_contributor: bool = False
    rank: int = 0
    total_contributors: int = 0
    commit_count: int = 0


class Repository(BaseModel):
    """Normalized representation of a GitHub repository."""

    name: str = ""
    full_name: str = ""
    stars: int = 0
    forks: int = 0
    html_url: str = ""
    language: str = ""
    owner_login: str = ""
    is_fork: bool = False
    is_organization_owned: bool = False
    contributor_rank: int = 0
    total_contributors: int = 0

    @property
    def popularity(self) -> int:
        return self.stars + self.forks

    @property
    def has_rank(self) -> bool:
        return self.contributor_rank > 0 and self.total_contributors > 0

    @property
    def rank_display(self) -> str:
        if not self.has_rank:
            return ""
        return f"(rank {self.contributor_rank}/{self.total_contributors})"

    def with_rank(self, info: ContributorRankInfo) -> "Repository":
        return self.model_copy(
            update={"contributor_rank": info.rank, "total_contributors": info.total_contributors}
        )

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Repository":
        """Convert a REST repository object into a :class:`Repository`."""

        owner = payload.get("owner") or {}
        return cls(
            name=_as_str(payload.get("name")),
            full_name=_as_str(payload.get("full_name")),
            stars=_as_int(payload.get("stargazers_count")),
            forks=_as_int(payload.get("forks_count")),
            html_url=_as_str(payload.get("html_url")),
            language=_as_str(payload.get("language")),
            owner_login=_as_str(owner.get("login")),
            is_fork=_as_bool(payload.get("fork")),
            is_organization_owned=owner.get("type") == ORGANIZATION,
        )


class GitHubUser(BaseModel):
    """A developer discovered through user search."""

    login: str
    name: str = ""
    location: str = ""
    followers: int = 0
    public_repos: int = 0
    bio: str = ""
    avatar_url: str = ""
    html_url: str = ""
    created_at: datetime | None = None
    type: str = USER
    score: float = 0.0
    accepted: bool | None = None
    scored_at: datetime | None = None
    top_repositories: list[Repository] = Field(default_factory=list)
    top_organization_repositories: list[Repository] = Field(default_factory=list)
    top_contributed_repositories: list[Repository] = Field(default_factory=list)
    all_repositories: list[Repository] = Field(default_factory=list)

    @property
    def is_organization(self) -> bool:
        return self.type == ORGANIZATION

    @property
    def display_name(self) -> str:
        """Real name when it differs from the login, else an empty string."""

        if self.name and self.name != self.login:
            return self.name
        return ""

    def update_profile(self, detail: "GitHubUser") -> None:
        """Copy freshly fetched profile fields onto this user."""

        self.name = detail.name
        self.location = detail.location
        self.followers = detail.followers
        self.public_repos = detail.public_repos
        self.bio = detail.bio
        self.created_at = detail.created_at
        self.type = detail.type
        if detail.avatar_url:
            self.avatar_url = detail.avatar_url
        if detail.html_url:
            self.html_url = detail.html_url

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "GitHubUser":
        """Convert a search item or a ``users/{login}`` payload."""

        login = _as_str(payload.get("login"))
        return cls(
            login=login,
            name=_as_str(payload.get("name")) or login,
            location=_as_str(payload.get("location")),
            followers=_as_int(payload.get("followers")),
            public_repos=_as_int(payload.get("public_repos")),
            bio=_as_str(payload.get("bio")),
            avatar_url=_as_str(payload.get("avatar_url")),
            html_url=_as_str(payload.get("html_url")),
            created_at=payload.get("created_at") or None,
            type=_as_str(payload.get("type")) or USER,
        )


class RegionProject(BaseModel):
    """A repository attributed to the region through one of its developers."""

    name: str
    full_name: str
    stars: int = 0
    forks: int = 0
    html_url: str = ""
    language: str = ""
    owner_login: str = ""
    owner_type: str = USER
    reason: str = ""
    region_contributors: list[str] = Field(default_factory=list)

    def add_contributor(self, login: str) -> None:
        if login not in self.region_contributors:
            self.region_contributors.append(login)

    def sorted_contributors(self, region_logins: Iterable[str]) -> list[str]:
        """Region developers first, then everybody else, each alphabetically."""

        known = {login.lower() for login in region_logins}
        regional = sorted(login for login in self.region_contributors if login.lower() in known)
        others = sorted(login for login in self.region_contributors if login.lower() not in known)
        return regional + others


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


__all__ = [
    "ContributorRankInfo",
    "GitHubUser",
    "ORGANIZATION",
    "RegionProject",
    "Repository",
    "USER",
]
