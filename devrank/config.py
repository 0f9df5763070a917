"""Application configuration helpers."""

from __future__ import annotations

import os
from datetime import timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, PositiveInt


UTC = timezone.utc


class GitHubSettings(BaseModel):
    """Configuration options for the GitHub REST API."""

    token: str | None = Field(default=None, description="Personal access token used for API calls.")
    api_url: str = Field(default="https://api.github.com")
    user_agent: str = Field(default="devrank/1.0")
    request_timeout: float = Field(default=300.0, ge=1.0, description="Timeout for a single HTTP request in seconds.")
    max_transient_attempts: PositiveInt = Field(
        default=3, description="Consecutive transient failures before the client is rebuilt."
    )
    empty_body_delay: float = Field(default=2.0, ge=0.0, description="Backoff step after an empty response body.")
    error_body_delay: float = Field(default=5.0, ge=0.0, description="Backoff step after a transient failure.")
    long_wait: float = Field(default=600.0, ge=0.0, description="Pause after the client has been rebuilt.")
    rate_limit_buffer: float = Field(default=10.0, ge=0.0, description="Seconds added to the rate limit reset time.")
    rate_limit_fallback_wait: float = Field(
        default=300.0, ge=0.0, description="Wait used when rate limit headers cannot be parsed."
    )


class CacheSettings(BaseModel):
    """Configuration for the on-disk response cache."""

    directory: Path | None = Field(default=None, description="Cache directory; defaults to <region>/Cache.")
    ttl_hours: float = Field(default=24 * 7, gt=0, description="Lifetime of a cached response in hours.")

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.ttl_hours)


class CrawlSettings(BaseModel):
    """Tunable parameters for discovering and scoring developers."""

    region: str = Field(default="taiwan", description="Region key used to seed user searches.")
    output_dir: Path = Field(default=Path("."), description="Directory that holds the per-region folders.")
    min_followers: PositiveInt = Field(default=100, description="Follower threshold used in search queries.")
    min_stars: int = Field(default=2, ge=0, description="Minimum stars for a repository to count.")
    top_repository_count: PositiveInt = Field(default=5, description="Repositories kept per category for scoring.")
    minimum_other_score: float = Field(default=10.0, description="Non-follower score a user must exceed.")
    search_page_limit: PositiveInt = Field(default=10, description="Pages fetched per user search query.")
    owned_page_limit: PositiveInt = Field(default=10, description="Pages of a user's own repositories.")
    contributor_page_limit: PositiveInt = Field(default=10, description="Pages of the basic contributors list.")
    organization_repo_limit: PositiveInt = Field(default=20, description="Repositories examined per organization.")
    contributed_repo_limit: PositiveInt = Field(default=30, description="External repositories examined per user.")
    user_delay: float = Field(default=0.5, ge=0.0)
    query_delay: float = Field(default=1.0, ge=0.0)
    page_delay: float = Field(default=0.1, ge=0.0)
    contributor_page_delay: float = Field(default=0.05, ge=0.0)
    organization_repo_delay: float = Field(default=0.05, ge=0.0)
    organization_delay: float = Field(default=0.1, ge=0.0)
    contributed_repo_delay: float = Field(default=0.1, ge=0.0)


class AppConfig(BaseModel):
    """Root configuration container."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    crawl: CrawlSettings = Field(default_factory=CrawlSettings)

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, overrides: dict[str, Any] | None = None) -> "AppConfig":
        """Construct a configuration object from environment variables."""

        env = env if env is not None else os.environ
        overrides = overrides or {}

        github = GitHubSettings(
            token=overrides.get("github_token") or env.get("GITHUB_TOKEN") or env.get("GH_TOKEN") or _read_token_file(env.get("GITHUB_TOKEN_FILE")),
            api_url=overrides.get("github_api_url") or env.get("GITHUB_API_URL") or "https://api.github.com",
            request_timeout=float(overrides.get("github_request_timeout") or env.get("GITHUB_REQUEST_TIMEOUT", 300.0)),
        )

        cache_dir = overrides.get("cache_dir") or env.get("DEVRANK_CACHE_DIR")
        cache = CacheSettings(
            directory=Path(cache_dir) if cache_dir else None,
            ttl_hours=float(overrides.get("cache_ttl_hours") or env.get("DEVRANK_CACHE_TTL_HOURS", 24 * 7)),
        )

        crawl = CrawlSettings(
            region=overrides.get("region") or env.get("DEVRANK_REGION") or "taiwan",
            output_dir=Path(overrides.get("output_dir") or env.get("DEVRANK_OUTPUT_DIR") or "."),
            min_followers=int(overrides.get("min_followers") or env.get("DEVRANK_MIN_FOLLOWERS") or 100),
        )

        return cls(github=github, cache=cache, crawl=crawl)


def _read_token_file(path: str | None) -> str | None:
    if not path:
        return None
    try:
        token = Path(path).read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return token or None


__all__ = [
    "AppConfig",
    "GitHubSettings",
    "CacheSettings",
    "CrawlSettings",
    "UTC",
]
