"""Reputation score of a developer.

``score = followers + personal + organization + contributed`` where

* ``personal`` is the stars plus forks of the top owned repositories;
* ``organization`` and ``contributed`` weight the stars plus forks of each
  top repository by the developer's rank percentage,
  ``(total - rank + 1) / total``. Rank 1 of N counts fully, rank N of N
  counts 1/N. Repositories without rank data count fully.

A developer whose non-follower score is at most ``minimum_other_score`` is
rejected: followers alone never qualify anybody. Organizations are never
scored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .models import GitHubUser, Repository

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ScoreBreakdown:
    followers: float
    personal: float
    organization: float
    contributed: float

    @property
    def other(self) -> float:
        return self.personal + self.organization + self.contributed

    @property
    def total(self) -> float:
        return self.followers + self.personal + self.organization + self.contributed


@dataclass(slots=True, frozen=True)
class ScoreResult:
    score: float
    accept: bool
    breakdown: ScoreBreakdown | None = None
    reason: str = ""


def rank_percentage(repo: Repository) -> float:
    if not repo.has_rank:
        return 1.0
    return (repo.total_contributors - repo.contributor_rank + 1) / repo.total_contributors


def rank_based_score(repositories: Iterable[Repository]) -> float:
    total = 0.0
    for repo in repositories:
        if repo.has_rank:
            percentage = rank_percentage(repo)
            total += percentage * repo.stars + percentage * repo.forks
        else:
            total += repo.stars + repo.forks
    return total


def personal_score(repositories: Iterable[Repository]) -> float:
    return sum(repo.stars * 1.0 + repo.forks * 1.0 for repo in repositories)


def score_user(user: GitHubUser, *, minimum_other_score: float = 10.0) -> ScoreResult:
    """Score ``user`` from its already collected top repositories."""

    if user.is_organization:
        return ScoreResult(score=0.0, accept=False, reason="organization")

    breakdown = ScoreBreakdown(
        followers=user.followers * 1.0,
        personal=personal_score(user.top_repositories),
        organization=rank_based_score(user.top_organization_repositories),
        contributed=rank_based_score(user.top_contributed_repositories),
    )
    if breakdown.other <= minimum_other_score:
        LOGGER.info(
            "Rejecting %s: non-follower score %.0f does not exceed %.0f (personal %.0f, organization %.0f, contributed %.0f)",
            user.login,
            breakdown.other,
            minimum_other_score,
            breakdown.personal,
            breakdown.organization,
            breakdown.contributed,
        )
        return ScoreResult(score=breakdown.total, accept=False, breakdown=breakdown, reason="insufficient project score")

    LOGGER.info(
        "%s scores %.0f (followers %s, personal %.0f, organization %.0f, contributed %.0f)",
        user.login,
        breakdown.total,
        user.followers,
        breakdown.personal,
        breakdown.organization,
        breakdown.contributed,
    )
    return ScoreResult(score=breakdown.total, accept=True, breakdown=breakdown)


def rank_users(users: Iterable[GitHubUser]) -> list[GitHubUser]:
    """Accepted individual developers, best score first."""

    ranked = [user for user in users if not user.is_organization and user.accepted]
    return sorted(ranked, key=lambda user: user.score, reverse=True)


__all__ = [
    "ScoreBreakdown",
    "ScoreResult",
    "personal_score",
    "rank_based_score",
    "rank_percentage",
    "rank_users",
    "score_user",
]
