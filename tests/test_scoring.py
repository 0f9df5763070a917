from __future__ import annotations

import pytest

from devrank.models import GitHubUser, Repository
from devrank.scoring import (
    personal_score,
    rank_based_score,
    rank_percentage,
    rank_users,
    score_user,
)


def repo(stars: int, forks: int = 0, *, rank: int = 0, total: int = 0) -> Repository:
    return Repository(
        name=f"r{stars}",
        full_name=f"x/r{stars}",
        stars=stars,
        forks=forks,
        contributor_rank=rank,
        total_contributors=total,
    )


def test_rank_percentage_weights_top_contributor_fully():
    assert rank_percentage(repo(10, rank=1, total=4)) == 1.0
    assert rank_percentage(repo(10, rank=4, total=4)) == 0.25
    assert rank_percentage(repo(10)) == 1.0


def test_rank_based_score_of_second_of_five():
    assert rank_based_score([repo(100, 20, rank=2, total=5)]) == pytest.approx(96.0)


def test_rank_based_score_without_rank_counts_fully():
    assert rank_based_score([repo(7, 3)]) == 10.0


def test_personal_score_sums_stars_and_forks():
    assert personal_score([repo(10, 2), repo(5, 1)]) == 18.0


def test_followers_alone_never_qualify():
    user = GitHubUser(
        login="famous",
        followers=150,
        top_organization_repositories=[repo(5, rank=1, total=1)],
        top_contributed_repositories=[repo(4, rank=1, total=1)],
    )

    result = score_user(user)

    assert result.accept is False
    assert result.breakdown.other == 9.0


def test_other_score_of_exactly_ten_is_rejected():
    user = GitHubUser(login="edge", followers=1000, top_repositories=[repo(8, 2)])

    assert score_user(user).accept is False


def test_other_score_above_ten_is_accepted():
    user = GitHubUser(
        login="dev",
        followers=200,
        top_repositories=[repo(8, 3)],
        top_organization_repositories=[repo(100, 20, rank=2, total=5)],
    )

    result = score_user(user)

    assert result.accept is True
    assert result.score == pytest.approx(200 + 11 + 96)
    assert result.breakdown.personal == 11.0
    assert result.breakdown.organization == pytest.approx(96.0)
    assert result.breakdown.contributed == 0.0


def test_organizations_are_never_scored():
    org = GitHubUser(login="acme", type="Organization", followers=5000, top_repositories=[repo(9000)])

    result = score_user(org)

    assert result.accept is False
    assert result.score == 0.0


def test_minimum_other_score_is_configurable():
    user = GitHubUser(login="dev", top_repositories=[repo(8, 2)])

    assert score_user(user, minimum_other_score=5.0).accept is True


def test_rank_users_filters_and_sorts_stably():
    users = [
        GitHubUser(login="low", score=50.0, accepted=True),
        GitHubUser(login="tie-first", score=80.0, accepted=True),
        GitHubUser(login="rejected", score=0.0, accepted=False),
        GitHubUser(login="tie-second", score=80.0, accepted=True),
        GitHubUser(login="acme", type="Organization", score=999.0, accepted=True),
        GitHubUser(login="unscored"),
    ]

    ranked = rank_users(users)

    assert [user.login for user in ranked] == ["tie-first", "tie-second", "low"]
