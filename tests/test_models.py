from __future__ import annotations

from datetime import datetime, timezone

from devrank.models import ContributorRankInfo, GitHubUser, Repository


def test_repository_from_api_parses_fields():
    payload = {
        "name": "demo",
        "full_name": "acme/demo",
        "stargazers_count": 42,
        "forks_count": 3,
        "html_url": "https://github.com/acme/demo",
        "language": None,
        "fork": "false",
        "owner": {"login": "acme", "type": "Organization"},
    }

    repo = Repository.from_api(payload)

    assert repo.full_name == "acme/demo"
    assert repo.owner_login == "acme"
    assert repo.stars == 42
    assert repo.forks == 3
    assert repo.language == ""
    assert repo.is_fork is False
    assert repo.is_organization_owned is True
    assert repo.popularity == 45


def test_repository_from_api_defaults_missing_counts():
    repo = Repository.from_api({"name": "x", "stargazers_count": None, "forks_count": "n/a", "fork": True})

    assert repo.stars == 0
    assert repo.forks == 0
    assert repo.is_fork is True
    assert repo.owner_login == ""


def test_with_rank_copies_rank_information():
    repo = Repository(full_name="acme/demo", stars=5)

    ranked = repo.with_rank(ContributorRankInfo(is_contributor=True, rank=2, total_contributors=7))

    assert ranked.rank_display == "(rank 2/7)"
    assert ranked.has_rank is True
    assert repo.has_rank is False
    assert repo.rank_display == ""


def test_user_from_api_defaults_name_to_login():
    user = GitHubUser.from_api({"login": "octocat", "followers": 120, "created_at": "2011-01-25T18:44:36Z"})

    assert user.name == "octocat"
    assert user.display_name == ""
    assert user.type == "User"
    assert user.created_at == datetime(2011, 1, 25, 18, 44, 36, tzinfo=timezone.utc)


def test_user_update_profile_refreshes_detail_fields():
    user = GitHubUser.from_api({"login": "octocat", "html_url": "https://github.com/octocat"})
    detail = GitHubUser.from_api(
        {"login": "octocat", "name": "The Octocat", "location": "Taipei", "followers": 900, "type": "User"}
    )

    user.update_profile(detail)

    assert user.display_name == "The Octocat"
    assert user.location == "Taipei"
    assert user.followers == 900
    assert user.html_url == "https://github.com/octocat"


def test_organization_detection():
    assert GitHubUser.from_api({"login": "acme", "type": "Organization"}).is_organization is True
