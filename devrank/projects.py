"""Fold the ranked developers' repositories into a regional project ranking."""

from __future__ import annotations

from typing import Iterable

from .models import ORGANIZATION, USER, GitHubUser, RegionProject, Repository
from .regions import RegionConfig


def build_region_projects(users: Iterable[GitHubUser], region: RegionConfig) -> list[RegionProject]:
    """Projects owned by, or led by, developers of ``region``, most starred first.

    Owned repositories always count. Organization and contributed repositories
    count only when the developer is their top contributor (rank 1), even
    though any rank contributes to the developer's own score.
    """

    projects: dict[str, RegionProject] = {}

    def add(repo: Repository, login: str, owner_type: str, reason: str) -> None:
        project = projects.get(repo.full_name)
        if project is None:
            projects[repo.full_name] = RegionProject(
                name=repo.name,
                full_name=repo.full_name,
                stars=repo.stars,
                forks=repo.forks,
                html_url=repo.html_url,
                language=repo.language,
                owner_login=repo.owner_login,
                owner_type=owner_type,
                reason=reason,
                region_contributors=[login],
            )
        else:
            project.add_contributor(login)

    for user in users:
        for repo in user.top_repositories:
            owner_type = ORGANIZATION if repo.is_organization_owned else USER
            add(repo, user.login, owner_type, f"Owner {user.login} is from {region.name}")
        for repo in user.top_organization_repositories:
            if repo.contributor_rank == 1:
                add(repo, user.login, ORGANIZATION, f"{region.name} developer {user.login} is the top contributor")
        for repo in user.top_contributed_repositories:
            if repo.contributor_rank == 1:
                add(repo, user.login, USER, f"{region.name} developer {user.login} is the top contributor")

    return sorted(projects.values(), key=lambda project: project.stars, reverse=True)


__all__ = ["build_region_projects"]
