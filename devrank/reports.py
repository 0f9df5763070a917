"""Markdown rankings of developers and projects."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

from .models import GitHubUser, RegionProject, Repository
from .regions import RegionConfig

PROJECT_LIMIT = 100


def _escape(text: str) -> str:
    return text.replace("|", "\\|")


def _repository_cell(repositories: Sequence[Repository], *, with_rank: bool) -> str:
    if not repositories:
        return "-"
    stars = sum(repo.stars for repo in repositories)
    forks = sum(repo.forks for repo in repositories)
    lines = [f"⭐ {stars:,} 🍴 {forks:,}<br/>"]
    entries = []
    for repo in repositories:
        entry = f"• [{repo.name}]({repo.html_url}) ({repo.stars:,}⭐)"
        if with_rank and repo.rank_display:
            entry += f" {repo.rank_display}"
        entries.append(entry)
    lines.append("<br/>".join(entries))
    return _escape("".join(lines))


def render_user_ranking(users: Sequence[GitHubUser], region: RegionConfig, generated_at: datetime) -> str:
    out = [
        f"# Popular GitHub developers in {region.name}",
        "",
        "> Score = followers + stars and forks of personal projects + rank-weighted stars and forks of",
        "> organization and contributed projects, where the weight is (contributors - rank + 1) / contributors.",
        ">",
        "> Developers need more than 10 points beyond their followers to be listed.",
        "",
        f"**Updated**: {generated_at:%Y-%m-%d %H:%M:%S}",
        f"**Developers**: {len(users)}",
        "",
        "| Rank | Score | Developer | Followers | Personal Projects | Top Org Projects | Top Contributed Projects |",
        "|------|-------|-----------|-----------|-------------------|------------------|--------------------------|",
    ]
    for index, user in enumerate(users, start=1):
        developer = f"[{user.login}]({user.html_url or f'https://github.com/{user.login}'})"
        if user.display_name:
            developer += f"<br/>{user.display_name}"
        if user.location:
            developer += f"<br/>📍 {user.location}"
        out.append(
            "| {rank} | **{score:.0f}** | {developer} | {followers:,} | {personal} | {organization} | {contributed} |".format(
                rank=index,
                score=user.score,
                developer=_escape(developer),
                followers=user.followers,
                personal=_repository_cell(user.top_repositories, with_rank=False),
                organization=_repository_cell(user.top_organization_repositories, with_rank=True),
                contributed=_repository_cell(user.top_contributed_repositories, with_rank=True),
            )
        )
    return "\n".join(out) + "\n"


def render_project_ranking(
    projects: Sequence[RegionProject],
    users: Sequence[GitHubUser],
    region: RegionConfig,
    generated_at: datetime,
    *,
    limit: int = PROJECT_LIMIT,
) -> str:
    shown = list(projects[:limit])
    names = {user.login.lower(): user.display_name for user in users}
    out = [
        f"# GitHub projects from {region.name}",
        "",
        "> Projects are listed when their owner is from the region, or when a developer from the region",
        "> is the top contributor of an organization or personal project. Sorted by stars.",
        "",
        f"**Updated**: {generated_at:%Y-%m-%d %H:%M:%S}",
        f"**Projects**: {len(shown)} (top {limit})",
        "",
        f"| Rank | {region.name} Contributors | Project | ⭐ Stars | 🍴 Forks | Language | Owner | Reason |",
        "|------|--------------|---------|----------|----------|----------|-------|--------|",
    ]
    region_logins = [user.login for user in users]
    for index, project in enumerate(shown, start=1):
        contributors = []
        for login in project.sorted_contributors(region_logins):
            entry = f"[{login}](https://github.com/{login})"
            if names.get(login.lower()):
                entry += f" ({names[login.lower()]})"
            contributors.append(entry)
        owner = f"[{project.owner_login}](https://github.com/{project.owner_login})"
        if names.get(project.owner_login.lower()):
            owner += f"<br/>{names[project.owner_login.lower()]}"
        out.append(
            "| {rank} | {contributors} | {project} | {stars:,} | {forks:,} | {language} | {owner} | {reason} |".format(
                rank=index,
                contributors=_escape(" ".join(contributors) or "-"),
                project=_escape(f"[{project.name}]({project.html_url})"),
                stars=project.stars,
                forks=project.forks,
                language=_escape(project.language or "-"),
                owner=_escape(owner),
                reason=_escape(project.reason),
            )
        )
    return "\n".join(out) + "\n"


def write_reports(
    directory: Path,
    users: Sequence[GitHubUser],
    projects: Sequence[RegionProject],
    region: RegionConfig,
    generated_at: datetime,
) -> list[Path]:
    """Write both rankings into ``directory`` and return the written paths."""

    directory.mkdir(parents=True, exist_ok=True)
    user_path = directory / "README.md"
    project_path = directory / f"{region.name}-Projects.md"
    user_path.write_text(render_user_ranking(users, region, generated_at), encoding="utf-8")
    project_path.write_text(render_project_ranking(projects, users, region, generated_at), encoding="utf-8")
    return [user_path, project_path]


__all__ = ["render_project_ranking", "render_user_ranking", "write_reports"]
