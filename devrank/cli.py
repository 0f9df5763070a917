"""Command line interface for the developer ranking crawler."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from .cache_store import CacheStore
from .config import AppConfig
from .crawler import RegionCrawler, publish_rankings
from .github_client import CrawlCancelled, GitHubAuthError, GitHubClientError, GitHubRestClient
from .regions import REGIONS, RegionConfig, UnknownRegionError, get_region
from .snapshot import SNAPSHOT_FILE_NAME, UserSnapshotStore
from .stats import ApiStats

app = typer.Typer(add_completion=False)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(region: Optional[str], output_dir: Optional[Path], **extra: object) -> tuple[AppConfig, RegionConfig]:
    overrides: dict[str, object] = {key: value for key, value in extra.items() if value}
    if region:
        overrides["region"] = region
    if output_dir:
        overrides["output_dir"] = output_dir
    config = AppConfig.from_env(overrides=overrides)
    try:
        region_config = get_region(config.crawl.region)
    except UnknownRegionError as exc:
        raise typer.BadParameter(exc.args[0]) from None
    return config, region_config


def _cache_directory(config: AppConfig, region: RegionConfig) -> Path:
    return config.cache.directory or config.crawl.output_dir / region.directory_name / "Cache"


@app.command("crawl")
def crawl(
    region: Optional[str] = typer.Option(None, help="Region key, see the 'regions' command"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    output_dir: Optional[Path] = typer.Option(None, file_okay=False, help="Directory holding the region folders"),
    min_followers: Optional[int] = typer.Option(None, help="Follower threshold of the user search"),
    skip_until: Optional[str] = typer.Option(None, help="Skip developers until this login or name"),
    refresh: bool = typer.Option(False, help="Re-score developers already present in the snapshot"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Crawl a region's developers and write the rankings."""

    configure_logging(log_level)
    config, region_config = _load_config(
        region, output_dir, github_token=github_token, min_followers=min_followers
    )
    if not config.github.token:
        raise typer.BadParameter("A GitHub token is required (GITHUB_TOKEN, GH_TOKEN or GITHUB_TOKEN_FILE)")

    region_dir = config.crawl.output_dir / region_config.directory_name
    cache = CacheStore(_cache_directory(config, region_config), config.cache.ttl)
    snapshot = UserSnapshotStore(region_dir / SNAPSHOT_FILE_NAME)

    async def runner() -> None:
        cancel_event = asyncio.Event()
        async with GitHubRestClient(config.github, cache, ApiStats(), cancel_event=cancel_event) as client:
            await client.verify_token()
            cache.load()
            try:
                crawler = RegionCrawler(config, region_config, client, snapshot, cache=cache)
                result = await crawler.crawl(skip_until=skip_until, refresh=refresh)
            finally:
                cache.save()
            typer.echo(
                f"Ranked {len(result.ranked_users)} developers and {len(result.projects)} projects in "
                f"{region_config.name} ({result.processed} processed, {result.failed} failed)."
            )

    try:
        asyncio.run(runner())
    except (KeyboardInterrupt, CrawlCancelled):
        typer.echo("Crawl interrupted; progress has been saved.", err=True)
        raise typer.Exit(code=130) from None
    except GitHubAuthError as exc:
        typer.echo(f"Authentication failed: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except GitHubClientError as exc:
        typer.echo(f"GitHub is unavailable: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("generate")
def generate(
    region: Optional[str] = typer.Option(None, help="Region key"),
    output_dir: Optional[Path] = typer.Option(None, file_okay=False, help="Directory holding the region folders"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Render the rankings from the saved snapshot only."""

    configure_logging(log_level)
    config, region_config = _load_config(region, output_dir)
    region_dir = config.crawl.output_dir / region_config.directory_name
    snapshot = UserSnapshotStore(region_dir / SNAPSHOT_FILE_NAME)
    if not snapshot.exists():
        typer.echo(f"No snapshot found at {snapshot.path}; run 'crawl' first.", err=True)
        raise typer.Exit(code=1)

    result = publish_rankings(snapshot.load(), region_config, region_dir)
    for path in result.reports:
        typer.echo(f"Wrote {path}")


@app.command("regions")
def regions() -> None:
    """List the configured regions."""

    for key, region in REGIONS.items():
        typer.echo(f"{key:16} {region.name} ({region.local_name}): {', '.join(region.locations)}")


@app.command("sweep-cache")
def sweep_cache(
    region: Optional[str] = typer.Option(None, help="Region key"),
    output_dir: Optional[Path] = typer.Option(None, file_okay=False, help="Directory holding the region folders"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Drop expired entries from a region's response cache."""

    configure_logging(log_level)
    config, region_config = _load_config(region, output_dir)
    cache = CacheStore(_cache_directory(config, region_config), config.cache.ttl)
    cache.load()
    removed = cache.sweep()
    cache.save()
    valid, _ = cache.counts()
    typer.echo(f"Removed {removed} expired entries; {valid} remain.")


__all__ = ["app", "configure_logging"]
