"""Command-line interface for the feed aggregator."""

import asyncio
import json
import logging
import logging.config
import signal
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from feed_aggregator.collector.error_handler import ConfigurationError
from feed_aggregator.collector.reddit_client import RedditClient
from feed_aggregator.collector.redgifs_client import RedGifsClient
from feed_aggregator.collector.scrape_runner import ScrapeRunner
from feed_aggregator.config import Config
from feed_aggregator.feed.controller import FeedController
from feed_aggregator.feed.sources import RedditSource, RedGifsSource
from feed_aggregator.monitoring.metrics import PrometheusExporter
from feed_aggregator.storage.factory import create_store

app = typer.Typer(help="Feed Aggregator - Collect and de-duplicate short videos from Reddit and RedGifs")

logger = logging.getLogger(__name__)

ConfigOption = Annotated[Optional[str], typer.Option("--config", "-c", help="Path to YAML configuration file")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")]


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = "logs/feed_aggregator.log") -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating log file path; None logs to the console only
    """
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "standard",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 10485760,  # 10 MB
            "backupCount": 5,
            "encoding": "utf8",
        }

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers),
                "level": log_level,
                "propagate": True,
            },
            "asyncio": {
                "level": "WARNING",
            },
            "aiohttp": {
                "level": "WARNING",
            },
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        },
    }

    logging.config.dictConfig(log_config)


def load_config(config_path: Optional[str], verbose: bool) -> Config:
    setup_logging("DEBUG" if verbose else "INFO")
    return Config.from_files(config_path)


def create_exporter(config: Config) -> Optional[PrometheusExporter]:
    if not config.monitoring.enable_prometheus:
        return None
    exporter = PrometheusExporter(port=config.monitoring.prometheus_port)
    exporter.start_server()
    return exporter


async def run_scrape(config: Config, schedule: bool) -> None:
    """
    Scrape both sources once, optionally staying up on the cron schedule.

    Args:
        config: Application configuration
        schedule: Keep running on ``config.scraper.cron`` after the first run
    """
    exporter = create_exporter(config)
    store = create_store(config.storage)

    async with RedditClient(config.reddit, prometheus_exporter=exporter) as reddit_client, \
            RedGifsClient(config.redgifs, prometheus_exporter=exporter) as redgifs_client:
        runner = ScrapeRunner(config, store, reddit_client, redgifs_client, exporter)

        if not schedule:
            await runner.run_once()
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, runner.stop)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

        await runner.run_scheduled()


async def run_feed(config: Config, loads: int) -> FeedController:
    """Build a feed the way a viewer session would and scroll through it."""
    exporter = create_exporter(config)
    store = create_store(config.storage)

    async with RedditClient(config.reddit, prometheus_exporter=exporter) as reddit_client, \
            RedGifsClient(config.redgifs, prometheus_exporter=exporter) as redgifs_client:
        controller = FeedController(
            store,
            RedditSource(reddit_client),
            RedGifsSource(redgifs_client),
            config.feed,
            prometheus_exporter=exporter,
        )
        await controller.initial_load()
        typer.echo(f"Initial feed: {len(controller.videos)} videos")

        for cycle in range(loads):
            controller.set_position(len(controller.videos) - 1)
            added = await controller.load_more()
            typer.echo(
                f"Load {cycle + 1}: +{added} videos "
                f"(total {len(controller.videos)}, empty streak {controller.empty_streak})"
            )

        return controller


@app.command()
def scrape(
    schedule: Annotated[bool, typer.Option("--schedule", help="Keep running on the SCRAPER_CRON schedule")] = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Scrape Reddit and RedGifs into the video store."""
    config = load_config(config_path, verbose)
    try:
        asyncio.run(run_scrape(config, schedule))
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration, aborting: {e}")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        logger.info("Scraper interrupted")


@app.command()
def reddit(
    subreddit: Annotated[List[str], typer.Argument(help="Subreddits to fetch")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Posts per subreddit")] = 25,
    sort: Annotated[str, typer.Option("--sort", help="hot, top, rising or new")] = "hot",
    after: Annotated[Optional[str], typer.Option("--after", help="Pagination cursor (single subreddit)")] = None,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Fetch Reddit video posts and print them as JSON."""
    config = load_config(config_path, verbose)

    async def fetch():
        async with RedditClient(config.reddit) as client:
            if len(subreddit) == 1:
                page = await client.fetch_page(subreddit[0], limit, sort, after)
                return {"videos": page.items, "after": page.next_cursor}
            return {"videos": await client.fetch_multiple(subreddit, limit, sort)}

    try:
        result = asyncio.run(fetch())
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration, aborting: {e}")
        raise typer.Exit(code=1)

    typer.echo(json.dumps(result, indent=2))


@app.command()
def redgifs(
    tags: Annotated[Optional[str], typer.Option("--tags", help="Comma-separated tags (default: trending)")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum items")] = 50,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Fetch RedGifs media and print it as JSON."""
    config = load_config(config_path, verbose)
    tag_list = [tag.strip() for tag in (tags or "").split(",") if tag.strip()]

    async def fetch():
        async with RedGifsClient(config.redgifs) as client:
            if tag_list:
                return await client.fetch_by_tags(tag_list, limit)
            return await client.fetch_trending(limit)

    typer.echo(json.dumps(asyncio.run(fetch()), indent=2))


@app.command()
def feed(
    loads: Annotated[int, typer.Option("--loads", help="Load-more cycles to run after the initial load")] = 3,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Simulate a viewer session: initial load then N load-more cycles."""
    config = load_config(config_path, verbose)
    try:
        controller = asyncio.run(run_feed(config, loads))
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration, aborting: {e}")
        raise typer.Exit(code=1)

    for video in controller.videos:
        typer.echo(f"{video.source.value:8} {video.id:40} {video.title or ''}")


@app.command()
def validate(
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Validate configuration and exit non-zero on problems."""
    config = load_config(config_path, verbose)
    errors = config.validate()
    if errors:
        for error in errors:
            typer.echo(f"Configuration error: {error}", err=True)
        raise typer.Exit(code=1)
    typer.echo("Configuration OK")


if __name__ == "__main__":
    app()
