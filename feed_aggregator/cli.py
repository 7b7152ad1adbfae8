"""Command line interface for the feed aggregator."""
import asyncio
import json
from functools import wraps

import click
import structlog
from dotenv import load_dotenv
from pydantic import ValidationError as ModelValidationError

from feed_aggregator.aggregator import FeedAggregator
from feed_aggregator.config import AggregatorConfig, ExpiredSubmissionPolicy
from feed_aggregator.errors import BaseError
from feed_aggregator.logging_config import configure_logging
from feed_aggregator.storage.sqlite_store import SQLiteConfig, SQLiteStore

logger = structlog.get_logger(__name__)


def async_command(f):
    """Decorator to run async Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


@click.group()
@click.option("--log-level", envvar="FEED_AGGREGATOR_LOG_LEVEL", default=None, help="Log level")
@click.option("--json-logs", is_flag=True, default=None, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx, log_level, json_logs):
    """Aggregate feed items into a cached JSON Feed."""
    load_dotenv()
    try:
        config = AggregatorConfig.from_env()
        if log_level:
            config.log_level = log_level
        if json_logs:
            config.json_logs = True
        configure_logging(config.log_level, config.json_logs)
    except BaseError as e:
        raise click.ClickException(e.message)
    ctx.obj = config


@cli.command()
@click.argument("submissions_file", type=click.File("r"))
@click.option("--prefix", required=True, help="Key prefix for this feed, parts separated by '/'")
@click.option("--title", required=True, help="Feed title")
@click.option("--home-page-url", default=None, help="Feed home page URL")
@click.option("--feed-url", default=None, help="Feed URL")
@click.option("--db-path", envvar="FEED_AGGREGATOR_DB_PATH", default=None, type=click.Path())
@click.option("--output", "-o", type=click.File("w"), default="-", help="Output file")
@click.option("--reject-expired", is_flag=True, help="Fail on submissions that already expired")
@click.pass_obj
@async_command
async def render(
    config: AggregatorConfig,
    submissions_file,
    prefix: str,
    title: str,
    home_page_url: str,
    feed_url: str,
    db_path: str,
    output,
    reject_expired: bool,
):
    """Merge SUBMISSIONS_FILE into the cache and write the feed.

    SUBMISSIONS_FILE is a JSON array of objects with an ``item`` and optional
    ``expire_at`` and ``approximate_date``. Use ``-`` to read from stdin.
    """
    if db_path:
        config.db_path = db_path
    if reject_expired:
        config.expired_submission_policy = ExpiredSubmissionPolicy.REJECT

    try:
        submissions = json.load(submissions_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid submissions file: {e}")
    if not isinstance(submissions, list) or not all(isinstance(s, dict) for s in submissions):
        raise click.ClickException("Submissions file must contain a JSON array of objects")

    info = {"title": title, "home_page_url": home_page_url, "feed_url": feed_url}
    store = SQLiteStore(SQLiteConfig(db_path=config.db_path))
    try:
        aggregator = FeedAggregator(
            store,
            [part for part in prefix.split("/") if part],
            {k: v for k, v in info.items() if v is not None},
            config=config,
        )
        await aggregator.add(*submissions)
        document = await aggregator.render()
    except BaseError as e:
        logger.error("Failed to render feed", error=e.message, details=e.details)
        raise click.ClickException(e.message)
    except ModelValidationError as e:
        raise click.ClickException(f"Invalid submission: {e}")
    finally:
        store.close()

    output.write(document)
    output.write("\n")


@cli.command()
@click.option("--db-path", envvar="FEED_AGGREGATOR_DB_PATH", default=None, type=click.Path())
@click.pass_obj
def purge(config: AggregatorConfig, db_path: str):
    """Delete expired entries from the cache database."""
    store = SQLiteStore(SQLiteConfig(db_path=db_path or config.db_path))
    try:
        count = store.purge_expired()
    except BaseError as e:
        raise click.ClickException(e.message)
    finally:
        store.close()
    click.echo(f"Purged {count} expired entries")
