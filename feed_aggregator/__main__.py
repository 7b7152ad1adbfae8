"""Main entry point for the feed aggregator package."""

from feed_aggregator.cli import cli

if __name__ == "__main__":
    cli()
