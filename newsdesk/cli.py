"""
Command-line interface for Newsdesk.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from newsdesk.agents.base import AgentMetrics
from newsdesk.core.article import UserPreferences
from newsdesk.core.pipeline import NewsPipeline
from newsdesk.core.scraper import generate_slug

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: bool = False):
    """
    Configure root logging for a CLI run.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Also write to a dated newsdesk_YYYYMMDD.log file
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(f"newsdesk_{datetime.now().strftime('%Y%m%d')}.log"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Newsdesk - News Curation Pipeline")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", action="store_true", help="Also log to a dated file")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Scrape and process article URLs")
    scrape.add_argument("urls", nargs="+", help="Article URLs")

    ingest = subparsers.add_parser("ingest", help="Process a JSON file of search results")
    ingest.add_argument("results", help="Path to a JSON list of search result records")
    ingest.add_argument("--min-quality", type=int, default=None, help="Minimum quality score to keep")

    feed = subparsers.add_parser("feed", help="Build a personalized feed from search results")
    feed.add_argument("results", help="Path to a JSON list of search result records")
    feed.add_argument("--prefs", required=True, help="Path to a JSON user preferences file")
    feed.add_argument("--limit", type=int, default=20, help="Maximum feed size")

    slug = subparsers.add_parser("slug", help="Print the slug for a title")
    slug.add_argument("title", help="Article title")

    return parser.parse_args(argv)


def load_json(path: str) -> Any:
    with open(Path(path), 'r', encoding='utf-8') as f:
        return json.load(f)


def emit(data: Any):
    print(json.dumps(data, indent=2, default=str))


async def run(args) -> int:
    if args.command == "slug":
        print(generate_slug(args.title))
        return 0

    metrics = AgentMetrics()
    try:
        async with NewsPipeline(metrics=metrics, show_progress=not args.no_progress) as pipeline:
            return await _dispatch(args, pipeline)
    finally:
        for agent, stats in metrics.snapshot().items():
            logger.debug(f"{agent}: {stats}")


async def _dispatch(args, pipeline: NewsPipeline) -> int:
    if args.command == "scrape":
        results = await pipeline.process_urls(args.urls)
        emit([result.to_dict() for result in results.values()])
        return 0 if results else 1

    records = load_json(args.results)
    if not isinstance(records, list):
        logger.error(f"{args.results} must contain a JSON list of records")
        return 2

    if args.command == "ingest":
        kwargs = {} if args.min_quality is None else {'min_quality_score': args.min_quality}
        crawl = await pipeline.ingest_results(records, **kwargs)
        emit(crawl.to_dict())
        return 0

    preferences = UserPreferences.from_dict(load_json(args.prefs))
    crawl = await pipeline.ingest_results(records)
    feed = await pipeline.personalized_feed(preferences, limit=args.limit, articles=crawl.articles)
    emit([article.to_dict() for article in feed])
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        return asyncio.run(run(args))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read input: {e}")
        return 2
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
