"""Command-line entry point.

Usage::

    sihscope scrape                     # every configured year, newest first
    sihscope scrape --years 2024 2023   # selected years
    sihscope scrape --force --deadline 600
    sihscope serve --port 3001
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import orjson
import structlog

from config.settings import settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sihscope",
        description="Smart India Hackathon problem statement scraper",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Run a scrape campaign and print the summary")
    scrape.add_argument("--years", nargs="+", type=int, help="Edition years (default: configured range)")
    scrape.add_argument("--force", action="store_true", help="Ignore session freshness")
    scrape.add_argument("--deadline", type=float, default=None, help="Campaign deadline in seconds")

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=settings.api_host)
    serve.add_argument("--port", type=int, default=settings.api_port)

    return parser


async def _scrape(years: list[int] | None, force: bool, deadline: float | None) -> dict:
    from sihscope.main import build_pipeline
    from sihscope.services.scraping.campaign import summarize

    pipeline = build_pipeline()
    try:
        outcomes = await pipeline.runner.run(years, deadline=deadline, force=force)
    finally:
        await pipeline.close()
    return summarize(outcomes)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("sihscope.main:app", host=args.host, port=args.port)
        return 0

    from sihscope.main import _configure_logging

    _configure_logging(stream=sys.stderr)
    summary = asyncio.run(_scrape(args.years, args.force, args.deadline))
    sys.stdout.write(orjson.dumps(summary, option=orjson.OPT_INDENT_2).decode() + "\n")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
