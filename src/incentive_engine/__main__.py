"""Command line entry point.

Usage:
    python -m incentive_engine                  # serve the API
    python -m incentive_engine serve --port 9000
    python -m incentive_engine init-db --database-url sqlite+aiosqlite:///dev.db
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn

from incentive_engine.config import configure_logging, get_settings
from incentive_engine.database import create_schema, get_engine

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="incentive-engine",
        description="Sales incentive engine",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.add_argument(
        "--reload",
        action="store_true",
        default=settings.debug,
        help="Reload on code changes (defaults to DEBUG)",
    )

    init_db = subparsers.add_parser("init-db", help="Create missing incentive tables")
    init_db.add_argument(
        "--database-url",
        default=None,
        help="Overrides DATABASE_URL",
    )
    return parser


async def _init_db(database_url: str | None) -> None:
    engine = get_engine(database_url)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "init-db":
        asyncio.run(_init_db(args.database_url))
        logger.info("Incentive tables are in place")
        return 0

    settings = get_settings()
    uvicorn.run(
        "incentive_engine.api.app:app",
        host=getattr(args, "host", settings.host),
        port=getattr(args, "port", settings.port),
        reload=getattr(args, "reload", settings.debug),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
