"""Runtime settings: token, database ids, cache folder and gate limits."""

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .cache import DEFAULT_CACHE_DIR
from .gate import DEFAULT_INTERVAL, DEFAULT_LIMIT, DEFAULT_MAX_CONCURRENCY

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    token: str
    page_db: str
    cache_dir: str = DEFAULT_CACHE_DIR
    rate_limit: int = DEFAULT_LIMIT
    rate_interval: float = DEFAULT_INTERVAL
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_retries: int = 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Notion blog content server")
    parser.add_argument(
        "--token-file",
        help="Path to file containing Notion API token (default: $NOTION_KEY)"
    )
    parser.add_argument("--page-db", help="Pages database id (default: $NOTION_PAGE_DB_ID)")
    parser.add_argument(
        "--cache-dir",
        help=f"Cache folder (default: $NOTION_BLOG_CACHE_DIR or {DEFAULT_CACHE_DIR})"
    )
    parser.add_argument("--rate-limit", type=int, default=DEFAULT_LIMIT,
                        help="Upstream calls allowed per interval")
    parser.add_argument("--rate-interval", type=float, default=DEFAULT_INTERVAL,
                        help="Rate limit interval in seconds")
    parser.add_argument("--max-concurrency", type=int, default=DEFAULT_MAX_CONCURRENCY,
                        help="Upstream calls allowed in flight")
    parser.add_argument("--retries", type=int, default=0,
                        help="Retries for rate-limited (429) responses")
    parser.add_argument(
        "--http",
        action="store_true",
        help="Run as HTTP server on localhost:2052 instead of stdio"
    )
    return parser


def _read_token(token_file: Optional[str], environ: Mapping[str, str]) -> str:
    if token_file:
        token_path = Path(token_file).expanduser()
        if not token_path.exists():
            raise RuntimeError(f"Token file not found: {token_path}")
        token = token_path.read_text().strip()
        if not token:
            raise RuntimeError("Token file is empty")
        logger.info(f"Notion token loaded from {token_path}")
        return token
    token = environ.get("NOTION_KEY", "").strip()
    if not token:
        raise RuntimeError(
            "No Notion token. Pass --token-file <path> or set NOTION_KEY."
        )
    return token


def load_settings(
    args: argparse.Namespace,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from parsed CLI arguments, falling back to environment.

    Raises:
        RuntimeError: If the token or the pages database id is missing.
    """
    env = os.environ if environ is None else environ

    page_db = args.page_db or env.get("NOTION_PAGE_DB_ID")
    if not page_db:
        raise RuntimeError("No pages database. Pass --page-db or set NOTION_PAGE_DB_ID.")

    return Settings(
        token=_read_token(args.token_file, env),
        page_db=page_db,
        cache_dir=args.cache_dir or env.get("NOTION_BLOG_CACHE_DIR") or DEFAULT_CACHE_DIR,
        rate_limit=args.rate_limit,
        rate_interval=args.rate_interval,
        max_concurrency=args.max_concurrency,
        max_retries=args.retries,
    )
