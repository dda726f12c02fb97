"""MCP server exposing the blog's read and write operations.

Reads go through the cache-backed ``ContentApi``; writes go through
``Mutations`` and revalidate the cache paths they make stale. Every tool
returns JSON-ready data, or None when the data is missing.

Token: passed via --token-file <path> (or NOTION_KEY) at startup.
"""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from .assembler import ContentApi
from .cache import DiskCache
from .client import NotionClient
from .config import Settings, build_arg_parser, load_settings
from .gate import CallGate
from .mutations import LikeAction, Mutations

logger = logging.getLogger("notion-blog")

mcp = FastMCP("notion-blog", host="127.0.0.1", port=2052)

_api: Optional[ContentApi] = None
_mutations: Optional[Mutations] = None


def configure(settings: Settings) -> ContentApi:
    """Build the shared client, gate and cache for the tools."""
    global _api, _mutations
    client = NotionClient(settings.token, max_retries=settings.max_retries)
    gate = CallGate(
        limit=settings.rate_limit,
        interval=settings.rate_interval,
        max_concurrency=settings.max_concurrency,
    )
    _api = ContentApi(client, gate, DiskCache(settings.cache_dir), settings)
    _mutations = Mutations(_api)
    return _api


def _get_api() -> ContentApi:
    if _api is None:
        raise RuntimeError("Server not configured. Call configure() first.")
    return _api


def _get_mutations() -> Mutations:
    if _mutations is None:
        raise RuntimeError("Server not configured. Call configure() first.")
    return _mutations


# =============================================================================
# Reads
# =============================================================================

@mcp.tool()
async def get_page(id: str) -> Optional[dict]:
    """Page metadata with resolved authors/tags, content and top-level comments."""
    return await _get_api().get_page_aggregate(id)


@mcp.tool()
async def get_block_children(id: str) -> Optional[dict]:
    """Content and direct-child comments of a page or comment (uncached)."""
    blocks = await _get_api().get_block_children(id)
    return blocks.to_dict() if blocks else None


@mcp.tool()
async def get_comment(breadcrumb: list[str]) -> Optional[dict]:
    """Comment addressed by [page_id, comment_id, ...] with its content and replies."""
    return await _get_api().get_comment(breadcrumb)


@mcp.tool()
async def get_breadcrumbs(breadcrumb: list[str]) -> Optional[dict]:
    """Page metadata plus the header of every comment along the breadcrumb."""
    return await _get_api().get_breadcrumbs(breadcrumb)


@mcp.tool()
async def get_relations(ids: list[str]) -> list[dict]:
    """Resolve page ids to {id, name}; unresolvable ids give {id: null, name: null}."""
    return await _get_api().get_relations(ids)


@mcp.tool()
async def get_pages_list(cursor: Optional[str] = None, author: Optional[str] = None) -> Optional[dict]:
    """Published pages, ten at a time, optionally filtered by author id."""
    return await _get_api().get_pages_list(cursor, author)


@mcp.tool()
async def get_drafts_list(user_id: str, cursor: Optional[str] = None) -> Optional[dict]:
    """Unpublished pages authored by the user."""
    return await _get_api().get_drafts_list(user_id, cursor)


@mcp.tool()
async def get_draft(user_id: str, page_id: str) -> Optional[dict]:
    """One unpublished page with its content, visible only to its authors."""
    return await _get_api().get_draft(user_id, page_id)


@mcp.tool()
async def get_published(id: str) -> Optional[str]:
    """Publish date of a page, or null while it is a draft."""
    return await _get_api().get_published(id)


@mcp.tool()
async def get_user_info(id: str) -> Optional[dict]:
    """User profile: name, image and bio."""
    return await _get_api().get_user_info(id)


@mcp.tool()
async def get_likes(user_id: str, page_id: str) -> Optional[dict]:
    """Like/dislike counts of a page and the user's own vote."""
    return await _get_api().get_likes(user_id, page_id)


# =============================================================================
# Writes
# =============================================================================

@mcp.tool()
async def post_comment(breadcrumb: list[str], author_id: str, content: str) -> Optional[dict]:
    """Reply under the last id of the breadcrumb.

    Args:
        breadcrumb: [page_id, comment_id, ...] of the page or comment replied to.
        author_id: Id of the author's user page.
        content: Comment body. Paragraphs separated by blank lines, inline
            **bold**, *italic*, ~~strike~~, `code`, [text](url), $math$.
    """
    result = await _get_mutations().post_comment(breadcrumb, author_id, content)
    return result.to_dict() if result else None


@mcp.tool()
async def update_user_info(id: str, content: str) -> Optional[list[dict]]:
    """Replace the user's bio with the given paragraphs."""
    blocks = await _get_mutations().update_user_info(id, content)
    return [block.to_dict() for block in blocks] if blocks is not None else None


@mcp.tool()
async def update_user_name(id: str, name: str) -> Optional[str]:
    """Rename the user."""
    return await _get_mutations().update_user_name(id, name)


@mcp.tool()
async def update_user_image(id: str, url: str) -> Optional[str]:
    """Set the user's avatar URL."""
    return await _get_mutations().update_user_image(id, url)


@mcp.tool()
async def create_draft(user_id: str, content: str, title: Optional[str] = None) -> Optional[dict]:
    """Create an unpublished page authored by the user."""
    return await _get_mutations().create_draft(user_id, content, title)


@mcp.tool()
async def publish_draft(user_id: str, page_id: str) -> Optional[str]:
    """Publish a draft the user authored; returns the publish timestamp."""
    return await _get_mutations().publish_draft(user_id, page_id)


@mcp.tool()
async def post_like(user_id: str, page_id: str, action: LikeAction) -> Optional[dict]:
    """Toggle the user's like ("likes") or dislike ("dislikes") of a page."""
    return await _get_mutations().post_like(user_id, page_id, action)


# =============================================================================
# HTTP Endpoints (/health)
# =============================================================================

async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint for easy testing."""
    configured = _api is not None

    auth_status = None
    if configured:
        me = await _api.gate.call(_api.client.users_me)
        auth_status = me.get("bot", {}).get("workspace_name", "connected") if me else "error"

    return JSONResponse({
        "status": "ok",
        "configured": configured,
        "workspace": auth_status,
    })


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Run the blog MCP server.

    Usage:
        notion-blog --token-file ~/.notion-token --page-db <id>          # stdio
        notion-blog --token-file ~/.notion-token --page-db <id> --http   # localhost:2052
    """
    args = build_arg_parser().parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    try:
        settings = load_settings(args)
    except RuntimeError as e:
        logger.error(str(e))
        raise SystemExit(1)
    configure(settings)
    logger.info(f"Serving pages database {settings.page_db}, cache at {settings.cache_dir}")

    if args.http:
        import uvicorn

        app = mcp.streamable_http_app()
        app.add_route("/health", health_endpoint, methods=["GET"])

        logger.info("Starting blog MCP server on http://127.0.0.1:2052")
        uvicorn.run(app, host="127.0.0.1", port=2052, log_level="warning")
    else:
        mcp.run()


if __name__ == "__main__":
    main()
