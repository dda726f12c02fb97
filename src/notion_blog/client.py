"""Async Notion API transport.

Thin wrapper over httpx exposing the endpoints the content layer uses. It
raises on failure; callers go through the call gate, which converts
failures to ``None``.
"""

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

from .ids import to_canonical

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Retry configuration (429 only)
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_JITTER_MAX = 0.5  # max random jitter to add (seconds)


def compute_retry_delay(attempt: int, retry_after: float | None = None) -> float:
    """Compute exponential backoff delay with jitter for rate limiting.

    Args:
        attempt: Current retry attempt number (0-indexed).
        retry_after: Optional Retry-After header value from server.

    Returns:
        Delay in seconds, including random jitter to prevent thundering herd.
    """
    base_delay = RETRY_BASE_DELAY * (2 ** attempt)
    if retry_after is not None:
        base_delay = max(retry_after, base_delay)
    return base_delay + random.uniform(0, RETRY_JITTER_MAX)


def http_error_detail(e: httpx.HTTPStatusError, max_len: int = 300) -> str:
    """Extract error detail from an HTTP status error."""
    if e.response is not None:
        return e.response.text[:max_len]
    return str(e)


class NotionClient:
    """Authenticated async client for the Notion endpoints used here.

    Ids may be passed compact or canonical; canonical ids are sent upstream.
    """

    def __init__(
        self,
        token: str,
        *,
        notion_version: str = NOTION_VERSION,
        base_url: str = NOTION_API_BASE,
        timeout: float = 30.0,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            token: Notion integration token.
            notion_version: Value of the Notion-Version header.
            base_url: API root.
            timeout: Request timeout in seconds.
            max_retries: How many times a 429 response is retried.
            transport: Optional httpx transport (used by tests).
        """
        self.max_retries = max_retries
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        json_body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        """Make an authenticated request, backing off on 429.

        Raises:
            httpx.HTTPStatusError: On any non-2xx response once retries run out.
            httpx.HTTPError: On transport failures.
        """
        if method not in ("GET", "POST", "PATCH", "DELETE"):
            raise ValueError(f"Unsupported method: {method}")

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        attempt = 0
        while True:
            response = await self._http.request(
                method,
                endpoint,
                json=json_body if method in ("POST", "PATCH") else None,
                params=clean_params or None,
            )
            if response.status_code == 429 and attempt < self.max_retries:
                retry_after = float(response.headers.get("Retry-After", RETRY_BASE_DELAY))
                delay = compute_retry_delay(attempt, retry_after)
                logger.warning(f"Rate limited, waiting {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
                attempt += 1
                continue
            response.raise_for_status()
            return response.json()

    # Pages

    async def pages_retrieve(self, page_id: str) -> dict:
        return await self.request("GET", f"/pages/{to_canonical(page_id)}")

    async def pages_update(self, page_id: str, properties: dict[str, Any]) -> dict:
        return await self.request(
            "PATCH", f"/pages/{to_canonical(page_id)}", {"properties": properties}
        )

    async def pages_create(
        self,
        database_id: str,
        properties: dict[str, Any],
        children: Optional[list[dict]] = None,
    ) -> dict:
        body: dict[str, Any] = {
            "parent": {"database_id": to_canonical(database_id)},
            "properties": properties,
        }
        if children:
            body["children"] = children
        return await self.request("POST", "/pages", body)

    async def pages_properties_retrieve(
        self,
        page_id: str,
        property_id: str,
        start_cursor: Optional[str] = None,
    ) -> dict:
        return await self.request(
            "GET",
            f"/pages/{to_canonical(page_id)}/properties/{property_id}",
            params={"start_cursor": start_cursor},
        )

    # Databases

    async def databases_query(
        self,
        database_id: str,
        filter_obj: Optional[dict] = None,
        sorts: Optional[list] = None,
        page_size: int = 100,
        start_cursor: Optional[str] = None,
    ) -> dict:
        body: dict[str, Any] = {"page_size": page_size}
        if filter_obj:
            body["filter"] = filter_obj
        if sorts:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor
        return await self.request(
            "POST", f"/databases/{to_canonical(database_id)}/query", body
        )

    # Blocks

    async def blocks_retrieve(self, block_id: str) -> dict:
        return await self.request("GET", f"/blocks/{to_canonical(block_id)}")

    async def blocks_update(self, block_id: str, block: dict) -> dict:
        return await self.request("PATCH", f"/blocks/{to_canonical(block_id)}", block)

    async def blocks_children_list(
        self,
        block_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = 100,
    ) -> dict:
        return await self.request(
            "GET",
            f"/blocks/{to_canonical(block_id)}/children",
            params={"start_cursor": start_cursor, "page_size": page_size},
        )

    async def blocks_children_append(self, block_id: str, children: list[dict]) -> dict:
        return await self.request(
            "PATCH",
            f"/blocks/{to_canonical(block_id)}/children",
            {"children": children},
        )

    # Users

    async def users_me(self) -> dict:
        return await self.request("GET", "/users/me")
