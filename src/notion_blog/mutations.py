"""Writes to Notion followed by cache revalidation.

Each writer checks its preconditions first and returns None without calling
upstream when one fails. After a successful write, every logical cache path
whose data is now stale is revalidated.
"""

import asyncio
import logging
from typing import Literal, Optional, Sequence

from .assembler import (
    AUTHORS_PROP,
    DISLIKES_PROP,
    LIKES_PROP,
    PUBLISHED_PROP,
    TITLE_PROP,
    USER_IMAGE_PROP,
    USER_NAME_PROP,
    ContentApi,
    is_author,
    likes_summary,
)
from .cache import comment_path, page_path, revalidate, user_path
from .editor import comment_block, content_to_blocks, now_iso, text_to_rich_text
from .ids import is_uuid, to_canonical, to_compact
from .models import ContentAndComments, ContentBlock
from .parser import parse_blocks, rich_text_block_to_plain_text
from .properties import collect_property_items, get_properties, get_property, rich_text_to_plain_text

logger = logging.getLogger(__name__)

# Notion accepts at most this many children per create/append request
MAX_CHILDREN_PER_REQUEST = 100

LikeAction = Literal["likes", "dislikes"]


def breadcrumb_paths(breadcrumb: Sequence[str]) -> list[str]:
    """Cache paths made stale by a new reply under ``breadcrumb``.

    The page itself, then every comment prefix down to the reply's parent.
    """
    page_id, *chain = breadcrumb
    return [page_path(page_id)] + [
        comment_path(page_id, chain[:idx + 1]) for idx in range(len(chain))
    ]


class Mutations:
    """Write side of the content layer, sharing the reader's collaborators."""

    def __init__(self, api: ContentApi):
        self.api = api
        self.client = api.client
        self.gate = api.gate
        self.cache = api.cache

    async def _revalidate(self, *paths: str) -> None:
        for path in paths:
            await revalidate(self.cache, path)

    async def _append_in_batches(self, block_id: str, children: list[dict]) -> bool:
        """Append ``children`` under ``block_id`` in request-sized batches.

        Stops at the first failed batch and logs the truncation.
        """
        rest = children
        while rest:
            batch, rest = rest[:MAX_CHILDREN_PER_REQUEST], rest[MAX_CHILDREN_PER_REQUEST:]
            appended = await self.gate.call(
                lambda b=batch: self.client.blocks_children_append(block_id, b)
            )
            if appended is None:
                logger.warning(f"Block {block_id} written with truncated content")
                return False
        return True

    # Comments

    async def post_comment(
        self,
        breadcrumb: Optional[Sequence[str]],
        author_id: Optional[str],
        content: Optional[str],
    ) -> Optional[ContentAndComments]:
        """Reply to the page or comment addressed by ``breadcrumb``.

        Args:
            breadcrumb: ``[page_id, c1, ..., cn]``; the reply goes under the last id.
            author_id: Id of the author's user page.
            content: Comment body markup.

        Returns:
            The parsed new comment block, or None.
        """
        if not breadcrumb or not all(is_uuid(item) for item in breadcrumb) or not author_id:
            return None
        children = content_to_blocks(content)
        if not children:
            return None

        parent_id = breadcrumb[-1]
        first, rest = children[:MAX_CHILDREN_PER_REQUEST], children[MAX_CHILDREN_PER_REQUEST:]
        block = comment_block(author_id, first)
        response = await self.gate.call(
            lambda: self.client.blocks_children_append(parent_id, [block])
        )
        if response is None:
            return None

        results = response.get("results") or []
        if rest and results:
            await self._append_in_batches(results[0]["id"], rest)

        await self._revalidate(*breadcrumb_paths(breadcrumb))
        return parse_blocks(results)

    # Users

    async def update_user_name(self, user_id: Optional[str], name: Optional[str]) -> Optional[str]:
        if not user_id or not name:
            return None
        updated = await self.gate.call(lambda: self.client.pages_update(
            user_id, {USER_NAME_PROP: {"title": [{"text": {"content": name}}]}}
        ))
        if updated is None:
            return None
        props = await get_properties(self.gate, self.client, updated, pick=[USER_NAME_PROP])
        await self._revalidate(user_path(user_id))
        return rich_text_to_plain_text(get_property(props, USER_NAME_PROP, "title")) or name

    async def update_user_image(self, user_id: Optional[str], url: Optional[str]) -> Optional[str]:
        if not user_id or not url:
            return None
        # Files hosted by Notion itself must be referenced as "file"
        if "secure.notion-static.com" in url:
            file_obj = {"type": "file", "file": {"url": url}, "name": "avatar"}
        else:
            file_obj = {"type": "external", "external": {"url": url}, "name": "avatar"}
        updated = await self.gate.call(lambda: self.client.pages_update(
            user_id, {USER_IMAGE_PROP: {"files": [file_obj]}}
        ))
        if updated is None:
            return None
        await self._revalidate(user_path(user_id))
        return url

    async def update_user_info(
        self,
        user_id: Optional[str],
        content: Optional[str],
    ) -> Optional[list[ContentBlock]]:
        """Replace a user's bio, editing existing paragraphs in place.

        Existing bio blocks are updated pairwise, extra new paragraphs are
        appended and leftover old blocks are archived.
        """
        if not user_id:
            return None
        blocks = content_to_blocks(content, allow_headings=False)
        if not blocks:
            return None

        existing = await self.api.get_block_children(user_id)
        if existing is None:
            return None
        current = existing.content

        updates = [
            lambda old=old, new=new: self.client.blocks_update(old.id, {"paragraph": new["paragraph"]})
            for old, new in zip(current, blocks)
        ]
        archives = [
            lambda old=old: self.client.blocks_update(old.id, {"archived": True})
            for old in current[len(blocks):]
        ]
        surplus = blocks[len(current):]

        updated, _ = await asyncio.gather(
            self.gate.gather(*updates),
            self.gate.gather(*archives),
        )
        appended = []
        if surplus:
            response = await self.gate.call(
                lambda: self.client.blocks_children_append(user_id, surplus)
            )
            appended = (response or {}).get("results") or []

        written = [block for block in updated if block] + appended
        if not written:
            return None

        await self._revalidate(user_path(user_id))
        return parse_blocks(written).content

    # Drafts

    async def create_draft(
        self,
        user_id: Optional[str],
        content: Optional[str],
        title: Optional[str] = None,
    ) -> Optional[dict]:
        """Create an unpublished page authored by ``user_id``."""
        if not user_id:
            return None
        children = content_to_blocks(content)
        if not children:
            return None

        properties = {
            TITLE_PROP: {"title": text_to_rich_text(title or "")},
            AUTHORS_PROP: {"relation": [{"id": to_canonical(user_id)}]},
        }
        first, rest = children[:MAX_CHILDREN_PER_REQUEST], children[MAX_CHILDREN_PER_REQUEST:]
        page = await self.gate.call(lambda: self.client.pages_create(
            self.api.settings.page_db, properties, first
        ))
        if page is None:
            return None

        await self._append_in_batches(page["id"], rest)

        await self._revalidate(user_path(user_id))
        title_prop = (page.get("properties") or {}).get(TITLE_PROP) or {}
        return {
            "id": to_compact(page.get("id")),
            "title": rich_text_block_to_plain_text(title_prop.get("title")) or title,
            "authors": [{"id": to_compact(user_id)}],
            "created": page.get("created_time"),
            "updated": page.get("last_edited_time"),
            "published": None,
        }

    async def publish_draft(self, user_id: Optional[str], page_id: Optional[str]) -> Optional[str]:
        """Set the publish date of a draft. Only one of its authors may do this.

        Returns:
            The publish timestamp (the existing one if already published).
        """
        if not user_id or not page_id:
            return None
        page = await self.api.get_page(page_id)
        if page is None:
            return None
        if not is_author(page, user_id):
            logger.warning(f"User {user_id} is not an author of {page_id}")
            return None
        if page.get("published"):
            return page["published"]

        published = now_iso()
        updated = await self.gate.call(lambda: self.client.pages_update(
            page_id, {PUBLISHED_PROP: {"date": {"start": published}}}
        ))
        if updated is None:
            return None

        await self._revalidate(page_path(page_id), user_path(user_id))
        return published

    # Likes

    async def _relation_ids(self, page: dict, key: str) -> Optional[list[str]]:
        prop = (page.get("properties") or {}).get(key)
        if not prop:
            return []
        items = await collect_property_items(self.gate, self.client, page["id"], prop["id"])
        if items is None:
            return None
        return [to_compact((item.get("relation") or {}).get("id")) for item in items if item.get("relation")]

    async def post_like(
        self,
        user_id: Optional[str],
        page_id: Optional[str],
        action: Optional[LikeAction],
    ) -> Optional[dict]:
        """Toggle the user's like or dislike of a page.

        Liking removes an existing dislike and vice versa.
        """
        if not user_id or not page_id or action not in (LIKES_PROP, DISLIKES_PROP):
            return None
        page = await self.gate.call(lambda: self.client.pages_retrieve(page_id))
        if page is None:
            return None

        likes, dislikes = await asyncio.gather(
            self._relation_ids(page, LIKES_PROP),
            self._relation_ids(page, DISLIKES_PROP),
        )
        if likes is None or dislikes is None:
            return None

        user = to_compact(user_id)
        target, opposite = (likes, dislikes) if action == LIKES_PROP else (dislikes, likes)
        if user in target:
            target.remove(user)
        else:
            target.append(user)
            if user in opposite:
                opposite.remove(user)

        updated = await self.gate.call(lambda: self.client.pages_update(page_id, {
            LIKES_PROP: {"relation": [{"id": to_canonical(i)} for i in likes]},
            DISLIKES_PROP: {"relation": [{"id": to_canonical(i)} for i in dislikes]},
        }))
        if updated is None:
            return None

        await self._revalidate(page_path(page_id))
        return likes_summary(user_id, likes, dislikes)
