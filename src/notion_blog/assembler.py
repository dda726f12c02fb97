"""Assembly of pages, comments and users from Notion.

Combines the property resolver and the block parser into the aggregates
callers read: a page with its content and top-level comments, one comment
addressed by breadcrumb with its content and replies, the breadcrumb trail
itself, page lists and user profiles. Aggregates are plain JSON dicts and
are cached by logical path.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

from .cache import CacheStore, comment_path, get_cached, page_path, user_path
from .client import NotionClient
from .config import Settings
from .gate import CallGate
from .ids import is_uuid, to_canonical, to_compact
from .models import Comment, ContentAndComments, Relation
from .parser import parse_blocks
from .properties import (
    get_date,
    get_files,
    get_properties,
    get_properties_list,
    get_property,
    rich_text_to_plain_text,
)

logger = logging.getLogger(__name__)

PAGES_PER_LIST = 10

# Property names in the pages database
TITLE_PROP = "title"
AUTHORS_PROP = "authors"
TAGS_PROP = "tags"
PUBLISHED_PROP = "published"
LIKES_PROP = "likes"
DISLIKES_PROP = "dislikes"

# Property names in the users database
USER_NAME_PROP = "name"
USER_IMAGE_PROP = "image"


def _relation_ids(props: Optional[dict], key: str) -> list[dict]:
    return [
        {"id": to_compact(item.get("id"))}
        for item in get_properties_list(props, key, "relation")
    ]


def parse_page(props: Optional[dict]) -> dict:
    """Page fields from resolved property values. Missing values are None."""
    if props is None:
        return {
            "title": None, "authors": None, "tags": None, "published": None,
            "likes": None, "dislikes": None,
        }
    return {
        "title": rich_text_to_plain_text(get_property(props, TITLE_PROP, "title")),
        "authors": _relation_ids(props, AUTHORS_PROP),
        "tags": _relation_ids(props, TAGS_PROP),
        "published": get_date(get_property(props, PUBLISHED_PROP, "date")),
        "likes": len(get_properties_list(props, LIKES_PROP, "relation")),
        "dislikes": len(get_properties_list(props, DISLIKES_PROP, "relation")),
    }


def _title_property_id(page: dict) -> Optional[str]:
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return prop.get("id")
    return None


def strip_content(aggregate: dict) -> dict:
    """Page metadata without its content and comments."""
    return {k: v for k, v in aggregate.items() if k not in ("content", "comments")}


def is_author(page: dict, user_id: str) -> bool:
    return to_compact(user_id) in [author["id"] for author in page.get("authors") or []]


def _has_children(aggregate: dict) -> bool:
    return aggregate.get("content") is not None


def _has_header_and_children(aggregate: dict) -> bool:
    return aggregate.get("header") is not None and aggregate.get("content") is not None


def _valid_breadcrumb(breadcrumb: Optional[Sequence[str]]) -> bool:
    return bool(breadcrumb) and all(is_uuid(item) for item in breadcrumb)


class ContentApi:
    """Read side of the content layer.

    All upstream calls go through ``gate``; aggregates go through ``cache``.
    """

    def __init__(
        self,
        client: NotionClient,
        gate: CallGate,
        cache: CacheStore,
        settings: Settings,
    ):
        self.client = client
        self.gate = gate
        self.cache = cache
        self.settings = settings

    # Pages

    async def get_page(self, page_id: Optional[str]) -> Optional[dict]:
        """Page metadata, with authors and tags as unresolved ``{id}`` lists."""
        if not page_id:
            return None
        page = await self.gate.call(lambda: self.client.pages_retrieve(page_id))
        if not page:
            return None
        props = await get_properties(self.gate, self.client, page)
        return self._page_record(page, props)

    def _page_record(self, page: dict, props: Optional[dict]) -> dict:
        return {
            "id": to_compact(page.get("id")),
            "created": page.get("created_time"),
            "updated": page.get("last_edited_time"),
            **parse_page(props),
        }

    async def get_page_aggregate(self, page_id: Optional[str]) -> Optional[dict]:
        """Page with resolved authors/tags, content and top-level comments.

        Cached at ``page/{id}``. A result whose children failed to load is
        returned but not cached.
        """
        if not page_id:
            return None

        async def compute() -> Optional[dict]:
            page, blocks = await asyncio.gather(
                self.get_page(page_id),
                self.get_block_children(page_id),
            )
            if page is None:
                return None
            authors, tags = await asyncio.gather(
                self.get_relations(page.get("authors")),
                self.get_relations(page.get("tags")),
            )
            children = blocks.to_dict() if blocks else {"content": None, "comments": None}
            return {**page, "authors": authors, "tags": tags, **children}

        return await get_cached(
            compute, page_path(page_id), self.cache, "page", cacheable=_has_children
        )()

    async def get_pages_list(
        self,
        cursor: Optional[str] = None,
        author: Optional[str] = None,
    ) -> Optional[dict]:
        """Published pages, least recently edited first, optionally by author."""
        filters: list[dict] = [{"property": PUBLISHED_PROP, "date": {"is_not_empty": True}}]
        if author:
            filters.append({"property": AUTHORS_PROP, "relation": {"contains": to_canonical(author)}})
        return await self._query_pages({"and": filters}, cursor)

    async def get_drafts_list(self, user_id: Optional[str], cursor: Optional[str] = None) -> Optional[dict]:
        """Unpublished pages authored by ``user_id``."""
        if not user_id:
            return None
        filter_obj = {"and": [
            {"property": AUTHORS_PROP, "relation": {"contains": to_canonical(user_id)}},
            {"property": PUBLISHED_PROP, "date": {"is_empty": True}},
        ]}
        return await self._query_pages(filter_obj, cursor)

    async def get_draft(self, user_id: Optional[str], page_id: Optional[str]) -> Optional[dict]:
        """Unpublished page with resolved authors and its content, for one of its authors.

        Drafts are read uncached since they change while being edited.

        Returns:
            ``{...page, authors, content}``, or None if the page is missing,
            already published, or not authored by ``user_id``.
        """
        if not user_id or not page_id:
            return None
        page, blocks = await asyncio.gather(
            self.get_page(page_id),
            self.get_block_children(page_id),
        )
        if page is None:
            return None
        if not is_author(page, user_id):
            logger.warning(f"User {user_id} is not an author of {page_id}")
            return None
        if page.get("published"):
            return None
        authors = await self.get_relations(page.get("authors"))
        return {
            **page,
            "authors": authors,
            "content": [block.to_dict() for block in blocks.content] if blocks else None,
        }

    async def get_published(self, page_id: Optional[str]) -> Optional[str]:
        """Publish timestamp of a page, or None while it is a draft."""
        if not page_id:
            return None
        page = await self.gate.call(lambda: self.client.pages_retrieve(page_id))
        if not page:
            return None
        props = await get_properties(self.gate, self.client, page, pick=[PUBLISHED_PROP])
        return get_date(get_property(props, PUBLISHED_PROP, "date"))

    async def _query_pages(self, filter_obj: dict, cursor: Optional[str]) -> Optional[dict]:
        response = await self.gate.call(lambda: self.client.databases_query(
            self.settings.page_db,
            filter_obj=filter_obj,
            sorts=[{"timestamp": "last_edited_time", "direction": "ascending"}],
            page_size=PAGES_PER_LIST,
            start_cursor=cursor or None,
        ))
        if response is None:
            return None

        pages = response.get("results") or []
        props_list = await asyncio.gather(*(
            get_properties(self.gate, self.client, page) for page in pages
        ))
        return {
            "results": [self._page_record(page, props) for page, props in zip(pages, props_list)],
            "has_more": bool(response.get("has_more")),
            "next_cursor": response.get("next_cursor"),
        }

    # Relations

    async def _relation(self, relation_id: Optional[str]) -> Relation:
        if not relation_id:
            return Relation()
        page = await self.gate.call(lambda: self.client.pages_retrieve(relation_id))
        if not page:
            return Relation()
        title_id = _title_property_id(page)
        name = None
        if title_id:
            prop = await self.gate.call(
                lambda: self.client.pages_properties_retrieve(page["id"], title_id)
            )
            name = rich_text_to_plain_text(get_property({"name": prop}, "name", "title"))
        return Relation(id=to_compact(page.get("id")), name=name)

    async def get_relations(self, ids: Optional[Sequence[Any]]) -> list[dict]:
        """Resolve relation ids to ``{id, name}``, one lookup per id.

        Args:
            ids: Relation entries (``{"id": ...}`` dicts or bare ids).

        Returns:
            One entry per input, in order. Failed lookups are
            ``{id: None, name: None}``.
        """
        relation_ids = [item.get("id") if isinstance(item, dict) else item for item in ids or []]
        relations = await asyncio.gather(*(self._relation(rid) for rid in relation_ids))
        return [relation.to_dict() for relation in relations]

    # Blocks and comments

    async def get_block(self, block_id: Optional[str]) -> Optional[Comment]:
        """Header of a single comment block."""
        if not block_id:
            return None
        block = await self.gate.call(lambda: self.client.blocks_retrieve(block_id))
        if not block:
            return None
        comments = parse_blocks([block]).comments
        return comments[0] if comments else None

    async def get_block_children(self, block_id: Optional[str]) -> Optional[ContentAndComments]:
        """Parsed direct children of a block, following pagination.

        Returns None if the first page could not be fetched; a later failure
        keeps what was fetched so far.
        """
        if not block_id:
            return None

        blocks: list[dict] = []
        cursor = None
        while True:
            response = await self.gate.call(
                lambda c=cursor: self.client.blocks_children_list(block_id, start_cursor=c)
            )
            if response is None:
                if not blocks and cursor is None:
                    return None
                logger.warning(f"Children of {block_id} truncated after {len(blocks)} blocks")
                break
            blocks.extend(response.get("results") or [])
            if not response.get("has_more"):
                break
            cursor = response.get("next_cursor")

        return parse_blocks(blocks)

    async def get_comment(self, breadcrumb: Optional[Sequence[str]]) -> Optional[dict]:
        """Comment addressed by ``[page_id, c1, ..., cn]`` with its replies.

        Cached at ``page/{page_id}/comments/{c1}/.../{cn}`` unless the header
        or the children failed to load.
        """
        if not _valid_breadcrumb(breadcrumb) or len(breadcrumb) < 2:
            return None
        page_id, *chain = breadcrumb
        comment_id = chain[-1]

        async def compute() -> Optional[dict]:
            block, children = await asyncio.gather(
                self.get_block(comment_id),
                self.get_block_children(comment_id),
            )
            if block is None and children is None:
                return None
            return {
                "id": to_compact(comment_id),
                "header": block.header.to_dict() if block else None,
                **(children.to_dict() if children else {"content": None, "comments": None}),
            }

        return await get_cached(
            compute, comment_path(page_id, chain), self.cache, "comment",
            cacheable=_has_header_and_children,
        )()

    async def get_breadcrumbs(self, breadcrumb: Optional[Sequence[str]]) -> Optional[dict]:
        """Page metadata plus the header of every comment along the path.

        The page and each comment prefix are fetched concurrently, each
        through its own cache entry. Comments come back in path order.
        """
        if not _valid_breadcrumb(breadcrumb):
            return None
        page_id, *chain = breadcrumb

        page, *comments = await asyncio.gather(
            self.get_page_aggregate(page_id),
            *(self.get_comment([page_id, *chain[:idx + 1]]) for idx in range(len(chain))),
        )
        return {
            "page": strip_content(page) if page else None,
            "comments": [
                {"id": comment["id"], "header": comment["header"]} if comment else None
                for comment in comments
            ],
        }

    # Users

    async def get_user_info(self, user_id: Optional[str]) -> Optional[dict]:
        """Public profile: name, image and bio. Cached at ``user/{id}``."""
        if not user_id:
            return None

        async def compute() -> Optional[dict]:
            user, blocks = await asyncio.gather(
                self.gate.call(lambda: self.client.pages_retrieve(user_id)),
                self.get_block_children(user_id),
            )
            if not user or blocks is None:
                return None
            props = await get_properties(
                self.gate, self.client, user, pick=[USER_NAME_PROP, USER_IMAGE_PROP]
            )
            if props is None:
                return None
            files = get_files(get_property(props, USER_IMAGE_PROP, "files"))
            return {
                "id": to_compact(user.get("id")),
                "name": rich_text_to_plain_text(get_property(props, USER_NAME_PROP, "title")),
                "image": files[0]["url"] if files else None,
                "bio": [block.to_dict() for block in blocks.content],
            }

        return await get_cached(compute, user_path(user_id), self.cache, "user")()

    # Likes

    async def get_likes(self, user_id: Optional[str], page_id: Optional[str]) -> Optional[dict]:
        """Like/dislike counts of a page and whether ``user_id`` cast either."""
        if not user_id or not page_id:
            return None
        page = await self.gate.call(lambda: self.client.pages_retrieve(page_id))
        props = await get_properties(
            self.gate, self.client, page, pick=[LIKES_PROP, DISLIKES_PROP]
        )
        if props is None:
            return None
        likes = [r["id"] for r in _relation_ids(props, LIKES_PROP)]
        dislikes = [r["id"] for r in _relation_ids(props, DISLIKES_PROP)]
        return likes_summary(user_id, likes, dislikes)


def likes_summary(user_id: str, likes: list[str], dislikes: list[str]) -> dict:
    user = to_compact(user_id)
    return {
        "likes": len(likes),
        "dislikes": len(dislikes),
        "liked": user in likes,
        "disliked": user in dislikes,
    }
