"""Notion blocks and rich text → normalized content model.

Block types are triaged explicitly: the four content types become
``ContentBlock``, toggles become comments, and everything in
``DROPPED_BLOCK_TYPES`` is skipped on purpose. A type in neither set is also
skipped, but logged once so it can be triaged.
"""

import logging
from typing import Optional

from .ids import to_compact
from .models import (
    Annotations,
    Comment,
    CommentHeader,
    ContentAndComments,
    ContentBlock,
    DateMention,
    EquationSpan,
    MentionSpan,
    PageMention,
    RichTextSpan,
    TextSpan,
    render_plain_text,
)

logger = logging.getLogger(__name__)

CONTENT_BLOCK_TYPES = {
    'paragraph': 'paragraph',
    'heading_1': 'h1',
    'heading_2': 'h2',
    'heading_3': 'h3',
}

COMMENT_BLOCK_TYPE = 'toggle'

# Upstream block types with no representation in the content model
DROPPED_BLOCK_TYPES = {
    'bulleted_list_item', 'numbered_list_item', 'to_do', 'quote', 'callout',
    'code', 'divider', 'image', 'video', 'file', 'pdf', 'audio', 'bookmark',
    'embed', 'link_preview', 'synced_block', 'table', 'table_row',
    'table_of_contents', 'breadcrumb', 'equation', 'template', 'link_to_page',
    'column_list', 'column', 'child_page', 'child_database', 'unsupported',
}

# Upstream block types already reported as unknown
_reported_block_types: set[str] = set()


# =============================================================================
# Rich Text
# =============================================================================

def _parse_mention(item: dict, annotations: Annotations) -> Optional[MentionSpan]:
    mention = item.get("mention") or {}
    mention_type = mention.get("type")
    text = item.get("plain_text", "")
    if mention_type == "date":
        date_info = mention.get("date") or {}
        return MentionSpan(
            text=text,
            mention=DateMention(date=date_info.get("start")),
            annotations=annotations,
        )
    if mention_type == "page":
        page_info = mention.get("page") or {}
        return MentionSpan(
            text=text,
            mention=PageMention(page=to_compact(page_info.get("id")) or None),
            annotations=annotations,
        )
    # user, database, link_preview, template_mention: not representable
    return None


def parse_rich_text(rich_text: Optional[list[dict]]) -> list[RichTextSpan]:
    """Convert a Notion rich_text array to spans, preserving order.

    Args:
        rich_text: Notion API rich_text array.

    Returns:
        List of spans. Unsupported span and mention types are dropped.
    """
    spans: list[RichTextSpan] = []
    for item in rich_text or []:
        item_type = item.get("type")
        annotations = Annotations.from_notion(item.get("annotations"))

        if item_type == "text":
            text_obj = item.get("text") or {}
            link = text_obj.get("link") or {}
            spans.append(TextSpan(
                text=text_obj.get("content", item.get("plain_text", "")),
                link=link.get("url"),
                annotations=annotations,
            ))
        elif item_type == "mention":
            span = _parse_mention(item, annotations)
            if span is not None:
                spans.append(span)
        elif item_type == "equation":
            spans.append(EquationSpan(
                equation=(item.get("equation") or {}).get("expression", ""),
                annotations=annotations,
            ))

    return spans


def rich_text_block_to_plain_text(rich_text: Optional[list[dict]]) -> str:
    """Plain text of a rich_text array, as rendered by the content model."""
    return render_plain_text(parse_rich_text(rich_text))


def parse_comment_header(rich_text: Optional[list[dict]]) -> CommentHeader:
    """Read the author/date convention off a toggle block's own rich text.

    A comment toggle starts with a page mention of its author immediately
    followed by a date mention. Missing parts are left empty.

    Without such a pair, the first page mention is taken as the author and the
    first date mention anywhere in the text as the date, even when the two are
    not adjacent. Hand-edited toggles often put text between them.
    """
    spans = parse_rich_text(rich_text)
    header = CommentHeader()

    for idx, span in enumerate(spans):
        if not isinstance(span, MentionSpan) or not isinstance(span.mention, PageMention):
            continue
        following = spans[idx + 1] if idx + 1 < len(spans) else None
        if isinstance(following, MentionSpan) and isinstance(following.mention, DateMention):
            return CommentHeader(
                author=span.text,
                relation=span.mention.page or "",
                date=following.mention.date or "",
            )
        if not header.relation:
            header.author = span.text
            header.relation = span.mention.page or ""

    if not header.date:
        for span in spans:
            if isinstance(span, MentionSpan) and isinstance(span.mention, DateMention):
                header.date = span.mention.date or ""
                break

    return header


# =============================================================================
# Blocks
# =============================================================================

def _parse_content_block(block: dict, block_type: str) -> ContentBlock:
    data = block.get(block_type) or {}
    return ContentBlock(
        id=to_compact(block.get("id")),
        type=CONTENT_BLOCK_TYPES[block_type],
        created_time=block.get("created_time"),
        edited_time=block.get("last_edited_time"),
        rich_text=parse_rich_text(data.get("rich_text")),
        color=data.get("color"),
    )


def _parse_comment_block(block: dict) -> Comment:
    data = block.get(COMMENT_BLOCK_TYPE) or {}
    return Comment(
        id=to_compact(block.get("id")),
        header=parse_comment_header(data.get("rich_text")),
    )


def parse_blocks(blocks: Optional[list[dict]]) -> ContentAndComments:
    """Split a list of Notion blocks into content and direct-child comments.

    Args:
        blocks: Block objects as returned by the Notion API.

    Returns:
        ContentAndComments with block order preserved in each list.
    """
    result = ContentAndComments()

    for block in blocks or []:
        block_type = block.get("type")
        if block_type in CONTENT_BLOCK_TYPES:
            result.content.append(_parse_content_block(block, block_type))
        elif block_type == COMMENT_BLOCK_TYPE:
            result.comments.append(_parse_comment_block(block))
        elif block_type not in DROPPED_BLOCK_TYPES and block_type not in _reported_block_types:
            _reported_block_types.add(block_type)
            logger.warning(f"Unhandled block type dropped: {block_type}")

    return result
