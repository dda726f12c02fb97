"""Tests for the markup → Notion payload direction."""

import re

from notion_blog.editor import (
    MAX_TEXT_LENGTH,
    comment_block,
    content_to_blocks,
    now_iso,
    parse_inline_formatting,
    spans_to_rich_text,
    text_to_rich_text,
)
from notion_blog.models import Annotations, DateMention, EquationSpan, MentionSpan, PageMention, TextSpan
from notion_blog.parser import parse_comment_header, parse_rich_text

AUTHOR = "a1b2c3d4e5f67890abcdef1234567890"


# =============================================================================
# Inline Formatting Parser Tests
# =============================================================================

class TestParseInlineFormatting:
    """Tests for parse_inline_formatting."""

    def test_plain_text(self):
        spans = parse_inline_formatting("Hello world")
        assert len(spans) == 1
        assert spans[0].text == "Hello world"
        assert spans[0].annotations == Annotations()

    def test_empty(self):
        assert parse_inline_formatting("") == []

    def test_bold(self):
        spans = parse_inline_formatting("**bold** text")
        assert spans[0].text == "bold"
        assert spans[0].annotations.bold
        assert spans[1].text == " text"
        assert not spans[1].annotations.bold

    def test_italic(self):
        spans = parse_inline_formatting("*italic*")
        assert spans[0].annotations.italic
        assert spans[0].text == "italic"

    def test_strikethrough(self):
        spans = parse_inline_formatting("~~gone~~")
        assert spans[0].annotations.strikethrough

    def test_code(self):
        spans = parse_inline_formatting("run `ls -la` now")
        assert [s.text for s in spans] == ["run ", "ls -la", " now"]
        assert spans[1].annotations.code

    def test_underline_directive(self):
        spans = parse_inline_formatting(":u[under]")
        assert spans[0].annotations.underline

    def test_color_directive(self):
        spans = parse_inline_formatting(":red[alert] :blue-background[note]")
        assert spans[0].annotations.color == "red"
        assert spans[-1].annotations.color == "blue_background"

    def test_unknown_directive_kept_as_text(self):
        spans = parse_inline_formatting(":nope[x]")
        assert "".join(s.text for s in spans) == ":nope[x]"

    def test_nested_bold_italic(self):
        spans = parse_inline_formatting("**bold *both* end**")
        assert [s.text for s in spans] == ["bold ", "both", " end"]
        assert all(s.annotations.bold for s in spans)
        assert spans[1].annotations.italic
        assert not spans[0].annotations.italic

    def test_link(self):
        spans = parse_inline_formatting("see [the docs](https://example.com)")
        assert spans[-1].text == "the docs"
        assert spans[-1].link == "https://example.com"

    def test_equation(self):
        spans = parse_inline_formatting("$E=mc^2$")
        assert isinstance(spans[0], EquationSpan)
        assert spans[0].equation == "E=mc^2"

    def test_date_mention(self):
        spans = parse_inline_formatting("on @date:2024-06-01T10:00:00Z ok")
        mention = spans[1]
        assert isinstance(mention, MentionSpan)
        assert mention.mention == DateMention(date="2024-06-01T10:00:00Z")

    def test_page_mention(self):
        canonical = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
        spans = parse_inline_formatting(f"by @page:{canonical}")
        assert spans[1].mention == PageMention(page=AUTHOR)

    def test_escape(self):
        spans = parse_inline_formatting(r"not \*italic\*")
        assert len(spans) == 1
        assert spans[0].text == "not *italic*"

    def test_lone_special_characters_merge(self):
        spans = parse_inline_formatting("a*b costs $5 @home")
        assert len(spans) == 1
        assert spans[0].text == "a*b costs $5 @home"


# =============================================================================
# Notion payload conversion
# =============================================================================

class TestSpansToRichText:
    def test_plain_text_has_no_annotations(self):
        assert spans_to_rich_text([TextSpan(text="hi")]) == [
            {"type": "text", "text": {"content": "hi"}}
        ]

    def test_annotations_and_link(self):
        result = text_to_rich_text("**[go](https://x.org)**")
        assert result == [{
            "type": "text",
            "text": {"content": "go", "link": {"url": "https://x.org"}},
            "annotations": {"bold": True},
        }]

    def test_page_mention_uses_canonical_id(self):
        result = text_to_rich_text(f"@page:{AUTHOR}")
        assert result[0]["mention"] == {
            "type": "page", "page": {"id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890"},
        }

    def test_long_text_is_chunked(self):
        result = spans_to_rich_text([TextSpan(text="x" * (2 * MAX_TEXT_LENGTH + 500))])
        assert [len(r["text"]["content"]) for r in result] == [MAX_TEXT_LENGTH, MAX_TEXT_LENGTH, 500]

    def test_round_trip_through_reader(self):
        rich_text = text_to_rich_text("**a** $b$ @date:2024-01-01")
        for item in rich_text:
            item["plain_text"] = (item.get("text") or {}).get("content") or ""
        spans = parse_rich_text(rich_text)
        assert [s.type for s in spans] == ["text", "text", "equation", "text", "mention"]
        assert spans[0].annotations.bold


class TestContentToBlocks:
    def test_paragraphs_split_on_blank_lines(self):
        blocks = content_to_blocks("first\n\nsecond\nline\n\n\n third")
        assert [b["type"] for b in blocks] == ["paragraph"] * 3
        assert blocks[1]["paragraph"]["rich_text"][0]["text"]["content"] == "second\nline"

    def test_headings(self):
        blocks = content_to_blocks("# One\n\n## Two\n\n### Three\n\nbody")
        assert [b["type"] for b in blocks] == ["heading_1", "heading_2", "heading_3", "paragraph"]
        assert blocks[0]["heading_1"]["rich_text"][0]["text"]["content"] == "One"

    def test_headings_disabled(self):
        blocks = content_to_blocks("# Not a heading", allow_headings=False)
        assert blocks[0]["type"] == "paragraph"
        assert blocks[0]["paragraph"]["rich_text"][0]["text"]["content"] == "# Not a heading"

    def test_blank_input(self):
        assert content_to_blocks("") == []
        assert content_to_blocks("  \n\n ") == []
        assert content_to_blocks(None) == []


class TestCommentBlock:
    def test_header_convention(self):
        block = comment_block(AUTHOR, content_to_blocks("Nice post!"), date="2024-01-01T00:00:00.000Z")
        assert block["type"] == "toggle"
        rich_text = block["toggle"]["rich_text"]
        assert rich_text[0]["mention"]["page"]["id"] == "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
        assert rich_text[1]["mention"]["date"]["start"] == "2024-01-01T00:00:00.000Z"
        assert block["toggle"]["children"][0]["type"] == "paragraph"

    def test_header_parses_back(self):
        block = comment_block(AUTHOR, content_to_blocks("hi"), date="2024-02-02")
        rich_text = [dict(item, plain_text="") for item in block["toggle"]["rich_text"]]
        header = parse_comment_header(rich_text)
        assert header.relation == AUTHOR
        assert header.date == "2024-02-02"

    def test_defaults_to_now(self):
        block = comment_block(AUTHOR, content_to_blocks("hi"))
        assert block["toggle"]["rich_text"][1]["mention"]["date"]["start"].endswith("Z")


def test_now_iso_format():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", now_iso())
