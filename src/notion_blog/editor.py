"""Application content → Notion request payloads.

Comment, draft and bio bodies arrive as lightweight markup. Block level:
paragraphs separated by blank lines, ``#``/``##``/``###`` headings. Inline:

    **bold**  *italic*  ~~strike~~  :u[underline]  `code`  :red[color]
    [text](url)  $equation$  @date:2024-01-01  @page:<id>  \\* (escape)
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

import parsy as P

from .ids import to_canonical
from .models import (
    NOTION_COLORS,
    Annotations,
    DateMention,
    EquationSpan,
    MentionSpan,
    PageMention,
    RichTextSpan,
    TextSpan,
)

logger = logging.getLogger(__name__)

# Notion rejects text content longer than this per rich text object
MAX_TEXT_LENGTH = 2000

HEADING_PREFIXES = (
    ('### ', 'heading_3'),
    ('## ', 'heading_2'),
    ('# ', 'heading_1'),
)

_PARAGRAPH_SPLIT = re.compile(r'\n\s*\n')


# =============================================================================
# Inline Formatting Parser (Parsy-based)
# =============================================================================

def _apply_formatting(spans: list[RichTextSpan], **kwargs) -> list[RichTextSpan]:
    """Apply formatting to spans, keeping the innermost color and link."""
    for span in spans:
        for key, value in kwargs.items():
            if key == 'color':
                if span.annotations.color == 'default':
                    span.annotations.color = value
            elif key == 'link':
                if isinstance(span, TextSpan) and span.link is None:
                    span.link = value
            else:
                setattr(span.annotations, key, value)
    return spans


def _merge_adjacent_spans(spans: list[RichTextSpan]) -> list[RichTextSpan]:
    """Merge adjacent text spans with identical formatting."""
    merged: list[RichTextSpan] = []
    for span in spans:
        previous = merged[-1] if merged else None
        if (isinstance(span, TextSpan) and isinstance(previous, TextSpan) and
                previous.link == span.link and
                previous.annotations == span.annotations):
            previous.text += span.text
        elif isinstance(span, TextSpan) and not span.text:
            continue
        else:
            merged.append(span)
    return merged


# Characters that start special syntax (used for literal text boundaries)
_SPECIAL_CHARS = set('\\*~`[$:@')


def _make_inline_parser():
    """Build the inline formatting parser.

    Delimited formats capture their inner text with a regex that stops at the
    closing delimiter, then parse that text recursively.
    """

    def parse_inner(text: str) -> list[RichTextSpan]:
        if not text:
            return [TextSpan(text='')]
        try:
            return inline.parse(text)
        except P.ParseError:
            return [TextSpan(text=text)]

    escaped = (P.string('\\') >> P.char_from('\\*~`[]$:@#')).map(
        lambda c: TextSpan(text=c)
    )

    equation = (
        P.string('$') >> P.regex(r'[^$]+') << P.string('$')
    ).map(lambda expr: EquationSpan(equation=expr))

    mention_date = (
        P.string('@date:') >>
        P.regex(r'\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:\d{2})?)?')
    ).map(lambda date: MentionSpan(text=date, mention=DateMention(date=date)))

    mention_page = (
        P.string('@page:') >> P.regex(r'[A-Fa-f0-9-]{32,36}')
    ).map(lambda pid: MentionSpan(text='', mention=PageMention(page=pid.replace('-', ''))))

    code = (
        P.string('`') >> P.regex(r'[^`]+') << P.string('`')
    ).map(lambda t: TextSpan(text=t, annotations=Annotations(code=True)))

    bold = (
        P.string('**') >> P.regex(r'((?:[^*]|\*(?!\*))+)') << P.string('**')
    ).map(lambda inner: _apply_formatting(parse_inner(inner), bold=True))

    strikethrough = (
        P.string('~~') >> P.regex(r'((?:[^~]|~(?!~))+)') << P.string('~~')
    ).map(lambda inner: _apply_formatting(parse_inner(inner), strikethrough=True))

    italic = (
        P.string('*') >> P.regex(r'([^*]+)') << P.string('*')
    ).map(lambda inner: _apply_formatting(parse_inner(inner), italic=True))

    # :u[underline] or :color[...] / :color-background[...]
    @P.generate
    def directive():
        yield P.string(':')
        name = yield P.regex(r'[a-z]+(?:-background)?')
        yield P.string('[')
        inner = yield P.regex(r'((?:[^\[\]]|\[(?:[^\[\]])*\])*)')
        yield P.string(']')
        normalized = name.replace('-', '_')
        if normalized == 'u':
            return _apply_formatting(parse_inner(inner), underline=True)
        if normalized in NOTION_COLORS:
            return _apply_formatting(parse_inner(inner), color=normalized)
        return [TextSpan(text=f':{name}[{inner}]')]

    @P.generate
    def link():
        yield P.string('[')
        text = yield P.regex(r'(?:[^\[\]]|\[(?:[^\[\]])*\])*')
        yield P.string('](')
        url = yield P.regex(r'[^)\s]+')
        yield P.string(')')
        return _apply_formatting(parse_inner(text), link=url)

    literal_run = P.test_char(lambda c: c not in _SPECIAL_CHARS, 'literal').at_least(1).map(
        lambda chars: TextSpan(text=''.join(chars))
    )

    # Special character that didn't start a pattern
    special_fallback = P.any_char.map(lambda c: TextSpan(text=c))

    # Order matters: formats first, then literal runs, then lone specials
    element = (
        escaped |
        equation |
        mention_date |
        mention_page |
        code |
        bold |
        strikethrough |
        italic |
        directive |
        link |
        literal_run |
        special_fallback
    )

    def flatten(items):
        flat = []
        for item in items:
            if isinstance(item, list):
                flat.extend(item)
            else:
                flat.append(item)
        return flat

    inline = element.many().map(flatten)
    return inline


_inline_parser = _make_inline_parser()


def parse_inline_formatting(text: str) -> list[RichTextSpan]:
    """Parse inline markup into rich text spans.

    Args:
        text: Markup text.

    Returns:
        Spans with adjacent identical text runs merged. Unparseable input
        comes back as a single plain span.
    """
    if not text:
        return []
    try:
        return _merge_adjacent_spans(_inline_parser.parse(text))
    except P.ParseError as e:
        logger.warning(f"Inline formatting parse error: {e}")
        return [TextSpan(text=text)]


# =============================================================================
# Spans → Notion rich_text
# =============================================================================

def _annotations_to_notion(annotations: Annotations) -> dict:
    result = {}
    for key in ('bold', 'italic', 'strikethrough', 'underline', 'code'):
        if getattr(annotations, key):
            result[key] = True
    if annotations.color and annotations.color != 'default':
        result["color"] = annotations.color
    return result


def _chunk(text: str) -> list[str]:
    if len(text) <= MAX_TEXT_LENGTH:
        return [text]
    return [text[i:i + MAX_TEXT_LENGTH] for i in range(0, len(text), MAX_TEXT_LENGTH)]


def spans_to_rich_text(spans: list[RichTextSpan]) -> list[dict]:
    """Convert spans to Notion rich_text request objects."""
    result = []
    for span in spans:
        annotations = _annotations_to_notion(span.annotations)

        if isinstance(span, EquationSpan):
            objs = [{"type": "equation", "equation": {"expression": span.equation}}]
        elif isinstance(span, MentionSpan):
            if isinstance(span.mention, DateMention):
                mention = {"type": "date", "date": {"start": span.mention.date}}
            else:
                mention = {"type": "page", "page": {"id": to_canonical(span.mention.page)}}
            objs = [{"type": "mention", "mention": mention}]
        else:
            objs = []
            for piece in _chunk(span.text):
                text_obj: dict = {"content": piece}
                if span.link:
                    text_obj["link"] = {"url": span.link}
                objs.append({"type": "text", "text": text_obj})

        for obj in objs:
            if annotations:
                obj["annotations"] = dict(annotations)
            result.append(obj)

    return result


def text_to_rich_text(text: str) -> list[dict]:
    """Convert inline markup straight to a Notion rich_text array."""
    return spans_to_rich_text(parse_inline_formatting(text))


# =============================================================================
# Blocks
# =============================================================================

def content_to_blocks(text: Optional[str], allow_headings: bool = True) -> list[dict]:
    """Convert block-level markup to Notion block request objects.

    Args:
        text: Paragraphs separated by blank lines; ``#`` prefixes make headings.
        allow_headings: If False, heading prefixes are kept as paragraph text.

    Returns:
        List of paragraph/heading block objects, empty for blank input.
    """
    blocks = []
    for chunk in _PARAGRAPH_SPLIT.split((text or '').strip()):
        chunk = chunk.strip('\n')
        if not chunk.strip():
            continue
        block_type = 'paragraph'
        for prefix, heading_type in HEADING_PREFIXES if allow_headings else ():
            if chunk.startswith(prefix):
                block_type = heading_type
                chunk = chunk[len(prefix):]
                break
        blocks.append({
            "object": "block",
            "type": block_type,
            block_type: {"rich_text": text_to_rich_text(chunk)},
        })
    return blocks


def now_iso() -> str:
    """Current UTC time in the ISO 8601 form Notion returns."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def comment_block(author_id: str, children: list[dict], date: Optional[str] = None) -> dict:
    """Build the toggle block that stores a comment.

    The toggle's own rich text carries the header (author page mention, then
    date mention). ``children`` are the body blocks nested under it; Notion
    accepts at most 100 of them in one request.
    """
    return {
        "object": "block",
        "type": "toggle",
        "toggle": {
            "rich_text": [
                {
                    "type": "mention",
                    "mention": {"type": "page", "page": {"id": to_canonical(author_id)}},
                },
                {
                    "type": "mention",
                    "mention": {"type": "date", "date": {"start": date or now_iso(), "end": None}},
                },
            ],
            "children": children,
        },
    }
