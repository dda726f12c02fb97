"""Normalized content model.

Spans and blocks are dataclasses; ``to_dict`` gives the JSON shape returned
to callers and stored in the cache.
"""

from dataclasses import asdict, dataclass, field
from typing import Literal, Optional, Union

# Valid Notion colors
NOTION_COLORS = {
    'default', 'gray', 'brown', 'orange', 'yellow', 'green', 'blue',
    'purple', 'pink', 'red',
    'gray_background', 'brown_background', 'orange_background',
    'yellow_background', 'green_background', 'blue_background',
    'purple_background', 'pink_background', 'red_background',
}

ContentType = Literal['paragraph', 'h1', 'h2', 'h3']


@dataclass
class Annotations:
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: str = 'default'

    @classmethod
    def from_notion(cls, raw: Optional[dict]) -> "Annotations":
        raw = raw or {}
        return cls(
            bold=bool(raw.get("bold")),
            italic=bool(raw.get("italic")),
            strikethrough=bool(raw.get("strikethrough")),
            underline=bool(raw.get("underline")),
            code=bool(raw.get("code")),
            color=raw.get("color") or 'default',
        )


@dataclass
class TextSpan:
    """Literal text, optionally linked."""
    text: str
    link: Optional[str] = None
    annotations: Annotations = field(default_factory=Annotations)
    type: Literal['text'] = 'text'

    def render_text(self) -> str:
        return self.text

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DateMention:
    date: Optional[str]
    type: Literal['date'] = 'date'


@dataclass
class PageMention:
    page: Optional[str]
    type: Literal['page'] = 'page'


@dataclass
class MentionSpan:
    """Reference to a date or to another page (also used for comment authors)."""
    text: str
    mention: Union[DateMention, PageMention]
    annotations: Annotations = field(default_factory=Annotations)
    type: Literal['mention'] = 'mention'

    def render_text(self) -> str:
        return self.text

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EquationSpan:
    """Raw math markup."""
    equation: str
    annotations: Annotations = field(default_factory=Annotations)
    type: Literal['equation'] = 'equation'

    def render_text(self) -> str:
        return self.equation

    def to_dict(self) -> dict:
        return asdict(self)


RichTextSpan = Union[TextSpan, MentionSpan, EquationSpan]


def render_plain_text(spans: list[RichTextSpan]) -> str:
    return "".join(span.render_text() for span in spans)


@dataclass
class ContentBlock:
    """A paragraph or heading. ``plain_text`` is derived from ``rich_text``."""
    id: str
    type: ContentType
    created_time: Optional[str]
    edited_time: Optional[str]
    rich_text: list[RichTextSpan] = field(default_factory=list)
    color: Optional[str] = None

    @property
    def plain_text(self) -> str:
        return render_plain_text(self.rich_text)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "created_time": self.created_time,
            "edited_time": self.edited_time,
            "rich_text": [span.to_dict() for span in self.rich_text],
            "plain_text": self.plain_text,
            "color": self.color,
        }


@dataclass
class CommentHeader:
    author: str = ""
    relation: str = ""
    date: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Comment:
    """A toggle block seen as a comment: its id and derived header."""
    id: str
    header: CommentHeader

    def to_dict(self) -> dict:
        return {"id": self.id, "header": self.header.to_dict()}


@dataclass
class ContentAndComments:
    """Parsed children of one block. ``comments`` holds direct children only."""
    content: list[ContentBlock] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "content": [block.to_dict() for block in self.content],
            "comments": [comment.to_dict() for comment in self.comments],
        }


@dataclass
class Relation:
    id: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)
