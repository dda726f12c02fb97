"""Notion-backed blog content layer.

Maps Notion pages, blocks and properties to a normalized content model
(rich-text spans, paragraphs/headings, toggle-block comment threads) with a
throttled call gate, a revalidating cache and mutation writers.
"""

from .assembler import ContentApi
from .cache import DiskCache, MemoryCache, get_cached, revalidate
from .client import NotionClient
from .config import Settings, load_settings
from .gate import CallGate, Result
from .ids import to_canonical, to_compact
from .mutations import Mutations
from .parser import parse_blocks, parse_rich_text

__all__ = [
    "CallGate",
    "ContentApi",
    "DiskCache",
    "MemoryCache",
    "Mutations",
    "NotionClient",
    "Result",
    "Settings",
    "get_cached",
    "load_settings",
    "parse_blocks",
    "parse_rich_text",
    "revalidate",
    "to_canonical",
    "to_compact",
]
