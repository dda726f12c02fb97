"""Conversion between canonical (hyphenated) and compact Notion ids.

Notion accepts both forms; the application uses the compact form in URLs,
cache keys and breadcrumb paths.
"""

import re
from typing import Optional

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$',
    re.IGNORECASE
)
COMPACT_PATTERN = re.compile(r'^[0-9a-f]{32}$', re.IGNORECASE)


def to_compact(id_str: Optional[str]) -> str:
    """Strip every separator from an id. ``None`` becomes an empty string."""
    if not id_str:
        return ""
    return id_str.replace('-', '')


def to_canonical(id_str: Optional[str]) -> str:
    """Reinsert separators into a compact 32-hex id.

    Anything that is not a compact 32-hex id (including an id that already
    carries separators) is returned unchanged.

    Args:
        id_str: Compact id.

    Returns:
        Id in format xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx, or the input.
    """
    if not id_str:
        return ""
    if not COMPACT_PATTERN.match(id_str):
        return id_str
    return f"{id_str[:8]}-{id_str[8:12]}-{id_str[12:16]}-{id_str[16:20]}-{id_str[20:]}"


def is_uuid(id_str: Optional[str]) -> bool:
    """Check whether an id is a Notion UUID, with or without separators."""
    return bool(id_str) and bool(UUID_PATTERN.match(id_str))
