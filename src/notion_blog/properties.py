"""Page property resolution.

Property values come from ``pages.properties.retrieve``. Some of them
(title, rich_text, relation, people) come back as paginated ``list`` objects
of property items; others come back as a single property item.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

from .client import NotionClient
from .gate import CallGate

logger = logging.getLogger(__name__)


def get_property(props: Optional[dict], key: str, prop_type: str) -> Any:
    """Resolve one property value of the expected type.

    For paginated list properties only the first result is used; later
    results and later pages are not fetched.

    Args:
        props: Mapping of property name to property response.
        key: Property name.
        prop_type: Expected property type tag (e.g. "title", "relation").

    Returns:
        The property payload, or None if absent or of another type.
    """
    if not props or key not in props or not props[key]:
        return None

    prop = props[key]
    if prop.get("object") == "list":
        results = prop.get("results") or []
        if not results:
            return None
        return get_property({key: results[0]}, key, prop_type)

    return prop.get(prop_type) or None


def get_properties_list(props: Optional[dict], key: str, prop_type: str) -> list:
    """Resolve every result of a list property, skipping mismatched items."""
    if not props or not props.get(key):
        return []

    prop = props[key]
    if prop.get("object") != "list":
        value = get_property(props, key, prop_type)
        return [value] if value is not None else []

    values = []
    for item in prop.get("results") or []:
        value = get_property({key: item}, key, prop_type)
        if value is not None:
            values.append(value)
    return values


def rich_text_to_plain_text(rich_text: Optional[dict]) -> Optional[str]:
    """Plain text of a single rich-text property item."""
    if not rich_text:
        return None
    return rich_text.get("plain_text")


def get_files(files: Optional[list[dict]]) -> list[dict]:
    """Normalize a files property to ``{url, name}`` entries."""
    result = []
    for item in files or []:
        file_type = item.get("type")
        if file_type in ("external", "file"):
            result.append({
                "url": (item.get(file_type) or {}).get("url"),
                "name": item.get("name"),
            })
    return result


def get_date(date: Optional[dict]) -> Optional[str]:
    """Start of a date property value."""
    if not date:
        return None
    return date.get("start")


async def collect_property_items(
    gate: CallGate,
    client: NotionClient,
    page_id: str,
    property_id: str,
) -> Optional[list[dict]]:
    """Fetch every page of a paginated property, following cursors.

    Used where a truncated value would be written back upstream.

    Returns:
        All property items, or None if any page failed.
    """
    items: list[dict] = []
    cursor = None
    while True:
        response = await gate.call(
            lambda c=cursor: client.pages_properties_retrieve(page_id, property_id, start_cursor=c)
        )
        if response is None:
            return None
        if response.get("object") != "list":
            return [response]
        items.extend(response.get("results") or [])
        if not response.get("has_more"):
            return items
        cursor = response.get("next_cursor")


def _selected(names: Iterable[str], pick: Optional[list[str]], omit: Optional[list[str]]) -> list[str]:
    if pick is not None:
        return [name for name in names if name in pick]
    if omit is not None:
        return [name for name in names if name not in omit]
    return list(names)


async def get_properties(
    gate: CallGate,
    client: NotionClient,
    page: Optional[dict],
    pick: Optional[list[str]] = None,
    omit: Optional[list[str]] = None,
) -> Optional[dict[str, Optional[dict]]]:
    """Fetch property values of a page, one gated call per property.

    Args:
        gate: Call gate for upstream calls.
        client: Notion client.
        page: Page object (as returned by pages.retrieve or a query).
        pick: Only fetch these properties.
        omit: Fetch everything but these properties.

    Returns:
        Mapping of property name to property response (None where the call
        failed), or None if there is no page.
    """
    if not page or not page.get("id"):
        return None

    schema = page.get("properties") or {}
    names = _selected(schema.keys(), pick, omit)
    page_id = page["id"]

    responses = await asyncio.gather(*(
        gate.call(lambda prop_id=schema[name].get("id"): client.pages_properties_retrieve(page_id, prop_id))
        for name in names
    ))
    return dict(zip(names, responses))
