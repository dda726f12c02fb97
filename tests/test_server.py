"""Tests for the MCP tool layer."""

import asyncio
import json

import pytest
from notion_fakes import TIME, FakeNotion, block, make_settings, new_id, text

from notion_blog import server
from notion_blog.assembler import ContentApi
from notion_blog.cache import MemoryCache
from notion_blog.gate import CallGate
from notion_blog.mutations import Mutations


@pytest.fixture
def fake(monkeypatch):
    fake = FakeNotion()
    api = ContentApi(fake, CallGate(limit=1000), MemoryCache(), make_settings())
    monkeypatch.setattr(server, "_api", api)
    monkeypatch.setattr(server, "_mutations", Mutations(api))
    return fake


def test_tools_registered():
    tools = asyncio.run(server.mcp.list_tools())
    names = {tool.name for tool in tools}
    assert {
        "get_page", "get_block_children", "get_comment", "get_breadcrumbs", "get_relations",
        "get_pages_list", "get_drafts_list", "get_draft", "get_published", "get_user_info", "get_likes",
        "post_comment", "update_user_info", "update_user_name", "update_user_image",
        "create_draft", "publish_draft", "post_like",
    } <= names


def test_unconfigured(monkeypatch):
    monkeypatch.setattr(server, "_api", None)
    with pytest.raises(RuntimeError):
        asyncio.run(server.get_page(new_id()))


def test_get_page_tool(fake):
    page_id = new_id()
    fake.add_blog_page(page_id, "Hello")
    fake.add_children(page_id, [block("heading_1", [text("Intro")])])

    page = asyncio.run(server.get_page(page_id))

    assert page["title"] == "Hello"
    assert page["content"][0]["type"] == "h1"
    json.dumps(page)


def test_block_children_tool(fake):
    parent = new_id()
    fake.add_children(parent, [block("paragraph", [text("x")])])

    result = asyncio.run(server.get_block_children(parent))

    assert result["content"][0]["plain_text"] == "x"
    assert result["comments"] == []
    assert asyncio.run(server.get_block_children(new_id())) is None


def test_draft_tools(fake):
    draft, author = new_id(), new_id()
    fake.add_named(author, "Ada")
    fake.add_blog_page(draft, "WIP", authors=[author], published=None)
    fake.add_children(draft, [block("paragraph", [text("x")])])

    result = asyncio.run(server.get_draft(author, draft))

    assert result["authors"] == [{"id": author, "name": "Ada"}]
    assert result["content"][0]["plain_text"] == "x"
    assert asyncio.run(server.get_draft(new_id(), draft)) is None
    assert asyncio.run(server.get_published(draft)) is None
    json.dumps(result)


def test_get_published_tool(fake):
    page_id = new_id()
    fake.add_blog_page(page_id, "Hello")

    assert asyncio.run(server.get_published(page_id)) == TIME


def test_post_comment_tool(fake):
    page_id, author = new_id(), new_id()
    fake.add_blog_page(page_id, "Hello")

    result = asyncio.run(server.post_comment([page_id], author, "hello"))

    assert len(result["comments"]) == 1
    assert asyncio.run(server.post_comment([], author, "hello")) is None


def test_update_user_info_tool(fake):
    user = new_id()
    fake.add_named(user, "Ada")
    fake.add_children(user, [])

    result = asyncio.run(server.update_user_info(user, "bio"))

    assert [b["plain_text"] for b in result] == ["bio"]


def test_health_endpoint(fake):
    response = asyncio.run(server.health_endpoint(None))
    assert json.loads(response.body) == {"status": "ok", "configured": True, "workspace": "Test"}
