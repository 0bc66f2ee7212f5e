"""Tests for plone_mcp/server.py.

Tool methods are called directly.  The Plone site is an in-memory fake
served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import json

import httpx
import pytest
from mcp.server.fastmcp.exceptions import ToolError

from plone_mcp.config import PloneConfig
from plone_mcp.models import StagingState
from plone_mcp.plone_api import PloneTransport
from plone_mcp.server import (
    PloneMCPServer,
    create_example_site_workflow,
    create_page_workflow,
)

API = "/++api++"


class FakePlone:
    """Minimal plone.restapi stand-in keeping one document at ``/page``."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict | None]] = []
        self.fail: dict[str, int] = {}
        self.document = {
            "@id": "https://plone.example.com/page",
            "title": "Page",
            "blocks": {
                "t": {"@type": "title"},
                "a": {"@type": "slate", "plaintext": "a"},
            },
            "blocks_layout": {"items": ["t", "a"]},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(API):] or "/"
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))
        if request.method in self.fail:
            return httpx.Response(self.fail[request.method], json={"message": "boom"})
        if request.method == "GET" and path in ("/", ""):
            return httpx.Response(200, json={"@id": "https://plone.example.com", "title": "Site"})
        if request.method == "GET" and path == "/page":
            return httpx.Response(200, json=self.document)
        if request.method == "GET" and path == "/@types":
            return httpx.Response(200, json=[{"title": "Page", "addable": True}])
        if request.method == "PATCH":
            return httpx.Response(204)
        if request.method == "POST":
            return httpx.Response(201, json={"@id": "https://plone.example.com/new", **(body or {})})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(404, json={"message": f"Resource not found: {path}"})

    def last(self, method: str) -> tuple[str, dict | None]:
        for m, path, body in reversed(self.requests):
            if m == method:
                return path, body
        raise AssertionError(f"no {method} request")


@pytest.fixture
def plone() -> FakePlone:
    return FakePlone()


@pytest.fixture
def factory(plone):
    def build(config: PloneConfig) -> PloneTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(plone))
        return PloneTransport(config, client=client)

    return build


@pytest.fixture
def unconfigured(registry, image_checker, factory) -> PloneMCPServer:
    return PloneMCPServer(registry=registry, image_checker=image_checker, transport_factory=factory)


@pytest.fixture
async def server(config, registry, image_checker, factory, assembler):
    srv = PloneMCPServer(
        config,
        registry=registry,
        image_checker=image_checker,
        transport_factory=factory,
    )
    srv.assembler = assembler
    yield srv
    await srv.close()


class TestRegistration:
    async def test_tool_names(self, unconfigured):
        names = {tool.name for tool in await unconfigured.mcp.list_tools()}
        assert names == {
            "plone_configure",
            "plone_get_content",
            "plone_create_content",
            "plone_update_content",
            "plone_delete_content",
            "plone_search",
            "plone_get_site_info",
            "plone_get_types",
            "plone_get_vocabularies",
            "plone_get_workflow_info",
            "plone_transition_workflow",
            "plone_get_block_schemas",
            "plone_create_blocks_layout",
            "plone_add_single_block",
            "plone_update_single_block",
            "plone_remove_single_block",
        }

    async def test_prompt_names(self, unconfigured):
        names = {prompt.name for prompt in await unconfigured.mcp.list_prompts()}
        assert names == {"create-page-workflow", "create-example-site-workflow"}


class TestConfigure:
    async def test_not_configured(self, unconfigured):
        with pytest.raises(ToolError, match=r"^\[GetSiteInfo\] Plone client not configured"):
            await unconfigured.get_site_info()

    async def test_configure_checks_connection(self, unconfigured, plone, monkeypatch):
        monkeypatch.delenv("PLONE_BASE_URL", raising=False)
        message = await unconfigured.configure(base_url="https://plone.example.com", token="jwt")
        assert message == "Successfully configured connection to Plone site: https://plone.example.com"
        assert plone.requests == [("GET", "/", None)]
        assert json.loads(await unconfigured.get_site_info())["title"] == "Site"
        await unconfigured.close()

    async def test_configure_from_environment(self, unconfigured, monkeypatch):
        monkeypatch.setenv("PLONE_BASE_URL", "https://env.example.com")
        message = await unconfigured.configure()
        assert message.endswith("https://env.example.com")
        await unconfigured.close()

    async def test_auth_failure_leaves_server_unconfigured(self, unconfigured, plone):
        plone.fail["GET"] = 401
        with pytest.raises(ToolError, match=r"^\[Configure\] Authentication failed"):
            await unconfigured.configure(base_url="https://plone.example.com", token="bad")
        with pytest.raises(ToolError, match="not configured"):
            await unconfigured.get_types()

    async def test_invalid_url(self, unconfigured):
        with pytest.raises(ToolError, match=r"^\[Configure\] Invalid base URL"):
            await unconfigured.configure(base_url="ftp://plone")


class TestContentTools:
    async def test_get_content(self, server, plone):
        result = json.loads(await server.get_content("/page"))
        assert result["blocks_layout"] == {"items": ["t", "a"]}

    async def test_not_found_is_tagged(self, server):
        with pytest.raises(ToolError, match=r"^\[GetContent\] Resource not found"):
            await server.get_content("/missing")

    async def test_create_uses_staged_layout(self, server, plone):
        await server.create_blocks_layout([{"type": "slate", "data": {"text": "Hello"}}])
        await server.create_content("/", "Document", "About")
        path, body = plone.last("POST")
        assert path == "/"
        assert body["@type"] == "Document"
        assert body["blocks_layout"] == {"items": ["id-2", "id-1"]}
        assert body["blocks"]["id-2"] == {"@type": "title"}
        assert body["blocks"]["id-1"]["plaintext"] == "Hello"
        assert server.assembler.staging_state is StagingState.EMPTY

    async def test_create_without_blocks_gets_title_block(self, server, plone):
        await server.create_content("/", "Document", "Empty", description="Nothing yet")
        _, body = plone.last("POST")
        assert body["description"] == "Nothing yet"
        assert body["blocks"] == {"id-1": {"@type": "title"}}
        assert body["blocks_layout"] == {"items": ["id-1"]}

    async def test_additional_fields_do_not_override_blocks(self, server, plone):
        await server.create_content(
            "/", "Document", "X",
            additional_fields={"subjects": ["a"], "blocks": {"bogus": {}}},
        )
        _, body = plone.last("POST")
        assert body["subjects"] == ["a"]
        assert "bogus" not in body["blocks"]

    async def test_failed_create_discards_staged_layout(self, server, plone):
        await server.create_blocks_layout([{"type": "separator"}])
        plone.fail["POST"] = 500
        with pytest.raises(ToolError, match=r"^\[CreateContent\] Server error 500"):
            await server.create_content("/", "Document", "X")
        assert server.assembler.staging_state is StagingState.EMPTY

    async def test_update_without_changes(self, server):
        with pytest.raises(ToolError, match=r"^\[UpdateContent\] No changes specified for update"):
            await server.update_content("/page")

    async def test_update_title_only(self, server, plone):
        message = await server.update_content("/page", title="New")
        assert message == "Successfully updated content at path: /page"
        assert plone.last("PATCH") == ("/page", {"title": "New"})

    async def test_update_uses_staged_layout(self, server, plone):
        await server.create_blocks_layout([{"type": "separator"}])
        await server.update_content("/page")
        _, body = plone.last("PATCH")
        assert body["blocks_layout"]["items"][0] == "id-2"
        assert server.assembler.staging_state is StagingState.EMPTY

    async def test_delete(self, server, plone):
        assert await server.delete_content("/page") == "Successfully deleted content at path: /page"
        assert plone.last("DELETE") == ("/page", None)


class TestBlockTools:
    async def test_create_blocks_layout_message(self, server):
        message = await server.create_blocks_layout([
            {"type": "slate", "data": {"text": "a"}},
            {"type": "separator"},
        ])
        assert message == (
            "Successfully prepared 2 blocks for next create/update operation "
            "(valid for 60 seconds). Blocks ready: slate:[id-1], separator:[id-2]"
        )

    async def test_create_blocks_layout_failure(self, server, image_checker):
        image_checker.verdict = False
        with pytest.raises(ToolError, match=r"^\[CreateBlocksLayout\] Invalid or inaccessible image URL"):
            await server.create_blocks_layout([{"type": "image", "data": {"url": "https://x/y"}}])
        assert server.assembler.staging_state is StagingState.EMPTY

    async def test_get_block_schemas(self, server):
        result = json.loads(await server.get_block_schemas("text"))
        assert result["blockType"] == "slate"

    async def test_unknown_block_schema(self, server):
        with pytest.raises(ToolError, match=r"^\[GetBlockSchemas\] "):
            await server.get_block_schemas("carousel")

    async def test_add_single_block(self, server, plone):
        result = json.loads(await server.add_single_block("page", "slate", {"text": "new"}, position=1))
        assert result["path"] == "/page"
        assert result["blockId"] == "id-1"
        assert result["blocks_layout"] == {"items": ["t", "id-1", "a"]}
        path, body = plone.last("PATCH")
        assert path == "/page"
        assert body["blocks_layout"] == {"items": ["t", "id-1", "a"]}

    async def test_update_single_block(self, server, plone):
        result = json.loads(await server.update_single_block("/page", "a", {"text": "**b**"}))
        assert result["block"]["plaintext"] == "**b**"
        _, body = plone.last("PATCH")
        assert body["blocks"]["a"]["value"][0]["children"][0] == {
            "type": "strong",
            "children": [{"text": "b"}],
        }

    async def test_update_unknown_block(self, server):
        with pytest.raises(ToolError, match=r"^\[UpdateBlock\] Block with ID zzz not found"):
            await server.update_single_block("/page", "zzz", {})

    async def test_remove_single_block(self, server, plone):
        message = await server.remove_single_block("/page", "a")
        assert message == "Successfully removed block a from /page"
        _, body = plone.last("PATCH")
        assert body == {"blocks": {"t": {"@type": "title"}}, "blocks_layout": {"items": ["t"]}}

    async def test_remove_title_block_refused(self, server, plone):
        with pytest.raises(ToolError, match=r"^\[RemoveBlock\] "):
            await server.remove_single_block("/page", "t")
        with pytest.raises(AssertionError):
            plone.last("PATCH")


class TestResources:
    async def test_content_resource_unquotes_path(self, server, plone):
        result = json.loads(await server.content_resource("page%2F"))
        assert result["title"] == "Page"
        assert plone.last("GET") == ("/page", None)

    async def test_types_resource(self, server):
        assert json.loads(await server.types_resource()) == {
            "items": [{"title": "Page", "addable": True}],
        }


class TestPrompts:
    def test_page_workflow(self):
        text = create_page_workflow("Document", "gardening", audience="beginners")
        assert 'new Document page about "gardening" for an audience of beginners' in text
        assert text.endswith("Begin with the first step.")

    def test_page_workflow_without_audience(self):
        assert "audience" not in create_page_workflow("Document", "gardening")

    def test_example_site_workflow(self):
        text = create_example_site_workflow("News Item", "cycling", number_of_pages="5")
        assert "example site with 5 pages of type News Item" in text
        assert "Create each of the 5 pages" in text
