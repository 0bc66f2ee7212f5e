"""MCP server exposing a Plone site to LLM clients.

:class:`PloneMCPServer` registers the Plone tools, resources and prompts on
a :class:`~mcp.server.fastmcp.FastMCP` instance.  The REST connection is
established by the ``plone_configure`` tool; every other tool that talks to
Plone fails with a configuration error until then.

Errors from the package surface as :class:`ToolError` with the operation
name in brackets, e.g. ``[CreateContent] Resource not found on POST /news``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Annotated, Any
from urllib.parse import unquote

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from plone_mcp.blocks import (
    BlockAssembler,
    BlockNormalizer,
    ImageChecker,
    ImageURLChecker,
    SchemaRegistry,
    StagingSlot,
)
from plone_mcp.config import PloneConfig
from plone_mcp.errors import PloneConfigError, PloneMCPError, PloneValidationError
from plone_mcp.observability import get_logger
from plone_mcp.plone_api import ContentAPI, PloneTransport, normalize_path

log = get_logger("plone_mcp.server")

SERVER_NAME = "plone-mcp"

_INSTRUCTIONS = (
    "Tools for managing content on a Plone CMS site through plone.restapi. "
    "Call plone_configure first. To build a page, describe its blocks with "
    "plone_create_blocks_layout and then call plone_create_content or "
    "plone_update_content within 60 seconds; the prepared layout is used "
    "automatically. Use plone_get_block_schemas to see the block types."
)

_NOT_CONFIGURED = "Plone client not configured. Please run plone_configure first."


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


@contextmanager
def _operation(name: str) -> Iterator[None]:
    """Re-raise package errors as MCP tool errors tagged with *name*."""
    try:
        yield
    except PloneMCPError as exc:
        log.warning(
            "Tool failed",
            extra={
                "extra_fields": {
                    "op": name,
                    "code": exc.code.value,
                    "error": exc.message,
                }
            },
        )
        raise ToolError(f"[{name}] {exc.message}") from exc


class PloneMCPServer:
    """Plone tools, resources and prompts on a FastMCP server.

    Parameters
    ----------
    config:
        Optional initial configuration.  When given, the server starts
        connected; otherwise ``plone_configure`` must be called first.
    registry:
        Block schema registry.  Loaded from the packaged ``blocks.json`` by
        default.
    image_checker:
        Image URL checker used for image blocks.
    transport_factory:
        Builds a :class:`PloneTransport` from a config.  Tests swap in a
        transport backed by ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: PloneConfig | None = None,
        registry: SchemaRegistry | None = None,
        image_checker: ImageChecker | None = None,
        transport_factory: Callable[[PloneConfig], PloneTransport] = PloneTransport,
    ) -> None:
        self._registry = registry if registry is not None else SchemaRegistry.load()
        self._image_checker = image_checker if image_checker is not None else ImageURLChecker(
            timeout_seconds=config.image_check_timeout_seconds if config else 10.0,
        )
        metrics = config.metrics if config is not None else None
        slot = StagingSlot(
            ttl_seconds=config.staging_ttl_seconds if config else 60.0,
            metrics=metrics,
        )
        self.assembler = BlockAssembler(
            self._registry,
            BlockNormalizer(self._registry, self._image_checker),
            slot=slot,
            metrics=metrics,
        )
        self._transport_factory = transport_factory
        self._transport: PloneTransport | None = None
        self._content: ContentAPI | None = None
        if config is not None:
            self._install(transport_factory(config))

        self.mcp = FastMCP(SERVER_NAME, instructions=_INSTRUCTIONS, lifespan=self._lifespan)
        self._register_tools()
        self._register_resources()
        self._register_prompts()

    # -- lifecycle ---------------------------------------------------------

    @asynccontextmanager
    async def _lifespan(self, _server: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await self.close()

    async def close(self) -> None:
        """Close the REST transport and the image checker's HTTP client."""
        if self._transport is not None:
            await self._transport.close()
            self._transport = None
            self._content = None
        close = getattr(self._image_checker, "close", None)
        if close is not None:
            await close()

    def run(self) -> None:
        log.info("Plone MCP server running on stdio")
        self.mcp.run()

    def _install(self, transport: PloneTransport) -> None:
        self._transport = transport
        self._content = ContentAPI(transport)

    def _require_content(self) -> ContentAPI:
        if self._content is None:
            raise PloneConfigError(message=_NOT_CONFIGURED)
        return self._content

    # -- registration ------------------------------------------------------

    def _register_tools(self) -> None:
        tools: list[tuple[Callable[..., Any], str, str]] = [
            (self.configure, "plone_configure",
             "Establishes and authenticates the connection to a Plone site. Must be "
             "called once per session before other tools. Arguments fall back to the "
             "PLONE_BASE_URL, PLONE_USERNAME, PLONE_PASSWORD and PLONE_TOKEN "
             "environment variables; explicit arguments win."),
            (self.get_content, "plone_get_content",
             "Retrieves the full JSON of a content item by path, including its blocks."),
            (self.create_content, "plone_create_content",
             "Creates a content item (Document, News Item, Folder...) inside parent_path. "
             "A layout prepared with plone_create_blocks_layout in the last 60 seconds "
             "is used for its blocks; otherwise blocks/blocks_layout are used if given. "
             "A title block is always placed first."),
            (self.update_content, "plone_update_content",
             "Updates title, description, blocks or other fields of an existing item. "
             "A prepared blocks layout replaces the item's blocks."),
            (self.delete_content, "plone_delete_content",
             "Permanently deletes the content item at path."),
            (self.search, "plone_search",
             "Searches the site catalog by text, type, path and review state."),
            (self.get_site_info, "plone_get_site_info",
             "Returns the site root information."),
            (self.get_types, "plone_get_types",
             "Lists the content types that can be added."),
            (self.get_vocabularies, "plone_get_vocabularies",
             "Returns the terms of a named vocabulary, e.g. plone.app.vocabularies.Keywords."),
            (self.get_workflow_info, "plone_get_workflow_info",
             "Returns the workflow state, history and available transitions of an item."),
            (self.transition_workflow, "plone_transition_workflow",
             "Executes a workflow transition such as 'publish' or 'retract'."),
            (self.get_block_schemas, "plone_get_block_schemas",
             "Describes the available block types, their fields and an example for each."),
            (self.create_blocks_layout, "plone_create_blocks_layout",
             "Prepares a list of blocks for the next plone_create_content or "
             "plone_update_content call (valid for 60 seconds). Each entry is "
             "{type, data, position?}; slate blocks take Markdown in data.text."),
            (self.add_single_block, "plone_add_single_block",
             "Adds one block to an existing item at an optional position."),
            (self.update_single_block, "plone_update_single_block",
             "Merges new data into one existing block, identified by its block id."),
            (self.remove_single_block, "plone_remove_single_block",
             "Removes one block from an item, identified by its block id."),
        ]
        for fn, name, description in tools:
            self.mcp.add_tool(fn, name=name, description=description)

    def _register_resources(self) -> None:
        self.mcp.resource(
            "plone://site",
            name="plone-site",
            description="Read-only access to the Plone site's root information object.",
            mime_type="application/json",
        )(self.site_resource)
        self.mcp.resource(
            "plone://types",
            name="plone-types",
            description="Read-only access to the list of available content types.",
            mime_type="application/json",
        )(self.types_resource)
        self.mcp.resource(
            "plone://content/{path}",
            name="plone-content",
            description=(
                "Read-only access to the full JSON of a content item. The path is "
                "URL-encoded, e.g. plone://content/news%2Fitem."
            ),
            mime_type="application/json",
        )(self.content_resource)

    def _register_prompts(self) -> None:
        self.mcp.prompt(
            name="create-page-workflow",
            description="A guided workflow to create a single web page.",
        )(create_page_workflow)
        self.mcp.prompt(
            name="create-example-site-workflow",
            description="A guided workflow to create a small multi-page example site.",
        )(create_example_site_workflow)

    # -- tools: configuration and content ----------------------------------

    async def configure(
        self,
        base_url: Annotated[str | None, Field(description="Base URL of the Plone site, e.g. https://demo.plone.org")] = None,
        username: Annotated[str | None, Field(description="Username for basic authentication")] = None,
        password: Annotated[str | None, Field(description="Password for basic authentication")] = None,
        token: Annotated[str | None, Field(description="JWT token, used instead of username/password")] = None,
    ) -> str:
        with _operation("Configure"):
            config = PloneConfig.from_env(
                base_url=base_url,
                username=username,
                password=password,
                token=token,
            )
            previous = self._transport
            transport = self._transport_factory(config)
            try:
                await ContentAPI(transport).site_info()
            except PloneMCPError:
                await transport.close()
                raise
            if previous is not None:
                await previous.close()
            self._install(transport)
            log.info(
                "Configured Plone connection",
                extra={"extra_fields": {"op": "configure", "base_url": config.base_url}},
            )
            return f"Successfully configured connection to Plone site: {config.base_url}"

    async def get_content(
        self,
        path: Annotated[str, Field(description="Content path, e.g. /news/my-item")],
        expand: Annotated[list[str] | None, Field(description="Components to expand, e.g. ['breadcrumbs', 'workflow']")] = None,
    ) -> str:
        with _operation("GetContent"):
            return _dump(await self._require_content().get(path, expand=expand))

    async def create_content(
        self,
        parent_path: Annotated[str, Field(description="Path of the container, e.g. / or /news")],
        type: Annotated[str, Field(description="Content type, e.g. Document or News Item")],
        title: Annotated[str, Field(description="Title of the new item")],
        description: Annotated[str | None, Field(description="Summary of the item")] = None,
        id: Annotated[str | None, Field(description="Short name; derived from the title when omitted")] = None,
        blocks: Annotated[dict[str, Any] | None, Field(description="Block id -> block data")] = None,
        blocks_layout: Annotated[dict[str, Any] | None, Field(description="{'items': [block ids in order]}")] = None,
        additional_fields: Annotated[dict[str, Any] | None, Field(description="Further schema fields")] = None,
    ) -> str:
        with _operation("CreateContent"):
            try:
                content = self._require_content()
                data: dict[str, Any] = {"@type": type, "title": title}
                if description:
                    data["description"] = description
                if id:
                    data["id"] = id
                if additional_fields:
                    data.update(additional_fields)
                payload = self.assembler.resolve_for_write(blocks, blocks_layout, is_update=False)
                if payload is not None:
                    data.update(payload.to_payload())
                return _dump(await content.create(parent_path, data))
            except Exception:
                self.assembler.discard_staged()
                raise

    async def update_content(
        self,
        path: Annotated[str, Field(description="Path of the item to update")],
        title: Annotated[str | None, Field(description="New title")] = None,
        description: Annotated[str | None, Field(description="New description")] = None,
        blocks: Annotated[dict[str, Any] | None, Field(description="Block id -> block data")] = None,
        blocks_layout: Annotated[dict[str, Any] | None, Field(description="{'items': [block ids in order]}")] = None,
        additional_fields: Annotated[dict[str, Any] | None, Field(description="Further schema fields")] = None,
    ) -> str:
        with _operation("UpdateContent"):
            try:
                content = self._require_content()
                data: dict[str, Any] = {}
                if title is not None:
                    data["title"] = title
                if description is not None:
                    data["description"] = description
                if additional_fields:
                    data.update(additional_fields)
                payload = self.assembler.resolve_for_write(blocks, blocks_layout, is_update=True)
                if payload is not None:
                    data.update(payload.to_payload())
                if not data:
                    raise PloneValidationError(
                        message="No changes specified for update",
                        context={"path": path},
                    )
                result = await content.update(path, data)
                return _dump(result) if result else f"Successfully updated content at path: {path}"
            except Exception:
                self.assembler.discard_staged()
                raise

    async def delete_content(
        self,
        path: Annotated[str, Field(description="Path of the item to delete")],
    ) -> str:
        with _operation("DeleteContent"):
            await self._require_content().delete(path)
            return f"Successfully deleted content at path: {path}"

    # -- tools: search and site information --------------------------------

    async def search(
        self,
        query: Annotated[str | None, Field(description="Full-text search term")] = None,
        portal_type: Annotated[list[str] | None, Field(description="Content types to include")] = None,
        path: Annotated[str | None, Field(description="Restrict to this path")] = None,
        review_state: Annotated[list[str] | None, Field(description="Workflow states to include")] = None,
        sort_on: Annotated[str | None, Field(description="Index to sort on, e.g. modified")] = None,
        sort_order: Annotated[str | None, Field(description="ascending or descending")] = None,
        b_size: Annotated[int | None, Field(description="Batch size", ge=1)] = None,
        b_start: Annotated[int | None, Field(description="Batch start", ge=0)] = None,
    ) -> str:
        with _operation("Search"):
            results = await self._require_content().search(
                query=query,
                portal_type=portal_type,
                path=path,
                review_state=review_state,
                sort_on=sort_on,
                sort_order=sort_order,
                b_size=b_size,
                b_start=b_start,
            )
            return _dump(results)

    async def get_site_info(self) -> str:
        with _operation("GetSiteInfo"):
            return _dump(await self._require_content().site_info())

    async def get_types(self) -> str:
        with _operation("GetTypes"):
            return _dump(await self._require_content().types())

    async def get_vocabularies(
        self,
        vocabulary: Annotated[str, Field(description="Vocabulary name, e.g. plone.app.vocabularies.Keywords")],
        title: Annotated[str | None, Field(description="Filter terms by title")] = None,
        token: Annotated[str | None, Field(description="Filter terms by token")] = None,
    ) -> str:
        with _operation("GetVocabularies"):
            return _dump(await self._require_content().vocabulary(vocabulary, title=title, token=token))

    # -- tools: workflow ---------------------------------------------------

    async def get_workflow_info(
        self,
        path: Annotated[str, Field(description="Path of the content item")],
    ) -> str:
        with _operation("GetWorkflowInfo"):
            return _dump(await self._require_content().workflow(path))

    async def transition_workflow(
        self,
        path: Annotated[str, Field(description="Path of the content item")],
        transition: Annotated[str, Field(description="Transition id, e.g. publish")],
        comment: Annotated[str | None, Field(description="Comment stored in the workflow history")] = None,
    ) -> str:
        with _operation("TransitionWorkflow"):
            return _dump(await self._require_content().transition(path, transition, comment=comment))

    # -- tools: blocks -----------------------------------------------------

    async def get_block_schemas(
        self,
        block_type: Annotated[str | None, Field(description="Only describe this block type")] = None,
    ) -> str:
        with _operation("GetBlockSchemas"):
            return _dump(self.assembler.get_schema(block_type))

    async def create_blocks_layout(
        self,
        blocks: Annotated[
            list[dict[str, Any]],
            Field(description="Blocks in order: [{'type': 'slate', 'data': {'text': '# Hi'}, 'position': 0}]"),
        ],
    ) -> str:
        with _operation("CreateBlocksLayout"):
            result = await self.assembler.stage(blocks)
            ttl = int(self.assembler.staging_ttl_seconds)
            return (
                f"Successfully prepared {len(result.block_ids)} blocks for next "
                f"create/update operation (valid for {ttl} seconds). "
                f"Blocks ready: {result.summary()}"
            )

    async def add_single_block(
        self,
        path: Annotated[str, Field(description="Path of the content item")],
        block_type: Annotated[str, Field(description="Block type, see plone_get_block_schemas")],
        block_data: Annotated[dict[str, Any] | None, Field(description="Block data")] = None,
        position: Annotated[int | None, Field(description="Index in the layout; appended when omitted")] = None,
    ) -> str:
        with _operation("AddBlock"):
            content = self._require_content()
            document = await content.get(path)
            block_id, payload = await self.assembler.add_block(document, block_type, block_data, position)
            await content.update(path, payload.to_payload())
            return _dump({"path": normalize_path(path), "blockId": block_id, **payload.to_payload()})

    async def update_single_block(
        self,
        path: Annotated[str, Field(description="Path of the content item")],
        block_id: Annotated[str, Field(description="Id of the block to change")],
        block_data: Annotated[dict[str, Any], Field(description="Fields to merge into the block")],
    ) -> str:
        with _operation("UpdateBlock"):
            content = self._require_content()
            document = await content.get(path)
            payload = await self.assembler.update_block(document, block_id, block_data)
            await content.update(path, payload.to_payload())
            return _dump({"path": normalize_path(path), "blockId": block_id, "block": payload.blocks[block_id]})

    async def remove_single_block(
        self,
        path: Annotated[str, Field(description="Path of the content item")],
        block_id: Annotated[str, Field(description="Id of the block to remove")],
    ) -> str:
        with _operation("RemoveBlock"):
            content = self._require_content()
            document = await content.get(path)
            payload = self.assembler.remove_block(document, block_id)
            await content.update(path, payload.to_payload())
            return f"Successfully removed block {block_id} from {normalize_path(path)}"

    # -- resources ---------------------------------------------------------

    async def site_resource(self) -> str:
        return _dump(await self._require_content().site_info())

    async def types_resource(self) -> str:
        return _dump(await self._require_content().types())

    async def content_resource(self, path: str) -> str:
        return _dump(await self._require_content().get(unquote(path)))


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def create_page_workflow(content_type: str, purpose: str, audience: str | None = None) -> str:
    """A guided workflow to create a single web page."""
    target = f" for an audience of {audience}" if audience else ""
    return (
        f'My goal is to create a new {content_type} page about "{purpose}"{target}. '
        "Perform the following steps:\n\n"
        "1.  Ensure the Plone connection is configured.\n"
        "2.  Determine the best parent path for this new content.\n"
        "3.  Create the page with a fitting title and description.\n"
        "4.  Add relevant content blocks (like text and images) to build out the page.\n"
        "5.  Finally, publish the page by transitioning its workflow state.\n\n"
        "Begin with the first step."
    )


def create_example_site_workflow(
    content_types: str,
    purpose: str,
    audience: str | None = None,
    number_of_pages: str = "3",
) -> str:
    """A guided workflow to create a small multi-page example site."""
    target = f", aimed at an audience of {audience}" if audience else ""
    return (
        f"My goal is to create an example site with {number_of_pages} pages of type "
        f'{content_types}, all centered around the theme of "{purpose}"{target}. '
        "Follow this plan:\n\n"
        "1.  Ensure the Plone connection is configured.\n"
        "2.  Establish a logical folder (Document type objects can be used as folders) "
        "structure for the new pages.\n"
        f"3.  Create each of the {number_of_pages} pages with appropriate titles, "
        "descriptions, and content.\n"
        "4.  Populate each page with relevant and structured content blocks.\n"
        "5.  Ensure all created pages are published.\n\n"
        "Begin this process step-by-step."
    )
