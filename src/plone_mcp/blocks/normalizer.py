"""Turn caller-supplied block data into finalized Volto block records.

Dispatch by block type:

- ``slate`` (alias ``text``) -- Markdown ``text`` is parsed into a Slate
  ``value``; ``plaintext`` keeps the literal text.
- ``image`` -- ``url`` is required and must pass the image URL check.
- ``teaser`` / ``__button`` -- a string ``href`` becomes ``[{"@id": href}]``.
- everything else -- passed through with the ``@type`` discriminator set.

Every record returned carries ``"@type"``.

:meth:`BlockNormalizer.text_block` is public.  Callers that assemble a page
body themselves use it to build a slate block directly; with
``heading_level`` the literal text is wrapped in one heading node, e.g. a
visible ``h1`` page heading.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from plone_mcp.blocks.image_check import ImageChecker
from plone_mcp.blocks.registry import SchemaRegistry
from plone_mcp.converter.markdown_parser import MarkdownParser, to_slate
from plone_mcp.errors import PloneValidationError
from plone_mcp.models import TITLE_BLOCK_TYPE, DocumentNode, NodeKind

SLATE_BLOCK_TYPE = "slate"
IMAGE_BLOCK_TYPE = "image"
HREF_BLOCK_TYPES: frozenset[str] = frozenset({"teaser", "__button"})

DEFAULT_THEME = "default"

_Normalize = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]


class BlockNormalizer:
    """Validate and normalize block data per block type.

    Parameters
    ----------
    registry:
        The schema registry; block types outside it are rejected.
    image_checker:
        Collaborator that verifies image URLs.
    parser:
        Markdown parser for text blocks.  A fresh one by default.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        image_checker: ImageChecker,
        parser: MarkdownParser | None = None,
    ) -> None:
        self._registry = registry
        self._image_checker = image_checker
        self._parser = parser or MarkdownParser()
        self._handlers: dict[str, _Normalize] = {
            SLATE_BLOCK_TYPE: self._slate,
            IMAGE_BLOCK_TYPE: self._image,
        }
        for name in HREF_BLOCK_TYPES:
            self._handlers[name] = self._href

    async def normalize(self, block_type: str, raw_data: Mapping[str, Any] | None) -> dict[str, Any]:
        """Return the finalized record for one block.

        Raises
        ------
        PloneNotFoundError
            If *block_type* is not in the registry.
        PloneValidationError
            If *raw_data* violates the rules of its block type.
        """
        name = self._registry.resolve(block_type)
        data = _as_dict(raw_data, name)
        handler = self._handlers.get(name, self._passthrough)
        return await handler(name, data)

    async def normalize_update(
        self,
        existing: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Merge *changes* into an existing block record.

        Only the fields present in *changes* are re-normalized: new ``text``
        regenerates ``plaintext`` and ``value``, a new image ``url`` is
        checked again, a new ``href`` is converted.  Block types unknown to
        the registry are merged as-is.
        """
        block_type = existing.get("@type", "")
        data = _as_dict(changes, block_type)
        data.pop("@type", None)
        merged = {**existing, **data}

        if block_type == SLATE_BLOCK_TYPE and "text" in data:
            text_fields = await self._slate(block_type, {
                "text": data["text"],
                "theme": data.get("theme", existing.get("theme")),
            })
            merged.pop("text", None)
            merged.update(text_fields)
        elif block_type == IMAGE_BLOCK_TYPE and "url" in data:
            merged = await self._image(block_type, merged)
        elif block_type in HREF_BLOCK_TYPES and "href" in data:
            merged = await self._href(block_type, merged)

        merged["@type"] = block_type
        return merged

    def text_block(
        self,
        text: str,
        *,
        theme: str = DEFAULT_THEME,
        heading_level: int | None = None,
    ) -> dict[str, Any]:
        """Build a ``slate`` block for *text*.

        With *heading_level* the literal text is wrapped in a single heading
        node instead of being parsed, which is how a page's default title
        heading is produced.
        """
        if heading_level is None:
            value = to_slate(self._parser.parse(text))
        else:
            heading = DocumentNode.element(
                NodeKind.HEADING,
                [DocumentNode.leaf(text)],
                level=max(1, min(6, heading_level)),
            )
            value = [heading.to_slate()]
        return {
            "@type": SLATE_BLOCK_TYPE,
            "plaintext": text,
            "value": value,
            "theme": theme,
        }

    # -- handlers ---------------------------------------------------------

    async def _slate(self, block_type: str, data: dict[str, Any]) -> dict[str, Any]:
        text = data.get("text")
        if text is None:
            text = ""
        if not isinstance(text, str):
            raise PloneValidationError(
                message=f"Invalid 'text' for {block_type} block: expected a string, got {type(text).__name__}",
                context={"field": "text", "value": repr(text)[:200], "block_type": block_type},
            )
        return self.text_block(text, theme=data.get("theme") or DEFAULT_THEME)

    async def _image(self, block_type: str, data: dict[str, Any]) -> dict[str, Any]:
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise PloneValidationError(
                message=f"Missing or invalid image URL: {url!r}",
                context={"field": "url", "value": repr(url)[:200], "block_type": block_type},
            )
        if not await self._image_checker.is_image(url):
            raise PloneValidationError(
                message=f"Invalid or inaccessible image URL: {_truncate(url)}",
                context={"field": "url", "value": _truncate(url), "block_type": block_type},
            )
        return {**data, "@type": block_type}

    async def _href(self, block_type: str, data: dict[str, Any]) -> dict[str, Any]:
        result = {**data, "@type": block_type}
        href = data.get("href")
        if href is None or href == "":
            return result
        if isinstance(href, str):
            result["href"] = [{"@id": href}]
        elif isinstance(href, list):
            result["href"] = href
        else:
            raise PloneValidationError(
                message=(
                    f"Invalid href format for {block_type} block. "
                    f"Expected string or array, got: {type(href).__name__}"
                ),
                context={"field": "href", "value": repr(href)[:200], "block_type": block_type},
            )
        return result

    async def _passthrough(self, block_type: str, data: dict[str, Any]) -> dict[str, Any]:
        if block_type == TITLE_BLOCK_TYPE:
            return {"@type": TITLE_BLOCK_TYPE}
        return {**data, "@type": block_type}


def _as_dict(raw_data: Mapping[str, Any] | None, block_type: str) -> dict[str, Any]:
    if raw_data is None:
        return {}
    if not isinstance(raw_data, Mapping):
        raise PloneValidationError(
            message=f"Block data for {block_type} must be an object, got {type(raw_data).__name__}",
            context={"field": "data", "block_type": block_type},
        )
    return dict(raw_data)


def _truncate(value: str, max_len: int = 200) -> str:
    if len(value) <= max_len:
        return value
    return value[:max_len] + "..."
