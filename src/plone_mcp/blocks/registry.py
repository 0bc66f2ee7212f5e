"""Schema registry: the closed catalogue of Volto block types.

The registry is loaded once from the packaged ``blocks.json`` and is
read-only afterwards.  Its key set is the closed set of block types the
server accepts; anything outside it is rejected with
:class:`~plone_mcp.errors.PloneNotFoundError`.
"""

from __future__ import annotations

import copy
import json
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from plone_mcp.errors import PloneConfigError, PloneNotFoundError

# Accepted spellings that resolve to a registered type.
BLOCK_TYPE_ALIASES: Mapping[str, str] = MappingProxyType({
    "text": "slate",
})

# Worked examples returned next to the field specifications.
_EXAMPLES: dict[str, dict[str, Any]] = {
    "title": {},
    "slate": {
        "text": "## Welcome\n\nThis paragraph has **bold** text and a [link](https://example.com).",
        "theme": "default",
    },
    "image": {
        "url": "https://example.com/images/logo.png",
        "alt": "Logo",
        "size": "l",
        "align": "center",
    },
    "teaser": {
        "href": [{"@id": "https://example.com/news/latest-updates"}],
        "overwrite": True,
        "title": "Latest Company Updates",
        "head_title": "News",
        "description": "Read about our recent achievements and announcements",
        "preview_image": [
            {
                "@id": "https://example.com/images/latest-updates-preview.jpg",
                "image_field": "image",
            },
        ],
        "theme": "default",
        "styles": {"align": "left"},
    },
    "__button": {
        "href": [{"@id": "https://example.com/contact", "title": "Contact Page"}],
        "title": "Contact Us",
        "theme": "default",
        "styles": {
            "align:noprefix": {"--block-alignment": "var(--align-center)"},
            "blockWidth:noprefix": {"--block-width": "var(--default-container-width)"},
        },
    },
    "separator": {
        "theme": "default",
        "styles": {
            "align:noprefix": {"--block-alignment": "var(--align-left)"},
            "blockWidth:noprefix": {"--block-width": "var(--narrow-container-width)"},
            "shortLine": True,
        },
    },
    "listing": {
        "querystring": {
            "query": [
                {
                    "i": "portal_type",
                    "o": "plone.app.querystring.operation.selection.any",
                    "v": ["News Item", "Document"],
                },
            ],
            "sort_on": "modified",
            "sort_order": "descending",
            "b_size": 10,
        },
        "variation": "summary",
    },
}


class SchemaRegistry:
    """Immutable mapping of block type -> field specification.

    Parameters
    ----------
    specifications:
        Block type name -> specification dict.  Must not be empty.
    """

    def __init__(self, specifications: Mapping[str, Any]) -> None:
        if not specifications:
            raise PloneConfigError(
                message="Block schema registry is empty",
                context={"field": "specifications"},
            )
        self._specs: Mapping[str, Any] = MappingProxyType(copy.deepcopy(dict(specifications)))
        self._types: frozenset[str] = frozenset(self._specs)

    @classmethod
    def load(cls, path: str | Path | None = None) -> SchemaRegistry:
        """Load the registry from *path*, or from the packaged ``blocks.json``.

        Raises
        ------
        PloneConfigError
            If the file is missing, unreadable, not valid JSON, or not a
            JSON object.
        """
        source = str(path) if path is not None else "plone_mcp.blocks/blocks.json"
        try:
            if path is None:
                raw = resources.files("plone_mcp.blocks").joinpath("blocks.json").read_text("utf-8")
            else:
                raw = Path(path).read_text("utf-8")
            data = json.loads(raw)
        except (OSError, ValueError) as exc:
            raise PloneConfigError(
                message=f"Cannot load block schema registry from {source}: {exc}",
                context={"field": "blocks.json", "source": source},
                cause=exc,
            ) from exc

        if not isinstance(data, dict):
            raise PloneConfigError(
                message=f"Block schema registry {source} must be a JSON object",
                context={"field": "blocks.json", "source": source},
            )
        return cls(data)

    @property
    def block_types(self) -> frozenset[str]:
        return self._types

    def type_names(self) -> list[str]:
        """Block types in registry file order."""
        return list(self._specs)

    def resolve(self, block_type: str) -> str:
        """Return the registered name for *block_type*, following aliases.

        Raises
        ------
        PloneNotFoundError
            If *block_type* is neither registered nor an alias.
        """
        name = BLOCK_TYPE_ALIASES.get(block_type, block_type)
        if name not in self._types:
            available = self.type_names()
            raise PloneNotFoundError(
                message=(
                    f"Unknown block type: {block_type}. "
                    f"Available types: {', '.join(available)}"
                ),
                context={"block_type": block_type, "available_types": available},
            )
        return name

    def __contains__(self, block_type: object) -> bool:
        if not isinstance(block_type, str):
            return False
        return BLOCK_TYPE_ALIASES.get(block_type, block_type) in self._types

    def specification(self, block_type: str) -> dict[str, Any]:
        """Return a copy of the specification for *block_type*."""
        return copy.deepcopy(self._specs[self.resolve(block_type)])

    def specifications(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self._specs))

    def example(self, block_type: str) -> dict[str, Any]:
        return copy.deepcopy(_EXAMPLES.get(self.resolve(block_type), {}))

    def examples(self) -> dict[str, Any]:
        return {name: copy.deepcopy(_EXAMPLES.get(name, {})) for name in self._specs}
