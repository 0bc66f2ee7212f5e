"""Data models shared across plone-mcp.

Plain dataclasses and enums: the parsed document tree, block
specifications handed to the assembly engine, and the payloads it returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TITLE_BLOCK_TYPE = "title"
"""``@type`` of the block that renders the page title."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NodeKind(str, Enum):
    """Closed set of node kinds in a parsed document tree.

    The value is the Slate element ``type`` the node serialises to, except
    for :attr:`HEADING` (serialised as ``h1`` .. ``h6``) and :attr:`TEXT`
    (a leaf, serialised without a ``type``).
    """

    PARAGRAPH = "p"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    ORDERED_LIST = "ol"
    UNORDERED_LIST = "ul"
    LIST_ITEM = "li"
    BOLD = "strong"
    ITALIC = "em"
    STRIKETHROUGH = "del"
    SUPERSCRIPT = "sup"
    SUBSCRIPT = "sub"
    LINK = "link"
    TEXT = "text"


class StagingState(str, Enum):
    """States of the single staged-layout slot."""

    EMPTY = "empty"
    """No layout is staged, or the staged one has expired."""

    STAGED = "staged"
    """A layout is staged and has not expired."""


# ---------------------------------------------------------------------------
# Document tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DocumentNode:
    """One node of a parsed rich-text document.

    Attributes
    ----------
    kind:
        The node kind.
    children:
        Child nodes.  Empty only for text leaves; element nodes always
        carry at least one child.
    text:
        Literal text.  Only meaningful for :attr:`NodeKind.TEXT`.
    url:
        Link target.  Only meaningful for :attr:`NodeKind.LINK`.
    level:
        Heading level 1-6.  Only meaningful for :attr:`NodeKind.HEADING`.
    """

    kind: NodeKind
    children: tuple[DocumentNode, ...] = ()
    text: str | None = None
    url: str | None = None
    level: int | None = None

    @classmethod
    def leaf(cls, text: str) -> DocumentNode:
        return cls(NodeKind.TEXT, text=text)

    @classmethod
    def element(
        cls,
        kind: NodeKind,
        children: list[DocumentNode] | tuple[DocumentNode, ...],
        *,
        url: str | None = None,
        level: int | None = None,
    ) -> DocumentNode:
        """Build an element node, padding empty children with an empty leaf."""
        kids = tuple(children) or (cls.leaf(""),)
        return cls(kind, children=kids, url=url, level=level)

    @property
    def is_leaf(self) -> bool:
        return self.kind is NodeKind.TEXT

    def to_slate(self) -> dict[str, Any]:
        """Serialise to a Volto Slate JSON node."""
        if self.kind is NodeKind.TEXT:
            return {"text": self.text or ""}
        if self.kind is NodeKind.HEADING:
            node_type = f"h{self.level or 2}"
        else:
            node_type = self.kind.value
        result: dict[str, Any] = {"type": node_type}
        if self.kind is NodeKind.LINK:
            result["data"] = {"url": self.url or ""}
        result["children"] = [child.to_slate() for child in self.children]
        return result


# ---------------------------------------------------------------------------
# Block assembly
# ---------------------------------------------------------------------------

@dataclass
class BlockSpec:
    """A caller-supplied block to normalize and place in a layout.

    Attributes
    ----------
    type:
        Block type name from the schema registry (``slate``, ``image``...).
    data:
        Raw block data; its shape depends on *type*.
    position:
        Optional index in the layout.  Out-of-range values append.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    position: int | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> BlockSpec:
        return cls(
            type=raw["type"],
            data=dict(raw.get("data") or {}),
            position=raw.get("position"),
        )


@dataclass
class StageResult:
    """Ids and types of the staged blocks, in the order they were given."""

    block_ids: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return ", ".join(
            f"{block_type}:[{block_id}]"
            for block_type, block_id in zip(self.types, self.block_ids)
        )


@dataclass
class BlocksPayload:
    """A block mapping plus its ordered layout.

    Attributes
    ----------
    blocks:
        Block id -> block data.
    layout:
        Block ids in render order.
    """

    blocks: dict[str, dict[str, Any]] = field(default_factory=dict)
    layout: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Render as the ``blocks`` / ``blocks_layout`` fields Plone expects."""
        return {
            "blocks": self.blocks,
            "blocks_layout": {"items": list(self.layout)},
        }


@dataclass
class StagedLayout:
    """A prepared :class:`BlocksPayload` stamped with its creation time."""

    payload: BlocksPayload
    created_at: float
