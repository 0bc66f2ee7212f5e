"""Parse Markdown into a Slate-compatible document tree.

Two stages:

1. **Tokenize** -- mistune v3's AST renderer turns the text into a generic
   token tree (plugins: ``strikethrough``, ``superscript``, ``subscript``).
2. **Transform** -- a bottom-up recursive pass maps each token onto a
   :class:`~plone_mcp.models.DocumentNode`.  Children are transformed first,
   then the token type is dispatched:

   ==================  =====================================
   mistune token       node
   ==================  =====================================
   heading             HEADING (``attrs.level``, default 2)
   paragraph           PARAGRAPH
   block_quote         BLOCKQUOTE
   list                ORDERED_LIST / UNORDERED_LIST
   list_item           LIST_ITEM
   strong / emphasis   BOLD / ITALIC
   strikethrough       STRIKETHROUGH
   superscript         SUPERSCRIPT
   subscript           SUBSCRIPT
   link                LINK
   text                TEXT leaf, HTML entities decoded
   thematic_break      dropped
   anything else       children spliced into the parent
   ==================  =====================================

Horizontal rules produce no node; dividers are the separate ``separator``
block type.  Tokens that carry only a raw literal (inline code, code
blocks, line breaks) degrade to text.
"""

from __future__ import annotations

import html
from collections.abc import Callable
from typing import Any

import mistune

from plone_mcp.errors import PloneParseError
from plone_mcp.models import DocumentNode, NodeKind
from plone_mcp.observability import get_logger

log = get_logger("plone_mcp.parser")

# Tokens whose children map one-to-one onto a node kind.
_ELEMENT_KINDS: dict[str, NodeKind] = {
    "paragraph": NodeKind.PARAGRAPH,
    "block_quote": NodeKind.BLOCKQUOTE,
    "list_item": NodeKind.LIST_ITEM,
    "strong": NodeKind.BOLD,
    "emphasis": NodeKind.ITALIC,
    "strikethrough": NodeKind.STRIKETHROUGH,
    "superscript": NodeKind.SUPERSCRIPT,
    "subscript": NodeKind.SUBSCRIPT,
}

_DROPPED_TYPES: frozenset[str] = frozenset({
    "thematic_break",
})

_DEFAULT_HEADING_LEVEL = 2

_Handler = Callable[[dict, list[DocumentNode]], list[DocumentNode]]


class MarkdownParser:
    """Parse Markdown text into a list of top-level :class:`DocumentNode`.

    Examples
    --------
    >>> nodes = MarkdownParser().parse("Hello World")
    >>> nodes[0].to_slate()
    {'type': 'p', 'children': [{'text': 'Hello World'}]}
    """

    def __init__(self) -> None:
        self._markdown = mistune.create_markdown(
            renderer="ast",
            plugins=["strikethrough", "superscript", "subscript"],
        )
        self._handlers: dict[str, _Handler] = {
            "heading": _heading,
            "list": _list,
            "link": _link,
            "text": _text,
            "codespan": _text,
            "softbreak": _line_break,
            "linebreak": _line_break,
            "block_code": _code_block,
        }

    def parse(self, markdown_text: Any) -> list[DocumentNode]:
        """Parse *markdown_text* into top-level block nodes.

        Raises
        ------
        PloneParseError
            If the input is not a string, cannot be encoded as UTF-8, or
            the tokenizer fails.
        """
        if not isinstance(markdown_text, str):
            raise PloneParseError(
                message="Input must be a string",
                context={"input_type": type(markdown_text).__name__},
            )
        if not markdown_text:
            return []

        try:
            markdown_text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise PloneParseError(
                message=f"Markdown parsing failed: input is not valid UTF-8 ({exc.reason})",
                context={"reason": "encoding", "position": exc.start},
                cause=exc,
            ) from exc

        try:
            tokens = self._markdown(markdown_text)
        except Exception as exc:
            log.error(
                "Markdown tokenizer failed",
                extra={"extra_fields": {"op": "parse", "error": str(exc)}},
            )
            raise PloneParseError(
                message=f"Markdown parsing failed: {exc}",
                context={"reason": "tokenizer"},
                cause=exc,
            ) from exc

        if isinstance(tokens, str):
            return []
        return self._transform_all(tokens)

    # -- transform --------------------------------------------------------

    def _transform_all(self, tokens: list[dict]) -> list[DocumentNode]:
        result: list[DocumentNode] = []
        for token in tokens:
            result.extend(self._transform(token))
        return result

    def _transform(self, token: dict) -> list[DocumentNode]:
        token_type = token.get("type", "")
        if token_type in _DROPPED_TYPES:
            return []

        children = self._transform_all(token.get("children") or [])

        kind = _ELEMENT_KINDS.get(token_type)
        if kind is not None:
            return [DocumentNode.element(kind, children)]

        handler = self._handlers.get(token_type)
        if handler is not None:
            return handler(token, children)

        # Unsupported token: splice its children into the parent.
        return children


# ---------------------------------------------------------------------------
# Token handlers
# ---------------------------------------------------------------------------

def _heading(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    level = token.get("attrs", {}).get("level")
    if not isinstance(level, int) or isinstance(level, bool):
        level = _DEFAULT_HEADING_LEVEL
    level = max(1, min(6, level))
    return [DocumentNode.element(NodeKind.HEADING, children, level=level)]


def _list(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    ordered = token.get("attrs", {}).get("ordered") is True
    kind = NodeKind.ORDERED_LIST if ordered else NodeKind.UNORDERED_LIST
    return [DocumentNode.element(kind, children)]


def _link(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    attrs = token.get("attrs", {})
    url = attrs.get("url") or ""
    # ``[](url "T")`` tokenizes to a single empty text child.
    if all(child.is_leaf and not child.text for child in children):
        children = [DocumentNode.leaf(attrs.get("title") or "")]
    return [DocumentNode.element(NodeKind.LINK, children, url=url)]


def _text(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    # mistune keeps the source text; entities are decoded here.
    return [DocumentNode.leaf(html.unescape(token.get("raw", "")))]


def _line_break(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    return [DocumentNode.leaf("\n")]


def _code_block(token: dict, children: list[DocumentNode]) -> list[DocumentNode]:
    raw = token.get("raw", "")
    if raw.endswith("\n"):
        raw = raw[:-1]
    return [DocumentNode.element(NodeKind.PARAGRAPH, [DocumentNode.leaf(raw)])]


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

_default_parser: MarkdownParser | None = None


def parse_markdown(markdown_text: Any) -> list[DocumentNode]:
    """Parse with a shared :class:`MarkdownParser` instance."""
    global _default_parser
    if _default_parser is None:
        _default_parser = MarkdownParser()
    return _default_parser.parse(markdown_text)


def to_slate(nodes: list[DocumentNode]) -> list[dict[str, Any]]:
    """Serialise parsed nodes to a Volto Slate ``value`` list."""
    return [node.to_slate() for node in nodes]
