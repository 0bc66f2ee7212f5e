"""plone-mcp: a Model Context Protocol server for Plone CMS.

Public re-exports
-----------------

* **Server:** :class:`PloneMCPServer`
* **Configuration:** :class:`PloneConfig`
* **Blocks:** :class:`BlockAssembler`, :class:`BlockNormalizer`,
  :class:`SchemaRegistry`, :class:`MarkdownParser`
* **Errors:** Every :class:`PloneMCPError` subclass and :class:`ErrorCode`
* **Models:** The document tree, block and layout dataclasses

Usage::

    from plone_mcp import parse_markdown, to_slate

    value = to_slate(parse_markdown("# Hello\\n\\nWorld"))
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from plone_mcp.config import PloneConfig

# ── Errors ──────────────────────────────────────────────────────────────
from plone_mcp.errors import (
    ErrorCode,
    PloneAuthError,
    PloneConfigError,
    PloneMCPError,
    PloneNetworkError,
    PloneNotFoundError,
    PloneParseError,
    PlonePermissionError,
    PloneServerError,
    PloneValidationError,
)

# ── Models ──────────────────────────────────────────────────────────────
from plone_mcp.models import (
    TITLE_BLOCK_TYPE,
    BlockSpec,
    BlocksPayload,
    DocumentNode,
    NodeKind,
    StagedLayout,
    StageResult,
    StagingState,
)

# ── Conversion and blocks ───────────────────────────────────────────────
from plone_mcp.converter import MarkdownParser, parse_markdown, to_slate
from plone_mcp.blocks import BlockAssembler, BlockNormalizer, SchemaRegistry

# ── Server ──────────────────────────────────────────────────────────────
from plone_mcp.server import PloneMCPServer

__all__ = [
    # Server
    "PloneMCPServer",
    # Configuration
    "PloneConfig",
    # Conversion and blocks
    "BlockAssembler",
    "BlockNormalizer",
    "MarkdownParser",
    "SchemaRegistry",
    "parse_markdown",
    "to_slate",
    # Errors
    "ErrorCode",
    "PloneAuthError",
    "PloneConfigError",
    "PloneMCPError",
    "PloneNetworkError",
    "PloneNotFoundError",
    "PloneParseError",
    "PlonePermissionError",
    "PloneServerError",
    "PloneValidationError",
    # Models
    "TITLE_BLOCK_TYPE",
    "BlockSpec",
    "BlocksPayload",
    "DocumentNode",
    "NodeKind",
    "StageResult",
    "StagedLayout",
    "StagingState",
]

__version__ = "0.1.0"
