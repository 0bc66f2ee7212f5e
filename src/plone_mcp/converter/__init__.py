"""Markdown to Volto Slate conversion.

Public API:

- :class:`MarkdownParser` -- Markdown text to a :class:`DocumentNode` tree.
- :func:`parse_markdown` -- parse with a shared parser instance.
- :func:`to_slate` -- serialise nodes to a Slate ``value`` list.
"""

from plone_mcp.converter.markdown_parser import MarkdownParser, parse_markdown, to_slate

__all__ = [
    "MarkdownParser",
    "parse_markdown",
    "to_slate",
]
