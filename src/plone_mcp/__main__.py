"""Run the Plone MCP server on stdio: ``python -m plone_mcp`` or ``plone-mcp``."""

from __future__ import annotations

from plone_mcp.server import PloneMCPServer


def main() -> None:
    PloneMCPServer().run()


if __name__ == "__main__":
    main()
