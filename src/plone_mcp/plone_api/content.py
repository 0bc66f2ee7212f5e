"""Content API wrappers for the Plone REST API.

:class:`ContentAPI` is a thin async wrapper around the content, search,
types, vocabularies and workflow endpoints.  All HTTP concerns (auth,
error mapping) are delegated to :class:`~plone_mcp.plone_api.transport.PloneTransport`.
"""

from __future__ import annotations

from typing import Any

from .transport import PloneTransport, normalize_path


def _join(path: str, suffix: str) -> str:
    base = normalize_path(path)
    return suffix if base == "/" else f"{base}{suffix}"


class ContentAPI:
    """Async wrapper for Plone content endpoints.

    Parameters
    ----------
    transport:
        A configured :class:`PloneTransport` instance.
    """

    def __init__(self, transport: PloneTransport) -> None:
        self._transport = transport

    async def get(self, path: str, expand: list[str] | None = None) -> dict[str, Any]:
        """Retrieve a content item.

        Parameters
        ----------
        path:
            Content path relative to the site root, e.g. ``/news/item``.
        expand:
            Components to expand inline (``breadcrumbs``, ``workflow``...).

        Returns
        -------
        dict
            The serialized content item, including ``blocks`` and
            ``blocks_layout`` for Volto pages.
        """
        params: dict[str, Any] = {}
        if expand:
            params["expand"] = ",".join(expand)
        return await self._transport.request("GET", path, params=params or None)

    async def create(self, parent_path: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a content item inside *parent_path*.

        *data* must carry ``@type`` and ``title``; Plone derives the id from
        the title unless ``id`` is given.
        """
        return await self._transport.request("POST", parent_path, json=data)

    async def update(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        """Patch the fields in *data* on the item at *path*.

        Plone answers a successful ``PATCH`` with ``204 No Content``, so the
        result is usually ``{}``.
        """
        return await self._transport.request("PATCH", path, json=data)

    async def delete(self, path: str) -> dict[str, Any]:
        return await self._transport.request("DELETE", path)

    async def search(
        self,
        query: str | None = None,
        portal_type: list[str] | None = None,
        path: str | None = None,
        review_state: list[str] | None = None,
        sort_on: str | None = None,
        sort_order: str | None = None,
        b_size: int | None = None,
        b_start: int | None = None,
    ) -> dict[str, Any]:
        """Query the catalog through ``@search``.

        ``None`` filters are left out.  *query* is matched against
        ``SearchableText``.
        """
        filters: dict[str, Any] = {
            "SearchableText": query,
            "portal_type": portal_type,
            "path": path,
            "review_state": review_state,
            "sort_on": sort_on,
            "sort_order": sort_order,
            "b_size": b_size,
            "b_start": b_start,
        }
        params = {k: v for k, v in filters.items() if v not in (None, "", [])}
        return await self._transport.request("GET", "/@search", params=params)

    async def site_info(self) -> dict[str, Any]:
        return await self._transport.request("GET", "/")

    async def types(self) -> dict[str, Any]:
        """List the addable content types (``@types``)."""
        return await self._transport.request("GET", "/@types")

    async def vocabulary(
        self,
        name: str,
        title: str | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        """Fetch the terms of vocabulary *name*, optionally filtered."""
        params: dict[str, Any] = {}
        if title:
            params["title"] = title
        if token:
            params["token"] = token
        return await self._transport.request(
            "GET", f"/@vocabularies/{name}", params=params or None,
        )

    async def workflow(self, path: str) -> dict[str, Any]:
        """Return the workflow history and available transitions of *path*."""
        return await self._transport.request("GET", _join(path, "/@workflow"))

    async def transition(
        self,
        path: str,
        transition: str,
        comment: str | None = None,
    ) -> dict[str, Any]:
        """Execute workflow *transition* (e.g. ``publish``) on *path*."""
        body: dict[str, Any] = {}
        if comment:
            body["comment"] = comment
        return await self._transport.request(
            "POST", _join(path, f"/@workflow/{transition}"), json=body,
        )
