"""Image URL reachability check.

An image block whose URL does not resolve to an image renders as an empty
frame in Volto, so image URLs are verified before a block is created:

* ``data:`` URLs are accepted when their media type is ``image/*`` (prefix
  inspection only, no decoding and no network call).
* Everything else gets a ``HEAD`` request with ``Accept: image/*``; the URL
  is accepted when the response is 2xx and its ``Content-Type`` starts with
  ``image/``.

Network failures count as "not an image"; they are logged, not raised.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx

from plone_mcp.observability import get_logger

log = get_logger("plone_mcp.image_check")

_DATA_URL_PREFIX = "data:"
_DATA_IMAGE_PREFIX = "data:image/"


@runtime_checkable
class ImageChecker(Protocol):
    """Anything that can tell whether a URL points at a fetchable image."""

    async def is_image(self, url: str) -> bool:
        ...


def is_data_image_url(url: str) -> bool:
    """Return ``True`` for ``data:image/...`` URLs (case-insensitive scheme)."""
    return url[:len(_DATA_IMAGE_PREFIX)].lower() == _DATA_IMAGE_PREFIX


class ImageURLChecker:
    """Verify image URLs with a ``HEAD`` request.

    Parameters
    ----------
    timeout_seconds:
        Request timeout.
    client:
        Optional pre-built ``httpx.AsyncClient``.  When omitted a client is
        created lazily and owned (and closed) by this checker.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def is_image(self, url: str) -> bool:
        if url[:len(_DATA_URL_PREFIX)].lower() == _DATA_URL_PREFIX:
            return is_data_image_url(url)

        client = self._get_client()
        try:
            response = await client.head(url, headers={"Accept": "image/*"})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning(
                "Image URL check failed",
                extra={"extra_fields": {"op": "image_check", "url": url, "error": str(exc)}},
            )
            return False

        if not response.is_success:
            log.info(
                "Image URL rejected",
                extra={
                    "extra_fields": {
                        "op": "image_check",
                        "url": url,
                        "status_code": response.status_code,
                    }
                },
            )
            return False

        content_type = response.headers.get("content-type", "")
        return content_type.lower().startswith("image/")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
