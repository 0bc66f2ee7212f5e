"""Async HTTP transport for the Plone REST API.

Request lifecycle:

1. Normalize the content path and send the request under ``<site>/++api++``
   with JSON headers and Bearer or basic authentication.
2. On ``2xx`` -- return the parsed JSON body (``{}`` for empty bodies).
3. On ``4xx`` / ``5xx`` -- raise the matching typed error.
4. On a timeout or connection failure -- raise :class:`PloneNetworkError`.

Requests are not retried.
"""

from __future__ import annotations

import time
from typing import Any, NoReturn

import httpx

from plone_mcp.config import PloneConfig
from plone_mcp.errors import (
    PloneAuthError,
    PloneNetworkError,
    PloneNotFoundError,
    PlonePermissionError,
    PloneServerError,
    PloneValidationError,
)
from plone_mcp.observability import NoopMetricsHook, get_logger

log = get_logger("plone_mcp.transport")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def normalize_path(path: str | None) -> str:
    """Return *path* with a leading slash and without a trailing one.

    Examples
    --------
    >>> normalize_path("news/item/")
    '/news/item'
    >>> normalize_path("")
    '/'
    """
    if not path or path == "/":
        return "/"
    normalized = path.rstrip("/")
    if not normalized:
        return "/"
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500], {}
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"]), body
        if body.get("message"):
            return str(body["message"]), body
    return response.text[:500], body


def _raise_for_status(response: httpx.Response, method: str, path: str) -> NoReturn:
    """Raise the :class:`PloneMCPError` subclass matching a non-2xx status."""
    status = response.status_code
    plone_message, body = _error_message(response)

    if status in (400, 422):
        raise PloneValidationError(
            message=f"Validation error on {method} {path}: {plone_message}",
            context={"status_code": status, "path": path, "body": body},
        )
    if status == 401:
        raise PloneAuthError(
            message=f"Authentication failed on {method} {path}: {plone_message}",
            context={"status_code": status, "path": path},
        )
    if status == 403:
        raise PlonePermissionError(
            message=f"Permission denied on {method} {path}: {plone_message}",
            context={"status_code": status, "operation": f"{method} {path}"},
        )
    if status == 404:
        raise PloneNotFoundError(
            message=f"Resource not found on {method} {path}: {plone_message}",
            context={"status_code": status, "path": path},
        )
    if status >= 500:
        raise PloneServerError(
            message=f"Server error {status} on {method} {path}: {plone_message}",
            context={"status_code": status, "path": path, "body": body},
        )

    # Any other 4xx.
    raise PloneValidationError(
        message=f"Client error {status} on {method} {path}: {plone_message}",
        context={"status_code": status, "path": path, "body": body},
    )


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class PloneTransport:
    """Asynchronous HTTP transport with authentication and typed errors.

    Parameters
    ----------
    config:
        A :class:`PloneConfig` controlling the base URL, credentials and
        timeout.
    client:
        Optional pre-built ``httpx.AsyncClient``.  Tests pass one backed by
        ``httpx.MockTransport``.
    """

    def __init__(self, config: PloneConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        auth: httpx.Auth | None = None
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        elif config.username and config.password:
            auth = httpx.BasicAuth(config.username, config.password)

        if client is None:
            client = httpx.AsyncClient(
                base_url=config.api_url,
                headers=headers,
                auth=auth,
                timeout=httpx.Timeout(config.timeout_seconds),
            )
        else:
            client.base_url = httpx.URL(config.api_url)
            client.headers.update(headers)
            if auth is not None:
                client.auth = auth
        self._client = client

    @property
    def config(self) -> PloneConfig:
        return self._config

    # -- public API --------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Execute an HTTP request against the Plone REST API.

        Parameters
        ----------
        method:
            HTTP method (``GET``, ``POST``, ``PATCH``, ``DELETE``).
        path:
            Content path relative to the site root (e.g. ``/news`` or
            ``/@search``).  Normalized with :func:`normalize_path`.
        **kwargs:
            Forwarded to :meth:`httpx.AsyncClient.request`.  Use ``json=``
            for bodies and ``params=`` for query strings.

        Returns
        -------
        dict
            Parsed JSON response body, ``{}`` when the body is empty.

        Raises
        ------
        PloneValidationError
            On 400, 422 and other unmapped 4xx responses.
        PloneAuthError
            On 401 responses.
        PlonePermissionError
            On 403 responses.
        PloneNotFoundError
            On 404 responses.
        PloneServerError
            On 5xx responses.
        PloneNetworkError
            On timeouts and connection failures.
        """
        path = normalize_path(path)

        t0 = time.monotonic()
        try:
            response = await self._client.request(method, path, **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            self._metrics.increment(
                "plone_mcp.requests_total",
                tags={"method": method, "status": "error"},
            )
            log.warning(
                "Request network error",
                extra={
                    "extra_fields": {
                        "op": "request",
                        "method": method,
                        "path": path,
                        "error": str(exc),
                    }
                },
            )
            raise PloneNetworkError(
                message=f"Network error on {method} {path}: {exc}",
                context={"url": path, "method": method},
                cause=exc,
            ) from exc
        elapsed_ms = (time.monotonic() - t0) * 1000

        tags = {"method": method, "status": str(response.status_code)}
        self._metrics.increment("plone_mcp.requests_total", tags=tags)
        self._metrics.timing("plone_mcp.request_duration_ms", elapsed_ms, tags=tags)
        log.debug(
            "Request complete",
            extra={
                "extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(elapsed_ms, 1),
                }
            },
        )

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return {}
            try:
                result = response.json()
            except ValueError as exc:
                raise PloneServerError(
                    message=f"Invalid JSON in response to {method} {path}",
                    context={"status_code": response.status_code, "path": path},
                    cause=exc,
                ) from exc
            return result if isinstance(result, dict) else {"items": result}

        _raise_for_status(response, method, path)

    async def close(self) -> None:
        """Close the underlying async HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> PloneTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
