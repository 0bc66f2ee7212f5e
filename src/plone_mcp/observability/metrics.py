"""Metrics hook protocol and no-op default implementation.

plone-mcp emits counters and timings for REST calls and for the staged
block layout lifecycle.  A :class:`NoopMetricsHook` is used unless a
backend satisfying :class:`MetricsHook` is passed as ``PloneConfig.metrics``.

Emitted metric names:

* ``plone_mcp.requests_total``               -- counter
* ``plone_mcp.request_duration_ms``          -- timing
* ``plone_mcp.blocks_staged_total``          -- counter
* ``plone_mcp.staged_layout_consumed_total`` -- counter
* ``plone_mcp.staged_layout_expired_total``  -- counter
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    *tags* keys and values are strings; backends map them onto their own
    labelling scheme.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...


class NoopMetricsHook:
    """Discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
