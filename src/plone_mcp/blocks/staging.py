"""Single-slot store for a prepared block layout.

A layout prepared with ``plone_create_blocks_layout`` is kept here until
the next content create/update consumes it.  The slot has two states::

    EMPTY  --put-->   STAGED
    STAGED --put-->   STAGED   (overwrite)
    STAGED --take-->  EMPTY
    STAGED --clear--> EMPTY

A staged layout older than the TTL is treated as absent.  Expiry is lazy:
nothing runs in the background, every read compares the creation time
against the clock.
"""

from __future__ import annotations

import copy
import time
from collections.abc import Callable

from plone_mcp.models import BlocksPayload, StagedLayout, StagingState
from plone_mcp.observability import MetricsHook, NoopMetricsHook, get_logger

log = get_logger("plone_mcp.staging")


class StagingSlot:
    """Holds at most one :class:`StagedLayout`.

    Parameters
    ----------
    ttl_seconds:
        How long a staged layout stays valid.
    clock:
        Monotonic clock returning seconds.  Injectable for tests.
    metrics:
        Optional metrics hook.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        metrics: MetricsHook | None = None,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._staged: StagedLayout | None = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def state(self) -> StagingState:
        if self._valid() is None:
            return StagingState.EMPTY
        return StagingState.STAGED

    def put(self, payload: BlocksPayload) -> StagedLayout:
        """Stage *payload*, replacing whatever was staged before."""
        self._staged = StagedLayout(payload=copy.deepcopy(payload), created_at=self._clock())
        return self._staged

    def peek(self) -> StagedLayout | None:
        """Return the staged layout if it is still valid, without consuming it."""
        return self._valid()

    def take(self) -> BlocksPayload | None:
        """Consume the staged layout.

        The slot is empty afterwards whether or not the layout was still
        valid.  Returns ``None`` when nothing valid was staged.
        """
        staged = self._valid()
        expired = staged is None and self._staged is not None
        self._staged = None
        if expired:
            self._metrics.increment("plone_mcp.staged_layout_expired_total")
            log.info(
                "Discarded expired staged layout",
                extra={"extra_fields": {"op": "take", "ttl_seconds": self._ttl}},
            )
        if staged is None:
            return None
        return staged.payload

    def clear(self) -> None:
        self._staged = None

    def _valid(self) -> StagedLayout | None:
        staged = self._staged
        if staged is None:
            return None
        if self._clock() - staged.created_at > self._ttl:
            return None
        return staged
