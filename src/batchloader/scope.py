"""
Registry of batch windows that are waiting to be dispatched.
A registry belongs to one execution context: the active one lives in a
context var and is inherited by tasks spawned from that context.
"""

from __future__ import annotations

import asyncio
import contextvars
import typing as t

import structlog

if t.TYPE_CHECKING:
    from batchloader.window import BatchWindow

log = structlog.get_logger(__name__)

T = t.TypeVar("T")

# ContextVar to hold the registry of the current execution context
active_scope: contextvars.ContextVar[DispatchScope | None] = contextvars.ContextVar(
    "active_scope", default=None
)


class DispatchScope:
    """
    Ordered registry of undispatched batch windows.

    Windows register at the front when they are created, so flushing walks
    them newest first.
    """

    def __init__(self) -> None:
        self._windows: list[BatchWindow] = []

    def __len__(self) -> int:
        return len(self._windows)

    @property
    def pending(self) -> tuple[BatchWindow, ...]:
        """Windows waiting for dispatch, newest first."""
        return tuple(self._windows)

    def register(self, window: BatchWindow) -> None:
        self._windows.insert(0, window)

    def discard(self, window: BatchWindow) -> None:
        try:
            self._windows.remove(window)
        except ValueError:
            pass

    def flush(self) -> list[BatchWindow]:
        """
        Dispatch every pending window until none remains.

        Each pass takes and clears the whole registry before dispatching the
        captured windows in registry order. Windows registered while a pass
        runs, e.g. by a fetch function that loads from another loader, are
        picked up by the next pass.

        Returns
        -------
        list[BatchWindow]
            Windows dispatched by this call, in dispatch order.
        """
        dispatched: list[BatchWindow] = []
        while self._windows:
            windows, self._windows = self._windows, []
            for window in windows:
                if window.dispatched:
                    continue
                window.dispatch()
                dispatched.append(window)
        if dispatched:
            log.debug(event="Flushed dispatch scope", window_count=len(dispatched))
        return dispatched

    async def drain(self) -> int:
        """
        Dispatch pending windows until resolving them creates no new window.

        After each flush the drain waits for the flushed windows to settle and
        yields once to the event loop, so continuations attached to the values
        they produced run and may queue keys into new windows.

        Returns
        -------
        int
            Number of windows dispatched.
        """
        count = 0
        passes = 0
        while self._windows:
            windows = self.flush()
            count += len(windows)
            passes += 1
            await asyncio.gather(*(window.settled for window in windows))
            await asyncio.sleep(0)
        log.debug(event="Drained dispatch scope", window_count=count, passes=passes)
        return count

    async def wait(self, awaitable: t.Awaitable[T]) -> T:
        """
        Drain pending windows, then return the value of ``awaitable``.
        """
        await self.drain()
        return await awaitable


def current_scope() -> DispatchScope:
    """
    Return the registry of the current execution context, creating it on first use.
    """
    scope = active_scope.get()
    if scope is None:
        scope = DispatchScope()
        active_scope.set(scope)
    return scope
