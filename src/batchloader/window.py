"""
Batch window: the unit of coalescing.
Keys queued into a window between its creation and its dispatch are fetched
with exactly one call to the loader's fetch function.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import typing as t
from collections.abc import Mapping, Sequence

import structlog

from batchloader.exceptions import (
    AlreadyDispatchedError,
    MissingKeyError,
    ShapeMismatchError,
    SizeMismatchError,
)
from batchloader.scope import DispatchScope
from batchloader.utils.logging import loader_context

log = structlog.get_logger(__name__)

FetchResult = t.Union[Sequence[t.Any], Mapping[t.Any, t.Any]]
FetchFn = t.Callable[[list[t.Any]], t.Union[FetchResult, t.Awaitable[FetchResult]]]

_window_ids = itertools.count(start=1)


def reshape_result(*, keys: list[t.Any], values: t.Any) -> Mapping[t.Any, t.Any]:
    """
    Validate a fetch result and return it as a key to value mapping.

    Parameters
    ----------
    keys : list[typing.Any]
        Keys passed to the fetch function.
    values : typing.Any
        Value returned by the fetch function.

    Returns
    -------
    Mapping[typing.Any, typing.Any]
        ``values`` itself when it is a mapping, else ``keys`` zipped with ``values``.

    Raises
    ------
    ShapeMismatchError
        If ``values`` is neither a mapping nor a non-string sequence.
    SizeMismatchError
        If ``values`` is a sequence whose length differs from ``keys``.
    """
    if isinstance(values, Mapping):
        return values
    if not isinstance(values, Sequence) or isinstance(values, (str, bytes, bytearray)):
        raise ShapeMismatchError(values)
    if len(values) != len(keys):
        raise SizeMismatchError(keys, values)
    return dict(zip(keys, values))


class BatchWindow:
    """
    Accumulate keys for a single fetch invocation and fan the result back out.

    Parameters
    ----------
    fetch : FetchFn
        Bulk fetch function of the owning loader.
    scope : DispatchScope
        Registry the window registers into at creation.
    name : str | None, optional
        Owning loader name, attached to log events.
    """

    def __init__(
        self,
        *,
        fetch: FetchFn,
        scope: DispatchScope,
        name: str | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        self.id = next(_window_ids)
        self._fetch = fetch
        self._scope = scope
        self._name = name
        self._dispatched = False
        self._queue: list[tuple[t.Any, asyncio.Future[t.Any]]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._fetch_task: asyncio.Future[t.Any] | None = None
        self.after_dispatch: asyncio.Future[None] = loop.create_future()
        self.settled: asyncio.Future[None] = loop.create_future()
        scope.register(self)

    def __repr__(self) -> str:
        return (
            f"<BatchWindow id={self.id} name={self._name!r} "
            f"keys={len(self._queue)} dispatched={self._dispatched}>"
        )

    @property
    def dispatched(self) -> bool:
        return self._dispatched

    @property
    def keys(self) -> list[t.Any]:
        """Raw keys queued so far, in queue order."""
        return [key for key, _ in self._queue]

    def queue(self, key: t.Any) -> asyncio.Future[t.Any]:
        """
        Queue ``key`` and return the future of its value.

        Raises
        ------
        AlreadyDispatchedError
            If the window has already been dispatched.
        """
        if self._dispatched:
            raise AlreadyDispatchedError(key)
        future: asyncio.Future[t.Any] = asyncio.get_running_loop().create_future()
        self._queue.append((key, future))
        return future

    def arm_timer(self, *, delay: float) -> None:
        """
        Dispatch the window after ``delay`` seconds unless it was dispatched first.
        """
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)
        log.debug(
            event="Armed auto-dispatch timer",
            loader=self._name,
            window_id=self.id,
            delay_seconds=delay,
        )

    def _on_timer(self) -> None:
        self._timer = None
        if self._dispatched:
            return
        log.debug(event="Auto-dispatch timer elapsed", loader=self._name, window_id=self.id)
        self.dispatch()

    def dispatch(self) -> BatchWindow:
        """
        Close the window and invoke the fetch function once.

        Raises
        ------
        AlreadyDispatchedError
            If the window has already been dispatched.
        """
        if self._dispatched:
            raise AlreadyDispatchedError()
        self._dispatched = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._scope.discard(self)

        # dict.fromkeys keeps the first occurrence of each key, in order
        keys = list(dict.fromkeys(key for key, _ in self._queue))
        log.debug(
            event="Dispatching batch window",
            loader=self._name,
            window_id=self.id,
            key_count=len(keys),
            queued_count=len(self._queue),
        )
        with loader_context(loader=self._name):
            try:
                result = self._fetch(keys)
            except Exception as error:
                self.after_dispatch.set_result(None)
                self._fail(error=error)
                return self
            self.after_dispatch.set_result(None)

            if inspect.isawaitable(result):
                # the task copies the current context, loader binding included
                self._fetch_task = asyncio.ensure_future(result)
                self._fetch_task.add_done_callback(
                    lambda task: self._on_fetch_done(keys=keys, task=task)
                )
                return self
        self._settle(keys=keys, values=result)
        return self

    def _on_fetch_done(self, *, keys: list[t.Any], task: asyncio.Future[t.Any]) -> None:
        self._fetch_task = None
        if task.cancelled():
            log.warning(event="Fetch task cancelled", loader=self._name, window_id=self.id)
            for _, future in self._queue:
                future.cancel()
            self.settled.set_result(None)
            return
        error = task.exception()
        if error is not None:
            self._fail(error=error)
            return
        self._settle(keys=keys, values=task.result())

    def _settle(self, *, keys: list[t.Any], values: t.Any) -> None:
        try:
            mapping = reshape_result(keys=keys, values=values)
        except (ShapeMismatchError, SizeMismatchError) as error:
            self._fail(error=error)
            return

        missing = 0
        for key, future in self._queue:
            if future.done():
                continue
            if key in mapping:
                future.set_result(mapping[key])
            else:
                missing += 1
                future.set_exception(MissingKeyError(key, list(mapping.keys())))
        if missing:
            log.error(
                event="Fetch result missing keys",
                loader=self._name,
                window_id=self.id,
                missing_count=missing,
            )
        log.debug(
            event="Batch window settled",
            loader=self._name,
            window_id=self.id,
            resolved_count=len(self._queue) - missing,
        )
        self.settled.set_result(None)

    def _fail(self, *, error: BaseException) -> None:
        log.error(
            event="Batch window failed",
            loader=self._name,
            window_id=self.id,
            request_count=len(self._queue),
            error=str(object=error),
        )
        for _, future in self._queue:
            if not future.done():
                future.set_exception(error)
        self.settled.set_result(None)
