"""
Promise-style helpers on top of ``asyncio.Future``.
"""

from __future__ import annotations

import asyncio
import inspect
import typing as t

T = t.TypeVar("T")
R = t.TypeVar("R")


def _copy_outcome(*, source: asyncio.Future[t.Any], target: asyncio.Future[t.Any]) -> None:
    if target.done():
        return
    if source.cancelled():
        target.cancel()
        return
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())


def attach(
    future: asyncio.Future[T],
    continuation: t.Callable[[T], R | t.Awaitable[R]],
) -> asyncio.Future[R]:
    """
    Run ``continuation`` with the value of ``future`` once it resolves.

    The continuation runs as a done callback of ``future``, so loads it issues
    are queued before anything awaiting the window that resolved ``future``
    resumes. Failures of ``future`` skip the continuation and propagate.

    Parameters
    ----------
    future : asyncio.Future[T]
        Source future.
    continuation : typing.Callable[[T], R | typing.Awaitable[R]]
        Callback receiving the resolved value. An awaitable return value is
        scheduled and its outcome becomes the outcome of the returned future.

    Returns
    -------
    asyncio.Future[R]
        Future resolved with the continuation's outcome.
    """
    chained: asyncio.Future[R] = future.get_loop().create_future()

    def _on_done(source: asyncio.Future[T]) -> None:
        if chained.done():
            return
        if source.cancelled() or source.exception() is not None:
            _copy_outcome(source=source, target=chained)
            return
        try:
            value = continuation(source.result())
        except Exception as error:
            chained.set_exception(error)
            return
        if inspect.isawaitable(value):
            inner = asyncio.ensure_future(value)
            inner.add_done_callback(lambda done: _copy_outcome(source=done, target=chained))
        else:
            chained.set_result(t.cast(R, value))

    future.add_done_callback(_on_done)
    return chained


def resolved(value: T) -> asyncio.Future[T]:
    """
    Return a future on the running loop that is already resolved with ``value``.
    """
    future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future
