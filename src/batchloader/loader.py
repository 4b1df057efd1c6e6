"""
Loader: the public entry point.
Caches one future per cache key and routes cache misses into the loader's
open batch window.
"""

from __future__ import annotations

import asyncio
import typing as t
from collections.abc import Sequence

import structlog

from batchloader.exceptions import InvalidArgumentError, InvalidKeyError
from batchloader.futures import resolved
from batchloader.options import LoaderOptions
from batchloader.scope import DispatchScope, current_scope
from batchloader.window import BatchWindow, FetchFn

log = structlog.get_logger(__name__)


class Loader:
    """
    Coalesce individual key lookups into bulk fetch calls.

    Every key requested while a batch window is open is fetched with a single
    call to ``fetch``. A key is queued at most once per loader: later loads of
    the same cache key return the cached future.

    Parameters
    ----------
    fetch : FetchFn
        Receives the list of distinct keys of a window and returns a sequence
        of values aligned with the keys, a mapping of key to value, or an
        awaitable of either.
    options : LoaderOptions | None, optional
        Loader configuration. Defaults to ``LoaderOptions()``.
    scope : DispatchScope | None, optional
        Registry the loader's windows register into. Defaults to the registry
        of the current execution context.

    Notes
    -----
    The first window a loader opens has no timer and only dispatches when it
    is flushed. Each replacement window arms a timer of
    ``options.auto_dispatch_seconds`` as a fallback for callers that never flush.
    """

    def __init__(
        self,
        fetch: FetchFn,
        options: LoaderOptions | None = None,
        *,
        scope: DispatchScope | None = None,
    ) -> None:
        if not callable(fetch):
            raise InvalidArgumentError(
                "Loader must be constructed with a function which accepts a list of keys and "
                f"returns a sequence of values or a mapping of key to value, got: {fetch!r}"
            )
        self._fetch = fetch
        self._options = options if options is not None else LoaderOptions()
        self._scope = scope if scope is not None else current_scope()
        self._futures: dict[t.Hashable, asyncio.Future[t.Any]] = {}
        self._window: BatchWindow | None = None

        log.debug(
            event="Initialized Loader",
            loader=self._options.name,
            auto_dispatch_seconds=self._options.auto_dispatch_seconds,
        )

    @property
    def options(self) -> LoaderOptions:
        return self._options

    @property
    def scope(self) -> DispatchScope:
        return self._scope

    @property
    def window(self) -> BatchWindow | None:
        """The most recently opened batch window, if any."""
        return self._window

    def load(self, key: t.Any) -> asyncio.Future[t.Any]:
        """
        Return the future of the value for ``key``.

        Parameters
        ----------
        key : typing.Any
            Hashable key. ``None`` is rejected.

        Returns
        -------
        asyncio.Future[typing.Any]
            Future shared by every load of the same cache key.

        Raises
        ------
        InvalidKeyError
            If ``key`` is ``None`` or unhashable.
        """
        if key is None:
            raise InvalidKeyError(key)
        try:
            hash(key)
            cache_key = self._options.cache_key(key)
            hash(cache_key)
        except TypeError as error:
            raise InvalidKeyError(key) from error

        future = self._futures.get(cache_key)
        if future is not None:
            return future

        future = self._open_window().queue(key)
        self._futures[cache_key] = future
        return future

    def load_many(self, keys: Sequence[t.Any]) -> asyncio.Future[list[t.Any]]:
        """
        Load every key and return a future of the values in input order.

        Raises
        ------
        InvalidArgumentError
            If ``keys`` is not a sequence, or is a string.
        """
        if not isinstance(keys, Sequence) or isinstance(keys, (str, bytes, bytearray)):
            raise InvalidArgumentError(
                f"Loader.load_many() must be called with a sequence of keys, but got: {keys!r}"
            )
        if not keys:
            return resolved([])
        # shield the cached futures so cancelling the combined future leaves them queued
        futures = [asyncio.shield(self.load(key)) for key in keys]
        return t.cast(asyncio.Future[list[t.Any]], asyncio.gather(*futures))

    def dispatch(self) -> None:
        """
        Dispatch the open batch window, if there is an undispatched one.
        """
        if self._window is not None and not self._window.dispatched:
            self._window.dispatch()

    def _open_window(self) -> BatchWindow:
        previous = self._window
        if previous is not None and not previous.dispatched:
            return previous

        window = BatchWindow(fetch=self._fetch, scope=self._scope, name=self._options.name)
        if previous is not None:
            window.arm_timer(delay=self._options.auto_dispatch_seconds)
        self._window = window
        log.debug(
            event="Opened batch window",
            loader=self._options.name,
            window_id=window.id,
            auto_dispatch=previous is not None,
        )
        return window
