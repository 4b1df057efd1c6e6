"""
Context manager returned by ``batch_loading``.
"""

import typing as t

from batchloader.scope import DispatchScope, active_scope


class BatchLoadingContext:
    """
    Context manager that activates a dispatch scope for a block.

    Loaders constructed inside the block register their windows into the
    scope, and leaving the block flushes it.

    Parameters
    ----------
    scope : DispatchScope
        Scope activated for the block.
    """

    def __init__(self, *, scope: DispatchScope) -> None:
        self._scope = scope
        self._context_token: t.Any | None = None

    def __enter__(self) -> DispatchScope:
        """
        Activate the scope.

        Returns
        -------
        DispatchScope
            The activated scope.
        """
        self._context_token = active_scope.set(self._scope)
        return self._scope

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        """
        Reset the scope and dispatch its pending windows.

        Notes
        -----
        Windows opened later by continuations of the dispatched windows are
        not waited for. Use ``async with`` to drain them as well.
        """
        if self._context_token is not None:
            active_scope.reset(self._context_token)
            self._context_token = None
        self._scope.flush()

    async def __aenter__(self) -> DispatchScope:
        """
        Activate the scope.

        Returns
        -------
        DispatchScope
            The activated scope.
        """
        self._context_token = active_scope.set(self._scope)
        return self._scope

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: t.Any,
    ) -> None:
        """
        Reset the scope and drain it until no window is left.
        """
        if self._context_token is not None:
            active_scope.reset(self._context_token)
            self._context_token = None
        await self._scope.drain()
