"""
Main endpoint for users.
Exposes ``batch_loading``, which scopes loaders to a dispatch scope for the
duration of a context manager, and ``flush_all``, the hook orchestration code
calls to make every pending batch run.
"""

from batchloader.context import BatchLoadingContext
from batchloader.scope import DispatchScope, current_scope


def batch_loading(scope: DispatchScope | None = None) -> BatchLoadingContext:
    """
    Context manager used to scope batch loading to a unit of work.<br>
    Loaders created inside the block register their batch windows into the scope.<br>
    Leaving an ``async with`` block drains the scope until no window is pending.

    Parameters
    ----------
    scope : DispatchScope | None, optional
        Scope to activate. A fresh scope is created when omitted.

    Returns
    -------
    BatchLoadingContext
        Context manager that yields the activated scope.
    """
    return BatchLoadingContext(scope=scope if scope is not None else DispatchScope())


async def flush_all(scope: DispatchScope | None = None) -> int:
    """
    Dispatch every pending batch window, including windows opened while doing so.

    Parameters
    ----------
    scope : DispatchScope | None, optional
        Scope to drain. Defaults to the scope of the current execution context.

    Returns
    -------
    int
        Number of windows dispatched.
    """
    target = scope if scope is not None else current_scope()
    return await target.drain()
