"""
Batchloader-specific runtime exceptions.
"""

from __future__ import annotations

import typing as t


class BatchLoaderError(Exception):
    """
    Base class for every error raised by the batch loader.
    """


class InvalidKeyError(BatchLoaderError, TypeError):
    """
    Raised when ``Loader.load`` receives a key it cannot cache.

    Parameters
    ----------
    key : typing.Any
        Rejected key.
    """

    def __init__(self, key: t.Any) -> None:
        self.key = key
        super().__init__(f"Loader.load() must be called with a hashable key, but got: {key!r}")


class InvalidArgumentError(BatchLoaderError, TypeError):
    """
    Raised when a loader entry point receives an argument of the wrong kind.
    """


class AlreadyDispatchedError(BatchLoaderError, RuntimeError):
    """
    Raised when a batch window is used after it has been dispatched.

    Parameters
    ----------
    key : typing.Any, optional
        Key that was queued too late, if the error comes from a queue attempt.
    """

    def __init__(self, key: t.Any = None) -> None:
        self.key = key
        if key is None:
            message = "Batch window has already been dispatched"
        else:
            message = f"Cannot queue keys after the batch is dispatched. Queued key: {key!r}"
        super().__init__(message)


class ShapeMismatchError(BatchLoaderError, TypeError):
    """
    Raised when a fetch function returns neither a sequence nor a mapping.

    Parameters
    ----------
    values : typing.Any
        Value returned by the fetch function.
    """

    def __init__(self, values: t.Any) -> None:
        self.values = values
        super().__init__(
            "Loader fetch function must accept a list of keys and return a sequence of values "
            f"or a mapping of key to value. Function returned instead: {values!r}"
        )


class SizeMismatchError(BatchLoaderError, ValueError):
    """
    Raised when a fetch function returns a sequence of the wrong length.

    Parameters
    ----------
    keys : list[typing.Any]
        Keys passed to the fetch function.
    values : typing.Sequence[typing.Any]
        Sequence returned by the fetch function.
    """

    def __init__(self, keys: list[t.Any], values: t.Sequence[t.Any]) -> None:
        self.keys = keys
        self.values = values
        super().__init__(
            "Loader fetch function must return a sequence of the same size as the keys "
            f"it was given. Provided {len(keys)} key(s): {keys!r}; "
            f"returned {len(values)} value(s): {values!r}"
        )


class MissingKeyError(BatchLoaderError, LookupError):
    """
    Raised when a fetch result has no entry for a queued key.

    Parameters
    ----------
    key : typing.Any
        Key with no entry in the result.
    resolved_keys : list[typing.Any]
        Keys the result did contain.
    """

    def __init__(self, key: t.Any, resolved_keys: list[t.Any]) -> None:
        self.key = key
        self.resolved_keys = resolved_keys
        super().__init__(
            f"Fetch result did not resolve key: {key!r}. Resolved keys: {resolved_keys!r}"
        )
