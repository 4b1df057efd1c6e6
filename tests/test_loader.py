"""
Tests for the Loader class in batchloader.loader.
"""

import asyncio

import pytest

from batchloader.exceptions import (
    InvalidArgumentError,
    InvalidKeyError,
    MissingKeyError,
    SizeMismatchError,
)
from batchloader.loader import Loader
from batchloader.options import LoaderOptions
from batchloader.scope import DispatchScope, active_scope, current_scope
from tests.mocks.fetchers import AsyncRecordingFetch, RecordingFetch, ReturningFetch


@pytest.fixture
def loader(fetch: RecordingFetch, scope: DispatchScope) -> Loader:
    """Create a loader bound to the test scope."""
    return Loader(fetch, scope=scope)


def test_loader_rejects_non_callable_fetch(scope: DispatchScope):
    """Test that a loader needs a callable fetch function."""
    with pytest.raises(InvalidArgumentError):
        Loader({"a": 1}, scope=scope)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_load_rejects_none(loader: Loader):
    """Test that None is not a valid key."""
    with pytest.raises(InvalidKeyError):
        loader.load(None)

    assert loader.window is None


@pytest.mark.asyncio
async def test_load_rejects_unhashable_key(loader: Loader):
    """Test that unhashable keys are rejected before anything is queued."""
    with pytest.raises(InvalidKeyError) as exc_info:
        loader.load(["a"])

    assert exc_info.value.key == ["a"]
    assert isinstance(exc_info.value.__cause__, TypeError)


@pytest.mark.asyncio
async def test_load_returns_cached_future(loader: Loader, fetch: RecordingFetch):
    """Test that loading a key twice returns the same future and queues it once."""
    first = loader.load("a")
    second = loader.load("a")

    assert first is second
    assert loader.window is not None
    assert loader.window.keys == ["a"]

    loader.dispatch()

    assert await first == "value-a"
    assert fetch.calls == [["a"]]


@pytest.mark.asyncio
async def test_loads_share_one_fetch_per_window(loader: Loader, fetch: RecordingFetch):
    """Test that distinct keys queued before dispatch are fetched together, in order."""
    futures = [loader.load(key) for key in ["c", "a", "b"]]

    loader.dispatch()

    assert await asyncio.gather(*futures) == ["value-c", "value-a", "value-b"]
    assert fetch.calls == [["c", "a", "b"]]


@pytest.mark.asyncio
async def test_cached_future_survives_window_replacement(loader: Loader, fetch: RecordingFetch):
    """Test that a key loaded in an earlier window is never fetched again."""
    first = loader.load("a")
    loader.dispatch()
    await first

    again = loader.load("a")

    assert again is first
    assert loader.window is not None
    assert loader.window.dispatched
    assert fetch.calls == [["a"]]


@pytest.mark.asyncio
async def test_concurrent_tasks_share_window(loader: Loader, fetch: RecordingFetch):
    """Test that concurrent tasks loading overlapping keys trigger a single fetch."""

    async def worker(keys):
        return [loader.load(key) for key in keys]

    batches = await asyncio.gather(
        worker(["a", "b"]),
        worker(["b", "c"]),
        worker(["c", "a"]),
    )
    loader.dispatch()

    assert batches[0][1] is batches[1][0]
    assert await batches[2][1] == "value-a"
    assert fetch.calls == [["a", "b", "c"]]


@pytest.mark.asyncio
async def test_key_normalizer_collapses_keys(scope: DispatchScope, fetch: RecordingFetch):
    """Test that raw keys with the same cache key share one future."""
    loader = Loader(fetch, LoaderOptions(key=str.lower), scope=scope)

    upper = loader.load("A")
    lower = loader.load("a")
    loader.dispatch()

    assert upper is lower
    assert await lower == "value-A"
    assert fetch.calls == [["A"]]


@pytest.mark.asyncio
async def test_load_many_preserves_order_and_duplicates(loader: Loader, fetch: RecordingFetch):
    """Test that load_many resolves values in input order, including repeated keys."""
    future = loader.load_many(["a", "b", "c", "a"])
    loader.dispatch()

    assert await future == ["value-a", "value-b", "value-c", "value-a"]
    assert fetch.calls == [["a", "b", "c"]]


@pytest.mark.asyncio
async def test_load_many_sequence_result(scope: DispatchScope):
    """Test that a sequence result maps back to the requested keys by position."""
    loader = Loader(ReturningFetch(result=[10, 20, 30]), scope=scope)

    future = loader.load_many(("x", "y", "z"))
    loader.dispatch()

    assert await future == [10, 20, 30]


@pytest.mark.asyncio
async def test_load_many_size_mismatch_fails_every_key(scope: DispatchScope):
    """Test that a short sequence result fails each requested key."""
    loader = Loader(ReturningFetch(result=[10, 20]), scope=scope)

    futures = [loader.load(key) for key in ["x", "y", "z"]]
    loader.dispatch()

    for future in futures:
        with pytest.raises(SizeMismatchError):
            await future


@pytest.mark.asyncio
@pytest.mark.parametrize("keys", ["abc", b"abc", 42, None, {"a", "b"}])
async def test_load_many_rejects_non_sequences(loader: Loader, keys):
    """Test that load_many only accepts sequences of keys."""
    with pytest.raises(InvalidArgumentError):
        loader.load_many(keys)


@pytest.mark.asyncio
async def test_load_many_empty(loader: Loader, fetch: RecordingFetch):
    """Test that an empty load_many resolves immediately without a fetch."""
    assert await loader.load_many([]) == []
    assert fetch.calls == []
    assert loader.window is None


@pytest.mark.asyncio
async def test_dispatch_without_window_is_noop(loader: Loader, fetch: RecordingFetch):
    """Test that dispatching a loader that never loaded does nothing."""
    loader.dispatch()

    assert loader.window is None
    assert fetch.calls == []


@pytest.mark.asyncio
async def test_dispatch_twice_is_noop(loader: Loader, fetch: RecordingFetch):
    """Test that the loader only dispatches an undispatched window."""
    future = loader.load("a")
    loader.dispatch()
    loader.dispatch()

    assert await future == "value-a"
    assert fetch.calls == [["a"]]


@pytest.mark.asyncio
async def test_first_window_has_no_timer(loader: Loader, fetch: RecordingFetch):
    """Test that the first window waits for an explicit flush."""
    future = loader.load("a")
    await asyncio.sleep(0.1)

    assert not future.done()
    assert fetch.calls == []

    loader.dispatch()
    assert await future == "value-a"


@pytest.mark.asyncio
async def test_replacement_window_auto_dispatches(scope: DispatchScope, fetch: RecordingFetch):
    """Test that a window opened after a dispatch closes on its own."""
    loader = Loader(fetch, LoaderOptions(auto_dispatch_seconds=0.01), scope=scope)
    first = loader.load("a")
    loader.dispatch()
    await first

    second = loader.load("b")
    third = loader.load("c")

    assert await asyncio.wait_for(second, timeout=1.0) == "value-b"
    assert await third == "value-c"
    assert fetch.calls == [["a"], ["b", "c"]]
    assert scope.pending == ()


@pytest.mark.asyncio
async def test_explicit_dispatch_beats_timer(scope: DispatchScope, fetch: RecordingFetch):
    """Test that dispatching a replacement window before its timer fetches only once."""
    loader = Loader(fetch, LoaderOptions(auto_dispatch_seconds=0.02), scope=scope)
    loader.load("a")
    loader.dispatch()

    future = loader.load("b")
    loader.dispatch()
    await asyncio.sleep(0.05)

    assert await future == "value-b"
    assert fetch.calls == [["a"], ["b"]]


@pytest.mark.asyncio
async def test_async_fetch_function(scope: DispatchScope):
    """Test that an async fetch function resolves every key of its window."""
    fetch = AsyncRecordingFetch(values={1: "one", 2: "two"})
    loader = Loader(fetch, scope=scope)

    future = loader.load_many([2, 1])
    loader.dispatch()

    assert await future == ["two", "one"]
    assert fetch.calls == [[2, 1]]


@pytest.mark.asyncio
async def test_loader_defaults_to_current_scope(fetch: RecordingFetch):
    """Test that loaders register windows into the scope of their context."""
    token = active_scope.set(None)
    try:
        loader = Loader(fetch)
        loader.load("a")

        assert loader.scope is current_scope()
        assert loader.scope.pending == (loader.window,)
    finally:
        active_scope.reset(token)


@pytest.mark.asyncio
async def test_load_rejects_unhashable_cache_key(scope: DispatchScope, fetch: RecordingFetch):
    """Test that a key normalizer returning an unhashable value is an invalid key."""
    loader = Loader(fetch, LoaderOptions(key=lambda key: [key]), scope=scope)

    with pytest.raises(InvalidKeyError) as exc_info:
        loader.load("a")

    assert exc_info.value.key == "a"
    assert loader.window is None


@pytest.mark.asyncio
async def test_load_many_timeout_keeps_keys_queued(loader: Loader, fetch: RecordingFetch):
    """Test that cancelling a load_many leaves the cached futures to resolve."""
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(loader.load_many(["a", "b"]), timeout=0.01)

    again = loader.load("a")
    loader.dispatch()

    assert not again.cancelled()
    assert await again == "value-a"
    assert await loader.load("b") == "value-b"
    assert fetch.calls == [["a", "b"]]


@pytest.mark.asyncio
async def test_load_many_failure_retrieves_every_error(scope: DispatchScope):
    """Test that every failed key of a load_many has its error retrieved."""
    loader = Loader(RecordingFetch(values={"c": 3}), scope=scope)

    future = loader.load_many(["a", "b", "c"])
    loader.dispatch()

    with pytest.raises(MissingKeyError):
        await future
    await asyncio.sleep(0)

    for key in ["a", "b"]:
        assert not loader.load(key)._log_traceback
