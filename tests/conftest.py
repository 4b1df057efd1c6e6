import pytest

from batchloader.options import AUTO_DISPATCH_ENV_VAR
from batchloader.scope import DispatchScope, active_scope
from tests.mocks.fetchers import RecordingFetch


@pytest.fixture(autouse=True)
def reset_scope(monkeypatch):
    monkeypatch.delenv(AUTO_DISPATCH_ENV_VAR, raising=False)
    token = active_scope.set(None)
    yield
    active_scope.reset(token)


@pytest.fixture
def scope() -> DispatchScope:
    """Create an empty dispatch scope."""
    return DispatchScope()


@pytest.fixture
def fetch() -> RecordingFetch:
    """Create a fetch function returning ``value-<key>`` for every key."""
    return RecordingFetch()
