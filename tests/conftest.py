# tests/conftest.py
from unittest.mock import MagicMock

import pytest

from explainit.exceptions import StorageError
from explainit.resilience import ResilienceController
from explainit.settings_state import SettingsStateManager
from explainit.storage import BaseStore, MemoryStore


class FailingStore(BaseStore):
    """Store whose writes (and optionally reads) always fail."""

    name = "failing"

    def __init__(self, fail_reads: bool = False):
        self.fail_reads = fail_reads
        self.set_calls = []

    async def get(self, keys):
        if self.fail_reads:
            raise StorageError(self.name, "get", "unavailable")
        return {}

    async def set(self, items):
        self.set_calls.append(dict(items))
        raise StorageError(self.name, "set", "unavailable")


def make_response(status_code=200, json_data=None, headers=None):
    resp = MagicMock()
    resp.status_code = status_code
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    resp.headers = headers or {}
    return resp


@pytest.fixture
def fake_dispatch():
    """Dispatch function stand-in; set .side_effect or .return_value per test."""
    return MagicMock(return_value="An explanation.")


@pytest.fixture
def controller(fake_dispatch):
    return ResilienceController(dispatch_func=fake_dispatch, timeout=5.0, max_retries=2, retry_delay=0)


@pytest.fixture
def sync_store():
    return MemoryStore()


@pytest.fixture
def local_store():
    return MemoryStore()


@pytest.fixture
def settings(sync_store, local_store, controller):
    return SettingsStateManager(sync_store=sync_store, local_store=local_store, controller=controller)
