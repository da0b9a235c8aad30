import asyncio

import pytest

from modules.drafts.manager import DraftCoordinator
from modules.identity.manager import IdentityManager
from modules.preferences.store import MemoryPreferenceStore
from modules.reports.coordinator import ReportCoordinator
from modules.reports.store import MemoryReportStore

FIXED_NOW = 1_700_000_000_000


@pytest.fixture
def preferences():
    return MemoryPreferenceStore()


@pytest.fixture
def report_store():
    return MemoryReportStore(clock=lambda: FIXED_NOW)


@pytest.fixture
def identity(preferences):
    return IdentityManager(preferences)


@pytest.fixture
def drafts(preferences):
    return DraftCoordinator(preferences)


@pytest.fixture
async def coordinator(report_store, identity):
    coordinator = ReportCoordinator(report_store, identity)
    yield coordinator
    await coordinator.close()


@pytest.fixture
def next_item():
    async def _next(subscription, timeout=1.0):
        return await asyncio.wait_for(subscription.__anext__(), timeout)
    return _next


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout=1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)
    return _wait
