"""
Test configuration for cogload.

Provides layout builders, in-memory and SQLite stores, a manually advanced
scheduler, and simulated hosts wired to a coordinator.
"""

# Standard library imports
import asyncio
from pathlib import Path
from typing import AsyncGenerator

# Third-party imports
import pytest
import pytest_asyncio

# Local imports
from cogload.config import Config, TriggerConfig
from cogload.host import SimulatedHost
from cogload.sync.layer import SynchronizationLayer
from cogload.sync.store import MemoryStore, SQLiteStore
from cogload.trigger.coordinator import RecomputeCoordinator
from tests.helpers.fake_clock import FakeScheduler
from tests.helpers.layouts import build_document

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "browser: Tests that drive a real Chromium instance")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any task a test left running so recomputations cannot leak between tests."""
    tasks_before = asyncio.all_tasks()
    yield
    tasks_after = asyncio.all_tasks()
    new_tasks = tasks_after - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                print(f"Unexpected error during task cleanup: {e}")


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def trigger_config() -> TriggerConfig:
    return TriggerConfig()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sync(memory_store: MemoryStore) -> SynchronizationLayer:
    return SynchronizationLayer(memory_store)


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SQLiteStore, None]:
    store = SQLiteStore(tmp_path / "store.db")
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture
def high_load_document():
    """25 interactive elements in view, depth 8, 6 regions."""
    return build_document(depth=8, interactive=25, regions=6)


@pytest.fixture
def low_load_document():
    """2 interactive elements in view, depth 4, 1 region."""
    return build_document(depth=4, interactive=2, regions=1)


@pytest.fixture
def host(low_load_document) -> SimulatedHost:
    return SimulatedHost(low_load_document)


@pytest.fixture
def coordinator(host, sync, scheduler, trigger_config) -> RecomputeCoordinator:
    return RecomputeCoordinator(host, sync, config=trigger_config, scheduler=scheduler)
