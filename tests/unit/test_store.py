"""Tests for the shared key-value stores."""

import asyncio

import pytest

from cogload.config import StoreConfig
from cogload.errors import StoreError
from cogload.protocols import StoreChange
from cogload.sync.store import MemoryStore, SQLiteStore, create_store
from tests.helpers.loop import drain


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Each test runs against both backends."""
    if request.param == "memory":
        yield MemoryStore()
    else:
        async with SQLiteStore(tmp_path / "kv.db") as sqlite_store:
            yield sqlite_store


@pytest.mark.unit
class TestStoreContract:
    """Behaviour every store backend shares."""

    @pytest.mark.asyncio
    async def test_get_missing_keys_are_omitted(self, store):
        assert await store.get(["nothing"]) == {}

    @pytest.mark.asyncio
    async def test_set_then_get(self, store):
        await store.set({"a": {"x": 1}, "b": True})
        assert await store.get(["a", "b", "c"]) == {"a": {"x": 1}, "b": True}

    @pytest.mark.asyncio
    async def test_one_notification_per_write(self, store):
        received = []
        store.subscribe(received.append)

        await store.set({"a": 1, "b": 2})
        await drain()

        assert len(received) == 1
        assert received[0] == [StoreChange("a", None, 1), StoreChange("b", None, 2)]

    @pytest.mark.asyncio
    async def test_notification_carries_old_value(self, store):
        received = []
        store.subscribe(received.append)

        await store.set({"a": 1})
        await store.set({"a": 2})
        await drain()

        assert [batch[0] for batch in received] == [StoreChange("a", None, 1), StoreChange("a", 1, 2)]

    @pytest.mark.asyncio
    async def test_notifications_are_delivered_in_write_order(self, store):
        received = []
        store.subscribe(lambda changes: received.append(changes[0].new_value))

        for i in range(10):
            await store.set({"n": i})
        await drain(20)

        assert received == list(range(10))

    @pytest.mark.asyncio
    async def test_notification_is_not_delivered_synchronously(self, store):
        received = []
        store.subscribe(received.append)

        await store.set({"a": 1})
        assert store.listener_count == 1
        if isinstance(store, MemoryStore):
            # No await point inside the write, so the listener cannot have run yet
            assert received == []
        await drain()
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self, store):
        received = []
        unsubscribe = store.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        await store.set({"a": 1})
        await drain()

        assert received == []
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, store):
        received = []

        def broken(changes):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(received.append)

        await store.set({"a": 1})
        await drain()

        assert len(received) == 1


@pytest.mark.unit
class TestMemoryStore:
    """MemoryStore specifics."""

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        value = {"list": [1, 2]}
        store = MemoryStore()
        await store.set({"k": value})
        value["list"].append(3)

        fetched = await store.get(["k"])
        assert fetched["k"] == {"list": [1, 2]}
        fetched["k"]["list"].append(4)
        assert store.snapshot()["k"] == {"list": [1, 2]}

    @pytest.mark.asyncio
    async def test_initial_contents(self):
        store = MemoryStore({"liveOnScroll": True})
        assert await store.get(["liveOnScroll"]) == {"liveOnScroll": True}


@pytest.mark.unit
class TestSQLiteStore:
    """SQLiteStore specifics."""

    @pytest.mark.asyncio
    async def test_values_persist_across_connections(self, tmp_path):
        path = tmp_path / "persist.db"
        async with SQLiteStore(path) as first:
            await first.set({"currentSnapshot": {"rawScore": 0.5}})
        async with SQLiteStore(path) as second:
            assert await second.get(["currentSnapshot"]) == {"currentSnapshot": {"rawScore": 0.5}}

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises_store_error(self, tmp_path):
        store = SQLiteStore(tmp_path / "never.db")
        with pytest.raises(StoreError) as exc_info:
            await store.get(["a"])
        assert exc_info.value.operation == "read"
        with pytest.raises(StoreError):
            await store.set({"a": 1})

    @pytest.mark.asyncio
    async def test_unserializable_value_raises_and_keeps_previous(self, sqlite_store):
        await sqlite_store.set({"a": 1})
        with pytest.raises(StoreError):
            await sqlite_store.set({"a": object()})
        assert await sqlite_store.get(["a"]) == {"a": 1}

    @pytest.mark.asyncio
    async def test_concurrent_writes_all_land(self, sqlite_store):
        await asyncio.gather(*(sqlite_store.set({f"k{i}": i}) for i in range(5)))
        assert await sqlite_store.get([f"k{i}" for i in range(5)]) == {f"k{i}": i for i in range(5)}

    @pytest.mark.asyncio
    async def test_overlapping_writes_report_previous_value(self, sqlite_store):
        received = []
        sqlite_store.subscribe(received.append)

        await asyncio.gather(sqlite_store.set({"k": 1}), sqlite_store.set({"k": 2}), sqlite_store.set({"k": 3}))
        await drain()

        assert [(c.old_value, c.new_value) for [c] in received] == [(None, 1), (1, 2), (2, 3)]
        assert await sqlite_store.get(["k"]) == {"k": 3}


@pytest.mark.unit
class TestCreateStore:
    """Tests for create_store."""

    @pytest.mark.asyncio
    async def test_memory_backend(self):
        assert isinstance(await create_store(StoreConfig()), MemoryStore)

    @pytest.mark.asyncio
    async def test_sqlite_backend(self, tmp_path):
        store = await create_store(StoreConfig(backend="sqlite", db_path=tmp_path / "nested" / "s.db"))
        try:
            assert isinstance(store, SQLiteStore)
            assert (tmp_path / "nested" / "s.db").exists()
        finally:
            await store.close()
