import asyncio
import json
from contextlib import asynccontextmanager

import pytest

from modules.preferences.store import (
    DRAFT,
    IDENTITY,
    MemoryPreferenceStore,
    PostgresPreferenceStore,
)
from modules.shared.errors import StorageError


async def test_reader_starts_with_persisted_snapshot(next_item):
    store = MemoryPreferenceStore({IDENTITY: {"nickname": "luz"}})
    reader = await store.read(IDENTITY)

    assert await next_item(reader) == {"nickname": "luz"}


async def test_first_run_snapshot_is_empty(preferences, next_item):
    reader = await preferences.read(DRAFT)
    assert await next_item(reader) == {}


async def test_write_reaches_every_reader_including_the_writer(preferences, next_item):
    writer_view = await preferences.read(IDENTITY)
    other_view = await preferences.read(IDENTITY)
    await next_item(writer_view)
    await next_item(other_view)

    await preferences.write(IDENTITY, {"anonymous": False})

    assert await next_item(writer_view) == {"anonymous": False}
    assert await next_item(other_view) == {"anonymous": False}


async def test_namespaces_are_independent(preferences, next_item):
    draft_view = await preferences.read(DRAFT)
    await next_item(draft_view)

    await preferences.write(IDENTITY, {"nickname": "x"})

    with pytest.raises(asyncio.TimeoutError):
        await next_item(draft_view, timeout=0.05)
    assert await preferences.snapshot(DRAFT) == {}


async def test_multi_key_write_sets_and_removes_together(preferences):
    await preferences.write(DRAFT, {"type": "Physical", "location": "park"})
    await preferences.write(DRAFT, {"description": "d"}, remove=["location"])

    assert await preferences.snapshot(DRAFT) == {"type": "Physical", "description": "d"}


async def test_unknown_namespace_is_rejected(preferences):
    with pytest.raises(ValueError):
        await preferences.write("settings", {"a": 1})


class BrokenStore(MemoryPreferenceStore):
    async def _store(self, namespace, values, remove):
        raise OSError("disk full")


async def test_failed_write_raises_storage_error_and_changes_nothing(next_item):
    store = BrokenStore({IDENTITY: {"nickname": "ana"}})
    reader = await store.read(IDENTITY)
    await next_item(reader)

    with pytest.raises(StorageError, match="disk full"):
        await store.write(IDENTITY, {"nickname": "bea"})

    assert await store.snapshot(IDENTITY) == {"nickname": "ana"}
    with pytest.raises(asyncio.TimeoutError):
        await next_item(reader, timeout=0.05)


class FlakyReadStore(MemoryPreferenceStore):
    reads_fail = False

    async def _load(self, namespace):
        if self.reads_fail:
            raise OSError("read failed")
        return await super()._load(namespace)


async def test_committed_write_succeeds_even_if_reads_are_failing(next_item):
    store = FlakyReadStore()
    reader = await store.read(IDENTITY)
    await next_item(reader)
    store.reads_fail = True

    await store.write(IDENTITY, {"nickname": "x"})

    assert store._data[IDENTITY] == {"nickname": "x"}
    assert await next_item(reader) == {"nickname": "x"}


async def test_close_ends_open_readers(preferences, next_item):
    reader = await preferences.read(IDENTITY)
    await next_item(reader)
    await preferences.close()

    assert [item async for item in reader] == []


class FakeConnection:
    def __init__(self, rows):
        self.rows = rows
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield

    async def executemany(self, sql, args):
        for profile_id, namespace, key, value in args:
            self.rows[(profile_id, namespace, key)] = value

    async def execute(self, sql, profile_id, namespace, keys):
        for key in keys:
            self.rows.pop((profile_id, namespace, key), None)

    async def fetch(self, sql, profile_id, namespace):
        return [
            {"key": key, "value": value}
            for (p, ns, key), value in self.rows.items()
            if p == profile_id and ns == namespace
        ]


class FakeDatabase:
    def __init__(self):
        self.rows = {}
        self.conn = FakeConnection(self.rows)

    @asynccontextmanager
    async def connection(self):
        yield self.conn

    async def execute_query(self, sql, params=None, fetch_one=False):
        profile_id, namespace = params
        return [
            {"key": key, "value": value}
            for (p, ns, key), value in self.rows.items()
            if p == profile_id and ns == namespace
        ]


async def test_postgres_store_round_trips_json_values_per_profile():
    db = FakeDatabase()
    mine = PostgresPreferenceStore(db, profile_id="phone-1")
    theirs = PostgresPreferenceStore(db, profile_id="phone-2")

    await mine.write(IDENTITY, {"nickname": "luz", "anonymous": False})

    assert await mine.snapshot(IDENTITY) == {"nickname": "luz", "anonymous": False}
    assert await theirs.snapshot(IDENTITY) == {}
    assert db.rows[("phone-1", IDENTITY, "anonymous")] == json.dumps(False)
    assert db.conn.transactions == 1


async def test_postgres_store_removes_keys_inside_the_same_transaction():
    db = FakeDatabase()
    store = PostgresPreferenceStore(db)
    await store.write(DRAFT, {"type": "Physical", "location": "park"})

    await store.write(DRAFT, {"type": "Verbal"}, remove=["location"])

    assert await store.snapshot(DRAFT) == {"type": "Verbal"}
    assert db.conn.transactions == 2
