"""Local key/value preferences.

Two independent namespaces live in the store: ``identity`` (nickname and
anonymous flag) and ``draft`` (the report being composed). Every write is
atomic for the keys it touches and pushes a fresh snapshot of its namespace
to all open readers, the writer's own reader included.
"""

import json
import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Tuple

from modules.shared.db import Database
from modules.shared.errors import StorageError
from modules.shared.streams import Broadcaster, Subscription

logger = logging.getLogger("preferences.store")

IDENTITY = "identity"
DRAFT = "draft"
NAMESPACES = (IDENTITY, DRAFT)

Snapshot = Dict[str, Any]


class PreferenceStore:
    """Base class; subclasses provide ``_load`` and ``_store``."""

    def __init__(self) -> None:
        self._channels = {ns: Broadcaster(name=f"preferences:{ns}") for ns in NAMESPACES}
        self._lock = asyncio.Lock()

    def _channel(self, namespace: str) -> Broadcaster:
        try:
            return self._channels[namespace]
        except KeyError:
            raise ValueError(f"Unknown preference namespace: {namespace!r}") from None

    async def _load(self, namespace: str) -> Snapshot:
        raise NotImplementedError

    async def _store(self, namespace: str, values: Snapshot, remove: Tuple[str, ...]) -> Snapshot:
        """Apply the change atomically and return the namespace as committed."""
        raise NotImplementedError

    async def snapshot(self, namespace: str) -> Snapshot:
        """Point-in-time read of one namespace."""
        self._channel(namespace)
        try:
            return dict(await self._load(namespace))
        except StorageError:
            raise
        except Exception as e:
            logger.exception(f"Error reading preferences namespace '{namespace}'")
            raise StorageError(f"Could not read preferences '{namespace}': {e}") from e

    async def read(self, namespace: str) -> Subscription[Snapshot]:
        """Open a reactive reader; the first item is the current snapshot."""
        channel = self._channel(namespace)
        async with self._lock:
            current = await self.snapshot(namespace)
            subscription = channel.open()
            subscription.push(current)
        logger.debug("Opened preferences reader on '%s' (%d open)", namespace, len(channel))
        return subscription

    async def write(self, namespace: str, values: Mapping[str, Any], remove: Iterable[str] = ()) -> None:
        """Set ``values`` and delete ``remove`` in one all-or-nothing step."""
        channel = self._channel(namespace)
        values = dict(values)
        remove = tuple(k for k in remove if k not in values)
        async with self._lock:
            try:
                committed = await self._store(namespace, values, remove)
            except StorageError:
                raise
            except Exception as e:
                logger.exception(f"Error writing preferences namespace '{namespace}'")
                raise StorageError(f"Could not write preferences '{namespace}': {e}") from e
            logger.debug("Wrote preferences '%s': set=%s removed=%s", namespace, sorted(values), list(remove))
            channel.publish(dict(committed))

    async def close(self) -> None:
        for channel in self._channels.values():
            await channel.close()


class MemoryPreferenceStore(PreferenceStore):
    """Process-local store, for development and tests."""

    def __init__(self, initial: Mapping[str, Mapping[str, Any]] = None) -> None:
        super().__init__()
        initial = initial or {}
        self._data: Dict[str, Snapshot] = {ns: dict(initial.get(ns, {})) for ns in NAMESPACES}

    async def _load(self, namespace: str) -> Snapshot:
        return dict(self._data[namespace])

    async def _store(self, namespace: str, values: Snapshot, remove: Tuple[str, ...]) -> Snapshot:
        staged = dict(self._data[namespace])
        staged.update(values)
        for key in remove:
            staged.pop(key, None)
        self._data[namespace] = staged
        return dict(staged)


class PostgresPreferenceStore(PreferenceStore):
    """Preferences persisted in the ``preferences`` table, scoped by profile."""

    UPSERT_SQL = """
        INSERT INTO preferences (profile_id, namespace, key, value, updated_at)
        VALUES ($1, $2, $3, $4::jsonb, NOW())
        ON CONFLICT (profile_id, namespace, key) DO UPDATE SET
            value = EXCLUDED.value,
            updated_at = NOW()
    """
    DELETE_SQL = """
        DELETE FROM preferences
        WHERE profile_id = $1 AND namespace = $2 AND key = ANY($3::text[])
    """
    SELECT_SQL = """
        SELECT key, value FROM preferences
        WHERE profile_id = $1 AND namespace = $2
    """

    def __init__(self, db: Database, profile_id: str = "default") -> None:
        super().__init__()
        self.db = db
        self.profile_id = profile_id

    @staticmethod
    def _to_snapshot(rows) -> Snapshot:
        return {row["key"]: json.loads(row["value"]) for row in rows}

    async def _load(self, namespace: str) -> Snapshot:
        rows = await self.db.execute_query(self.SELECT_SQL, (self.profile_id, namespace))
        return self._to_snapshot(rows)

    async def _store(self, namespace: str, values: Snapshot, remove: Tuple[str, ...]) -> Snapshot:
        async with self.db.connection() as conn:
            async with conn.transaction():
                if values:
                    await conn.executemany(
                        self.UPSERT_SQL,
                        [(self.profile_id, namespace, key, json.dumps(value)) for key, value in values.items()],
                    )
                if remove:
                    await conn.execute(self.DELETE_SQL, self.profile_id, namespace, list(remove))
                rows = await conn.fetch(self.SELECT_SQL, self.profile_id, namespace)
        return self._to_snapshot(rows)
