"""Explicitly constructed service graph for one application instance."""

import asyncio
import logging
from typing import List, Optional

from starlette.requests import HTTPConnection

from modules.drafts.manager import DraftCoordinator
from modules.identity.manager import IdentityManager
from modules.notifications.manager import start_relays
from modules.notifications.utils import ConnectionManager
from modules.preferences.store import PreferenceStore, MemoryPreferenceStore, PostgresPreferenceStore
from modules.reports.coordinator import ReportCoordinator
from modules.reports.store import ReportStore, MemoryReportStore
from modules.shared.config import Settings, REPORT_BACKENDS, PREFERENCE_BACKENDS
from modules.shared.db import Database
from modules.shared.schema import create_tables

logger = logging.getLogger("services")


class Services:
    def __init__(
        self,
        preferences: PreferenceStore,
        report_store: ReportStore,
        database: Optional[Database] = None,
    ):
        self.database = database
        self.preferences = preferences
        self.report_store = report_store
        self.identity = IdentityManager(preferences)
        self.drafts = DraftCoordinator(preferences)
        self.reports = ReportCoordinator(report_store, self.identity)
        self.connections = ConnectionManager()
        self._relays: List[asyncio.Task] = []

    @classmethod
    async def open(cls, settings: Settings) -> "Services":
        """Connect the configured backends."""
        database = None
        if settings.preferences_backend == "postgres":
            database = Database(settings.database_url)
            await database.connect()
            await create_tables(database)
            preferences = PostgresPreferenceStore(database, profile_id=settings.profile_id)
        elif settings.preferences_backend == "memory":
            preferences = MemoryPreferenceStore()
        else:
            raise RuntimeError(
                f"Unsupported PREFERENCES_BACKEND '{settings.preferences_backend}', expected one of {PREFERENCE_BACKENDS}"
            )

        if settings.report_backend == "firebase":
            from modules.reports.firebase import FirebaseReportStore
            report_store = FirebaseReportStore.from_settings(settings)
        elif settings.report_backend == "rest":
            from modules.reports.rest import RestReportStore
            report_store = RestReportStore.from_settings(settings)
        elif settings.report_backend == "memory":
            report_store = MemoryReportStore()
        else:
            raise RuntimeError(
                f"Unsupported REPORT_BACKEND '{settings.report_backend}', expected one of {REPORT_BACKENDS}"
            )

        logger.info(
            f"Using {settings.preferences_backend} preferences and {report_store.name} reports "
            f"(profile '{settings.profile_id}')"
        )
        return cls(preferences, report_store, database=database)

    async def start(self) -> None:
        await self.reports.start()
        self._relays = await start_relays(self)

    async def close(self) -> None:
        await self.reports.close()
        for task in self._relays:
            task.cancel()
        await asyncio.gather(*self._relays, return_exceptions=True)
        await self.preferences.close()
        await self.report_store.close()
        if self.database is not None:
            await self.database.close()


def get_services(connection: HTTPConnection) -> Services:
    return connection.app.state.services
