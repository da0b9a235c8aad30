"""Authoritative collection of submitted reports.

The store owns the ordering and default-filling rules shared by every
backend: snapshots are always newest first, and a remote child missing some
of its fields is filled in rather than dropped. Backends supply the raw
collection (``_get``), the raw append (``_push``) and ``subscribe``.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from .models import Report, RECORD_FIELDS
from modules.shared.errors import FetchError, SubmissionError, ReportContractError
from modules.shared.streams import Broadcaster, Subscription
from modules.shared.utils import now_millis

logger = logging.getLogger("reports.store")

Clock = Callable[[], int]


def sort_reports(reports: List[Report]) -> List[Report]:
    """Newest first; equal timestamps fall back to the key, descending."""
    return sorted(reports, key=lambda r: (r.timestamp, r.id or ""), reverse=True)


def decode_collection(collection: Any, now: int) -> List[Report]:
    """Turn a raw key -> record collection into an ordered report list."""
    if collection is None:
        return []
    if isinstance(collection, Mapping):
        children = collection.items()
    elif isinstance(collection, list):
        # integer-like keys come back from the database as an array
        children = ((str(index), child) for index, child in enumerate(collection) if child is not None)
    else:
        logger.warning(f"Ignoring non-collection value at reports path: {type(collection).__name__}")
        return []

    reports = []
    for key, record in children:
        if not isinstance(record, Mapping):
            logger.warning(f"Skipping report child {key}: not a record ({type(record).__name__})")
            continue
        missing = [field for field in RECORD_FIELDS if record.get(field) is None]
        if missing:
            logger.warning(f"Report {key} is missing {', '.join(missing)}; using defaults")
        reports.append(Report.from_record(str(key), record, now))
    return sort_reports(reports)


class ReportStore:
    name = "reports"

    def __init__(self, clock: Clock = now_millis):
        self.clock = clock

    async def _get(self) -> Any:
        raise NotImplementedError

    async def _push(self, record: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def subscribe(self) -> Subscription[List[Report]]:
        """Open a live feed of full, ordered snapshots."""
        raise NotImplementedError

    async def close(self) -> None:
        pass

    def decode(self, collection: Any) -> List[Report]:
        return decode_collection(collection, self.clock())

    def prepare_record(self, report: Report) -> Dict[str, Any]:
        if not isinstance(report, Report):
            raise ReportContractError(f"append() expects a Report, got {type(report).__name__}")
        if isinstance(report.timestamp, bool) or report.timestamp <= 0:
            raise ReportContractError(f"Report timestamp must be positive epoch millis, got {report.timestamp!r}")
        if report.id is not None:
            logger.debug(f"Ignoring caller-supplied report id {report.id}")
        return report.to_record()

    async def fetch_once(self) -> List[Report]:
        """One-shot read of the whole collection."""
        try:
            collection = await self._get()
        except FetchError:
            raise
        except Exception as e:
            logger.error(f"Error fetching reports from {self.name}: {e}")
            raise FetchError(str(e) or type(e).__name__) from e
        reports = self.decode(collection)
        logger.debug(f"Fetched {len(reports)} reports from {self.name}")
        return reports

    async def append(self, report: Report) -> str:
        """Store a new report and return the key the store assigned to it."""
        record = self.prepare_record(report)
        try:
            report_id = await self._push(record)
        except SubmissionError:
            raise
        except Exception as e:
            logger.error(f"Error appending report to {self.name}: {e}")
            raise SubmissionError(str(e) or type(e).__name__) from e
        logger.info(f"Report {report_id} appended to {self.name}")
        return report_id


class MemoryReportStore(ReportStore):
    """In-process collection, for development and tests.

    ``records`` seeds the collection with raw wire records (they may be
    malformed, exactly as a remote database could hold them).
    """

    name = "memory"

    def __init__(self, records: Optional[Mapping[str, Any]] = None, clock: Clock = now_millis):
        super().__init__(clock)
        self._records: Dict[str, Any] = dict(records or {})
        self._listeners: Broadcaster[List[Report]] = Broadcaster(name="reports:memory")
        self._cancelled: Optional[BaseException] = None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def _get(self) -> Any:
        return copy.deepcopy(self._records)

    async def _push(self, record: Dict[str, Any]) -> str:
        key = str(uuid4())
        self._records[key] = dict(record)
        if self._cancelled is None:
            self._listeners.publish(self.decode(self._records))
        return key

    async def subscribe(self) -> Subscription[List[Report]]:
        subscription = self._listeners.open()
        if self._cancelled is not None:
            subscription.fail(FetchError(f"Report listener cancelled: {self._cancelled}"))
        else:
            subscription.push(self.decode(self._records))
        return subscription

    def disconnect(self, error: BaseException) -> None:
        """Simulate the backend revoking every live listener."""
        logger.warning(f"Report listeners cancelled: {error}")
        self._cancelled = error
        self._listeners.fail(FetchError(f"Report listener cancelled: {error}"))

    async def close(self) -> None:
        await self._listeners.close()
