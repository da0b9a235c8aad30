import asyncio
import logging
from typing import Optional, Set

from .models import Report, ReportFeedState
from .store import ReportStore
from modules.identity.manager import IdentityManager
from modules.shared.errors import FetchError, SubmissionError, ReportContractError
from modules.shared.streams import Broadcaster, Subscription

logger = logging.getLogger("reports.coordinator")


class ReportCoordinator:
    """
    Keeps the report list, loading flag and last error in step with the store.

    State only changes in response to discrete events (a subscription
    emission, a refresh finishing, the coordinator closing) and every change
    is pushed to ``watch()`` readers. After ``close()`` nothing in flight is
    allowed to complete into the state.
    """

    def __init__(self, store: ReportStore, identity: IdentityManager):
        self.store = store
        self.identity = identity
        self._state = ReportFeedState()
        self._watchers: Broadcaster[ReportFeedState] = Broadcaster(name="reports:state")
        self._subscription: Optional[Subscription] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def state(self) -> ReportFeedState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_state(self, **changes) -> None:
        if self._closed:
            return
        self._state = self._state.model_copy(update=changes)
        self._watchers.publish(self._state)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start(self) -> None:
        """Open the live subscription; its failures land in ``state.error``."""
        if self._closed or self._subscription is not None:
            return
        try:
            self._subscription = await self.store.subscribe()
        except FetchError as e:
            logger.error(f"Could not subscribe to reports: {e}")
            self._set_state(error=str(e) or "Connection error")
            return
        logger.info(f"Listening for report changes on {self.store.name}")
        self._listen_task = asyncio.create_task(self._listen(self._subscription))

    async def _listen(self, subscription: Subscription) -> None:
        try:
            async for reports in subscription:
                logger.debug(f"Report feed pushed {len(reports)} reports")
                self._set_state(reports=reports, error=None)
        except FetchError as e:
            logger.error(f"Report subscription terminated: {e}")
            self._set_state(error=str(e) or "Connection error")
        except Exception as e:
            logger.exception("Unexpected error in report subscription")
            self._set_state(error=str(e) or "Connection error")
        finally:
            await subscription.close()

    def refresh(self, force: bool = False) -> Optional[asyncio.Task]:
        """
        Fetch the collection once. Returns the running task, or None when a
        refresh is already in flight and ``force`` is false.
        """
        if self._closed:
            return None
        if self._state.is_loading and not force:
            logger.debug("Refresh already in progress; request dropped")
            return None
        self._set_state(is_loading=True, error=None)
        return self._spawn(self._refresh())

    async def _refresh(self) -> None:
        try:
            reports = await self.store.fetch_once()
        except FetchError as e:
            self._set_state(error=str(e) or "Unknown error")
        else:
            self._set_state(reports=reports)
        finally:
            self._set_state(is_loading=False)

    async def submit(self, candidate: Report) -> bool:
        """
        Stamp the reporter's display name on ``candidate`` and append it.
        The list itself is left to the live subscription. A submit still in
        flight when the coordinator closes returns False.
        """
        if not isinstance(candidate, Report):
            raise ReportContractError(f"submit() expects a Report, got {type(candidate).__name__}")
        if self._closed:
            raise RuntimeError("ReportCoordinator is closed")
        task = self._spawn(self._submit(candidate))
        try:
            return await task
        except asyncio.CancelledError:
            if not (self._closed and task.cancelled()):
                raise
            logger.info("Report submission abandoned: coordinator closed")
            return False

    async def _submit(self, candidate: Report) -> bool:
        identity = await self.identity.current()
        outgoing = candidate.model_copy(update={"nickname": identity.display_name})
        try:
            report_id = await self.store.append(outgoing)
        except SubmissionError as e:
            logger.warning(f"Report submission failed: {e}")
            return False
        logger.info(f"Report {report_id} submitted by {outgoing.nickname}")
        return True

    async def watch(self) -> Subscription[ReportFeedState]:
        """Current state first, then every change."""
        subscription = self._watchers.open()
        subscription.push(self._state)
        return subscription

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        pending = [task for task in [self._listen_task, *self._tasks] if task is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if self._subscription is not None:
            await self._subscription.close()
        await self._watchers.close()
        logger.info("Report coordinator closed")
