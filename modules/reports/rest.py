import asyncio
import logging
from contextlib import suppress
from typing import Any, Dict, List, Optional

import httpx

from .models import Report
from .store import ReportStore, Clock
from modules.shared.errors import FetchError, SubmissionError
from modules.shared.streams import Subscription
from modules.shared.utils import now_millis

logger = logging.getLogger("reports.rest")

FATAL_STATUS = (401, 403)
_UNSET = object()


class RestReportStore(ReportStore):
    """
    Reports through the Realtime Database REST API.

    There is no push channel over plain HTTP, so ``subscribe`` polls the
    collection every ``poll_interval`` seconds and emits when it changed.
    """

    name = "rest"

    def __init__(
        self,
        database_url: str,
        path: str = "reports",
        auth_token: Optional[str] = None,
        poll_interval: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Clock = now_millis,
    ):
        super().__init__(clock)
        if not database_url:
            logger.error("FIREBASE_DATABASE_URL not set")
            raise RuntimeError("FIREBASE_DATABASE_URL not set")
        self.url = f"{database_url.rstrip('/')}/{path.strip('/')}.json"
        self.auth_token = auth_token
        self.poll_interval = poll_interval
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings) -> "RestReportStore":
        return cls(
            settings.firebase_database_url,
            path=settings.reports_path,
            auth_token=settings.firebase_auth_token,
            poll_interval=settings.poll_interval_seconds,
        )

    def _params(self) -> Optional[Dict[str, str]]:
        return {"auth": self.auth_token} if self.auth_token else None

    async def _get(self) -> Any:
        response = await self._client.get(self.url, params=self._params())
        response.raise_for_status()
        if not response.content.strip():
            return None
        return response.json()

    async def _push(self, record: Dict[str, Any]) -> str:
        response = await self._client.post(self.url, params=self._params(), json=record)
        response.raise_for_status()
        key = response.json().get("name")
        if not key:
            raise SubmissionError("Database accepted the report but returned no key")
        return key

    async def subscribe(self) -> Subscription[List[Report]]:
        async def release() -> None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        subscription: Subscription[List[Report]] = Subscription(release, name="reports:rest")
        task = asyncio.create_task(self._poll(subscription))
        return subscription

    async def _poll(self, subscription: Subscription[List[Report]]) -> None:
        last = _UNSET
        while not subscription.terminated:
            try:
                collection = await self._get()
            except httpx.HTTPStatusError as e:
                if e.response.status_code in FATAL_STATUS:
                    logger.error(f"Report polling rejected with {e.response.status_code}; stopping")
                    subscription.fail(FetchError(str(e)))
                    return
                logger.warning(f"Report poll failed: {e}")
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Report poll failed: {e}")
            except Exception as e:
                logger.exception("Report polling stopped by an unexpected error")
                subscription.fail(FetchError(str(e) or type(e).__name__))
                return
            else:
                if collection != last:
                    last = collection
                    subscription.push(self.decode(collection))
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
