import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import firebase_admin
from firebase_admin import credentials, db
from starlette.concurrency import run_in_threadpool

from .models import Report
from .store import ReportStore, Clock
from modules.shared.errors import FetchError
from modules.shared.streams import Subscription
from modules.shared.utils import now_millis

logger = logging.getLogger("reports.firebase")

DATA_EVENTS = ("put", "patch")
TERMINAL_EVENTS = ("cancel", "auth_revoked")


def init_firebase(credentials_json: Optional[str], database_url: Optional[str]):
    """Initialize the default Firebase app (only once per process)."""
    if not firebase_admin._apps:
        if not credentials_json:
            logger.error("FIREBASE_CREDENTIALS not set")
            raise RuntimeError("FIREBASE_CREDENTIALS not set")
        if not database_url:
            logger.error("FIREBASE_DATABASE_URL not set")
            raise RuntimeError("FIREBASE_DATABASE_URL not set")

        cred_dict = json.loads(credentials_json)
        cred = credentials.Certificate(cred_dict)
        firebase_admin.initialize_app(cred, {"databaseURL": database_url})
        logger.info("Firebase app initialized for %s", database_url)
    return firebase_admin.get_app()


def _as_mapping(value: Any) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, list):
        return {str(i): child for i, child in enumerate(value) if child is not None}
    return {}


def _set_path(tree: Mapping[str, Any], segments: List[str], value: Any) -> Dict[str, Any]:
    """Copy of ``tree`` with ``value`` placed at ``segments``; None deletes."""
    if not segments:
        return _as_mapping(value)
    head, rest = segments[0], segments[1:]
    updated = dict(tree)
    if rest:
        current = updated.get(head)
        child = _set_path(current if isinstance(current, Mapping) else {}, rest, value)
        if child:
            updated[head] = child
        else:
            updated.pop(head, None)
    elif value is None:
        updated.pop(head, None)
    else:
        updated[head] = value
    return updated


def apply_event(mirror: Mapping[str, Any], event_type: str, path: str, data: Any) -> Dict[str, Any]:
    """
    Apply one streaming event to a local copy of the collection.
    ``put`` replaces the node at ``path``; ``patch`` merges ``data``'s children into it.
    """
    segments = [segment for segment in (path or "/").split("/") if segment]
    if event_type == "put":
        return _set_path(mirror, segments, data)
    if event_type == "patch":
        updated = dict(mirror)
        for key, value in _as_mapping(data).items():
            updated = _set_path(updated, segments + [s for s in key.split("/") if s], value)
        return updated
    return dict(mirror)


class FirebaseReportStore(ReportStore):
    """Reports under a Realtime Database reference, fed by the SDK's push listener."""

    name = "firebase"

    def __init__(self, reference, clock: Clock = now_millis):
        super().__init__(clock)
        self.reference = reference

    @classmethod
    def from_settings(cls, settings) -> "FirebaseReportStore":
        init_firebase(settings.firebase_credentials, settings.firebase_database_url)
        return cls(db.reference(settings.reports_path))

    async def _get(self) -> Any:
        return await run_in_threadpool(self.reference.get)

    async def _push(self, record: Dict[str, Any]) -> str:
        child = await run_in_threadpool(self.reference.push, record)
        return child.key

    async def subscribe(self) -> Subscription[List[Report]]:
        mirror: Dict[str, Any] = {}
        registration = None

        def on_event(event) -> None:
            # runs on the SDK's listener thread
            nonlocal mirror
            try:
                if event.event_type in DATA_EVENTS:
                    mirror = apply_event(mirror, event.event_type, event.path, event.data)
                    subscription.push_threadsafe(self.decode(mirror))
                elif event.event_type in TERMINAL_EVENTS:
                    logger.error(f"Report listener {event.event_type}: {event.data}")
                    subscription.fail_threadsafe(FetchError(f"Report listener {event.event_type}: {event.data}"))
            except Exception as e:
                logger.exception("Error applying report listener event")
                subscription.fail_threadsafe(FetchError(str(e)))

        async def release() -> None:
            if registration is not None:
                await run_in_threadpool(registration.close)
                logger.debug("Firebase report listener closed")

        subscription: Subscription[List[Report]] = Subscription(release, name="reports:firebase")
        try:
            registration = await run_in_threadpool(self.reference.listen, on_event)
        except Exception as e:
            logger.error(f"Error opening report listener: {e}")
            await subscription.close()
            raise FetchError(str(e) or type(e).__name__) from e
        logger.info("Firebase report listener opened")
        return subscription
