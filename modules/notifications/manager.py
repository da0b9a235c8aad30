import asyncio
import logging
from typing import Any

from .utils import ConnectionManager, REPORTS_TOPIC, DRAFTS_TOPIC, IDENTITY_TOPIC, event_for
from modules.shared.response import serialize_data

logger = logging.getLogger("notifications.manager")


async def relay(subscription, connections: ConnectionManager, topic: str) -> None:
    """Forward every snapshot from ``subscription`` to the sockets on ``topic``."""
    event = event_for(topic)
    try:
        async for snapshot in subscription:
            logger.debug(f"Broadcasting {event} to {connections.count(topic)} connection(s)")
            await connections.broadcast(topic, {"event": event, "data": serialize_data(snapshot)})
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception(f"Relay for topic '{topic}' stopped")
    finally:
        await subscription.close()


async def current_snapshot(services, topic: str) -> Any:
    if topic == REPORTS_TOPIC:
        return services.reports.state
    if topic == DRAFTS_TOPIC:
        return await services.drafts.current()
    if topic == IDENTITY_TOPIC:
        return await services.identity.current()
    raise ValueError(f"Unknown topic: {topic!r}")


async def start_relays(services) -> list:
    """One relay task per topic, fed by the coordinators' watch streams."""
    sources = {
        REPORTS_TOPIC: await services.reports.watch(),
        DRAFTS_TOPIC: await services.drafts.watch(),
        IDENTITY_TOPIC: await services.identity.watch(),
    }
    return [
        asyncio.create_task(relay(subscription, services.connections, topic), name=f"relay:{topic}")
        for topic, subscription in sources.items()
    ]
