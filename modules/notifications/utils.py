import asyncio
import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger("notifications.utils")

REPORTS_TOPIC = "reports"
DRAFTS_TOPIC = "drafts"
IDENTITY_TOPIC = "identity"
TOPICS = (REPORTS_TOPIC, DRAFTS_TOPIC, IDENTITY_TOPIC)


def event_for(topic: str) -> str:
    return f"{topic}.state"


class ConnectionManager:
    """Simple in-memory WebSocket connection manager grouped by topics."""
    def __init__(self) -> None:
        self._topic_to_connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    def count(self, topic: str) -> int:
        return len(self._topic_to_connections.get(topic, ()))

    async def connect(self, websocket: WebSocket, topic: str) -> None:
        await websocket.accept()
        async with self._lock:
            self._topic_to_connections.setdefault(topic, set()).add(websocket)
        logger.debug(f"WebSocket joined topic '{topic}' ({self.count(topic)} connected)")

    async def disconnect(self, websocket: WebSocket, topic: str) -> None:
        async with self._lock:
            conns = self._topic_to_connections.get(topic)
            if conns and websocket in conns:
                conns.remove(websocket)
                if not conns:
                    self._topic_to_connections.pop(topic, None)
        logger.debug(f"WebSocket left topic '{topic}'")

    async def broadcast(self, topic: str, message: dict) -> None:
        # Copy to avoid size change during iteration
        connections = list(self._topic_to_connections.get(topic, set()))
        for ws in connections:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping broken WebSocket on '{topic}': {e}")
                await self.disconnect(ws, topic)
