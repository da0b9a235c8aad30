from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from .utils import TOPICS, REPORTS_TOPIC, event_for
from .manager import current_snapshot
from modules.shared.errors import StorageError
from modules.shared.response import serialize_data
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def ws_notifications(websocket: WebSocket, topic: str = Query(REPORTS_TOPIC)):
    if topic not in TOPICS:
        await websocket.close(code=4004, reason="Unknown topic")
        return

    services = websocket.app.state.services
    manager = services.connections
    await manager.connect(websocket, topic)
    try:
        await websocket.send_json({
            "event": event_for(topic),
            "data": serialize_data(await current_snapshot(services, topic)),
        })
        while True:
            # Keep connection alive; messages from client are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.disconnect(websocket, topic)
    except StorageError as e:
        logger.error(f"Could not load initial '{topic}' snapshot: {e}")
        await manager.disconnect(websocket, topic)
        await websocket.close(code=1011, reason="Storage unavailable")
