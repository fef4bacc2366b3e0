"""
Pod Hub WebSocket

Live pod state for the frontend.

Client messages:
    {"action": "subscribe", "pod": "<name>"}
    {"action": "unsubscribe", "pod": "<name>"}
    {"action": "start_log_stream", "pod": "<name>"}
    {"action": "stop_log_stream", "pod": "<name>"}
    {"action": "ping"}

Server messages:
    {"type": "PodListUpdate", "pods": [...]}        every monitor tick
    {"type": "PodLog", "pod": ..., "entry": {...}}  per log line, own streams only
    {"type": "PodUpdate" | "PodDeleted", "pod": ...} to subscribers of that pod
    {"type": "error", "message": ...}
"""

import json
import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from ..services.subscription_hub import SubscriptionHub

logger = logging.getLogger(__name__)
router = APIRouter(tags=["hub"])


def get_hub(request: Request) -> SubscriptionHub:
    """The process-wide hub created at startup."""
    return request.app.state.hub


@router.websocket("/hubs/pod")
async def pod_hub_endpoint(websocket: WebSocket):
    hub: SubscriptionHub = websocket.app.state.hub
    connection_id = await hub.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                await hub.send_to_connection(connection_id, {"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await hub.send_to_connection(connection_id, {"type": "error", "message": "Expected a JSON object"})
                continue

            await hub.handle_message(connection_id, message)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"[HUB] WebSocket error for {connection_id}: {e}", exc_info=True)
    finally:
        await hub.disconnect(connection_id)
