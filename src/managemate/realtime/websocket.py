"""WebSocket endpoint — the transport for gateway connections.

Learn: Each browser tab connects to /ws (optionally ?user_id=...). The handler:
1. Wraps the socket in a WebSocketConnection and registers it with the gateway
2. Reads control frames (subscribe / unsubscribe / ping) until the client leaves
3. On disconnect, drops the connection from every room

Outbound frames are JSON: {"event": "chat-message", "data": {...}}.
Room membership is NOT restored on reconnect — the client re-subscribes.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from managemate.realtime.gateway import Connection, Gateway

logger = structlog.get_logger()
router = APIRouter()


class WebSocketConnection(Connection):
    """Gateway connection backed by a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket, user_id: Optional[str] = None):
        super().__init__(user_id=user_id)
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})


@router.websocket("/ws")
async def gateway_websocket(websocket: WebSocket, user_id: Optional[str] = None):
    """Long-lived realtime connection.

    ``user_id`` is an unverified hint used only for logging; the gateway
    accepts every connection unless an authorizer is configured.
    """
    gateway: Gateway = websocket.app.state.gateway
    connection = WebSocketConnection(websocket, user_id=user_id)

    await websocket.accept()
    if not await gateway.on_connect(connection):
        await websocket.close(code=4001, reason="Connection refused")
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                # Control frames are JSON text; binary frames are dropped
                logger.debug("ws.binary_frame_ignored", conn_id=connection.id)
                continue
            await gateway.handle_client_message(connection, text)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.on_disconnect(connection)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
