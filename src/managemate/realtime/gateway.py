"""Realtime gateway — rooms of live connections and fan-out to them.

Learn: The gateway is the only component that knows about live clients.
It has three jobs:
1. Track connections and the rooms each one joined (subscribe/unsubscribe)
2. Deliver an event to every member of a room (chat:{moduleId}, user:{userId})
3. Broadcast an event to every connection (generic notifications)

Delivery is best-effort and at-most-once: a send that fails is logged and
not retried, and nothing is queued for clients that are offline. Clients
treat live events as hints and re-fetch the authoritative state over HTTP.

Transport-agnostic: the WebSocket route wraps each socket in a Connection
subclass, and tests plug in in-memory connections.
"""

import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog

from managemate.events.types import PING, PONG, SUBSCRIBE, UNSUBSCRIBE
from managemate.realtime.rooms import RoomRegistry

logger = structlog.get_logger()

Authorizer = Callable[["Connection"], Awaitable[bool]]


class Connection:
    """One client connection as seen by the gateway.

    ``user_id`` is whatever the client claimed when connecting. It is NOT
    verified here — authentication is the job of the layer in front of the
    gateway — so nothing in the gateway grants access based on it.
    """

    def __init__(self, user_id: Optional[str] = None, conn_id: Optional[str] = None):
        self.id = conn_id or uuid.uuid4().hex
        self.user_id = user_id

    async def send(self, event: str, data: Any) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} user_id={self.user_id}>"


async def allow_all(connection: Connection) -> bool:
    """Default connection hook: accept every connection."""
    return True


class Gateway:
    """Connection registry + room fan-out for one process."""

    def __init__(self, authorizer: Authorizer = allow_all):
        self._authorizer = authorizer
        self._connections: dict[str, Connection] = {}
        self._rooms = RoomRegistry()

    # ─── Lifecycle ────────────────────────────────────────

    async def on_connect(self, connection: Connection) -> bool:
        """Register a new connection with no rooms. Returns False if refused."""
        if not await self._authorizer(connection):
            logger.info("gateway.connection_refused", conn_id=connection.id)
            return False
        self._connections[connection.id] = connection
        logger.info(
            "gateway.connected",
            conn_id=connection.id,
            user_id=connection.user_id,
            connections=len(self._connections),
        )
        return True

    def on_disconnect(self, connection: Connection) -> None:
        """Forget a connection and drop it from all its rooms."""
        rooms = self._rooms.remove_all(connection.id)
        self._connections.pop(connection.id, None)
        logger.info(
            "gateway.disconnected",
            conn_id=connection.id,
            rooms_left=len(rooms),
            connections=len(self._connections),
        )

    # ─── Membership ───────────────────────────────────────

    def subscribe(self, connection: Connection, rooms: Any) -> list[str]:
        """Join each room in ``rooms``. Returns the rooms newly joined.

        Non-list payloads are ignored silently, as are entries that are not
        non-empty strings. Joining a room twice is a no-op.
        """
        if connection.id not in self._connections:
            return []
        joined = [
            room for room in _room_names(rooms)
            if self._rooms.add(connection.id, room)
        ]
        if joined:
            logger.debug("gateway.subscribed", conn_id=connection.id, rooms=joined)
        return joined

    def unsubscribe(self, connection: Connection, rooms: Any) -> list[str]:
        """Leave each room in ``rooms``. Returns the rooms actually left."""
        left = [
            room for room in _room_names(rooms)
            if self._rooms.remove(connection.id, room)
        ]
        if left:
            logger.debug("gateway.unsubscribed", conn_id=connection.id, rooms=left)
        return left

    def rooms_of(self, connection: Connection) -> frozenset[str]:
        return self._rooms.rooms_of(connection.id)

    def members_of(self, room: str) -> list[Connection]:
        return [
            self._connections[conn_id]
            for conn_id in self._rooms.members(room)
            if conn_id in self._connections
        ]

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ─── Delivery ─────────────────────────────────────────

    async def deliver(self, room: str, event: str, payload: Any) -> int:
        """Send ``payload`` as ``event`` to every member of ``room``.

        Each member gets one copy per call. Returns the number of
        successful sends.
        """
        return await self._send_all(self.members_of(room), event, payload, room=room)

    async def broadcast(self, event: str, payload: Any) -> int:
        """Send ``payload`` as ``event`` to every connection."""
        return await self._send_all(list(self._connections.values()), event, payload)

    async def _send_all(
        self,
        connections: list[Connection],
        event: str,
        payload: Any,
        room: Optional[str] = None,
    ) -> int:
        if not connections:
            return 0
        results = await asyncio.gather(
            *(conn.send(event, payload) for conn in connections),
            return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(
                    "gateway.send_failed",
                    conn_id=conn.id,
                    event=event,
                    room=room,
                    error=str(result),
                )
            else:
                delivered += 1
        return delivered

    # ─── Client control messages ──────────────────────────

    async def handle_client_message(self, connection: Connection, raw: str) -> None:
        """Apply one control frame from a client.

        Frames look like ``{"event": "subscribe", "data": ["chat:m1"]}``.
        Anything that is not a known control frame is dropped without a reply.
        """
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("gateway.bad_frame", conn_id=connection.id)
            return
        if not isinstance(msg, dict):
            return

        event = msg.get("event")
        if event == SUBSCRIBE:
            self.subscribe(connection, msg.get("data"))
        elif event == UNSUBSCRIBE:
            self.unsubscribe(connection, msg.get("data"))
        elif event == PING:
            await connection.send(PONG, None)


def _room_names(rooms: Any) -> Iterable[str]:
    if not isinstance(rooms, list):
        return ()
    return [room for room in rooms if isinstance(room, str) and room]
