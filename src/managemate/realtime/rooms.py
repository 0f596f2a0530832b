"""Room membership — which connections are in which rooms.

Learn: Membership is kept in two dicts that mirror each other
(connection → rooms and room → connections) so both "who is in chat:m1"
and "what did this connection join" are O(1). Nothing is persisted:
a reconnecting client starts with no rooms and must subscribe again.

Only the gateway's own event loop touches this, so there is no locking.
"""

from collections import defaultdict


class RoomRegistry:
    """In-memory, per-process room membership."""

    def __init__(self):
        self._rooms: dict[str, set[str]] = defaultdict(set)
        self._memberships: dict[str, set[str]] = defaultdict(set)

    def add(self, conn_id: str, room: str) -> bool:
        """Join ``room``. Returns False if already a member."""
        if room in self._memberships[conn_id]:
            return False
        self._memberships[conn_id].add(room)
        self._rooms[room].add(conn_id)
        return True

    def remove(self, conn_id: str, room: str) -> bool:
        """Leave ``room``. Returns False if the connection was not a member."""
        rooms = self._memberships.get(conn_id)
        if not rooms or room not in rooms:
            return False
        rooms.discard(room)
        if not rooms:
            del self._memberships[conn_id]
        self._discard_member(room, conn_id)
        return True

    def remove_all(self, conn_id: str) -> set[str]:
        """Drop a connection from every room. Returns the rooms it left."""
        rooms = self._memberships.pop(conn_id, set())
        for room in rooms:
            self._discard_member(room, conn_id)
        return rooms

    def rooms_of(self, conn_id: str) -> frozenset[str]:
        return frozenset(self._memberships.get(conn_id, ()))

    def members(self, room: str) -> frozenset[str]:
        return frozenset(self._rooms.get(room, ()))

    def _discard_member(self, room: str, conn_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._rooms[room]
