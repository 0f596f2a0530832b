"""Room registry tests — membership stays consistent in both directions."""

from managemate.realtime.rooms import RoomRegistry


def test_add_is_idempotent():
    rooms = RoomRegistry()
    assert rooms.add("c1", "chat:m1") is True
    assert rooms.add("c1", "chat:m1") is False
    assert rooms.members("chat:m1") == {"c1"}
    assert rooms.rooms_of("c1") == {"chat:m1"}


def test_remove_unknown_is_noop():
    rooms = RoomRegistry()
    assert rooms.remove("c1", "chat:m1") is False
    rooms.add("c1", "chat:m1")
    assert rooms.remove("c1", "user:u1") is False
    assert rooms.rooms_of("c1") == {"chat:m1"}


def test_empty_rooms_are_dropped():
    rooms = RoomRegistry()
    rooms.add("c1", "chat:m1")
    rooms.add("c2", "chat:m1")
    rooms.remove("c1", "chat:m1")
    assert list(rooms._rooms) == ["chat:m1"]
    rooms.remove("c2", "chat:m1")
    assert rooms._rooms == {}


def test_remove_all_returns_rooms_left():
    rooms = RoomRegistry()
    rooms.add("c1", "chat:m1")
    rooms.add("c1", "user:u1")
    rooms.add("c2", "user:u1")

    assert rooms.remove_all("c1") == {"chat:m1", "user:u1"}
    assert rooms.rooms_of("c1") == frozenset()
    assert rooms.members("user:u1") == {"c2"}
    assert rooms.members("chat:m1") == frozenset()
