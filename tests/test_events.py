"""Typed event parsing and routing tests."""

import json

import pytest

from managemate.events.schemas import (
    ChatMessageEvent,
    ConflictEvent,
    EventParseError,
    NotificationEvent,
    Route,
    parse_event,
)
from managemate.events.types import chat_room, user_room


def test_room_names():
    assert chat_room("m1") == "chat:m1"
    assert user_room("u1") == "user:u1"


def test_chat_routes_to_module_room():
    event = parse_event("chat", json.dumps({"moduleId": "m1", "text": "hi"}))
    assert isinstance(event, ChatMessageEvent)
    assert event.route() == Route("chat-message", "chat:m1")


def test_conflict_routes_to_user_room():
    event = parse_event("conflicts", json.dumps({"userId": "u1", "taskId": "t1"}))
    assert isinstance(event, ConflictEvent)
    assert event.route() == Route("task-conflict", "user:u1")


def test_notification_is_broadcast():
    event = parse_event("notifications", json.dumps({"recipientId": "u1", "message": "m"}))
    assert isinstance(event, NotificationEvent)
    assert event.route() == Route("notification", None)


def test_payload_is_what_was_published():
    published = {
        "moduleId": "m1",
        "userName": "Ana",
        "content": "hi",
        "timestamp": "2026-01-05T09:30:00.000Z",
        "attachments": [{"name": "plan.pdf", "size": 1024}],
        "edited": False,
    }
    event = parse_event("chat", json.dumps(published))
    assert event.payload() == published


def test_numeric_ids_are_kept():
    event = parse_event("conflicts", json.dumps({"userId": 7, "taskIds": [1, 2]}))
    assert event.room() == "user:7"
    assert event.payload() == {"userId": 7, "taskIds": [1, 2]}


@pytest.mark.parametrize(
    "channel, raw",
    [
        ("chat", "not json"),
        ("chat", json.dumps({"text": "no module"})),
        ("chat", json.dumps(["moduleId", "m1"])),
        ("conflicts", json.dumps({"taskId": "t1"})),
        ("notifications", "{"),
        ("presence", json.dumps({"userId": "u1"})),
    ],
)
def test_bad_messages_raise_parse_error(channel, raw):
    with pytest.raises(EventParseError) as exc:
        parse_event(channel, raw)
    assert exc.value.channel == channel


@pytest.mark.parametrize(
    "published",
    [
        {"message": 42},
        {"type": 7, "recipientId": "u1"},
        {"isRead": "yes"},
        {"recipientId": {"$oid": "abc"}},
        {"isRead": "true", "id": 5.0},
        ["a", "b"],
        "hello",
        None,
    ],
)
def test_any_notification_payload_passes_through_unchanged(published):
    event = parse_event("notifications", json.dumps(published))
    assert event.route() == Route("notification", None)
    assert event.payload() == published
    assert type(event.payload()) is type(published)


def test_float_ids_are_not_coerced():
    event = parse_event("chat", json.dumps({"moduleId": "m1", "id": 5.0, "edited": "false"}))
    assert event.payload()["id"] == 5.0
    assert isinstance(event.payload()["id"], float)
    assert event.payload()["edited"] == "false"


@pytest.mark.parametrize("module_id", [True, 1.5, None, {"id": "m1"}])
def test_routing_key_must_be_string_or_int(module_id):
    with pytest.raises(EventParseError):
        parse_event("chat", json.dumps({"moduleId": module_id}))


def test_routing_key_named_like_a_payload_field_is_still_forwarded():
    published = {"userId": "u1", "data": {"nested": True}, "_data": 1}
    event = parse_event("conflicts", json.dumps(published))
    assert event.room() == "user:u1"
    assert event.payload() == published
