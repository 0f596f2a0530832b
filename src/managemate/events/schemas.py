"""Typed bus events — one model per broker channel.

Learn: Every message that arrives from Redis is decoded once, then checked
against the model for its channel. The model declares only the field its
route depends on (moduleId for chat, userId for conflicts); a message that
is not JSON or lacks that field becomes an EventParseError instead of a
KeyError deep inside the delivery code.

Everything else in the message is the producer's business. The decoded
value is kept as-is and ``event.payload()`` returns it untouched, so clients
receive exactly what was published: no coercion, no dropped fields. The
notifications channel has no routing key and accepts any JSON value.
"""

import json
from typing import Any, ClassVar, NamedTuple, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StrictInt,
    StrictStr,
    ValidationError,
)

from managemate.events.types import (
    CHAT_CHANNEL,
    CHAT_MESSAGE_EVENT,
    CONFLICTS_CHANNEL,
    NOTIFICATION_EVENT,
    NOTIFICATIONS_CHANNEL,
    TASK_CONFLICT_EVENT,
    chat_room,
    user_room,
)

# Room keys: strings or integers, never bools or floats
Id = Union[StrictStr, StrictInt]


class EventParseError(ValueError):
    """A bus message could not be decoded into an event for its channel."""

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"Invalid message on '{channel}': {reason}")


class Route(NamedTuple):
    """Where an event goes. ``room=None`` means every connection."""

    event_name: str
    room: Optional[str]


class BaseEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    channel: ClassVar[str]
    event_name: ClassVar[str]

    _data: Any = PrivateAttr(default=None)

    @classmethod
    def from_data(cls, data: Any) -> "BaseEvent":
        """Build the event from a decoded message, validating its routing keys.

        Raises pydantic.ValidationError when a routing key is missing or
        has the wrong type.
        """
        event = cls.model_validate(data if isinstance(data, dict) else {})
        event._data = data
        return event

    def room(self) -> Optional[str]:
        return None

    def route(self) -> Route:
        return Route(self.event_name, self.room())

    def payload(self) -> Any:
        """The message exactly as the producer published it."""
        return self._data


class NotificationEvent(BaseEvent):
    """A stored notification, broadcast to every connection.

    The receiving client filters on recipientId. The usual shape is
    {id, recipientId, message, type, link, isRead, createdAt} but nothing
    here depends on it.
    """

    channel: ClassVar[str] = NOTIFICATIONS_CHANNEL
    event_name: ClassVar[str] = NOTIFICATION_EVENT


class ChatMessageEvent(BaseEvent):
    channel: ClassVar[str] = CHAT_CHANNEL
    event_name: ClassVar[str] = CHAT_MESSAGE_EVENT

    module_id: Id = Field(..., alias="moduleId")

    def room(self) -> str:
        return chat_room(self.module_id)


class ConflictEvent(BaseEvent):
    channel: ClassVar[str] = CONFLICTS_CHANNEL
    event_name: ClassVar[str] = TASK_CONFLICT_EVENT

    user_id: Id = Field(..., alias="userId")

    def room(self) -> str:
        return user_room(self.user_id)


BusEvent = Union[NotificationEvent, ChatMessageEvent, ConflictEvent]

EVENT_MODELS: dict[str, type[BaseEvent]] = {
    NOTIFICATIONS_CHANNEL: NotificationEvent,
    CHAT_CHANNEL: ChatMessageEvent,
    CONFLICTS_CHANNEL: ConflictEvent,
}


def parse_event(channel: str, raw: Union[str, bytes]) -> BusEvent:
    """Decode a raw bus message into the typed event for ``channel``."""
    model = EVENT_MODELS.get(channel)
    if model is None:
        raise EventParseError(channel, "unknown channel")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise EventParseError(channel, f"invalid JSON: {e}") from e
    try:
        return model.from_data(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        raise EventParseError(channel, first.get("msg", str(e))) from e
