"""Pydantic schemas for notifications."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from managemate.events.types import NOTIFICATION_TYPES

_TYPE_PATTERN = "^(" + "|".join(NOTIFICATION_TYPES) + ")$"


class NotificationCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_id: str = Field(..., alias="recipientId", min_length=1)
    message: str = Field(..., min_length=1)
    type: str = Field(..., pattern=_TYPE_PATTERN)
    link: str = Field(default="/dashboard")


class MarkAllRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_id: str = Field(..., alias="recipientId", min_length=1)


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str = Field(..., serialization_alias="recipientId")
    message: str
    type: str
    link: str
    is_read: bool = Field(..., serialization_alias="isRead")
    created_at: datetime = Field(..., serialization_alias="createdAt")
