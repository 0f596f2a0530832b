"""Pydantic schemas for chat messages.

Field names follow the client's camelCase wire format.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatMessageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: str = Field(..., alias="moduleId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    user_name: str = Field(..., alias="userName", min_length=1, max_length=100)
    content: str = Field(..., min_length=1)


class ChatMessageRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    module_id: str = Field(..., serialization_alias="moduleId")
    user_id: str = Field(..., serialization_alias="userId")
    user_name: str = Field(..., serialization_alias="userName")
    content: str
    timestamp: datetime
