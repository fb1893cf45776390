from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    recipient_id: UUID
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)


class MessageReply(BaseModel):
    body: str = Field(min_length=1)


class MessageRead(BaseModel):
    id: UUID
    sender_id: UUID
    recipient_id: UUID
    parent_id: Optional[UUID] = None
    subject: str
    body: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
