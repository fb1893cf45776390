# medrec/models/message.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, Text
from datetime import datetime
from typing import Optional
import uuid

from medrec.models.user import utc_now


class Message(SQLModel, table=True):
    __tablename__ = "messages"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    sender_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    recipient_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    parent_id: Optional[uuid.UUID] = Field(default=None, foreign_key="messages.id")

    subject: str = Field(nullable=False)
    body: str = Field(sa_column=Column(Text, nullable=False))

    is_read: bool = Field(default=False)
    read_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    # Each side deletes its own copy; the row stays until both have
    deleted_by_sender: bool = Field(default=False)
    deleted_by_recipient: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
