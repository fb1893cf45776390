# medrec/services/message_service.py

import uuid
from typing import List

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import BadRequestError, NotFoundError
from medrec.models.message import Message
from medrec.models.user import utc_now
from medrec.schemas.message import MessageCreate, MessageReply
from medrec.services.user_service import get_user_by_id


def _visible_to(message: Message, user_id: uuid.UUID) -> bool:
    if message.sender_id == user_id and not message.deleted_by_sender:
        return True
    if message.recipient_id == user_id and not message.deleted_by_recipient:
        return True
    return False


async def get_message(session: AsyncSession, message_id: uuid.UUID) -> Message:
    message = await session.get(Message, message_id)
    if not message:
        raise NotFoundError("Message not found")
    return message


async def inbox(session: AsyncSession, user_id: uuid.UUID, unread_only: bool = False) -> List[Message]:
    query = (
        select(Message)
        .where(Message.recipient_id == user_id, Message.deleted_by_recipient == False)  # noqa: E712
        .order_by(Message.created_at.desc())
    )
    if unread_only:
        query = query.where(Message.is_read == False)  # noqa: E712

    result = await session.execute(query)
    return result.scalars().all()


async def sent(session: AsyncSession, user_id: uuid.UUID) -> List[Message]:
    result = await session.execute(
        select(Message)
        .where(Message.sender_id == user_id, Message.deleted_by_sender == False)  # noqa: E712
        .order_by(Message.created_at.desc())
    )
    return result.scalars().all()


async def unread_count(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Message)
        .where(
            Message.recipient_id == user_id,
            Message.is_read == False,  # noqa: E712
            Message.deleted_by_recipient == False,  # noqa: E712
        )
    )
    return result.scalar_one()


async def send_message(session: AsyncSession, sender_id: uuid.UUID, data: MessageCreate) -> Message:
    if data.recipient_id == sender_id:
        raise BadRequestError("Cannot send a message to yourself")

    recipient = await get_user_by_id(session, data.recipient_id)
    if not recipient or not recipient.is_active:
        raise NotFoundError("Recipient not found")

    message = Message(
        sender_id=sender_id,
        recipient_id=recipient.id,
        subject=data.subject,
        body=data.body,
    )
    session.add(message)
    await session.commit()
    await session.refresh(message)
    return message


async def reply_to(session: AsyncSession, parent: Message, sender_id: uuid.UUID, data: MessageReply) -> Message:
    # Reply goes to the other participant of the thread
    recipient_id = parent.recipient_id if parent.sender_id == sender_id else parent.sender_id
    subject = parent.subject if parent.subject.startswith("Re: ") else f"Re: {parent.subject}"

    message = Message(
        sender_id=sender_id,
        recipient_id=recipient_id,
        parent_id=parent.id,
        subject=subject,
        body=data.body,
    )
    session.add(message)
    await session.commit()
    await session.refresh(message)
    return message


async def set_read(session: AsyncSession, message: Message, read: bool) -> Message:
    message.is_read = read
    message.read_at = utc_now() if read else None
    session.add(message)
    await session.commit()
    await session.refresh(message)
    return message


async def delete_for(session: AsyncSession, message: Message, user_id: uuid.UUID) -> None:
    """Hide the message for one participant; drop the row once both sides deleted it."""
    if not _visible_to(message, user_id):
        raise NotFoundError("Message not found")

    if message.sender_id == user_id:
        message.deleted_by_sender = True
    if message.recipient_id == user_id:
        message.deleted_by_recipient = True

    if message.deleted_by_sender and message.deleted_by_recipient:
        await session.delete(message)
    else:
        session.add(message)
    await session.commit()
