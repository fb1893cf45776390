# medrec/api/endpoints/messages.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_current_user, get_db_session
from medrec.core.audit import audit_action
from medrec.core.exceptions import NotFoundError
from medrec.core.rbac import RequirePermission
from medrec.models.message import Message
from medrec.models.user import User
from medrec.schemas.common import ApiResponse, CountRead
from medrec.schemas.message import MessageCreate, MessageRead, MessageReply
from medrec.services import message_service

router = APIRouter(prefix="/api/messages", tags=["Messages"])


# -------------------------------------------------------------------
# Ownership contexts
# -------------------------------------------------------------------
async def own_mailbox(current_user: User = Depends(get_current_user)) -> dict:
    return {"participant_ids": [current_user.id]}


async def message_participants(message_id: UUID, session: AsyncSession = Depends(get_db_session)) -> dict:
    message = await message_service.get_message(session, message_id)
    return {
        "participant_ids": [message.sender_id, message.recipient_id],
        # read/unread flags belong to the recipient
        "owner_id": message.recipient_id,
    }


def _hidden_for(message: Message, user_id: UUID) -> bool:
    if message.sender_id == user_id and message.recipient_id != user_id:
        return message.deleted_by_sender
    return message.deleted_by_recipient


# -------------------------------------------------------------------
# MAILBOX
# -------------------------------------------------------------------
@router.get("/inbox", response_model=ApiResponse[List[MessageRead]])
async def get_inbox(
    unread_only: bool = Query(False),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "read", context=own_mailbox)),
):
    messages = await message_service.inbox(session, current_user.id, unread_only)
    return ApiResponse(data=[MessageRead.model_validate(m) for m in messages])


@router.get("/sent", response_model=ApiResponse[List[MessageRead]])
async def get_sent(
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "read", context=own_mailbox)),
):
    messages = await message_service.sent(session, current_user.id)
    return ApiResponse(data=[MessageRead.model_validate(m) for m in messages])


@router.get("/unread-count", response_model=ApiResponse[CountRead])
async def get_unread_count(
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "read", context=own_mailbox)),
):
    count = await message_service.unread_count(session, current_user.id)
    return ApiResponse(data=CountRead(count=count))


@router.get("/{message_id}", response_model=ApiResponse[MessageRead])
async def get_message(
    message_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "read", context=message_participants)),
):
    message = await message_service.get_message(session, message_id)
    if _hidden_for(message, current_user.id):
        raise NotFoundError("Message not found")
    return ApiResponse(data=MessageRead.model_validate(message))


# -------------------------------------------------------------------
# SEND / REPLY
# -------------------------------------------------------------------
@router.post("/", response_model=ApiResponse[MessageRead], status_code=status.HTTP_201_CREATED)
@audit_action("send", "message")
async def send_message(
    data: MessageCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "create")),
):
    message = await message_service.send_message(session, current_user.id, data)
    return ApiResponse(message="Message sent", data=MessageRead.model_validate(message))


@router.post(
    "/{message_id}/reply",
    response_model=ApiResponse[MessageRead],
    status_code=status.HTTP_201_CREATED,
    # Only thread participants may reply
    dependencies=[Depends(RequirePermission("message", "read", context=message_participants))],
)
@audit_action("reply", "message")
async def reply_to_message(
    message_id: UUID,
    data: MessageReply,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "create")),
):
    parent = await message_service.get_message(session, message_id)
    message = await message_service.reply_to(session, parent, current_user.id, data)
    return ApiResponse(message="Reply sent", data=MessageRead.model_validate(message))


# -------------------------------------------------------------------
# READ FLAGS (recipient only)
# -------------------------------------------------------------------
@router.patch("/{message_id}/read", response_model=ApiResponse[MessageRead])
@audit_action("mark_read", "message", id_param="message_id")
async def mark_read(
    message_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("message", "update", context=message_participants)),
):
    message = await message_service.get_message(session, message_id)
    message = await message_service.set_read(session, message, True)
    return ApiResponse(data=MessageRead.model_validate(message))


@router.patch("/{message_id}/unread", response_model=ApiResponse[MessageRead])
@audit_action("mark_unread", "message", id_param="message_id")
async def mark_unread(
    message_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("message", "update", context=message_participants)),
):
    message = await message_service.get_message(session, message_id)
    message = await message_service.set_read(session, message, False)
    return ApiResponse(data=MessageRead.model_validate(message))


# -------------------------------------------------------------------
# DELETE (per participant)
# -------------------------------------------------------------------
@router.delete("/{message_id}", response_model=ApiResponse[None])
@audit_action("delete", "message", id_param="message_id", before=Message)
async def delete_message(
    message_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("message", "delete", context=message_participants)),
):
    message = await message_service.get_message(session, message_id)
    await message_service.delete_for(session, message, current_user.id)
    return ApiResponse(message="Message deleted")
