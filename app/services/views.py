"""Typed response views, assembled after explicit user lookups."""

from collections.abc import Iterable
from dataclasses import asdict

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.connection import Connection
from app.models.conversation import Conversation
from app.models.message import CALL, Message
from app.models.user import User
from app.schemas.connection import ConnectionRead
from app.schemas.conversation import ConversationRead, ConversationSummaryRead
from app.schemas.message import (
    AttachmentRead,
    CallDetailsRead,
    MessageRead,
    ReplySnapshotRead,
)
from app.schemas.user import ParticipantRead


def load_users(db: Session, user_ids: Iterable[int]) -> dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(ids))).scalars().all()
    return {user.id: user for user in users}


def participant_view(user: User) -> ParticipantRead:
    return ParticipantRead.model_validate(user)


def connection_view(
    connection: Connection, current_user_id: int, users: dict[int, User]
) -> ConnectionRead:
    other = users[connection.other_user_id(current_user_id)]
    return ConnectionRead(
        id=connection.id,
        status=connection.status,
        requester_id=connection.requester_id,
        recipient_id=connection.recipient_id,
        user=participant_view(other),
        requested_at=connection.requested_at,
        responded_at=connection.responded_at,
    )


def connection_views(
    db: Session, connections: list[Connection], current_user_id: int
) -> list[ConnectionRead]:
    users = load_users(db, (c.other_user_id(current_user_id) for c in connections))
    return [connection_view(c, current_user_id, users) for c in connections]


def conversation_view(
    conversation: Conversation,
    current_user_id: int,
    users: dict[int, User],
    unread_counts: dict[int, int],
) -> ConversationRead:
    return ConversationRead(
        id=conversation.id,
        participants=[participant_view(users[uid]) for uid in conversation.participant_ids],
        other_user=participant_view(users[conversation.other_user_id(current_user_id)]),
        last_message=conversation.last_message,
        last_message_at=conversation.last_message_at,
        unread_counts=unread_counts,
        created_at=conversation.created_at,
    )


def conversation_summary_view(
    conversation: Conversation,
    current_user_id: int,
    users: dict[int, User],
    unread_count: int,
) -> ConversationSummaryRead:
    return ConversationSummaryRead(
        id=conversation.id,
        other_user=participant_view(users[conversation.other_user_id(current_user_id)]),
        last_message=conversation.last_message,
        last_message_at=conversation.last_message_at,
        unread_count=unread_count,
    )


def message_view(message: Message, users: dict[int, User]) -> MessageRead:
    attachment = message.attachment
    reply_to = message.reply_to
    call = None
    if message.type == CALL:
        call = CallDetailsRead(
            call_type=message.call_type or "voice",
            call_status=message.call_status or "ended",
            duration=message.call_duration or 0,
            room_id=message.call_room_id,
        )
    return MessageRead(
        id=message.id,
        conversation_id=message.conversation_id,
        sender=participant_view(users[message.sender_id]),
        receiver_id=message.receiver_id,
        body=message.body,
        type=message.type,
        attachment=AttachmentRead(**asdict(attachment)) if attachment else None,
        reply_to=ReplySnapshotRead(**asdict(reply_to)) if reply_to else None,
        call=call,
        is_read=message.is_read,
        read_at=message.read_at,
        created_at=message.created_at,
    )


def message_views(db: Session, messages: list[Message]) -> list[MessageRead]:
    users = load_users(db, (m.sender_id for m in messages))
    return [message_view(m, users) for m in messages]
