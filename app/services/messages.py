"""
Message log for direct conversations.

Messages are append-only. Deleting one only sets the soft-delete flags; the
content stays so reply snapshots elsewhere remain meaningful. Every write
re-derives the conversation preview and bumps the receiver's unread counter.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.exceptions import (
    AuthorizationException,
    DomainException,
    NotFoundException,
    SelfReferenceException,
    StorageException,
    ValidationException,
)
from app.models.conversation import Conversation
from app.models.message import CALL, FILE, IMAGE, TEXT, Message, ReplySnapshot
from app.models.types import utcnow
from app.models.user import User
from app.services.attachments import AttachmentStore, StagedAttachment
from app.services.authorization import require_can_message
from app.services.conversations import ConversationService
from app.services.unread import UnreadTracker

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(
        self,
        db: Session,
        attachments: AttachmentStore | None = None,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.settings = settings
        self.attachments = attachments or AttachmentStore(settings=settings)
        self.conversations = ConversationService(db, settings)
        self.unread = UnreadTracker(db)

    def send(
        self,
        sender: User,
        receiver_id: int,
        body: str | None = None,
        attachment: StagedAttachment | None = None,
        reply_to_id: int | None = None,
    ) -> Message:
        """Append a message from ``sender`` to ``receiver_id`` and commit it.

        A staged attachment is published only once the message row is written,
        and is removed again if the commit does not go through, whatever the
        reason.

        Raises:
            SelfReferenceException: sender and receiver are the same user.
            ValidationException: empty message, body too long, or a rejected
                attachment or reply target.
            AuthorizationException: the users are not connected.
            NotFoundException: the reply target does not exist.
            StorageException: the message or its attachment could not be
                persisted.
        """
        try:
            message = self._send(sender, receiver_id, body, attachment, reply_to_id)
            if attachment is not None:
                self.attachments.publish(attachment)
            self.db.commit()
        except (DomainException, SQLAlchemyError) as exc:
            if attachment is not None:
                self.attachments.discard(attachment)
            if isinstance(exc, SQLAlchemyError):
                logger.exception(
                    "Failed to persist message from %s to %s", sender.id, receiver_id
                )
                self.db.rollback()
                raise StorageException() from exc
            raise
        return message

    def _send(
        self,
        sender: User,
        receiver_id: int,
        body: str | None,
        attachment: StagedAttachment | None,
        reply_to_id: int | None,
    ) -> Message:
        if sender.id == receiver_id:
            raise SelfReferenceException("Cannot send a message to yourself.")
        require_can_message(self.db, sender.id, receiver_id)

        body = (body or "").strip()
        if not body and attachment is None:
            raise ValidationException(
                "A message needs a body or an attachment.", code="empty_message"
            )
        if len(body) > self.settings.message_body_max_length:
            raise ValidationException(
                f"Message body exceeds {self.settings.message_body_max_length} characters.",
                code="body_too_long",
            )
        if attachment is not None:
            self.attachments.validate(attachment)

        conversation = self.conversations.get_or_create(sender.id, receiver_id)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            receiver_id=receiver_id,
            body=body,
            type=TEXT,
        )
        if reply_to_id is not None:
            message.reply_to = self._reply_snapshot(conversation, reply_to_id)
        if attachment is not None:
            message.type = IMAGE if attachment.is_image else FILE
            message.attachment_url = attachment.url
            message.attachment_name = attachment.name
            message.attachment_size = attachment.size
            message.attachment_mime = attachment.mime

        return self._append(conversation, message)

    def record_call(
        self,
        sender: User,
        receiver_id: int,
        call_type: str,
        call_status: str,
        duration: int = 0,
        room_id: str | None = None,
    ) -> Message:
        """Append a call-log entry to the pair's conversation."""
        if sender.id == receiver_id:
            raise SelfReferenceException("Cannot call yourself.")
        conversation = self.conversations.get_or_create(sender.id, receiver_id)
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            receiver_id=receiver_id,
            body="",
            type=CALL,
            call_type=call_type,
            call_status=call_status,
            call_duration=duration,
            call_room_id=room_id,
        )
        return self._append(conversation, message)

    def _append(self, conversation: Conversation, message: Message) -> Message:
        self.db.add(message)
        self.db.flush()
        self.unread.increment(conversation.id, message.receiver_id)
        self.conversations.recompute_last_message(conversation)
        logger.info(
            "Message %s (%s) sent in conversation %s",
            message.id,
            message.type,
            conversation.id,
        )
        return message

    def _reply_snapshot(self, conversation: Conversation, reply_to_id: int) -> ReplySnapshot:
        target = self.db.get(Message, reply_to_id)
        if target is None or target.is_deleted:
            raise NotFoundException("The message being replied to was not found.")
        if target.conversation_id != conversation.id:
            raise ValidationException(
                "Replies must reference a message in the same conversation.",
                code="reply_outside_conversation",
            )
        target_sender = self.db.get(User, target.sender_id)
        text = target.body
        if not text and target.type in (IMAGE, FILE):
            text = target.attachment_name or ""
        elif not text and target.type == CALL:
            text = f"{(target.call_type or 'voice').capitalize()} call"
        return ReplySnapshot(
            message_id=target.id,
            text=text,
            sender_name=target_sender.name if target_sender else "",
            type=target.type,
        )

    def fetch(
        self,
        conversation: Conversation,
        requester_id: int,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[Message], bool]:
        """Return one page of visible messages in chronological order.

        Page 1 holds the newest messages. Fetching is also a read receipt:
        everything addressed to the requester is marked read and their unread
        counter is reset.
        """
        if not conversation.has_participant(requester_id):
            raise AuthorizationException(
                "You are not a participant in this conversation.",
                code="not_participant",
            )
        limit = limit or self.settings.messages_default_page_size
        if page < 1 or not 1 <= limit <= self.settings.messages_max_page_size:
            raise ValidationException("Invalid page or limit.", code="invalid_pagination")

        self.conversations.mark_read(conversation, requester_id)

        rows = self.db.execute(
            select(Message)
            .where(
                Message.conversation_id == conversation.id,
                Message.is_deleted.is_(False),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit + 1)
        ).scalars().all()

        has_more = len(rows) > limit
        messages = list(reversed(rows[:limit]))
        return messages, has_more

    def soft_delete(self, message_id: int, requester_id: int) -> tuple[Message, Conversation]:
        message = self.db.get(Message, message_id)
        if message is None or message.is_deleted:
            raise NotFoundException("Message not found.")
        if requester_id not in (message.sender_id, message.receiver_id):
            raise AuthorizationException(
                "Only the sender or receiver can delete this message."
            )

        message.is_deleted = True
        message.deleted_at = utcnow()
        message.deleted_by = requester_id
        self.db.flush()

        conversation = self.db.get(Conversation, message.conversation_id)
        self.conversations.recompute_last_message(conversation)
        logger.info("Message %s deleted by user %s", message.id, requester_id)
        return message, conversation
