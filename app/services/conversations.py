"""Conversation store: one conversation per connected pair.

``last_message`` is a denormalized preview. It is always re-derived from the
latest non-deleted message instead of being patched incrementally.
"""

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.exceptions import AuthorizationException, NotFoundException
from app.models.connection import canonical_pair
from app.models.conversation import EMPTY_PREVIEW, Conversation, ConversationUnread
from app.models.message import CALL, FILE, IMAGE, Message
from app.models.types import utcnow
from app.services.authorization import require_can_message
from app.services.unread import UnreadTracker

logger = logging.getLogger(__name__)


def format_duration(seconds: int) -> str:
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}:{seconds:02d}"


def preview_for(message: Message, max_length: int) -> str:
    """Human-readable one-line preview of a message."""
    if message.type == IMAGE:
        return f"Sent an image: {message.attachment_name}"
    if message.type == FILE:
        return f"Sent a file: {message.attachment_name}"
    if message.type == CALL:
        kind = "Video" if message.call_type == "video" else "Voice"
        if message.call_status == "missed":
            return f"Missed {kind.lower()} call"
        if message.call_status == "declined":
            return f"{kind} call declined"
        if message.call_status == "ended" and message.call_duration:
            return f"{kind} call ended ({format_duration(message.call_duration)})"
        return f"{kind} call {message.call_status}"

    body = " ".join(message.body.split())
    if len(body) > max_length:
        return body[: max_length - 3].rstrip() + "..."
    return body


class ConversationService:
    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.settings = settings
        self.unread = UnreadTracker(db)

    def find_between(
        self, user_a_id: int, user_b_id: int, for_update: bool = False
    ) -> Conversation | None:
        """Look up the pair's conversation.

        ``for_update`` takes a locking read, which sees the latest committed
        row instead of the transaction's snapshot.
        """
        user_low_id, user_high_id = canonical_pair(user_a_id, user_b_id)
        stmt = select(Conversation).where(
            Conversation.user_low_id == user_low_id,
            Conversation.user_high_id == user_high_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_for_participant(self, conversation_id: int, user_id: int) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundException("Conversation not found.")
        if not conversation.has_participant(user_id):
            raise AuthorizationException(
                "You are not a participant in this conversation.",
                code="not_participant",
            )
        return conversation

    def get_or_create(self, user_id: int, other_user_id: int) -> Conversation:
        """Return the pair's conversation, creating it on first access.

        Both users must share an accepted connection. Creation is idempotent:
        a concurrent creator that loses the unique-constraint race re-reads
        the winner's row.
        """
        require_can_message(self.db, user_id, other_user_id)

        conversation = self.find_between(user_id, other_user_id)
        if conversation is not None:
            return conversation

        now = utcnow()
        conversation = Conversation.between(
            user_id,
            other_user_id,
            last_message=EMPTY_PREVIEW,
            last_message_at=now,
            created_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(conversation)
                self.db.flush()
                self.db.add_all(
                    [
                        ConversationUnread(
                            conversation_id=conversation.id,
                            user_id=participant_id,
                            unread_count=0,
                        )
                        for participant_id in conversation.participant_ids
                    ]
                )
        except IntegrityError:
            logger.warning(
                "Conversation for users %s and %s created concurrently; reusing it",
                user_id,
                other_user_id,
            )
            conversation = self.find_between(user_id, other_user_id, for_update=True)
            if conversation is None:
                raise
            return conversation

        logger.info(
            "Conversation %s created for users %s and %s",
            conversation.id,
            user_id,
            other_user_id,
        )
        return conversation

    def latest_visible_message(self, conversation_id: int) -> Message | None:
        return self.db.execute(
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.is_deleted.is_(False),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def recompute_last_message(self, conversation: Conversation) -> Conversation:
        latest = self.latest_visible_message(conversation.id)
        if latest is None:
            conversation.last_message = EMPTY_PREVIEW
            conversation.last_message_at = conversation.created_at
        else:
            conversation.last_message = preview_for(
                latest, self.settings.preview_max_length
            )
            conversation.last_message_at = latest.created_at
        self.db.flush()
        return conversation

    def mark_read(self, conversation: Conversation, user_id: int) -> int:
        """Mark every message addressed to ``user_id`` read and reset their counter.

        Returns the number of messages that changed state.
        """
        if not conversation.has_participant(user_id):
            raise AuthorizationException(
                "You are not a participant in this conversation.",
                code="not_participant",
            )
        result = self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation.id,
                Message.receiver_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        self.unread.reset(conversation.id, user_id)
        return result.rowcount

    def list_for_user(self, user_id: int) -> list[Conversation]:
        return list(
            self.db.execute(
                select(Conversation)
                .where(
                    or_(
                        Conversation.user_low_id == user_id,
                        Conversation.user_high_id == user_id,
                    )
                )
                .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            ).scalars().all()
        )
