"""Per-conversation, per-participant unread counters.

Counters live in ``conversation_unread_counts`` and are only ever changed
with single UPDATE statements, so concurrent senders never lose increments.
"""

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.exceptions import AuthorizationException
from app.models.conversation import ConversationUnread


class UnreadTracker:
    def __init__(self, db: Session):
        self.db = db

    def increment(self, conversation_id: int, user_id: int) -> None:
        result = self.db.execute(
            update(ConversationUnread)
            .where(
                ConversationUnread.conversation_id == conversation_id,
                ConversationUnread.user_id == user_id,
            )
            .values(unread_count=ConversationUnread.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AuthorizationException(
                "User is not a participant in this conversation.",
                code="not_participant",
            )

    def reset(self, conversation_id: int, user_id: int) -> None:
        result = self.db.execute(
            update(ConversationUnread)
            .where(
                ConversationUnread.conversation_id == conversation_id,
                ConversationUnread.user_id == user_id,
            )
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AuthorizationException(
                "User is not a participant in this conversation.",
                code="not_participant",
            )

    def counts(self, conversation_id: int) -> dict[int, int]:
        rows = self.db.execute(
            select(ConversationUnread.user_id, ConversationUnread.unread_count).where(
                ConversationUnread.conversation_id == conversation_id
            )
        ).all()
        return {user_id: unread_count for user_id, unread_count in rows}

    def counts_for_user(self, user_id: int, conversation_ids: list[int]) -> dict[int, int]:
        """Map conversation id to this user's unread count."""
        if not conversation_ids:
            return {}
        rows = self.db.execute(
            select(
                ConversationUnread.conversation_id, ConversationUnread.unread_count
            ).where(
                ConversationUnread.user_id == user_id,
                ConversationUnread.conversation_id.in_(conversation_ids),
            )
        ).all()
        return {conversation_id: unread_count for conversation_id, unread_count in rows}

    def total_for_user(self, user_id: int) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(ConversationUnread.unread_count), 0)).where(
                ConversationUnread.user_id == user_id
            )
        ).scalar_one()
        return int(total)
