from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.connection import canonical_pair
from app.models.types import UTCDateTime, utcnow

# Preview shown when a conversation has no visible messages.
EMPTY_PREVIEW = ""


class Conversation(Base):
    """One conversation per connected pair of users."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_low_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    user_high_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    last_message: Mapped[str] = mapped_column(String(255), default=EMPTY_PREVIEW)
    last_message_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    @classmethod
    def between(cls, user_a_id: int, user_b_id: int, **kwargs) -> "Conversation":
        user_low_id, user_high_id = canonical_pair(user_a_id, user_b_id)
        return cls(user_low_id=user_low_id, user_high_id=user_high_id, **kwargs)

    @property
    def participant_ids(self) -> tuple[int, int]:
        return self.user_low_id, self.user_high_id

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_user_id(self, user_id: int) -> int:
        return self.user_high_id if self.user_low_id == user_id else self.user_low_id


class ConversationUnread(Base):
    """Per-participant unread counter, updated with atomic UPDATE statements."""

    __tablename__ = "conversation_unread_counts"
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "user_id", name="uq_conversation_unread_counts_user"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    unread_count: Mapped[int] = mapped_column(default=0)
