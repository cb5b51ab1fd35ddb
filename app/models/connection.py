from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.types import UTCDateTime, utcnow

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
CANCELLED = "cancelled"

CLOSED_STATUSES = (DECLINED, CANCELLED)


def canonical_pair(user_a_id: int, user_b_id: int) -> tuple[int, int]:
    """Order-independent key for a two-user relationship."""
    return min(user_a_id, user_b_id), max(user_a_id, user_b_id)


class Connection(Base):
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_connections_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    user_low_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    user_high_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    status: Mapped[str] = mapped_column(String(20), default=PENDING)
    requested_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)

    @classmethod
    def between(cls, requester_id: int, recipient_id: int, **kwargs) -> "Connection":
        user_low_id, user_high_id = canonical_pair(requester_id, recipient_id)
        return cls(
            requester_id=requester_id,
            recipient_id=recipient_id,
            user_low_id=user_low_id,
            user_high_id=user_high_id,
            **kwargs,
        )

    def other_user_id(self, user_id: int) -> int:
        return self.recipient_id if self.requester_id == user_id else self.requester_id
