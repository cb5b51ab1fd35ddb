from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.types import UTCDateTime, utcnow

TEXT = "text"
IMAGE = "image"
FILE = "file"
CALL = "call"

MESSAGE_TYPES = (TEXT, IMAGE, FILE, CALL)


@dataclass(frozen=True)
class ReplySnapshot:
    """Copy of a replied-to message taken at send time.

    Not a reference: it stays readable after the original is soft-deleted.
    """

    message_id: int
    text: str
    sender_name: str
    type: str


@dataclass(frozen=True)
class Attachment:
    url: str
    name: str
    size: int
    mime: str


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"))
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    receiver_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    body: Mapped[str] = mapped_column(Text, default="")
    type: Mapped[str] = mapped_column(String(10), default=TEXT)

    attachment_url: Mapped[str | None] = mapped_column(String(2048), default=None)
    attachment_name: Mapped[str | None] = mapped_column(String(255), default=None)
    attachment_size: Mapped[int | None] = mapped_column(Integer, default=None)
    attachment_mime: Mapped[str | None] = mapped_column(String(127), default=None)

    # Snapshot columns; reply_to_message_id is deliberately not a foreign key.
    reply_to_message_id: Mapped[int | None] = mapped_column(Integer, default=None)
    reply_to_text: Mapped[str | None] = mapped_column(Text, default=None)
    reply_to_sender_name: Mapped[str | None] = mapped_column(String(255), default=None)
    reply_to_type: Mapped[str | None] = mapped_column(String(10), default=None)

    call_type: Mapped[str | None] = mapped_column(String(10), default=None)
    call_status: Mapped[str | None] = mapped_column(String(20), default=None)
    call_duration: Mapped[int | None] = mapped_column(Integer, default=None)
    call_room_id: Mapped[str | None] = mapped_column(String(255), default=None)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=None)
    deleted_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    @property
    def reply_to(self) -> ReplySnapshot | None:
        if self.reply_to_message_id is None:
            return None
        return ReplySnapshot(
            message_id=self.reply_to_message_id,
            text=self.reply_to_text or "",
            sender_name=self.reply_to_sender_name or "",
            type=self.reply_to_type or TEXT,
        )

    @reply_to.setter
    def reply_to(self, snapshot: ReplySnapshot | None) -> None:
        if snapshot is None:
            self.reply_to_message_id = None
            self.reply_to_text = None
            self.reply_to_sender_name = None
            self.reply_to_type = None
            return
        self.reply_to_message_id = snapshot.message_id
        self.reply_to_text = snapshot.text
        self.reply_to_sender_name = snapshot.sender_name
        self.reply_to_type = snapshot.type

    @property
    def attachment(self) -> Attachment | None:
        if self.attachment_url is None:
            return None
        return Attachment(
            url=self.attachment_url,
            name=self.attachment_name or "",
            size=self.attachment_size or 0,
            mime=self.attachment_mime or "",
        )
