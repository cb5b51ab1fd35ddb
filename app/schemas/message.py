from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.user import ParticipantRead


class AttachmentRead(BaseModel):
    url: str
    name: str
    size: int
    mime: str


class ReplySnapshotRead(BaseModel):
    message_id: int
    text: str
    sender_name: str
    type: str


class CallDetailsRead(BaseModel):
    call_type: str
    call_status: str
    duration: int
    room_id: str | None = None


class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender: ParticipantRead
    receiver_id: int
    body: str
    type: str
    attachment: AttachmentRead | None = None
    reply_to: ReplySnapshotRead | None = None
    call: CallDetailsRead | None = None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class MessagePage(BaseModel):
    messages: list[MessageRead]
    page: int
    limit: int
    has_more: bool


class MessageDeleteRead(BaseModel):
    id: int
    is_deleted: bool
    deleted_at: datetime | None
    last_message: str


class CallCreate(BaseModel):
    receiver_id: int
    call_type: Literal["voice", "video"]
    call_status: Literal["initiated", "connected", "missed", "declined", "ended"]
    duration: int = Field(default=0, ge=0)
    room_id: str | None = None
