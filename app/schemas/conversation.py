from datetime import datetime

from pydantic import BaseModel

from app.schemas.user import ParticipantRead


class ConversationRead(BaseModel):
    id: int
    participants: list[ParticipantRead]
    other_user: ParticipantRead
    last_message: str
    last_message_at: datetime
    unread_counts: dict[int, int]
    created_at: datetime


class ConversationSummaryRead(BaseModel):
    id: int
    other_user: ParticipantRead
    last_message: str
    last_message_at: datetime
    unread_count: int


class UnreadTotalRead(BaseModel):
    unread_count: int
