from datetime import datetime
from typing import Literal

from pydantic import BaseModel, model_validator

from app.schemas.user import ParticipantRead


class ConnectionCreate(BaseModel):
    recipient_id: int | None = None
    email: str | None = None

    @model_validator(mode="after")
    def require_recipient_id_or_email(self) -> "ConnectionCreate":
        if self.recipient_id is None and self.email is None:
            raise ValueError("Either recipient_id or email is required.")
        return self


class ConnectionRespond(BaseModel):
    decision: Literal["accept", "decline"]


class ConnectionRead(BaseModel):
    id: int
    status: str
    requester_id: int
    recipient_id: int
    user: ParticipantRead
    requested_at: datetime
    responded_at: datetime | None


class ConnectionStatusRead(BaseModel):
    user_id: int
    status: Literal[
        "not_connected",
        "pending_sent",
        "pending_received",
        "connected",
        "declined",
        "cancelled",
    ]
    connection_id: int | None = None
