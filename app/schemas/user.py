from pydantic import BaseModel


class ParticipantRead(BaseModel):
    id: int
    name: str
    email: str
    role: str
    avatar_url: str | None = None

    model_config = {"from_attributes": True}
