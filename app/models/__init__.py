from app.models.user import User
from app.models.connection import Connection
from app.models.conversation import Conversation, ConversationUnread
from app.models.message import Message

__all__ = ["User", "Connection", "Conversation", "ConversationUnread", "Message"]
