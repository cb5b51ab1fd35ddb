from fastapi import APIRouter, Query

from app.config import settings
from app.dependencies import CurrentUser, DbSession
from app.schemas.conversation import (
    ConversationRead,
    ConversationSummaryRead,
    UnreadTotalRead,
)
from app.schemas.message import MessagePage
from app.services.conversations import ConversationService
from app.services.messages import MessageService
from app.services.unread import UnreadTracker
from app.services.views import (
    conversation_summary_view,
    conversation_view,
    load_users,
    message_views,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _conversation_read(db, conversation, user) -> ConversationRead:
    users = load_users(db, conversation.participant_ids)
    counts = UnreadTracker(db).counts(conversation.id)
    return conversation_view(conversation, user.id, users, counts)


@router.get("", response_model=list[ConversationSummaryRead])
def list_conversations(user: CurrentUser, db: DbSession) -> list[ConversationSummaryRead]:
    conversations = ConversationService(db).list_for_user(user.id)
    users = load_users(db, (c.other_user_id(user.id) for c in conversations))
    counts = UnreadTracker(db).counts_for_user(user.id, [c.id for c in conversations])
    return [
        conversation_summary_view(c, user.id, users, counts.get(c.id, 0))
        for c in conversations
    ]


@router.get("/unread-count", response_model=UnreadTotalRead)
def unread_total(user: CurrentUser, db: DbSession) -> UnreadTotalRead:
    return UnreadTotalRead(unread_count=UnreadTracker(db).total_for_user(user.id))


@router.get("/{other_user_id}", response_model=ConversationRead)
def get_conversation(other_user_id: int, user: CurrentUser, db: DbSession) -> ConversationRead:
    """Get (or lazily create) the conversation with a connected user.

    Raises:
        AuthorizationException: 403 if the users are not connected.
    """
    conversation = ConversationService(db).get_or_create(user.id, other_user_id)
    db.commit()
    return _conversation_read(db, conversation, user)


@router.get("/{other_user_id}/messages", response_model=MessagePage)
def list_messages(
    other_user_id: int,
    user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(
        default=settings.messages_default_page_size,
        ge=1,
        le=settings.messages_max_page_size,
    ),
) -> MessagePage:
    """Fetch a page of messages, oldest first. Marks them read for the caller."""
    service = MessageService(db)
    conversation = service.conversations.get_or_create(user.id, other_user_id)
    messages, has_more = service.fetch(conversation, user.id, page, limit)
    db.commit()
    return MessagePage(
        messages=message_views(db, messages),
        page=page,
        limit=limit,
        has_more=has_more,
    )


@router.post("/{other_user_id}/read", response_model=ConversationRead)
def mark_conversation_read(
    other_user_id: int, user: CurrentUser, db: DbSession
) -> ConversationRead:
    service = ConversationService(db)
    conversation = service.get_or_create(user.id, other_user_id)
    service.mark_read(conversation, user.id)
    db.commit()
    return _conversation_read(db, conversation, user)
