import pytest
from sqlalchemy import func, select

from app.exceptions import AuthorizationException
from app.models.conversation import Conversation, ConversationUnread
from app.services.conversations import ConversationService


def _count(db, column):
    return db.execute(select(func.count(column))).scalar_one()


def test_get_or_create_is_idempotent(db, alice, bob, connection):
    service = ConversationService(db)

    first = service.get_or_create(alice.id, bob.id)
    second = service.get_or_create(bob.id, alice.id)

    assert first.id == second.id
    assert _count(db, Conversation.id) == 1
    assert _count(db, ConversationUnread.id) == 2


def test_get_or_create_requires_connection(db, alice, carol):
    with pytest.raises(AuthorizationException):
        ConversationService(db).get_or_create(alice.id, carol.id)

    assert _count(db, Conversation.id) == 0


def test_concurrent_creation_reuses_existing_conversation(
    db, alice, bob, connection, monkeypatch
):
    """A creator whose lookup missed the other's insert gets that row back."""
    existing = ConversationService(db).get_or_create(bob.id, alice.id)

    real_find = ConversationService.find_between
    calls = []

    def stale_find(self, user_a_id, user_b_id, **kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            return None
        return real_find(self, user_a_id, user_b_id, **kwargs)

    monkeypatch.setattr(ConversationService, "find_between", stale_find)

    conversation = ConversationService(db).get_or_create(alice.id, bob.id)

    assert conversation.id == existing.id
    assert calls[-1] == {"for_update": True}
    assert _count(db, Conversation.id) == 1
    assert _count(db, ConversationUnread.id) == 2
