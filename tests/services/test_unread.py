import pytest

from app.exceptions import AuthorizationException
from app.services.conversations import ConversationService
from app.services.unread import UnreadTracker


def test_new_conversation_starts_at_zero(db, alice, bob, connection):
    conversation = ConversationService(db).get_or_create(alice.id, bob.id)

    assert UnreadTracker(db).counts(conversation.id) == {alice.id: 0, bob.id: 0}


def test_increment_and_reset_are_per_user(db, alice, bob, connection):
    conversation = ConversationService(db).get_or_create(alice.id, bob.id)
    tracker = UnreadTracker(db)

    for _ in range(3):
        tracker.increment(conversation.id, bob.id)
    tracker.increment(conversation.id, alice.id)

    assert tracker.counts(conversation.id) == {alice.id: 1, bob.id: 3}

    tracker.reset(conversation.id, bob.id)
    assert tracker.counts(conversation.id) == {alice.id: 1, bob.id: 0}


def test_increment_for_non_participant_creates_nothing(db, alice, bob, carol, connection):
    conversation = ConversationService(db).get_or_create(alice.id, bob.id)
    tracker = UnreadTracker(db)

    with pytest.raises(AuthorizationException):
        tracker.increment(conversation.id, carol.id)

    assert carol.id not in tracker.counts(conversation.id)


def test_total_for_user(db, alice, bob, carol, connection):
    from app.models.connection import ACCEPTED, Connection

    db.add(Connection.between(carol.id, bob.id, status=ACCEPTED))
    db.flush()
    conversations = ConversationService(db)
    with_alice = conversations.get_or_create(alice.id, bob.id)
    with_carol = conversations.get_or_create(carol.id, bob.id)
    tracker = UnreadTracker(db)

    tracker.increment(with_alice.id, bob.id)
    tracker.increment(with_carol.id, bob.id)
    tracker.increment(with_carol.id, bob.id)

    assert tracker.total_for_user(bob.id) == 3
    assert tracker.total_for_user(alice.id) == 0
