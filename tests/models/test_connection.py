import sqlalchemy

import pytest

from app.models.connection import Connection, canonical_pair
from app.models.user import User


def test_canonical_pair_is_order_independent():
    assert canonical_pair(7, 3) == (3, 7)
    assert canonical_pair(3, 7) == (3, 7)


def test_create_connection(db):
    user_a = User(email="usera@test.com", name="User A")
    user_b = User(email="userb@test.com", name="User B")
    db.add_all([user_a, user_b])
    db.flush()

    connection = Connection.between(user_b.id, user_a.id)
    db.add(connection)
    db.flush()

    assert connection.id is not None
    assert connection.requester_id == user_b.id
    assert connection.recipient_id == user_a.id
    assert connection.user_low_id == min(user_a.id, user_b.id)
    assert connection.user_high_id == max(user_a.id, user_b.id)
    assert connection.status == "pending"
    assert connection.requested_at is not None
    assert connection.responded_at is None


def test_other_user_id(db):
    user_a = User(email="usera2@test.com", name="User A")
    user_b = User(email="userb2@test.com", name="User B")
    db.add_all([user_a, user_b])
    db.flush()

    connection = Connection.between(user_a.id, user_b.id)

    assert connection.other_user_id(user_a.id) == user_b.id
    assert connection.other_user_id(user_b.id) == user_a.id


def test_connection_unique_per_unordered_pair(db):
    user_a = User(email="usera3@test.com", name="User A")
    user_b = User(email="userb3@test.com", name="User B")
    db.add_all([user_a, user_b])
    db.flush()

    conn1 = Connection.between(user_a.id, user_b.id)
    db.add(conn1)
    db.flush()

    conn2 = Connection.between(user_b.id, user_a.id)
    db.add(conn2)

    with pytest.raises(sqlalchemy.exc.IntegrityError):
        db.flush()
