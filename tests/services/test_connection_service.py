import pytest
from sqlalchemy import func, select

from app.config import Settings
from app.exceptions import (
    AlreadyExistsException,
    AlreadyResolvedException,
    AuthorizationException,
    NotFoundException,
    SelfReferenceException,
)
from app.models.connection import Connection
from app.services.connections import ConnectionService


def _count_pair(db, user_a, user_b):
    low, high = sorted((user_a.id, user_b.id))
    return db.execute(
        select(func.count(Connection.id)).where(
            Connection.user_low_id == low, Connection.user_high_id == high
        )
    ).scalar_one()


def test_send_request_creates_pending(db, alice, bob):
    connection = ConnectionService(db).send_request(alice.id, bob.id)

    assert connection.status == "pending"
    assert connection.requester_id == alice.id
    assert connection.recipient_id == bob.id
    assert connection.requested_at is not None


def test_send_request_to_self(db, alice):
    with pytest.raises(SelfReferenceException):
        ConnectionService(db).send_request(alice.id, alice.id)


def test_send_request_unknown_recipient(db, alice):
    with pytest.raises(NotFoundException):
        ConnectionService(db).send_request(alice.id, 99999)


def test_reverse_request_is_blocked(db, alice, bob):
    service = ConnectionService(db)
    service.send_request(alice.id, bob.id)

    with pytest.raises(AlreadyExistsException) as exc_info:
        service.send_request(bob.id, alice.id)

    assert exc_info.value.existing_status == "pending"
    assert _count_pair(db, alice, bob) == 1


def test_concurrent_requests_resolve_to_one_record(db, alice, bob, monkeypatch):
    """The loser of a check-then-insert race gets AlreadyExists, not a duplicate."""
    service = ConnectionService(db)
    # Winner: the pair's record is already stored when A's insert runs.
    db.add(Connection.between(bob.id, alice.id, status="accepted"))
    db.flush()

    real_find = ConnectionService.find_between
    calls = []

    def stale_find(self, user_a_id, user_b_id, **kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            return None
        return real_find(self, user_a_id, user_b_id, **kwargs)

    monkeypatch.setattr(ConnectionService, "find_between", stale_find)

    with pytest.raises(AlreadyExistsException) as exc_info:
        service.send_request(alice.id, bob.id)

    assert exc_info.value.existing_status == "accepted"
    assert calls[-1] == {"for_update": True}
    assert _count_pair(db, alice, bob) == 1


@pytest.mark.parametrize("status", ["accepted", "declined", "cancelled"])
def test_any_existing_status_blocks_by_default(db, alice, bob, status):
    db.add(Connection.between(alice.id, bob.id, status=status))
    db.flush()

    with pytest.raises(AlreadyExistsException) as exc_info:
        ConnectionService(db).send_request(alice.id, bob.id)

    assert exc_info.value.existing_status == status


@pytest.mark.parametrize("status", ["declined", "cancelled"])
def test_allow_after_close_reopens_request(db, alice, bob, status):
    existing = Connection.between(alice.id, bob.id, status=status)
    db.add(existing)
    db.flush()
    service = ConnectionService(
        db, Settings(connection_rerequest_policy="allow_after_close")
    )

    connection = service.send_request(bob.id, alice.id)

    assert connection.id == existing.id
    assert connection.status == "pending"
    assert connection.requester_id == bob.id
    assert connection.recipient_id == alice.id
    assert connection.responded_at is None
    assert _count_pair(db, alice, bob) == 1


@pytest.mark.parametrize("status", ["pending", "accepted"])
def test_allow_after_close_still_blocks_open_connections(db, alice, bob, status):
    db.add(Connection.between(alice.id, bob.id, status=status))
    db.flush()
    service = ConnectionService(
        db, Settings(connection_rerequest_policy="allow_after_close")
    )

    with pytest.raises(AlreadyExistsException):
        service.send_request(bob.id, alice.id)


def test_respond_accept(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    connection = service.respond(pending.id, bob.id, "accept")

    assert connection.status == "accepted"
    assert connection.responded_at is not None


def test_respond_decline(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    connection = service.respond(pending.id, bob.id, "decline")

    assert connection.status == "declined"


def test_respond_twice_fails_and_keeps_status(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)
    service.respond(pending.id, bob.id, "accept")

    with pytest.raises(AlreadyResolvedException) as exc_info:
        service.respond(pending.id, bob.id, "decline")

    assert exc_info.value.current_status == "accepted"
    db.refresh(pending)
    assert pending.status == "accepted"


def test_respond_by_requester_is_rejected(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    with pytest.raises(AuthorizationException):
        service.respond(pending.id, alice.id, "accept")
    assert pending.status == "pending"


def test_respond_not_found(db, bob):
    with pytest.raises(NotFoundException):
        ConnectionService(db).respond(99999, bob.id, "accept")


def test_cancel_pending(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    connection = service.cancel(pending.id, alice.id)

    assert connection.status == "cancelled"


def test_cancel_by_recipient_is_rejected(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    with pytest.raises(AuthorizationException):
        service.cancel(pending.id, bob.id)


def test_cancel_after_accept_fails(db, alice, bob):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)
    service.respond(pending.id, bob.id, "accept")

    with pytest.raises(AlreadyResolvedException):
        service.cancel(pending.id, alice.id)


def test_list_queries(db, alice, bob, carol):
    service = ConnectionService(db)
    accepted = service.send_request(alice.id, bob.id)
    service.respond(accepted.id, bob.id, "accept")
    incoming = service.send_request(carol.id, alice.id)

    assert [c.id for c in service.list_accepted(alice.id)] == [accepted.id]
    assert [c.id for c in service.list_accepted(bob.id)] == [accepted.id]
    assert [c.id for c in service.list_pending_for(alice.id)] == [incoming.id]
    assert service.list_pending_for(carol.id) == []


def test_status_with(db, alice, bob, carol):
    service = ConnectionService(db)
    pending = service.send_request(alice.id, bob.id)

    assert service.status_with(alice.id, bob.id) == ("pending_sent", pending)
    assert service.status_with(bob.id, alice.id) == ("pending_received", pending)
    assert service.status_with(alice.id, carol.id) == ("not_connected", None)

    service.respond(pending.id, bob.id, "accept")
    assert service.status_with(alice.id, bob.id)[0] == "connected"
