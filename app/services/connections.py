"""Connection request lifecycle: send, respond, cancel, and network queries.

Pair uniqueness and state transitions are enforced by the database (unique
constraint on the canonical pair, compare-and-set UPDATEs) so several API
instances can run side by side.
"""

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.exceptions import (
    AlreadyExistsException,
    AlreadyResolvedException,
    AuthorizationException,
    NotFoundException,
    SelfReferenceException,
)
from app.models.connection import (
    ACCEPTED,
    CANCELLED,
    CLOSED_STATUSES,
    DECLINED,
    PENDING,
    Connection,
    canonical_pair,
)
from app.models.types import utcnow
from app.models.user import User

logger = logging.getLogger(__name__)

DECISIONS = {"accept": ACCEPTED, "decline": DECLINED}


class ConnectionService:
    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.settings = settings

    def find_between(
        self, user_a_id: int, user_b_id: int, for_update: bool = False
    ) -> Connection | None:
        user_low_id, user_high_id = canonical_pair(user_a_id, user_b_id)
        stmt = select(Connection).where(
            Connection.user_low_id == user_low_id,
            Connection.user_high_id == user_high_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, connection_id: int) -> Connection:
        connection = self.db.get(Connection, connection_id)
        if connection is None:
            raise NotFoundException("Connection not found.")
        return connection

    def resolve_recipient(
        self, recipient_id: int | None = None, email: str | None = None
    ) -> User:
        if recipient_id is not None:
            recipient = self.db.get(User, recipient_id)
        else:
            recipient = self.db.execute(
                select(User).where(User.email == email)
            ).scalar_one_or_none()
        if recipient is None or not recipient.is_active:
            raise NotFoundException("Recipient not found.")
        return recipient

    def send_request(self, requester_id: int, recipient_id: int) -> Connection:
        """Create a pending request from requester to recipient.

        Raises:
            SelfReferenceException: requester and recipient are the same user.
            NotFoundException: the recipient does not exist.
            AlreadyExistsException: a record already exists for the pair and
                the re-request policy does not allow reopening it.
        """
        if requester_id == recipient_id:
            raise SelfReferenceException("Cannot connect with yourself.")
        self.resolve_recipient(recipient_id)

        existing = self.find_between(requester_id, recipient_id)
        if existing is not None:
            return self._reopen_or_reject(existing, requester_id, recipient_id)

        connection = Connection.between(requester_id, recipient_id, status=PENDING)
        try:
            with self.db.begin_nested():
                self.db.add(connection)
        except IntegrityError:
            # Another request for the same pair committed between our check
            # and our insert; report the winner's state.
            winner = self.find_between(requester_id, recipient_id, for_update=True)
            logger.warning(
                "Duplicate connection request rejected: requester=%s recipient=%s",
                requester_id,
                recipient_id,
            )
            raise AlreadyExistsException(winner.status if winner else PENDING)

        logger.info(
            "Connection %s requested: requester=%s recipient=%s",
            connection.id,
            requester_id,
            recipient_id,
        )
        return connection

    def _reopen_or_reject(
        self, existing: Connection, requester_id: int, recipient_id: int
    ) -> Connection:
        if (
            self.settings.connection_rerequest_policy != "allow_after_close"
            or existing.status not in CLOSED_STATUSES
        ):
            raise AlreadyExistsException(existing.status)

        result = self.db.execute(
            update(Connection)
            .where(
                Connection.id == existing.id,
                Connection.status.in_(CLOSED_STATUSES),
            )
            .values(
                requester_id=requester_id,
                recipient_id=recipient_id,
                status=PENDING,
                requested_at=utcnow(),
                responded_at=None,
            )
        )
        self.db.refresh(existing)
        if result.rowcount == 0:
            raise AlreadyExistsException(existing.status)

        logger.info(
            "Connection %s reopened: requester=%s recipient=%s",
            existing.id,
            requester_id,
            recipient_id,
        )
        return existing

    def respond(self, connection_id: int, responder_id: int, decision: str) -> Connection:
        """Accept or decline a pending request addressed to the responder."""
        if decision not in DECISIONS:
            raise ValueError(f"Unknown decision: {decision}")
        connection = self.get(connection_id)
        if connection.recipient_id != responder_id:
            raise AuthorizationException(
                "Only the recipient can respond to this request."
            )
        self._transition(connection, DECISIONS[decision])
        logger.info("Connection %s %s by user %s", connection.id, connection.status, responder_id)
        return connection

    def cancel(self, connection_id: int, requester_id: int) -> Connection:
        connection = self.get(connection_id)
        if connection.requester_id != requester_id:
            raise AuthorizationException(
                "Only the requester can cancel this request."
            )
        self._transition(connection, CANCELLED)
        logger.info("Connection %s cancelled by user %s", connection.id, requester_id)
        return connection

    def _transition(self, connection: Connection, new_status: str) -> None:
        """Move a pending connection to a terminal state, or fail if it moved already."""
        result = self.db.execute(
            update(Connection)
            .where(Connection.id == connection.id, Connection.status == PENDING)
            .values(status=new_status, responded_at=utcnow())
        )
        self.db.refresh(connection)
        if result.rowcount == 0:
            raise AlreadyResolvedException(connection.status)

    def list_accepted(self, user_id: int) -> list[Connection]:
        return list(
            self.db.execute(
                select(Connection)
                .where(
                    Connection.status == ACCEPTED,
                    or_(
                        Connection.requester_id == user_id,
                        Connection.recipient_id == user_id,
                    ),
                )
                .order_by(Connection.responded_at.desc(), Connection.id.desc())
            ).scalars().all()
        )

    def list_pending_for(self, user_id: int) -> list[Connection]:
        return list(
            self.db.execute(
                select(Connection)
                .where(
                    Connection.status == PENDING,
                    Connection.recipient_id == user_id,
                )
                .order_by(Connection.requested_at.desc(), Connection.id.desc())
            ).scalars().all()
        )

    def status_with(self, user_id: int, other_user_id: int) -> tuple[str, Connection | None]:
        """Describe the relationship from ``user_id``'s point of view."""
        connection = self.find_between(user_id, other_user_id)
        if connection is None:
            return "not_connected", None
        if connection.status == PENDING:
            if connection.requester_id == user_id:
                return "pending_sent", connection
            return "pending_received", connection
        if connection.status == ACCEPTED:
            return "connected", connection
        return connection.status, connection
