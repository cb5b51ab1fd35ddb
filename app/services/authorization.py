from sqlalchemy.orm import Session

from app.exceptions import AuthorizationException
from app.models.connection import ACCEPTED
from app.services.connections import ConnectionService


def can_message(db: Session, user_a_id: int, user_b_id: int) -> bool:
    """True iff the two users share an accepted connection."""
    if user_a_id == user_b_id:
        return False
    connection = ConnectionService(db).find_between(user_a_id, user_b_id)
    return connection is not None and connection.status == ACCEPTED


def require_can_message(db: Session, user_a_id: int, user_b_id: int) -> None:
    """Check for an accepted connection between two users.

    Parameters:
        db: Database session.
        user_a_id: The acting user's ID.
        user_b_id: The other user's ID.

    Raises:
        AuthorizationException: if no accepted connection exists.
    """
    if not can_message(db, user_a_id, user_b_id):
        raise AuthorizationException(
            "You must be connected to message this user.",
            code="not_connected",
        )
