from typing import Literal

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DbSession
from app.schemas.connection import (
    ConnectionCreate,
    ConnectionRead,
    ConnectionRespond,
    ConnectionStatusRead,
)
from app.services.connections import ConnectionService
from app.services.views import connection_views

router = APIRouter(prefix="/connections", tags=["connections"])


@router.post("", response_model=ConnectionRead, status_code=status.HTTP_201_CREATED)
def create_connection(
    request: ConnectionCreate, user: CurrentUser, db: DbSession
) -> ConnectionRead:
    """Send a connection request to another user.

    Parameters:
        request: Connection request with recipient_id or email.
        user: The authenticated user.
        db: Database session.

    Returns:
        The created (or reopened) connection.

    Raises:
        SelfReferenceException: 400 if targeting yourself.
        NotFoundException: 404 if the recipient does not exist.
        AlreadyExistsException: 409 with the existing status.
    """
    service = ConnectionService(db)
    recipient = service.resolve_recipient(request.recipient_id, request.email)
    connection = service.send_request(user.id, recipient.id)
    db.commit()
    return connection_views(db, [connection], user.id)[0]


@router.get("", response_model=list[ConnectionRead])
def list_connections(
    user: CurrentUser,
    db: DbSession,
    state: Literal["accepted", "pending"] = Query(default="accepted"),
) -> list[ConnectionRead]:
    """List the user's network, or the pending requests waiting on them.

    Parameters:
        user: The authenticated user.
        db: Database session.
        state: ``accepted`` for the network, ``pending`` for incoming requests.

    Returns:
        List of connections, each with the other user's profile.
    """
    service = ConnectionService(db)
    if state == "pending":
        connections = service.list_pending_for(user.id)
    else:
        connections = service.list_accepted(user.id)
    return connection_views(db, connections, user.id)


@router.get("/status/{user_id}", response_model=ConnectionStatusRead)
def connection_status(user_id: int, user: CurrentUser, db: DbSession) -> ConnectionStatusRead:
    relationship, connection = ConnectionService(db).status_with(user.id, user_id)
    return ConnectionStatusRead(
        user_id=user_id,
        status=relationship,
        connection_id=connection.id if connection else None,
    )


@router.post("/{connection_id}/respond", response_model=ConnectionRead)
def respond_to_connection(
    connection_id: int, request: ConnectionRespond, user: CurrentUser, db: DbSession
) -> ConnectionRead:
    """Accept or decline a pending connection request.

    Raises:
        NotFoundException: 404 if the connection does not exist.
        AuthorizationException: 403 if the user is not the recipient.
        AlreadyResolvedException: 409 if the request is no longer pending.
    """
    connection = ConnectionService(db).respond(connection_id, user.id, request.decision)
    db.commit()
    return connection_views(db, [connection], user.id)[0]


@router.post("/{connection_id}/cancel", response_model=ConnectionRead)
def cancel_connection(
    connection_id: int, user: CurrentUser, db: DbSession
) -> ConnectionRead:
    connection = ConnectionService(db).cancel(connection_id, user.id)
    db.commit()
    return connection_views(db, [connection], user.id)[0]
