from fastapi import APIRouter, File, Form, UploadFile, status

from app.dependencies import Attachments, CurrentUser, DbSession
from app.schemas.message import CallCreate, MessageDeleteRead, MessageRead
from app.services.messages import MessageService
from app.services.views import message_views

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    user: CurrentUser,
    db: DbSession,
    attachments: Attachments,
    receiver_id: int = Form(...),
    body: str | None = Form(default=None),
    reply_to_id: int | None = Form(default=None),
    file: UploadFile | None = File(default=None),
) -> MessageRead:
    """Send a text message and/or a file to a connected user.

    Raises:
        ValidationException: 400 for an empty message or a rejected attachment.
        SelfReferenceException: 400 if messaging yourself.
        AuthorizationException: 403 if the users are not connected.
    """
    staged = None
    if file is not None and file.filename:
        staged = attachments.stage(file.file, file.filename, file.content_type)
    message = MessageService(db, attachments).send(
        user,
        receiver_id,
        body=body,
        attachment=staged,
        reply_to_id=reply_to_id,
    )
    return message_views(db, [message])[0]


@router.post("/calls", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def record_call(request: CallCreate, user: CurrentUser, db: DbSession) -> MessageRead:
    message = MessageService(db).record_call(
        user,
        request.receiver_id,
        call_type=request.call_type,
        call_status=request.call_status,
        duration=request.duration,
        room_id=request.room_id,
    )
    db.commit()
    return message_views(db, [message])[0]


@router.delete("/{message_id}", response_model=MessageDeleteRead)
def delete_message(message_id: int, user: CurrentUser, db: DbSession) -> MessageDeleteRead:
    """Soft-delete a message the user sent or received.

    Raises:
        NotFoundException: 404 if the message does not exist.
        AuthorizationException: 403 if the user is neither sender nor receiver.
    """
    message, conversation = MessageService(db).soft_delete(message_id, user.id)
    db.commit()
    return MessageDeleteRead(
        id=message.id,
        is_deleted=message.is_deleted,
        deleted_at=message.deleted_at,
        last_message=conversation.last_message,
    )
