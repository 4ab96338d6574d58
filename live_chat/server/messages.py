"""Message-related API routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import conversations, schemas
from .auth import get_current_user_id
from .config import IMAGE_UPLOAD_TIMEOUT_SECONDS
from .database import get_db
from .dependencies import get_dispatcher, get_image_host
from .dispatcher import DeliveryDispatcher
from .errors import NotFound, ValidationFailed
from .images import MESSAGE_IMAGE_OPTIONS, ImageHost, upload_image
from .logging_config import configure_logging

router = APIRouter(prefix="/messages", tags=["messages"])
logger = configure_logging()


@router.get("/{peer_id}", response_model=schemas.HistoryResponse)
def get_messages(
    peer_id: int,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    messages = conversations.open_conversation(db, current_user_id, peer_id)
    logger.info("CONVERSATION_OPENED user_id=%s peer_id=%s count=%s", current_user_id, peer_id, len(messages))
    return schemas.HistoryResponse(messages=[schemas.MessageOut.model_validate(msg) for msg in messages])


@router.put("/mark/{message_id}", response_model=schemas.StatusResponse)
def mark_message_seen(
    message_id: int,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    if not conversations.mark_seen(db, message_id, current_user_id):
        logger.info("MARK_SEEN_FAIL user_id=%s message_id=%s", current_user_id, message_id)
        raise NotFound("Message not found or already seen")
    logger.info("MARK_SEEN user_id=%s message_id=%s", current_user_id, message_id)
    return schemas.StatusResponse(message="Message marked as seen successfully")


def _store_message(db: Session, sender_id: int, receiver_id: int, text, image_url) -> schemas.MessageOut:
    message = conversations.create_message(db, sender_id, receiver_id, text, image_url)
    return schemas.MessageOut.model_validate(message)


@router.post("/send/{receiver_id}", response_model=schemas.MessageResponse)
async def send_message(
    receiver_id: int,
    payload: schemas.SendMessageRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
    image_host: ImageHost = Depends(get_image_host),
):
    # Store calls go through the threadpool; only the upload and pushes run on the loop.
    if not (payload.text and payload.text.strip()) and not payload.image:
        raise ValidationFailed("Cannot send an empty message")
    if receiver_id == current_user_id:
        raise ValidationFailed("Cannot send a message to yourself")
    await run_in_threadpool(conversations.get_user, db, receiver_id)

    # The message row is only written once the image URL is known.
    image_url = None
    if payload.image:
        image_url = await upload_image(
            image_host,
            payload.image,
            "messages",
            IMAGE_UPLOAD_TIMEOUT_SECONDS,
            **MESSAGE_IMAGE_OPTIONS,
        )

    view = await run_in_threadpool(_store_message, db, current_user_id, receiver_id, payload.text, image_url)
    logger.info(
        "MESSAGE_SENT sender_id=%s receiver_id=%s message_id=%s image=%s",
        current_user_id,
        receiver_id,
        view.id,
        bool(image_url),
    )
    await dispatcher.deliver_new_message(view.model_dump(mode="json"))
    return schemas.MessageResponse(message=view)


def _toggle_reaction(db: Session, message_id: int, user_id: int, emoji: str):
    message = conversations.toggle_reaction(db, message_id, user_id, emoji)
    reactions = [schemas.ReactionOut.model_validate(reaction) for reaction in message.reactions]
    return message.sender_id, message.receiver_id, reactions


@router.post("/react/{message_id}", response_model=schemas.ReactionsResponse)
async def react_to_message(
    message_id: int,
    payload: schemas.ReactRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
):
    sender_id, receiver_id, reactions = await run_in_threadpool(
        _toggle_reaction, db, message_id, current_user_id, payload.emoji
    )
    logger.info(
        "REACTION_TOGGLED user_id=%s message_id=%s emoji=%s total=%s",
        current_user_id,
        message_id,
        payload.emoji,
        len(reactions),
    )
    await dispatcher.deliver_reaction_update(
        message_id,
        [reaction.model_dump(mode="json") for reaction in reactions],
        sender_id,
        receiver_id,
    )
    return schemas.ReactionsResponse(message_id=message_id, reactions=reactions)
