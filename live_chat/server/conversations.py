"""Durable conversation operations: messages, seen-state and reactions.

Every function takes a SQLAlchemy session and commits its own unit of work.
Unseen counts are never stored; they are aggregated from ``messages`` on each
call so they cannot drift from the seen flags.
"""
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..shared.utils import clean_text
from .errors import Conflict, Forbidden, NotFound, ValidationFailed
from .models import Message, Reaction, User


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def sidebar_users(db: Session, viewer_id: int) -> List[User]:
    return db.query(User).filter(User.id != viewer_id).order_by(User.id).all()


def unseen_counts(db: Session, viewer_id: int) -> Dict[int, int]:
    rows = (
        db.query(Message.sender_id, func.count(Message.id))
        .filter(Message.receiver_id == viewer_id, Message.seen.is_(False))
        .group_by(Message.sender_id)
        .all()
    )
    return {sender_id: count for sender_id, count in rows}


def create_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    text: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Message:
    text = clean_text(text)
    if not text and not image_url:
        raise ValidationFailed("Cannot send an empty message")
    if sender_id == receiver_id:
        raise ValidationFailed("Cannot send a message to yourself")
    get_user(db, receiver_id)

    message = Message(sender_id=sender_id, receiver_id=receiver_id, text=text, image=image_url, seen=False)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def open_conversation(db: Session, viewer_id: int, peer_id: int) -> List[Message]:
    """Mark everything the peer sent to the viewer as seen, then return the pairwise history.

    The flip and the read share one transaction, so the returned rows already
    carry ``seen=True`` for the messages just opened.
    """
    get_user(db, peer_id)
    try:
        (
            db.query(Message)
            .filter(
                Message.sender_id == peer_id,
                Message.receiver_id == viewer_id,
                Message.seen.is_(False),
            )
            .update({Message.seen: True}, synchronize_session=False)
        )
        messages = (
            db.query(Message)
            .options(selectinload(Message.reactions))
            .populate_existing()
            .filter(
                or_(
                    and_(Message.sender_id == viewer_id, Message.receiver_id == peer_id),
                    and_(Message.sender_id == peer_id, Message.receiver_id == viewer_id),
                )
            )
            .order_by(Message.created_at, Message.id)
            .all()
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return messages


def mark_seen(db: Session, message_id: int, viewer_id: int) -> bool:
    """Flip a single message to seen if the viewer received it and has not seen it yet."""
    updated = (
        db.query(Message)
        .filter(
            Message.id == message_id,
            Message.receiver_id == viewer_id,
            Message.seen.is_(False),
        )
        .update({Message.seen: True}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def toggle_reaction(db: Session, message_id: int, user_id: int, emoji: str) -> Message:
    """Remove the caller's identical reaction if present, otherwise append it."""
    emoji = clean_text(emoji)
    if not emoji:
        raise ValidationFailed("Emoji is required")

    message = db.get(Message, message_id)
    if not message:
        raise NotFound("Message not found")
    if user_id not in (message.sender_id, message.receiver_id):
        raise Forbidden("Only conversation participants can react to this message")

    existing = (
        db.query(Reaction)
        .filter(Reaction.message_id == message_id, Reaction.user_id == user_id, Reaction.emoji == emoji)
        .first()
    )
    if existing:
        db.delete(existing)
    else:
        db.add(Reaction(message_id=message_id, user_id=user_id, emoji=emoji))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Reaction changed concurrently, please retry") from exc
    db.expire(message, ["reactions"])
    return message
