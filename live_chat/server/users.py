"""Sidebar listing: every other user, unseen counts and who is online."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import conversations, schemas
from .auth import get_current_user_id
from .database import get_db
from .dependencies import get_presence
from .presence import PresenceRegistry

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=schemas.SidebarResponse)
def list_users(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
    presence: PresenceRegistry = Depends(get_presence),
):
    users = conversations.sidebar_users(db, current_user_id)
    unseen = conversations.unseen_counts(db, current_user_id)
    visible_ids = {user.id for user in users}
    return schemas.SidebarResponse(
        users=[schemas.UserOut.model_validate(user) for user in users],
        unseen_messages={sender_id: count for sender_id, count in unseen.items() if sender_id in visible_ids},
        online_users=presence.online_user_ids(),
    )
