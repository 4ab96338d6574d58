"""Authentication, session tokens and profile routes."""
from datetime import datetime, timedelta
from typing import Dict, Optional

import bcrypt
import secrets
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import schemas
from ..shared.utils import clean_text, is_email_valid, is_password_strong
from .config import IMAGE_UPLOAD_TIMEOUT_SECONDS, TOKEN_EXPIRY_MINUTES
from .database import get_db
from .dependencies import get_image_host
from .errors import AuthenticationFailed, NotFound, ValidationFailed
from .images import PROFILE_IMAGE_OPTIONS, ImageHost, upload_image
from .logging_config import configure_logging
from .models import User

router = APIRouter(prefix="/auth", tags=["auth"])
logger = configure_logging()

# In-memory token store: token -> {"user_id": int, "expires": datetime}
TOKEN_STORE: Dict[str, Dict[str, datetime | int]] = {}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def issue_token(user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    TOKEN_STORE[token] = {"user_id": user_id, "expires": datetime.utcnow() + timedelta(minutes=TOKEN_EXPIRY_MINUTES)}
    return token


def resolve_token(token: Optional[str]) -> Optional[int]:
    """Return the user id a token names, or None if it is unknown or expired."""
    if not token:
        return None
    token_data = TOKEN_STORE.get(token)
    if not token_data:
        return None
    if token_data["expires"] < datetime.utcnow():
        TOKEN_STORE.pop(token, None)
        return None
    return int(token_data["user_id"])


def _validate_token(header: str | None) -> int:
    if not header or not header.startswith("Bearer "):
        logger.warning("UNAUTHORIZED_ACCESS reason=missing_token")
        raise AuthenticationFailed("Missing token")
    user_id = resolve_token(header.split(" ", 1)[1])
    if user_id is None:
        logger.warning("UNAUTHORIZED_ACCESS reason=invalid_or_expired_token")
        raise AuthenticationFailed("Invalid or expired token")
    return user_id


def get_current_user_id(authorization: str | None = Header(default=None)) -> int:
    """FastAPI dependency returning authenticated user's id."""
    return _validate_token(authorization)


def get_current_user(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
) -> User:
    user = db.get(User, current_user_id)
    if not user:
        logger.warning("UNAUTHORIZED_ACCESS reason=user_not_found user_id=%s", current_user_id)
        raise AuthenticationFailed("Unauthorized")
    return user


@router.post("/signup", response_model=schemas.AuthResponse)
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db)):
    full_name = clean_text(payload.full_name)
    email = clean_text(payload.email)
    bio = clean_text(payload.bio)
    if not (full_name and email and payload.password and bio):
        raise ValidationFailed("Please fill all the fields")
    email = email.lower()
    if not is_email_valid(email):
        raise ValidationFailed("Invalid email format")
    if not is_password_strong(payload.password):
        raise ValidationFailed("Password must contain uppercase, lowercase, number and at least 8 characters")
    if db.query(User).filter(User.email == email).first():
        logger.info("SIGNUP_FAIL email=%s reason=exists", email)
        raise ValidationFailed("User already exists")

    user = User(email=email, full_name=full_name, bio=bio, password_hash=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    token = issue_token(user.id)
    logger.info("SIGNUP_SUCCESS email=%s user_id=%s", email, user.id)
    return schemas.AuthResponse(
        message="User created successfully", token=token, user=schemas.UserOut.model_validate(user)
    )


@router.post("/login", response_model=schemas.AuthResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    email = (clean_text(payload.email) or "").lower()
    if not email or not payload.password:
        raise ValidationFailed("Please fill all the fields")
    if not is_email_valid(email):
        raise ValidationFailed("Invalid email format")

    user: Optional[User] = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info("LOGIN_FAIL email=%s reason=not_found", email)
        raise NotFound("User does not exist")
    if not verify_password(payload.password, user.password_hash):
        logger.info("LOGIN_FAIL email=%s reason=bad_password", email)
        raise AuthenticationFailed("Invalid credentials")

    token = issue_token(user.id)
    logger.info("LOGIN_SUCCESS email=%s user_id=%s", user.email, user.id)
    return schemas.AuthResponse(
        message="User logged in successfully", token=token, user=schemas.UserOut.model_validate(user)
    )


@router.get("/check", response_model=schemas.UserResponse)
def check_auth(user: User = Depends(get_current_user)):
    return schemas.UserResponse(user=schemas.UserOut.model_validate(user))


def _apply_profile(db: Session, user: User, full_name, bio, profile_pic_url) -> schemas.UserOut:
    if full_name:
        user.full_name = full_name
    if bio:
        user.bio = bio
    if profile_pic_url:
        user.profile_pic = profile_pic_url
    db.commit()
    db.refresh(user)
    return schemas.UserOut.model_validate(user)


@router.put("/update-profile", response_model=schemas.UserResponse)
async def update_profile(
    payload: schemas.ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    image_host: ImageHost = Depends(get_image_host),
):
    full_name = clean_text(payload.full_name)
    bio = clean_text(payload.bio)
    if not (full_name or bio or payload.profile_pic):
        raise ValidationFailed("At least one field (bio, full_name, or profile_pic) is required")

    # Upload first so a failed upload leaves the profile untouched.
    profile_pic_url = None
    if payload.profile_pic:
        profile_pic_url = await upload_image(
            image_host,
            payload.profile_pic,
            "profile-pictures",
            IMAGE_UPLOAD_TIMEOUT_SECONDS,
            **PROFILE_IMAGE_OPTIONS,
        )

    view = await run_in_threadpool(_apply_profile, db, user, full_name, bio, profile_pic_url)
    logger.info("PROFILE_UPDATED user_id=%s picture=%s", view.id, bool(profile_pic_url))
    return schemas.UserResponse(user=view)
