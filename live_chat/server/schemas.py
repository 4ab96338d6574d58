"""Pydantic schemas for request and response bodies."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    full_name: str = ""
    email: str = ""
    password: str = ""
    bio: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, description="Encoded image payload (data URI)")


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    bio: str
    profile_pic: Optional[str] = None
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    token: str
    user: UserOut


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut


class SidebarResponse(BaseModel):
    success: bool = True
    users: List[UserOut]
    unseen_messages: Dict[int, int]
    online_users: List[int]


class SendMessageRequest(BaseModel):
    text: Optional[str] = None
    image: Optional[str] = Field(default=None, description="Encoded image payload (data URI)")


class ReactRequest(BaseModel):
    emoji: str = ""


class ReactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    emoji: str
    user_id: int


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    text: Optional[str] = None
    image: Optional[str] = None
    seen: bool
    created_at: datetime
    reactions: List[ReactionOut] = []


class MessageResponse(BaseModel):
    success: bool = True
    message: MessageOut


class HistoryResponse(BaseModel):
    success: bool = True
    messages: List[MessageOut]


class ReactionsResponse(BaseModel):
    success: bool = True
    message_id: int
    reactions: List[ReactionOut]


class StatusResponse(BaseModel):
    success: bool = True
    message: str
