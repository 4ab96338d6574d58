"""Client-side models for user and message display."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class User:
    id: int
    email: str
    full_name: str
    bio: str = ""
    profile_pic: Optional[str] = None
    online: bool = False
    unseen: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any], online_ids=(), unseen: Optional[Dict[str, int]] = None) -> "User":
        unseen = unseen or {}
        return cls(
            id=data["id"],
            email=data["email"],
            full_name=data["full_name"],
            bio=data.get("bio", ""),
            profile_pic=data.get("profile_pic"),
            online=data["id"] in online_ids,
            # JSON object keys arrive as strings
            unseen=int(unseen.get(str(data["id"]), 0)),
        )


@dataclass
class Reaction:
    emoji: str
    user_id: int


@dataclass
class ChatMessage:
    id: int
    sender_id: int
    receiver_id: int
    text: Optional[str]
    image: Optional[str]
    seen: bool
    created_at: datetime
    reactions: List[Reaction] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            sender_id=data["sender_id"],
            receiver_id=data["receiver_id"],
            text=data.get("text"),
            image=data.get("image"),
            seen=data.get("seen", False),
            created_at=datetime.fromisoformat(data["created_at"]),
            reactions=[Reaction(**r) for r in data.get("reactions", [])],
        )

    def reaction_summary(self) -> str:
        counts: Dict[str, int] = {}
        for reaction in self.reactions:
            counts[reaction.emoji] = counts.get(reaction.emoji, 0) + 1
        return " ".join(f"{emoji}{count if count > 1 else ''}" for emoji, count in counts.items())
