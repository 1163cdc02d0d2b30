# confessional/models.py
"""
Confessio data models.

Records are stored as JSON documents with camelCase field names (the wire
format the web client already speaks). Each dataclass owns its own
to_dict / from_dict pair.

    Confession        scored conversation; contributes karma once completed
    ActiveConfession  the single in-progress draft of a user
    UserProfile       per-user settings plus the karma aggregate
    Feedback          free-text feedback or complaint
    Donation          recorded contribution
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import InvalidArgument


# =============================================================================
# CONSTANTS
# =============================================================================

KARMA_MIN = -10
KARMA_MAX = 10

MESSAGE_ROLES = ("user", "assistant")
FEEDBACK_TYPES = ("feedback", "complaint")
FEEDBACK_STATUSES = ("new", "reviewed", "resolved")

DEFAULT_LANGUAGE = "Русский"
ANONYMOUS_NAME = "Аноним"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, treating naive values as UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def sort_timestamp(value: Optional[str]) -> datetime:
    """Sort key for ISO timestamps; unparseable values sort oldest."""
    return parse_iso(value) or datetime.min.replace(tzinfo=timezone.utc)


def clamp_karma(value: Any) -> int:
    """Coerce a score to an int inside [KARMA_MIN, KARMA_MAX]."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        raise InvalidArgument(f"karmaChange must be a number, got {value!r}")
    return max(KARMA_MIN, min(KARMA_MAX, number))


# =============================================================================
# MESSAGES
# =============================================================================

@dataclass
class Message:
    """One turn of the conversation."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Any) -> "Message":
        if not isinstance(data, dict):
            raise InvalidArgument("each message must be an object")
        role = data.get("role")
        content = data.get("content")
        if role not in MESSAGE_ROLES:
            raise InvalidArgument(f"message role must be one of {MESSAGE_ROLES}, got {role!r}")
        if not isinstance(content, str):
            raise InvalidArgument("message content must be a string")
        return cls(role=role, content=content)


def parse_messages(raw: Any, allow_empty: bool = True) -> List[Message]:
    """Validate a request's message list."""
    if raw is None:
        raise InvalidArgument("messages are required")
    if not isinstance(raw, list):
        raise InvalidArgument("messages must be a list")
    if not raw and not allow_empty:
        raise InvalidArgument("messages are required")
    return [Message.from_dict(m) for m in raw]


def messages_to_dicts(messages: List[Message]) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in messages]


# =============================================================================
# CONFESSIONS
# =============================================================================

@dataclass
class Confession:
    """
    A persisted confession.

    karma_change is only meaningful once completed is True; completed_at
    stays None until then.
    """
    id: str
    user_id: str
    messages: List[Message] = field(default_factory=list)
    karma_change: int = 0
    summary: str = ""
    reasoning: str = ""
    completed: bool = False
    created_at: str = field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "messages": messages_to_dicts(self.messages),
            "karmaChange": self.karma_change,
            "summary": self.summary,
            "reasoning": self.reasoning,
            "completed": self.completed,
            "createdAt": self.created_at,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Confession":
        return cls(
            id=data["id"],
            user_id=data.get("userId", ""),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            karma_change=int(data.get("karmaChange") or 0),
            summary=data.get("summary") or "",
            reasoning=data.get("reasoning") or "",
            completed=bool(data.get("completed", False)),
            created_at=data.get("createdAt") or utc_now_iso(),
            completed_at=data.get("completedAt"),
        )

    @property
    def applied_karma(self) -> int:
        """The delta currently counted in the owner's profile."""
        return self.karma_change if self.completed else 0


@dataclass
class ActiveConfession:
    """The draft conversation of a user; at most one per user."""
    user_id: str
    messages: List[Message] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "messages": messages_to_dicts(self.messages),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActiveConfession":
        now = utc_now_iso()
        return cls(
            user_id=data.get("userId", ""),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            created_at=data.get("createdAt") or now,
            updated_at=data.get("updatedAt") or now,
        )


# =============================================================================
# PROFILE
# =============================================================================

PROFILE_TEXT_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "city": "city",
    "language": "language",
}


@dataclass
class UserProfile:
    """Mutable per-user profile. karma is the materialized aggregate."""
    user_id: str
    first_name: str = ""
    last_name: str = ""
    city: str = ""
    language: str = DEFAULT_LANGUAGE
    karma: int = 0
    has_subscription: bool = False
    total_donations: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "city": self.city,
            "language": self.language,
            "karma": self.karma,
            "hasSubscription": self.has_subscription,
            "totalDonations": self.total_donations,
        }

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any], default_language: str = DEFAULT_LANGUAGE) -> "UserProfile":
        return cls(
            user_id=user_id,
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            city=data.get("city") or "",
            language=data.get("language") or default_language,
            karma=int(data.get("karma") or 0),
            has_subscription=bool(data.get("hasSubscription", False)),
            total_donations=data.get("totalDonations") or 0,
        )

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.user_id


# =============================================================================
# FEEDBACK & DONATIONS
# =============================================================================

@dataclass
class Feedback:
    id: str
    message: str
    user_id: Optional[str] = None
    user_name: str = ANONYMOUS_NAME
    user_email: Optional[str] = None
    type: str = "feedback"
    image_base64: Optional[str] = None
    status: str = "new"
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "type": self.type,
            "message": self.message,
            "imageBase64": self.image_base64,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.updated_at:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feedback":
        return cls(
            id=data["id"],
            message=data.get("message", ""),
            user_id=data.get("userId"),
            user_name=data.get("userName") or ANONYMOUS_NAME,
            user_email=data.get("userEmail"),
            type=data.get("type") or "feedback",
            image_base64=data.get("imageBase64"),
            status=data.get("status") or "new",
            created_at=data.get("createdAt") or utc_now_iso(),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Donation:
    id: str
    user_id: str
    amount: float
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": self.amount,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Donation":
        return cls(
            id=data["id"],
            user_id=data.get("userId", ""),
            amount=data.get("amount") or 0,
            created_at=data.get("createdAt") or utc_now_iso(),
        )
