# confessional/keyspace.py
"""
Persisted key layout.

    profile:<userId>
    confession:<userId>:<epoch-ms>
    confession_active_<userId>
    feedback:<epoch-ms>:<userId|anonymous>
    donation:<userId>:<epoch-ms>

The store adds its own namespace prefix on top of these.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Optional

from .errors import InvalidArgument


PROFILE_PREFIX = "profile:"
CONFESSION_PREFIX = "confession:"
ACTIVE_PREFIX = "confession_active_"
FEEDBACK_PREFIX = "feedback:"
DONATION_PREFIX = "donation:"

# ":" separates key segments; the rest are SCAN MATCH glob syntax.
USER_ID_FORBIDDEN = frozenset(":*?[]\\")


_clock_lock = threading.Lock()
_last_ms = 0


def unique_millis() -> int:
    """Epoch milliseconds, strictly increasing within this process."""
    global _last_ms
    with _clock_lock:
        now = int(time.time() * 1000)
        if now <= _last_ms:
            now = _last_ms + 1
        _last_ms = now
        return now


def validate_user_id(user_id: Any) -> str:
    """
    Return user_id if it can be embedded in a key prefix.

    Raises:
        InvalidArgument: empty, non-string, or containing a separator or
            glob character
    """
    if not user_id or not isinstance(user_id, str):
        raise InvalidArgument("userId is required")
    if any(ch in USER_ID_FORBIDDEN for ch in user_id):
        raise InvalidArgument(f"userId contains a reserved character: {user_id!r}")
    return user_id


def profile_key(user_id: str) -> str:
    return f"{PROFILE_PREFIX}{user_id}"


def active_confession_key(user_id: str) -> str:
    return f"{ACTIVE_PREFIX}{user_id}"


def confession_prefix(user_id: str) -> str:
    return f"{CONFESSION_PREFIX}{user_id}:"


def new_confession_id(user_id: str) -> str:
    return f"{confession_prefix(user_id)}{unique_millis()}"


def new_feedback_id(user_id: Optional[str]) -> str:
    return f"{FEEDBACK_PREFIX}{unique_millis()}:{user_id or 'anonymous'}"


def donation_prefix(user_id: str) -> str:
    return f"{DONATION_PREFIX}{user_id}:"


def new_donation_id(user_id: str) -> str:
    return f"{donation_prefix(user_id)}{unique_millis()}"


def user_id_from_profile_key(key: str) -> str:
    return key[len(PROFILE_PREFIX):]
