# confessional/profile_store.py
"""
Profile accessor.

Read-modify-write of UserProfile records with default-on-missing reads.
A profile that was never written reads back as the zero-value default;
it is created lazily by the first write.

Partial updates merge: any field missing from the payload keeps its
stored value. In particular karma and hasSubscription are never reset by
an update that omits them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidArgument
from .keyspace import (
    PROFILE_PREFIX,
    USER_ID_FORBIDDEN,
    profile_key,
    user_id_from_profile_key,
    validate_user_id,
)
from .models import DEFAULT_LANGUAGE, PROFILE_TEXT_FIELDS, UserProfile
from .user_locks import UserLockRegistry
from .utils.kv_store import KVStore


logger = logging.getLogger("confessio.profile")


def _as_int(value: Any) -> int:
    """JSON integer (or integral float); bools and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument("karma must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidArgument("karma must be an integer")
    return int(value)


class ProfileStore:
    """Loads and saves UserProfile records."""

    def __init__(
        self,
        kv: KVStore,
        locks: Optional[UserLockRegistry] = None,
        default_language: str = DEFAULT_LANGUAGE,
    ):
        self.kv = kv
        self.locks = locks or UserLockRegistry()
        self.default_language = default_language

    # ---------- Reads ----------

    def default_profile(self, user_id: str) -> UserProfile:
        return UserProfile(user_id=user_id, language=self.default_language)

    def exists(self, user_id: str) -> bool:
        return self.kv.exists(profile_key(validate_user_id(user_id)))

    def find(self, user_id: str) -> Optional[UserProfile]:
        """Stored profile, or None when the user has none yet."""
        data = self.kv.get_json(profile_key(validate_user_id(user_id)))
        if data is None:
            return None
        return UserProfile.from_dict(user_id, data, self.default_language)

    def get(self, user_id: str) -> UserProfile:
        """Stored profile, or the default when the user has none yet."""
        return self.find(user_id) or self.default_profile(user_id)

    def list_all(self) -> List[UserProfile]:
        keys = self.kv.scan_prefix(PROFILE_PREFIX)
        profiles = []
        for key, data in zip(keys, self.kv.get_many(keys)):
            user_id = user_id_from_profile_key(key)
            # Records written under a reserved id cannot be addressed by the API.
            if data is not None and not USER_ID_FORBIDDEN.intersection(user_id):
                profiles.append(UserProfile.from_dict(user_id, data, self.default_language))
        return profiles

    # ---------- Writes ----------

    def save(self, profile: UserProfile) -> UserProfile:
        self.kv.set_json(profile_key(profile.user_id), profile.to_dict(), ttl_seconds=0)
        return profile

    def update(self, user_id: str, fields: Dict[str, Any]) -> UserProfile:
        """
        Merge the given camelCase fields into the stored profile.

        Unknown keys are ignored. Missing keys keep their stored values.
        """
        validate_user_id(user_id)
        if not isinstance(fields, dict):
            raise InvalidArgument("profile payload must be an object")

        with self.locks.hold(user_id):
            profile = self.get(user_id)

            for wire_name, attr in PROFILE_TEXT_FIELDS.items():
                if fields.get(wire_name) is not None:
                    setattr(profile, attr, str(fields[wire_name]))

            if fields.get("karma") is not None:
                profile.karma = _as_int(fields["karma"])

            if fields.get("hasSubscription") is not None:
                if not isinstance(fields["hasSubscription"], bool):
                    raise InvalidArgument("hasSubscription must be a boolean")
                profile.has_subscription = fields["hasSubscription"]

            self.save(profile)

        logger.info("Updated profile %s (fields=%s)", user_id, sorted(k for k in fields if fields[k] is not None))
        return profile

    def adjust_karma(self, user_id: str, delta: int) -> int:
        """Add delta to the stored karma and return the new total."""
        validate_user_id(user_id)
        with self.locks.hold(user_id):
            profile = self.get(user_id)
            profile.karma += int(delta)
            self.save(profile)
            return profile.karma

    def add_donation(self, user_id: str, amount: float) -> float:
        """Add amount to totalDonations and return the new total."""
        validate_user_id(user_id)
        with self.locks.hold(user_id):
            profile = self.get(user_id)
            profile.total_donations = (profile.total_donations or 0) + amount
            self.save(profile)
            return profile.total_donations


__all__ = ["ProfileStore"]
