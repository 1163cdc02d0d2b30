# confessional/admin_stats.py
"""
Per-user statistics for the admin console.

Users are enumerated from stored profiles; accounts that never wrote a
profile are not listed.
"""

from __future__ import annotations

from typing import Any, Dict, List

from .confession_manager import ConfessionManager
from .donations import DonationLedger
from .profile_store import ProfileStore


class AdminStats:
    def __init__(
        self,
        profiles: ProfileStore,
        confessions: ConfessionManager,
        donations: DonationLedger,
    ):
        self.profiles = profiles
        self.confessions = confessions
        self.donations = donations

    def user_summary(self, user_id: str) -> Dict[str, Any]:
        profile = self.profiles.get(user_id)
        completed = [c for c in self.confessions.list_for_user(user_id) if c.completed]
        return {
            "id": user_id,
            "name": profile.display_name,
            "city": profile.city,
            "language": profile.language,
            "karma": profile.karma,
            "confessionsCount": len(completed),
            "hasSubscription": profile.has_subscription,
            "totalDonations": self.donations.total_for_user(user_id),
        }

    def list_users(self) -> List[Dict[str, Any]]:
        """All known users, highest karma first."""
        users = [self.user_summary(p.user_id) for p in self.profiles.list_all()]
        users.sort(key=lambda u: (u["karma"], u["id"]), reverse=True)
        return users


__all__ = ["AdminStats"]
