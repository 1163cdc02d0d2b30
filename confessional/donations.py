# confessional/donations.py
"""
Donation tracking. Each donation is its own record; the profile keeps a
running totalDonations updated under the donor's lock.
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, Tuple

from .errors import InvalidArgument
from .keyspace import donation_prefix, new_donation_id, validate_user_id
from .models import Donation
from .profile_store import ProfileStore
from .utils.kv_store import KVStore


logger = logging.getLogger("confessio.donations")


def _parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidArgument("amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument("amount must be a number")
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidArgument("amount must be positive")
    return int(amount) if amount.is_integer() else amount


class DonationLedger:
    def __init__(self, kv: KVStore, profiles: ProfileStore):
        self.kv = kv
        self.profiles = profiles

    def record(self, user_id: str, amount: Any) -> Tuple[Donation, float]:
        """
        Store a donation and add it to the donor's profile.

        Returns:
            (donation, new_total)
        """
        if not user_id or amount is None:
            raise InvalidArgument("User ID and amount are required")
        validate_user_id(user_id)
        value = _parse_amount(amount)

        with self.profiles.locks.hold(user_id):
            donation = Donation(id=new_donation_id(user_id), user_id=user_id, amount=value)
            self.kv.set_json(donation.id, donation.to_dict(), ttl_seconds=0)
            try:
                total = self.profiles.add_donation(user_id, value)
            except Exception:
                logger.error("Profile update failed for %s, removing donation record", donation.id)
                self.kv.delete(donation.id)
                raise

        logger.info("Recorded donation %s amount=%s total=%s", donation.id, value, total)
        return donation, total

    def list_for_user(self, user_id: str) -> List[Donation]:
        records = self.kv.get_by_prefix(donation_prefix(validate_user_id(user_id)))
        return [d for d in (Donation.from_dict(r) for r in records) if d.user_id == user_id]

    def total_for_user(self, user_id: str) -> float:
        return sum(d.amount for d in self.list_for_user(user_id))


__all__ = ["DonationLedger"]
