# confessional/confession_manager.py
"""
Confessio Confession Lifecycle — v1.0.0

State machine for a confession and the karma aggregate on its owner's
profile:

    (none) ──save_active──▶ Draft ──save_active──▶ Draft
    Draft ──analyze──▶ Scored ──create──▶ Confession(completed=False)
    Confession ──complete──▶ Completed   (karma += delta, draft removed)
    Completed ──delete──▶ Deleted        (karma -= delta)
    all of a user's ──delete_all──▶ Deleted (one karma update, one multi-delete)

Invariant: profile.karma equals the sum of karmaChange over the user's
completed, not-deleted confessions. Each karma-touching transition runs
under the owner's lock and pairs its two writes with a compensating write
if the second one fails.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import Conflict, NotFound
from .keyspace import (
    CONFESSION_PREFIX,
    active_confession_key,
    confession_prefix,
    new_confession_id,
    validate_user_id,
)
from .models import (
    ActiveConfession,
    Confession,
    clamp_karma,
    parse_iso,
    parse_messages,
    sort_timestamp,
)
from .profile_store import ProfileStore
from .score_analyzer import AnalysisResult, ScoreAnalyzer
from .utils.kv_store import KVError, KVStore


logger = logging.getLogger("confessio.lifecycle")

DAILY_FREE_CONFESSIONS = 2
UNLIMITED = -1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require_user(user_id: Optional[str]) -> str:
    return validate_user_id(user_id)


class ConfessionManager:
    """
    Owns drafts, confession records and the karma they contribute.

    The profile store's lock registry is shared so profile edits and
    lifecycle transitions for one user never interleave.
    """

    def __init__(
        self,
        kv: KVStore,
        profiles: ProfileStore,
        analyzer: ScoreAnalyzer,
        daily_free_limit: int = DAILY_FREE_CONFESSIONS,
        draft_ttl_seconds: int = 0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.kv = kv
        self.profiles = profiles
        self.analyzer = analyzer
        self.locks = profiles.locks
        self.daily_free_limit = daily_free_limit
        self.draft_ttl_seconds = draft_ttl_seconds
        self.clock = clock

    def _now_iso(self) -> str:
        return self.clock().isoformat()

    # =========================================================================
    # DRAFTS
    # =========================================================================

    def get_active(self, user_id: str) -> Optional[ActiveConfession]:
        data = self.kv.get_json(active_confession_key(_require_user(user_id)))
        return ActiveConfession.from_dict(data) if data else None

    def save_active(self, user_id: str, messages: Any) -> ActiveConfession:
        """Upsert the user's single draft with the full message list."""
        user_id = _require_user(user_id)
        parsed = parse_messages(messages)
        now = self._now_iso()

        existing = self.get_active(user_id)
        draft = ActiveConfession(
            user_id=user_id,
            messages=parsed,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.kv.set_json(
            active_confession_key(user_id),
            draft.to_dict(),
            ttl_seconds=self.draft_ttl_seconds,
        )
        logger.debug("Saved draft for %s (%d messages)", user_id, len(parsed))
        return draft

    def delete_active(self, user_id: str) -> bool:
        return self.kv.delete(active_confession_key(_require_user(user_id)))

    # =========================================================================
    # RECORDS
    # =========================================================================

    def get(self, confession_id: str) -> Confession:
        if not confession_id or not confession_id.startswith(CONFESSION_PREFIX):
            raise NotFound(f"Confession not found: {confession_id}")
        data = self.kv.get_json(confession_id)
        if data is None:
            raise NotFound(f"Confession not found: {confession_id}")
        return Confession.from_dict(data)

    def list_for_user(self, user_id: str) -> List[Confession]:
        """All of the user's confessions, newest first."""
        confessions = [c for _, c in self._owned(_require_user(user_id))]
        confessions.sort(
            key=lambda c: (sort_timestamp(c.created_at), c.id),
            reverse=True,
        )
        return confessions

    def create(
        self,
        user_id: str,
        messages: Any,
        karma_change: Any = 0,
        summary: str = "",
        reasoning: str = "",
    ) -> Confession:
        """Persist a scored conversation as a not-yet-completed confession."""
        user_id = _require_user(user_id)
        confession = Confession(
            id=new_confession_id(user_id),
            user_id=user_id,
            messages=parse_messages(messages),
            karma_change=clamp_karma(karma_change or 0),
            summary=summary or "",
            reasoning=reasoning or "",
            completed=False,
            created_at=self._now_iso(),
        )
        self.kv.set_json(confession.id, confession.to_dict(), ttl_seconds=0)
        logger.info("Created confession %s", confession.id)
        return confession

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def complete(self, confession_id: str, karma_change: Any = None) -> Tuple[Confession, int]:
        """
        Mark a confession completed and apply its delta to the profile.

        Returns:
            (confession, new_karma)

        Raises:
            NotFound: unknown id
            Conflict: the confession was already completed
        """
        user_id = self.get(confession_id).user_id

        with self.locks.hold(user_id):
            original = self.get(confession_id)
            if original.completed:
                raise Conflict(f"Confession already completed: {confession_id}")

            delta = clamp_karma(original.karma_change if karma_change is None else karma_change)
            completed = Confession.from_dict(original.to_dict())
            completed.completed = True
            completed.karma_change = delta
            completed.completed_at = self._now_iso()

            self.kv.set_json(confession_id, completed.to_dict(), ttl_seconds=0)
            try:
                new_karma = self.profiles.adjust_karma(user_id, delta)
            except Exception:
                logger.error("Karma update failed for %s, reverting completion", confession_id)
                self.kv.set_json(confession_id, original.to_dict(), ttl_seconds=0)
                raise

        self._discard_draft(user_id)
        logger.info("Completed %s delta=%+d karma=%d", confession_id, delta, new_karma)
        return completed, new_karma

    def finalize(self, user_id: str, messages: Any) -> Tuple[Confession, int, AnalysisResult]:
        """Draft → Scored → Completed in one call."""
        user_id = _require_user(user_id)
        parsed = parse_messages(messages, allow_empty=False)

        analysis = self.analyzer.analyze(parsed)
        confession = self.create(
            user_id,
            [m.to_dict() for m in parsed],
            karma_change=analysis.karma_change,
            summary=analysis.summary,
            reasoning=analysis.reasoning,
        )
        completed, new_karma = self.complete(confession.id, analysis.karma_change)
        return completed, new_karma, analysis

    def delete(self, confession_id: str) -> Confession:
        """Remove a confession, reversing exactly the delta it applied."""
        user_id = self.get(confession_id).user_id

        with self.locks.hold(user_id):
            confession = self.get(confession_id)
            reversal = confession.applied_karma

            if reversal:
                self.profiles.adjust_karma(user_id, -reversal)
            try:
                self.kv.delete(confession_id)
            except Exception:
                if reversal:
                    logger.error("Delete failed for %s, restoring karma", confession_id)
                    self.profiles.adjust_karma(user_id, reversal)
                raise

        logger.info("Deleted %s reversal=%+d", confession_id, -reversal)
        return confession

    def delete_all(self, user_id: str) -> int:
        """
        Delete every confession of the user.

        The reversal is summed first and applied as a single profile
        update, then the records go in one multi-delete.
        """
        user_id = _require_user(user_id)

        with self.locks.hold(user_id):
            owned = self._owned(user_id)
            keys = [key for key, _ in owned]
            total = sum(c.applied_karma for _, c in owned)

            if total:
                self.profiles.adjust_karma(user_id, -total)
            try:
                self.kv.delete_many(keys)
            except Exception:
                if total:
                    logger.error("Bulk delete failed for %s, restoring karma", user_id)
                    self.profiles.adjust_karma(user_id, total)
                raise

        logger.info("Deleted %d confessions for %s reversal=%+d", len(keys), user_id, -total)
        return len(keys)

    def _owned(self, user_id: str) -> List[Tuple[str, Confession]]:
        """
        (key, confession) pairs under the user's prefix whose record also
        names the user as owner.
        """
        keys = self.kv.scan_prefix(confession_prefix(user_id))
        owned = []
        for key, data in zip(keys, self.kv.get_many(keys)):
            if data is None:
                continue
            confession = Confession.from_dict(data)
            if confession.user_id == user_id:
                owned.append((key, confession))
        return owned

    def _discard_draft(self, user_id: str) -> None:
        try:
            self.kv.delete(active_confession_key(user_id))
        except KVError as e:
            # The confession is already committed; a stale draft is harmless.
            logger.warning("Could not remove draft for %s: %s", user_id, e)

    # =========================================================================
    # LIMITS
    # =========================================================================

    def check_limit(self, user_id: str) -> Dict[str, Any]:
        """Free users may complete daily_free_limit confessions per UTC day."""
        user_id = _require_user(user_id)
        profile = self.profiles.get(user_id)

        if profile.has_subscription:
            return {
                "canConfess": True,
                "confessionsToday": 0,
                "limit": UNLIMITED,
                "hasSubscription": True,
            }

        today = self.clock().astimezone(timezone.utc).date()
        confessions_today = 0
        for confession in self.list_for_user(user_id):
            completed_at = parse_iso(confession.completed_at)
            if completed_at and completed_at.astimezone(timezone.utc).date() == today:
                confessions_today += 1

        return {
            "canConfess": confessions_today < self.daily_free_limit,
            "confessionsToday": confessions_today,
            "limit": self.daily_free_limit,
            "hasSubscription": False,
        }


__all__ = ["ConfessionManager", "DAILY_FREE_CONFESSIONS", "UNLIMITED"]
