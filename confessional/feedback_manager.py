# confessional/feedback_manager.py
"""
Feedback and complaints. Independent of the confession lifecycle.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .errors import InvalidArgument, NotFound
from .keyspace import FEEDBACK_PREFIX, new_feedback_id
from .models import (
    ANONYMOUS_NAME,
    FEEDBACK_STATUSES,
    FEEDBACK_TYPES,
    Feedback,
    sort_timestamp,
    utc_now_iso,
)
from .utils.kv_store import KVStore


logger = logging.getLogger("confessio.feedback")


class FeedbackManager:
    def __init__(self, kv: KVStore):
        self.kv = kv

    def submit(self, payload: Dict[str, Any]) -> Feedback:
        message = (payload.get("message") or "").strip()
        if not message:
            raise InvalidArgument("Message is required")

        kind = payload.get("type") or "feedback"
        if kind not in FEEDBACK_TYPES:
            raise InvalidArgument(f"type must be one of {FEEDBACK_TYPES}")

        user_id = payload.get("userId") or None
        feedback = Feedback(
            id=new_feedback_id(user_id),
            message=message,
            user_id=user_id,
            user_name=payload.get("userName") or ANONYMOUS_NAME,
            user_email=payload.get("userEmail") or None,
            type=kind,
            image_base64=payload.get("imageBase64") or None,
        )
        self.kv.set_json(feedback.id, feedback.to_dict(), ttl_seconds=0)
        logger.info("Stored %s %s", feedback.type, feedback.id)
        return feedback

    def list_all(self) -> List[Feedback]:
        """Newest first."""
        items = [Feedback.from_dict(d) for d in self.kv.get_by_prefix(FEEDBACK_PREFIX)]
        items.sort(key=lambda f: (sort_timestamp(f.created_at), f.id), reverse=True)
        return items

    def get(self, feedback_id: str) -> Feedback:
        if not feedback_id or not feedback_id.startswith(FEEDBACK_PREFIX):
            raise NotFound(f"Feedback not found: {feedback_id}")
        data = self.kv.get_json(feedback_id)
        if data is None:
            raise NotFound(f"Feedback not found: {feedback_id}")
        return Feedback.from_dict(data)

    def update_status(self, feedback_id: str, status: Any) -> Feedback:
        if status not in FEEDBACK_STATUSES:
            raise InvalidArgument("Invalid status")
        feedback = self.get(feedback_id)
        feedback.status = status
        feedback.updated_at = utc_now_iso()
        self.kv.set_json(feedback.id, feedback.to_dict(), ttl_seconds=0)
        return feedback

    def delete(self, feedback_id: str) -> None:
        self.get(feedback_id)
        self.kv.delete(feedback_id)
        logger.info("Deleted %s", feedback_id)


__all__ = ["FeedbackManager"]
