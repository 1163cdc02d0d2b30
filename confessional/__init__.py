# confessional/__init__.py
"""
Confessio services package.

- confession_manager: draft / confession lifecycle and karma bookkeeping
- score_analyzer, scoring_rules: transcript scoring (LLM + keyword rules)
- profile_store: user profiles with default-on-missing reads
- spiritual_guide: conversational replies and speech
- feedback_manager, donations, admin_stats: peripheral records
"""

from .errors import (
    ConfessionalError,
    Conflict,
    InvalidArgument,
    NotFound,
    UpstreamUnavailable,
)
from .confession_manager import ConfessionManager
from .profile_store import ProfileStore
from .score_analyzer import AnalysisResult, ScoreAnalyzer
from .services import Services, build_services

__all__ = [
    "AnalysisResult",
    "ConfessionManager",
    "ConfessionalError",
    "Conflict",
    "InvalidArgument",
    "NotFound",
    "ProfileStore",
    "ScoreAnalyzer",
    "Services",
    "UpstreamUnavailable",
    "build_services",
]
