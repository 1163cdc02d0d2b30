# confessional/services.py
"""
Wiring for the confessional services.

build_services() creates one of each service around a shared KV store,
lock registry and (optional) LLM client. The API layer calls it once at
startup; tests call it with an in-memory store and a mocked client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from system.config import AppConfig

from .admin_stats import AdminStats
from .confession_manager import ConfessionManager
from .donations import DonationLedger
from .feedback_manager import FeedbackManager
from .profile_store import ProfileStore
from .score_analyzer import ScoreAnalyzer
from .spiritual_guide import SpiritualGuide
from .user_locks import UserLockRegistry
from .utils.kv_factory import create_kv_store
from .utils.kv_store import KVConfig, KVStore


logger = logging.getLogger("confessio.services")


@dataclass
class Services:
    kv: KVStore
    profiles: ProfileStore
    analyzer: ScoreAnalyzer
    confessions: ConfessionManager
    guide: SpiritualGuide
    feedback: FeedbackManager
    donations: DonationLedger
    admin: AdminStats
    llm_client: Any = None


def _default_llm_client(config: AppConfig) -> Any:
    if not config.llm_enabled:
        logger.warning("OPENAI_API_KEY not set; scoring and chat will use keyword fallbacks")
        return None
    from backend.llm_client import LLMClient
    return LLMClient(api_key=config.openai_api_key, timeout=config.llm_timeout)


def build_services(
    config: AppConfig,
    kv: Optional[KVStore] = None,
    llm_client: Any = None,
    use_llm: bool = True,
) -> Services:
    """
    Args:
        config: process settings
        kv: store to use instead of the configured provider
        llm_client: client to use instead of building one from config
        use_llm: False forces keyword fallbacks even if a key is set
    """
    if kv is None:
        kv = create_kv_store(KVConfig(
            provider=config.kv_provider,
            url=config.kv_url,
            token=config.kv_token,
            prefix=config.kv_prefix,
        ))
    if llm_client is None and use_llm:
        llm_client = _default_llm_client(config)

    locks = UserLockRegistry()
    profiles = ProfileStore(kv, locks=locks, default_language=config.default_language)
    analyzer = ScoreAnalyzer(llm_client, model=config.scoring_model)
    confessions = ConfessionManager(
        kv,
        profiles,
        analyzer,
        daily_free_limit=config.daily_free_confessions,
        draft_ttl_seconds=config.draft_ttl_seconds,
    )
    donations = DonationLedger(kv, profiles)

    return Services(
        kv=kv,
        profiles=profiles,
        analyzer=analyzer,
        confessions=confessions,
        guide=SpiritualGuide(
            llm_client,
            chat_model=config.chat_model,
            tts_model=config.tts_model,
            tts_voice=config.tts_voice,
        ),
        feedback=FeedbackManager(kv),
        donations=donations,
        admin=AdminStats(profiles, confessions, donations),
        llm_client=llm_client,
    )


__all__ = ["Services", "build_services"]
