# system/config.py
"""
Confessio Configuration — v1.0.0

Environment-driven settings for the API process.

.env is loaded from the project root first, then from the current working
directory. Everything else reads plain environment variables so the same
code runs locally and on a hosted WSGI worker.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# -----------------------------------------------------------------------------
# Environment Loading
# -----------------------------------------------------------------------------

def load_env() -> bool:
    """
    Load environment variables from a .env file.

    Returns True if a file was found and loaded.
    """
    for env_path in (BASE_DIR / ".env", Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path, override=False)
            print(f"[Config] Loaded .env from {env_path}", flush=True)
            return True

    return False


def _get_bool(env_key: str, default: bool) -> bool:
    v = os.getenv(env_key)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int(env_key: str, default: int) -> int:
    try:
        return int(os.getenv(env_key, str(default)))
    except ValueError:
        return default


# -----------------------------------------------------------------------------
# App Config
# -----------------------------------------------------------------------------

@dataclass
class AppConfig:
    """Process-wide settings. Built once by the app factory."""
    env: str = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    kv_provider: str = "memory"
    kv_url: str = ""
    kv_token: Optional[str] = None
    kv_prefix: str = "confessio"
    draft_ttl_seconds: int = 0

    # OpenAI
    openai_api_key: str = ""
    scoring_model: str = "gpt-4o-mini"
    chat_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "onyx"
    llm_timeout: int = 90

    # Product rules
    daily_free_confessions: int = 2
    default_language: str = "Русский"

    # HTTP
    cors_origins: str = "*"
    admin_token: str = ""
    port: int = 8000

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config from environment variables."""
        return cls(
            env=os.getenv("APP_ENV", "dev"),
            debug=_get_bool("DEBUG", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            kv_provider=os.getenv("KV_PROVIDER", "memory").lower(),
            kv_url=os.getenv("KV_URL", ""),
            kv_token=os.getenv("KV_TOKEN"),
            kv_prefix=os.getenv("KV_PREFIX", "confessio"),
            draft_ttl_seconds=_get_int("DRAFT_TTL_SECONDS", 0),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            scoring_model=os.getenv("SCORING_MODEL", "gpt-4o-mini"),
            chat_model=os.getenv("CHAT_MODEL", "gpt-4o-mini"),
            tts_model=os.getenv("TTS_MODEL", "tts-1"),
            tts_voice=os.getenv("TTS_VOICE", "onyx"),
            llm_timeout=_get_int("LLM_CLIENT_TIMEOUT", 90),
            daily_free_confessions=_get_int("DAILY_FREE_CONFESSIONS", 2),
            default_language=os.getenv("DEFAULT_LANGUAGE", "Русский"),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
            admin_token=os.getenv("ADMIN_TOKEN", ""),
            port=_get_int("PORT", 8000),
        )

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key)

    def cors_origin_list(self) -> List[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def configure_logging(config: AppConfig) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    root.setLevel(config.log_level)
    logging.getLogger("confessio").setLevel(config.log_level)


__all__ = [
    "AppConfig",
    "configure_logging",
    "load_env",
]
