# confessional/utils/kv_factory.py
"""
Confessio KV Store Factory — v1.0.0

Returns the appropriate KVStore implementation based on KV_PROVIDER.
"""

from __future__ import annotations

from typing import Optional

from .kv_store import KVStore, KVConfig, SUPPORTED_PROVIDERS


# Singleton instance
_kv_instance: Optional[KVStore] = None


def create_kv_store(config: KVConfig) -> KVStore:
    """
    Build a new store for the given config.

    Raises:
        ValueError: If provider is unknown or the config is incomplete
        ImportError: If required SDK is not installed
    """
    if not config.is_configured():
        raise ValueError(
            "KV store not configured. Set KV_URL (and KV_TOKEN for upstash)."
        )

    provider = config.provider.lower()

    if provider == "upstash":
        from .kv_upstash import UpstashKVStore
        return UpstashKVStore(config)

    if provider == "rediscloud":
        from .kv_rediscloud import RedisCloudKVStore
        return RedisCloudKVStore(config)

    if provider == "memory":
        from .kv_memory import MemoryKVStore
        return MemoryKVStore(config)

    raise ValueError(
        f"Unknown KV provider: {provider}. "
        f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
    )


def get_kv_store(config: Optional[KVConfig] = None) -> KVStore:
    """
    Get or create the KV store singleton.

    Args:
        config: Optional config (uses env vars if not provided)
    """
    global _kv_instance

    if _kv_instance is not None:
        return _kv_instance

    _kv_instance = create_kv_store(config or KVConfig.from_env())
    return _kv_instance


def reset_kv_store() -> None:
    """Reset the singleton (for testing)."""
    global _kv_instance
    _kv_instance = None


__all__ = [
    "create_kv_store",
    "get_kv_store",
    "reset_kv_store",
]
