# confessional/utils/kv_store.py
"""
Confessio KV Store Protocol — v1.0.0

Abstract interface for key-value storage backends.
All profile, confession, feedback and donation records go through this
interface as JSON documents.

Unlike a cache, this store is the system of record: failures raise
KVError instead of degrading to None, and keys never expire unless a TTL
is passed explicitly.
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


SUPPORTED_PROVIDERS = ("upstash", "rediscloud", "memory")


class KVError(Exception):
    """Raised when the backing store cannot complete an operation."""
    pass


_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


@dataclass
class KVConfig:
    """Configuration for KV store connection."""
    provider: str  # "upstash", "rediscloud" or "memory"
    url: str = ""
    token: Optional[str] = None  # Required for Upstash
    prefix: str = "confessio"
    default_ttl: int = 0  # 0 = keep forever

    @classmethod
    def from_env(cls) -> "KVConfig":
        """Load config from environment variables."""
        return cls(
            provider=os.getenv("KV_PROVIDER", "memory").lower(),
            url=os.getenv("KV_URL", ""),
            token=os.getenv("KV_TOKEN"),
            prefix=os.getenv("KV_PREFIX", "confessio"),
        )

    def is_configured(self) -> bool:
        """Check if KV store is properly configured."""
        if self.provider == "memory":
            return True
        if not self.url:
            return False
        if self.provider == "upstash" and not self.token:
            return False
        return True


class KVStore(ABC):
    """
    Abstract base class for KV store implementations.

    Keys passed in and returned out are always unprefixed; the
    namespace prefix is handled internally.
    """

    def __init__(self, config: KVConfig):
        self.config = config
        self.prefix = config.prefix

    def _prefixed_key(self, key: str) -> str:
        """Add prefix to key to prevent collisions."""
        return f"{self.prefix}:{key}"

    def _strip_prefix(self, key: str) -> str:
        head = f"{self.prefix}:"
        return key[len(head):] if key.startswith(head) else key

    def _scan_pattern(self, prefix: str) -> str:
        """SCAN MATCH pattern for a literal prefix (glob characters escaped)."""
        return _GLOB_SPECIALS.sub(r"\\\1", self._prefixed_key(prefix)) + "*"

    # =========================================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # =========================================================================

    @abstractmethod
    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get JSON value for key.

        Returns:
            Parsed JSON dict or None if not found
        """

    @abstractmethod
    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """
        Set JSON value for key.

        Args:
            key: Key without prefix
            value: Dict to store as JSON
            ttl_seconds: Optional TTL; falls back to config.default_ttl,
                and 0 means no expiry
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if key existed and was deleted
        """

    @abstractmethod
    def delete_many(self, keys: Iterable[str]) -> int:
        """
        Delete several keys in one round trip.

        Returns:
            Number of keys that existed
        """

    @abstractmethod
    def scan_prefix(self, prefix: str) -> List[str]:
        """
        List all keys starting with prefix.

        Returns:
            Unprefixed keys, in no particular order
        """

    @abstractmethod
    def get_many(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        """Fetch several JSON values; missing keys come back as None."""

    # =========================================================================
    # CONVENIENCE METHODS
    # =========================================================================

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return self.get_json(key) is not None

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        """Return every JSON value whose key starts with prefix."""
        keys = self.scan_prefix(prefix)
        if not keys:
            return []
        return [v for v in self.get_many(keys) if v is not None]

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        if ttl_seconds is None:
            return self.config.default_ttl
        return ttl_seconds

    def ping(self) -> bool:
        """Connectivity check; in-process stores are always up."""
        return True


__all__ = [
    "KVConfig",
    "KVError",
    "KVStore",
    "SUPPORTED_PROVIDERS",
]
