# confessional/utils/kv_upstash.py
"""
Confessio KV Store — Upstash Redis Implementation

Uses the Upstash REST API via upstash-redis SDK.

Install: pip install upstash-redis
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .kv_store import KVStore, KVConfig, KVError


logger = logging.getLogger("confessio.kv")

SCAN_BATCH = 200


class UpstashKVStore(KVStore):
    """
    Upstash Redis implementation of KVStore.

    Uses Upstash's REST API which is serverless-friendly.
    """

    def __init__(self, config: KVConfig):
        super().__init__(config)
        self._client = None
        self._init_client()

    def _init_client(self) -> None:
        """Initialize Upstash Redis client."""
        try:
            from upstash_redis import Redis
        except ImportError:
            raise ImportError(
                "upstash-redis package not installed. "
                "Install with: pip install upstash-redis"
            )

        self._client = Redis(
            url=self.config.url,
            token=self.config.token,
        )
        logger.info("Connected to %s...", self.config.url[:30])

    @property
    def client(self):
        """Get the Upstash Redis client."""
        if self._client is None:
            self._init_client()
        return self._client

    @staticmethod
    def _decode(value: Any) -> Optional[Dict[str, Any]]:
        if value is None:
            return None
        # Upstash may return string or already parsed dict
        if isinstance(value, dict):
            return value
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if isinstance(value, str):
            return json.loads(value)
        return None

    # =========================================================================
    # KVStore Implementation
    # =========================================================================

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Get JSON value for key."""
        try:
            return self._decode(self.client.get(self._prefixed_key(key)))
        except Exception as e:
            logger.error("get_json error for %s: %s", key, e)
            raise KVError(f"get failed for {key}") from e

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Set JSON value for key with optional TTL."""
        try:
            prefixed = self._prefixed_key(key)
            json_str = json.dumps(value, default=str, ensure_ascii=False)
            ttl = self._resolve_ttl(ttl_seconds)

            if ttl > 0:
                self.client.setex(prefixed, ttl, json_str)
            else:
                self.client.set(prefixed, json_str)
        except Exception as e:
            logger.error("set_json error for %s: %s", key, e)
            raise KVError(f"set failed for {key}") from e

    def delete(self, key: str) -> bool:
        """Delete a key."""
        try:
            return self.client.delete(self._prefixed_key(key)) > 0
        except Exception as e:
            logger.error("delete error for %s: %s", key, e)
            raise KVError(f"delete failed for {key}") from e

    def delete_many(self, keys: Iterable[str]) -> int:
        prefixed = [self._prefixed_key(k) for k in keys]
        if not prefixed:
            return 0
        try:
            return int(self.client.delete(*prefixed))
        except Exception as e:
            logger.error("delete_many error for %d keys: %s", len(prefixed), e)
            raise KVError("multi-delete failed") from e

    def scan_prefix(self, prefix: str) -> List[str]:
        """Walk SCAN with a MATCH pattern until the cursor returns to 0."""
        pattern = self._scan_pattern(prefix)
        found: List[str] = []
        cursor = 0
        try:
            while True:
                cursor, keys = self.client.scan(cursor, match=pattern, count=SCAN_BATCH)
                found.extend(self._strip_prefix(k) for k in keys)
                if int(cursor) == 0:
                    break
        except Exception as e:
            logger.error("scan error for %s: %s", prefix, e)
            raise KVError(f"scan failed for {prefix}") from e
        return found

    def get_many(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        if not keys:
            return []
        try:
            values = self.client.mget(*[self._prefixed_key(k) for k in keys])
            return [self._decode(v) for v in values]
        except Exception as e:
            logger.error("mget error for %d keys: %s", len(keys), e)
            raise KVError("multi-get failed") from e

    # =========================================================================
    # Upstash-specific methods
    # =========================================================================

    def ping(self) -> bool:
        """Test connection to Upstash."""
        try:
            result = self.client.ping()
            return result == "PONG" or result is True
        except Exception as e:
            logger.warning("ping error: %s", e)
            return False


__all__ = ["UpstashKVStore"]
