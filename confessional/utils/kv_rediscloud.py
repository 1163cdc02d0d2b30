# confessional/utils/kv_rediscloud.py
"""
Confessio KV Store — Redis Cloud Implementation

Plain Redis over TCP/TLS via redis-py. KV_URL is a redis:// or rediss://
URL; KV_TOKEN, when set, is used as the password.

Install: pip install redis
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .kv_store import KVStore, KVConfig, KVError


logger = logging.getLogger("confessio.kv")

SCAN_BATCH = 200


class RedisCloudKVStore(KVStore):
    """Redis Cloud implementation of KVStore."""

    def __init__(self, config: KVConfig):
        super().__init__(config)
        try:
            import redis
        except ImportError:
            raise ImportError(
                "redis package not installed. "
                "Install with: pip install redis"
            )

        kwargs: Dict[str, Any] = {"decode_responses": True}
        if config.token:
            kwargs["password"] = config.token
        self.client = redis.Redis.from_url(config.url, **kwargs)
        logger.info("Redis client created for %s...", config.url.split("@")[-1][:30])

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            value = self.client.get(self._prefixed_key(key))
        except Exception as e:
            logger.error("get_json error for %s: %s", key, e)
            raise KVError(f"get failed for {key}") from e
        return json.loads(value) if value is not None else None

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        ttl = self._resolve_ttl(ttl_seconds)
        payload = json.dumps(value, default=str, ensure_ascii=False)
        try:
            self.client.set(self._prefixed_key(key), payload, ex=ttl if ttl > 0 else None)
        except Exception as e:
            logger.error("set_json error for %s: %s", key, e)
            raise KVError(f"set failed for {key}") from e

    def delete(self, key: str) -> bool:
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
        pattern = self._scan_pattern(prefix)
        try:
            return [
                self._strip_prefix(k)
                for k in self.client.scan_iter(match=pattern, count=SCAN_BATCH)
            ]
        except Exception as e:
            logger.error("scan error for %s: %s", prefix, e)
            raise KVError(f"scan failed for {prefix}") from e

    def get_many(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        if not keys:
            return []
        try:
            values = self.client.mget([self._prefixed_key(k) for k in keys])
        except Exception as e:
            logger.error("mget error for %d keys: %s", len(keys), e)
            raise KVError("multi-get failed") from e
        return [json.loads(v) if v is not None else None for v in values]

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.warning("ping error: %s", e)
            return False


__all__ = ["RedisCloudKVStore"]
