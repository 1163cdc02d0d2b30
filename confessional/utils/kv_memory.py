# confessional/utils/kv_memory.py
"""
Confessio KV Store — In-Process Implementation

Dict-backed store for local development and tests. Values are stored as
JSON text so callers get the same copy semantics as with a remote store.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .kv_store import KVStore, KVConfig


class MemoryKVStore(KVStore):
    """Thread-safe in-memory KVStore with optional TTL support."""

    def __init__(self, config: Optional[KVConfig] = None):
        super().__init__(config or KVConfig(provider="memory"))
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, prefixed: str) -> Optional[str]:
        entry = self._data.get(prefixed)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[prefixed]
            return None
        return payload

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            payload = self._live(self._prefixed_key(key))
        return json.loads(payload) if payload is not None else None

    def set_json(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        ttl = self._resolve_ttl(ttl_seconds)
        expires_at = time.monotonic() + ttl if ttl > 0 else None
        payload = json.dumps(value, default=str, ensure_ascii=False)
        with self._lock:
            self._data[self._prefixed_key(key)] = (payload, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            prefixed = self._prefixed_key(key)
            existed = self._live(prefixed) is not None
            self._data.pop(prefixed, None)
            return existed

    def delete_many(self, keys: Iterable[str]) -> int:
        count = 0
        with self._lock:
            for key in keys:
                prefixed = self._prefixed_key(key)
                if self._live(prefixed) is not None:
                    count += 1
                self._data.pop(prefixed, None)
        return count

    def scan_prefix(self, prefix: str) -> List[str]:
        head = self._prefixed_key(prefix)
        with self._lock:
            return [
                self._strip_prefix(k)
                for k in list(self._data)
                if k.startswith(head) and self._live(k) is not None
            ]

    def get_many(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        with self._lock:
            payloads = [self._live(self._prefixed_key(k)) for k in keys]
        return [json.loads(p) if p is not None else None for p in payloads]

    def clear(self) -> None:
        """Drop everything (tests)."""
        with self._lock:
            self._data.clear()


__all__ = ["MemoryKVStore"]
