# confessional/utils/__init__.py
"""
Confessio Utils Subpackage

Storage plumbing shared by the confessional services:
- kv_store: KV store protocol/interface and KVError
- kv_factory: provider selection (upstash, rediscloud, memory)
- kv_memory: in-process store for development and tests
"""

from .kv_store import KVConfig, KVError, KVStore
from .kv_factory import create_kv_store, get_kv_store, reset_kv_store
from .kv_memory import MemoryKVStore

__all__ = [
    "KVConfig",
    "KVError",
    "KVStore",
    "MemoryKVStore",
    "create_kv_store",
    "get_kv_store",
    "reset_kv_store",
]
