#!/usr/bin/env python3
# tests/test_kv_store.py
"""
Confessio KV Store — Test Suite

Run with: python -m pytest tests/test_kv_store.py -v
"""

import sys
import time
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest
from unittest.mock import MagicMock, patch

from confessional.utils.kv_factory import create_kv_store, get_kv_store, reset_kv_store
from confessional.utils.kv_memory import MemoryKVStore
from confessional.utils.kv_store import KVConfig, KVError


class TestMemoryKVStore(unittest.TestCase):
    """In-process store semantics shared by every provider."""

    def setUp(self):
        self.kv = MemoryKVStore()

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.kv.get_json("profile:nobody"))
        self.assertFalse(self.kv.exists("profile:nobody"))

    def test_set_and_get_returns_copy(self):
        value = {"karma": 3, "messages": [{"role": "user", "content": "hi"}]}
        self.kv.set_json("profile:u1", value)
        value["karma"] = 99

        stored = self.kv.get_json("profile:u1")
        self.assertEqual(stored["karma"], 3)
        stored["karma"] = 42
        self.assertEqual(self.kv.get_json("profile:u1")["karma"], 3)

    def test_delete_reports_existence(self):
        self.kv.set_json("a", {"x": 1})
        self.assertTrue(self.kv.delete("a"))
        self.assertFalse(self.kv.delete("a"))

    def test_scan_prefix_returns_unprefixed_keys(self):
        self.kv.set_json("confession:u1:1", {"id": 1})
        self.kv.set_json("confession:u1:2", {"id": 2})
        self.kv.set_json("confession:u2:3", {"id": 3})
        self.kv.set_json("confession_active_u1", {"id": 4})

        keys = sorted(self.kv.scan_prefix("confession:u1:"))
        self.assertEqual(keys, ["confession:u1:1", "confession:u1:2"])

    def test_get_by_prefix_and_get_many(self):
        self.kv.set_json("feedback:1:a", {"n": 1})
        self.kv.set_json("feedback:2:b", {"n": 2})

        values = sorted(v["n"] for v in self.kv.get_by_prefix("feedback:"))
        self.assertEqual(values, [1, 2])
        self.assertEqual(self.kv.get_many(["feedback:1:a", "missing"]), [{"n": 1}, None])
        self.assertEqual(self.kv.get_by_prefix("donation:"), [])

    def test_delete_many(self):
        for i in range(3):
            self.kv.set_json(f"k:{i}", {"i": i})
        self.assertEqual(self.kv.delete_many(["k:0", "k:1", "k:missing"]), 2)
        self.assertEqual(self.kv.scan_prefix("k:"), ["k:2"])

    def test_ttl_expiry(self):
        self.kv.set_json("draft", {"x": 1}, ttl_seconds=1)
        self.kv.set_json("record", {"x": 2}, ttl_seconds=0)

        with patch("confessional.utils.kv_memory.time.monotonic", return_value=time.monotonic() + 5):
            self.assertIsNone(self.kv.get_json("draft"))
            self.assertEqual(self.kv.get_json("record"), {"x": 2})

    def test_namespace_isolation(self):
        kv_a = MemoryKVStore(KVConfig(provider="memory", prefix="a"))
        kv_a.set_json("profile:u1", {"karma": 1})
        self.assertEqual(kv_a._prefixed_key("profile:u1"), "a:profile:u1")
        self.assertEqual(kv_a.scan_prefix("profile:"), ["profile:u1"])

    def test_clear(self):
        self.kv.set_json("x", {"a": 1})
        self.kv.clear()
        self.assertIsNone(self.kv.get_json("x"))


class TestKVFactory(unittest.TestCase):
    """Provider selection."""

    def tearDown(self):
        reset_kv_store()

    def test_memory_provider(self):
        store = create_kv_store(KVConfig(provider="memory"))
        self.assertIsInstance(store, MemoryKVStore)
        self.assertTrue(store.ping())

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            create_kv_store(KVConfig(provider="carrier-pigeon", url="x"))

    def test_remote_provider_requires_url(self):
        with self.assertRaises(ValueError):
            create_kv_store(KVConfig(provider="upstash"))

    def test_singleton(self):
        config = KVConfig(provider="memory")
        self.assertIs(get_kv_store(config), get_kv_store(config))


class TestRemoteStoresRaise(unittest.TestCase):
    """Remote stores surface client failures as KVError."""

    def test_upstash_get_failure(self):
        from confessional.utils.kv_upstash import UpstashKVStore

        with patch("upstash_redis.Redis") as mock_redis:
            client = MagicMock()
            client.get.side_effect = ConnectionError("unreachable")
            mock_redis.return_value = client

            store = UpstashKVStore(KVConfig(provider="upstash", url="https://kv", token="t"))
            with self.assertRaises(KVError):
                store.get_json("profile:u1")

    def test_rediscloud_set_uses_prefix(self):
        from confessional.utils.kv_rediscloud import RedisCloudKVStore

        with patch("redis.Redis.from_url") as mock_from_url:
            client = MagicMock()
            mock_from_url.return_value = client

            store = RedisCloudKVStore(KVConfig(provider="rediscloud", url="redis://localhost:6379"))
            store.set_json("profile:u1", {"karma": 1}, ttl_seconds=0)

            args, kwargs = client.set.call_args
            self.assertEqual(args[0], "confessio:profile:u1")


if __name__ == "__main__":
    unittest.main()
