#!/usr/bin/env python3
# tests/test_config.py
"""
Confessio Configuration — Test Suite

Run with: python -m pytest tests/test_config.py -v
"""

import os
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest
from unittest.mock import patch

from confessional.services import build_services
from confessional.utils.kv_memory import MemoryKVStore
from system.config import AppConfig


class TestAppConfig(unittest.TestCase):

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = AppConfig.from_env()
        self.assertEqual(config.kv_provider, "memory")
        self.assertEqual(config.daily_free_confessions, 2)
        self.assertEqual(config.draft_ttl_seconds, 0)
        self.assertEqual(config.default_language, "Русский")
        self.assertFalse(config.llm_enabled)
        self.assertEqual(config.cors_origin_list(), ["*"])

    def test_overrides(self):
        env = {
            "KV_PROVIDER": "UPSTASH",
            "KV_URL": "https://kv.example",
            "DAILY_FREE_CONFESSIONS": "5",
            "DRAFT_TTL_SECONDS": "bogus",
            "OPENAI_API_KEY": "sk-test",
            "CORS_ORIGINS": "https://a.example, https://b.example",
            "DEBUG": "yes",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AppConfig.from_env()
        self.assertEqual(config.kv_provider, "upstash")
        self.assertEqual(config.daily_free_confessions, 5)
        self.assertEqual(config.draft_ttl_seconds, 0)
        self.assertTrue(config.llm_enabled)
        self.assertTrue(config.debug)
        self.assertEqual(config.cors_origin_list(), ["https://a.example", "https://b.example"])


class TestBuildServices(unittest.TestCase):

    def test_memory_store_and_fallbacks(self):
        services = build_services(AppConfig())
        self.assertIsInstance(services.kv, MemoryKVStore)
        self.assertIsNone(services.llm_client)
        self.assertIs(services.confessions.locks, services.profiles.locks)

    def test_use_llm_false_ignores_key(self):
        services = build_services(AppConfig(openai_api_key="sk-test"), use_llm=False)
        self.assertIsNone(services.analyzer.llm_client)
        self.assertIsNone(services.guide.llm_client)

    def test_llm_client_built_from_key(self):
        with patch("backend.llm_client.OpenAI"):
            services = build_services(AppConfig(openai_api_key="sk-test-1234567890"))
        self.assertIsNotNone(services.llm_client)
        self.assertIs(services.analyzer.llm_client, services.llm_client)


if __name__ == "__main__":
    unittest.main()
