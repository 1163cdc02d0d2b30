#!/usr/bin/env python3
# tests/test_profile_store.py
"""
Confessio Profile Store — Test Suite

Run with: python -m pytest tests/test_profile_store.py -v
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest

from confessional.errors import InvalidArgument
from confessional.profile_store import ProfileStore
from confessional.utils.kv_memory import MemoryKVStore


class TestProfileReads(unittest.TestCase):

    def setUp(self):
        self.kv = MemoryKVStore()
        self.profiles = ProfileStore(self.kv)

    def test_missing_profile_reads_as_default(self):
        profile = self.profiles.get("u1")
        self.assertEqual(profile.karma, 0)
        self.assertFalse(profile.has_subscription)
        self.assertEqual(profile.language, "Русский")
        self.assertEqual(profile.first_name, "")
        # Reading does not create the record.
        self.assertFalse(self.profiles.exists("u1"))

    def test_custom_default_language(self):
        profiles = ProfileStore(self.kv, default_language="English")
        self.assertEqual(profiles.get("u1").language, "English")

    def test_find_reports_missing(self):
        self.assertIsNone(self.profiles.find("u1"))
        self.profiles.update("u1", {"city": "Тула"})
        self.assertEqual(self.profiles.find("u1").city, "Тула")

    def test_empty_user_id_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.profiles.get("")

    def test_list_all(self):
        self.profiles.update("u1", {"firstName": "Анна"})
        self.profiles.update("u2", {"karma": 4})
        users = {p.user_id: p for p in self.profiles.list_all()}
        self.assertEqual(set(users), {"u1", "u2"})
        self.assertEqual(users["u1"].first_name, "Анна")
        self.assertEqual(users["u2"].karma, 4)

    def test_list_all_skips_reserved_ids(self):
        self.profiles.update("u1", {"karma": 1})
        self.kv.set_json("profile:u2:x", {"karma": 9})
        self.assertEqual([p.user_id for p in self.profiles.list_all()], ["u1"])


class TestProfileUpdates(unittest.TestCase):

    def setUp(self):
        self.kv = MemoryKVStore()
        self.profiles = ProfileStore(self.kv)

    def test_first_update_creates_record(self):
        profile = self.profiles.update("u1", {"firstName": "Иван", "city": "Москва"})
        self.assertTrue(self.profiles.exists("u1"))
        self.assertEqual(profile.first_name, "Иван")
        self.assertEqual(profile.city, "Москва")
        self.assertEqual(profile.karma, 0)

    def test_update_without_karma_keeps_karma_and_subscription(self):
        self.profiles.update("u1", {"karma": 7, "hasSubscription": True})
        profile = self.profiles.update("u1", {"lastName": "Петров"})

        self.assertEqual(profile.karma, 7)
        self.assertTrue(profile.has_subscription)
        self.assertEqual(self.profiles.get("u1").karma, 7)

    def test_update_merges_text_fields(self):
        self.profiles.update("u1", {"firstName": "Иван", "city": "Тула"})
        profile = self.profiles.update("u1", {"city": "Казань"})
        self.assertEqual(profile.first_name, "Иван")
        self.assertEqual(profile.city, "Казань")

    def test_unknown_fields_ignored(self):
        profile = self.profiles.update("u1", {"role": "admin", "firstName": "Ольга"})
        self.assertEqual(profile.first_name, "Ольга")
        self.assertNotIn("role", self.kv.get_json("profile:u1"))

    def test_invalid_karma_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.profiles.update("u1", {"karma": "много"})
        self.assertFalse(self.profiles.exists("u1"))

    def test_subscription_must_be_boolean(self):
        for bad in ("false", "true", "0", 1, 0, "no"):
            with self.assertRaises(InvalidArgument):
                self.profiles.update("u1", {"hasSubscription": bad})
        self.assertFalse(self.profiles.get("u1").has_subscription)

        self.assertTrue(self.profiles.update("u1", {"hasSubscription": True}).has_subscription)
        self.assertFalse(self.profiles.update("u1", {"hasSubscription": False}).has_subscription)

    def test_karma_must_be_integer(self):
        for bad in (True, "5", 2.5, [3]):
            with self.assertRaises(InvalidArgument):
                self.profiles.update("u1", {"karma": bad})
        self.assertEqual(self.profiles.update("u1", {"karma": 4.0}).karma, 4)
        self.assertEqual(self.profiles.update("u1", {"karma": -3}).karma, -3)

    def test_reserved_characters_in_user_id(self):
        for bad in ("u1:x", "*", "a?", "[a]"):
            with self.assertRaises(InvalidArgument):
                self.profiles.update(bad, {"firstName": "x"})
            with self.assertRaises(InvalidArgument):
                self.profiles.get(bad)
        self.assertEqual(self.kv.scan_prefix("profile:"), [])

    def test_non_dict_payload_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.profiles.update("u1", ["karma", 5])

    def test_adjust_karma(self):
        self.profiles.update("u1", {"karma": 2})
        self.assertEqual(self.profiles.adjust_karma("u1", 5), 7)
        self.assertEqual(self.profiles.adjust_karma("u1", -10), -3)
        self.assertEqual(self.profiles.get("u1").karma, -3)

    def test_add_donation(self):
        self.assertEqual(self.profiles.add_donation("u1", 100), 100)
        self.assertEqual(self.profiles.add_donation("u1", 50.5), 150.5)
        self.assertEqual(self.profiles.get("u1").total_donations, 150.5)


if __name__ == "__main__":
    unittest.main()
