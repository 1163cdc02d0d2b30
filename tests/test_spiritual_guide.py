#!/usr/bin/env python3
# tests/test_spiritual_guide.py
"""
Confessio Spiritual Guide — Test Suite

Run with: python -m pytest tests/test_spiritual_guide.py -v
"""

import random
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest
from unittest.mock import MagicMock

from backend.llm_client import LLMError
from confessional.errors import InvalidArgument, UpstreamUnavailable
from confessional.models import Message
from confessional.spiritual_guide import (
    FALLBACK_TOPICS,
    GENERAL_REPLIES,
    GUIDE_SYSTEM_PROMPT,
    SpiritualGuide,
    fallback_reply,
)


class TestFallbackReplies(unittest.TestCase):

    def test_topic_match(self):
        sin_replies = FALLBACK_TOPICS[0][1]
        self.assertIn(fallback_reply("Я согрешил перед Богом"), sin_replies)

    def test_general_reply(self):
        self.assertIn(fallback_reply("Добрый вечер"), GENERAL_REPLIES)

    def test_seeded_rng(self):
        a = fallback_reply("Мне страшно, я боюсь", random.Random(1))
        b = fallback_reply("Мне страшно, я боюсь", random.Random(1))
        self.assertEqual(a, b)


class TestReply(unittest.TestCase):

    def test_no_client_uses_fallback(self):
        text = SpiritualGuide(None).reply("Я согрешил")
        self.assertIn(text, FALLBACK_TOPICS[0][1])

    def test_empty_message_rejected(self):
        with self.assertRaises(InvalidArgument):
            SpiritualGuide(None).reply("   ")

    def test_llm_reply(self):
        client = MagicMock()
        client.chat.return_value = {"text": "  Мир тебе, чадо.  ", "content": "", "model": "m"}
        guide = SpiritualGuide(client, chat_model="gpt-4o-mini")

        history = [
            Message("assistant", "Здравствуй"),
            Message("user", "Я хочу покаяться"),
        ]
        text = guide.reply("Я хочу покаяться", history)

        self.assertEqual(text, "Мир тебе, чадо.")
        kwargs = client.chat.call_args.kwargs
        self.assertEqual(kwargs["system_prompt"], GUIDE_SYSTEM_PROMPT)
        # The duplicated trailing user turn is sent only once.
        self.assertEqual(kwargs["messages"], [
            {"role": "assistant", "content": "Здравствуй"},
            {"role": "user", "content": "Я хочу покаяться"},
        ])

    def test_llm_failure_falls_back(self):
        client = MagicMock()
        client.chat.side_effect = LLMError("boom")
        text = SpiritualGuide(client).reply("Я согрешил")
        self.assertIn(text, FALLBACK_TOPICS[0][1])

    def test_blank_llm_reply_falls_back(self):
        client = MagicMock()
        client.chat.return_value = {"text": ""}
        self.assertIn(SpiritualGuide(client).reply("Привет"), GENERAL_REPLIES)


class TestSpeak(unittest.TestCase):

    def test_no_client(self):
        with self.assertRaises(UpstreamUnavailable):
            SpiritualGuide(None).speak("Мир тебе")

    def test_empty_text(self):
        with self.assertRaises(InvalidArgument):
            SpiritualGuide(MagicMock()).speak("")

    def test_base64_audio(self):
        client = MagicMock()
        client.speak.return_value = b"ID3abc"
        guide = SpiritualGuide(client, tts_model="tts-1", tts_voice="onyx")

        self.assertEqual(guide.speak("Мир тебе"), "SUQzYWJj")
        client.speak.assert_called_once_with("Мир тебе", model="tts-1", voice="onyx")

    def test_upstream_failure(self):
        client = MagicMock()
        client.speak.side_effect = LLMError("quota")
        with self.assertRaises(UpstreamUnavailable):
            SpiritualGuide(client).speak("Мир тебе")


if __name__ == "__main__":
    unittest.main()
