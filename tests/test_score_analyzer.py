#!/usr/bin/env python3
# tests/test_score_analyzer.py
"""
Confessio Score Analyzer — Test Suite

LLM path is mocked; the keyword fallback runs for real.

Run with: python -m pytest tests/test_score_analyzer.py -v
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import unittest
from unittest.mock import MagicMock

from backend.llm_client import LLMTimeoutError
from confessional.models import Message
from confessional.score_analyzer import (
    AnalysisParseError,
    ScoreAnalyzer,
    format_transcript,
    parse_analysis,
)
from confessional.scoring_rules import SCORING_RULES, ScoringRule, detect_signals, match_rule


def user(text):
    return [Message(role="user", content=text)]


def llm_returning(text):
    client = MagicMock()
    client.complete.return_value = {"text": text, "model": "gpt-4o-mini", "channel": "complete"}
    return client


class TestFallbackRules(unittest.TestCase):
    """Keyword rule table, evaluated in order."""

    def setUp(self):
        self.analyzer = ScoreAnalyzer(None)

    def test_good_deeds_positive(self):
        result = self.analyzer.analyze(user("Вчера я помог бабушке донести сумки"))
        self.assertEqual(result.rule, "good_deeds")
        self.assertGreaterEqual(result.karma_change, 3)
        self.assertLessEqual(result.karma_change, 6)
        self.assertEqual(result.source, "fallback")

    def test_unrepented_sin_negative(self):
        result = self.analyzer.analyze(user("Я украл деньги у друга"))
        self.assertEqual(result.rule, "unrepented_sin")
        self.assertGreaterEqual(result.karma_change, -8)
        self.assertLessEqual(result.karma_change, -3)

    def test_repented_sin_zero(self):
        result = self.analyzer.analyze(user("Я обманул мать и очень сожалею"))
        self.assertEqual(result.rule, "repented_sin")
        self.assertEqual(result.karma_change, 0)

    def test_repentance_only_zero(self):
        result = self.analyzer.analyze(user("Каюсь во всем"))
        self.assertEqual(result.rule, "repentance")
        self.assertEqual(result.karma_change, 0)

    def test_plain_conversation_zero(self):
        result = self.analyzer.analyze(user("Как найти смысл жизни?"))
        self.assertEqual(result.rule, "conversation")
        self.assertEqual(result.karma_change, 0)

    def test_redemption_beats_sin(self):
        result = self.analyzer.analyze(user("I stole a bike but I returned it"))
        self.assertEqual(result.rule, "good_deeds")
        self.assertGreater(result.karma_change, 0)

    def test_deterministic(self):
        messages = user("Я украл кошелек")
        scores = {self.analyzer.analyze(messages).karma_change for _ in range(5)}
        self.assertEqual(len(scores), 1)

    def test_always_in_range(self):
        texts = [
            "", "помог спас отдал", "украл предал избил", "прости меня, я предал",
            "x" * 5000, "I helped, I lied, I repent, I returned", "🙏",
        ]
        for text in texts:
            result = self.analyzer.fallback(text)
            self.assertIsInstance(result.karma_change, int)
            self.assertGreaterEqual(result.karma_change, -10)
            self.assertLessEqual(result.karma_change, 10)
            self.assertTrue(result.summary)
            self.assertTrue(result.reasoning)

    def test_signals(self):
        self.assertEqual(detect_signals("Я УКРАЛ и КАЮСЬ"), frozenset({"sin", "repentance"}))
        self.assertEqual(detect_signals("hello"), frozenset())

    def test_first_matching_rule_wins(self):
        custom = [
            ScoringRule("always_one", lambda s: True, 1, 1, "s", "r"),
        ] + SCORING_RULES
        self.assertEqual(match_rule(frozenset({"sin"}), custom).name, "always_one")

    def test_empty_table_raises(self):
        never = [ScoringRule("never", lambda s: False, 0, 0, "s", "r")]
        with self.assertRaises(LookupError):
            match_rule(frozenset(), never)


class TestLLMPath(unittest.TestCase):

    def test_llm_result_used(self):
        client = llm_returning('{"karmaChange": 4, "summary": "Добро", "reasoning": "Помощь ближнему"}')
        result = ScoreAnalyzer(client).analyze(user("Я помог"))

        self.assertEqual(result.karma_change, 4)
        self.assertEqual(result.summary, "Добро")
        self.assertEqual(result.source, "llm")

        kwargs = client.complete.call_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertIn("Исповедующийся: Я помог", kwargs["user"])

    def test_llm_score_clamped(self):
        client = llm_returning('{"karmaChange": 42, "summary": "s", "reasoning": "r"}')
        self.assertEqual(ScoreAnalyzer(client).analyze(user("x")).karma_change, 10)

        client = llm_returning('{"karmaChange": -17.6, "summary": "s", "reasoning": "r"}')
        self.assertEqual(ScoreAnalyzer(client).analyze(user("x")).karma_change, -10)

    def test_code_fenced_reply(self):
        client = llm_returning('```json\n{"karmaChange": -2, "summary": "s", "reasoning": "r"}\n```')
        self.assertEqual(ScoreAnalyzer(client).analyze(user("x")).karma_change, -2)

    def test_unparseable_reply_falls_back(self):
        client = llm_returning("Я думаю, что карма +3")
        result = ScoreAnalyzer(client).analyze(user("Я украл"))
        self.assertEqual(result.source, "fallback")
        self.assertEqual(result.rule, "unrepented_sin")

    def test_llm_error_falls_back(self):
        client = MagicMock()
        client.complete.side_effect = LLMTimeoutError("timed out")
        result = ScoreAnalyzer(client).analyze(user("Каюсь"))
        self.assertEqual(result.source, "fallback")
        self.assertEqual(result.karma_change, 0)


class TestParseAnalysis(unittest.TestCase):

    def test_numeric_string_accepted(self):
        self.assertEqual(parse_analysis('{"karmaChange": "-3", "summary": "", "reasoning": ""}').karma_change, -3)

    def test_rejects_missing_score(self):
        with self.assertRaises(AnalysisParseError):
            parse_analysis('{"summary": "s", "reasoning": "r"}')

    def test_rejects_bool_score(self):
        with self.assertRaises(AnalysisParseError):
            parse_analysis('{"karmaChange": true, "summary": "s", "reasoning": "r"}')

    def test_rejects_non_finite(self):
        with self.assertRaises(AnalysisParseError):
            parse_analysis('{"karmaChange": "nan", "summary": "s", "reasoning": "r"}')

    def test_rejects_non_object(self):
        with self.assertRaises(AnalysisParseError):
            parse_analysis("[1, 2]")

    def test_rejects_missing_text(self):
        with self.assertRaises(AnalysisParseError):
            parse_analysis('{"karmaChange": 1, "summary": 5, "reasoning": "r"}')

    def test_transcript_labels(self):
        text = format_transcript([
            Message("user", "Здравствуйте"),
            Message("assistant", "Мир тебе"),
        ])
        self.assertEqual(text, "Исповедующийся: Здравствуйте\nДуховный Наставник: Мир тебе")


if __name__ == "__main__":
    unittest.main()
