# confessional/score_analyzer.py
"""
Confessio Score Analyzer — v1.0.0

Maps a finished conversation to:

    {"karmaChange": int in [-10, 10], "summary": str, "reasoning": str}

Primary path: the transcript plus a fixed rubric goes to the chat model,
which must answer with a JSON object. Fallback path: the keyword rule
table in scoring_rules. Any LLM error, missing key or unparseable reply
falls back, so analyze() always returns a score.

The analyzer performs no persistence.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import KARMA_MAX, KARMA_MIN, Message
from .scoring_rules import (
    SCORING_RULES,
    ScoringRule,
    detect_signals,
    match_rule,
    transcript_rng,
)


logger = logging.getLogger("confessio.analyzer")


RUBRIC_VERSION = "2024-11-ru-1"

SPEAKER_LABELS = {
    "user": "Исповедующийся",
    "assistant": "Духовный Наставник",
}

ANALYSIS_SYSTEM_PROMPT = (
    "Ты духовный аналитик, специализирующийся на христианском учении. "
    "Отвечай только в формате JSON."
)

ANALYSIS_PROMPT_TEMPLATE = """Ты духовный аналитик, изучающий христианское учение и Священное Писание. Проанализируй эту исповедь и определи изменение кармы человека.

Исповедь:
{conversation}

ВАЖНЫЕ ПРАВИЛА РАСЧЕТА КАРМЫ:

ПОЛОЖИТЕЛЬНАЯ КАРМА (+1 до +10):
- Только за РЕАЛЬНЫЕ благие дела и поступки: помощь людям, благотворительность, прощение обидчиков
- За активное искупление вины конкретными действиями: +3 до +7
- За совершенные добрые поступки: +2 до +10 (чем значительнее, тем больше)

НУЛЕВАЯ КАРМА (0):
- Простое раскаяние и признание греха БЕЗ реальных действий: 0
- Исповедь с вопросами, духовные размышления: 0
- Обычная беседа о жизни без конкретных поступков: 0

ОТРИЦАТЕЛЬНАЯ КАРМА (-1 до -10):
- Только если человек признался в плохих поступках: предательство, обман, насилие, воровство
- Чем серьезнее грех, тем больше минус: -2 до -10
- Отрицание вины или оправдание греха: -3 до -5

ПРИМЕРЫ:
"Я украл деньги у друга" → -5 до -8
"Я раскаиваюсь в том, что обманул жену" → 0
"Я помог бездомному и накормил его" → +5 до +7
"Я попросил прощения у человека, которого обидел, и искупил вину" → +4 до +6
"Как мне справиться с гневом?" → 0
"Я пожертвовал деньги в приют" → +6 до +8

ВАЖНО: Будь строг и честен. Карма меняется только за РЕАЛЬНЫЕ поступки, а не за слова и намерения.

Верни ответ СТРОГО в формате JSON (без дополнительного текста):
{{
  "karmaChange": число от -10 до +10,
  "summary": "краткое духовное резюме исповеди (1-2 предложения на русском)",
  "reasoning": "объяснение оценки кармы на основе христианских принципов (2-3 предложения на русском)"
}}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class AnalysisParseError(ValueError):
    """The model's reply is not the JSON object the rubric asks for."""


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class AnalysisResult:
    karma_change: int
    summary: str
    reasoning: str
    source: str = "fallback"  # "llm" | "fallback"
    rule: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "karmaChange": self.karma_change,
            "summary": self.summary,
            "reasoning": self.reasoning,
        }


# =============================================================================
# HELPERS
# =============================================================================

def format_transcript(messages: List[Message]) -> str:
    """One line per turn, labelled by speaker."""
    return "\n".join(
        f"{SPEAKER_LABELS.get(m.role, m.role)}: {m.content}" for m in messages
    )


def clamp_score(value: float) -> int:
    return max(KARMA_MIN, min(KARMA_MAX, int(round(value))))


def parse_analysis(text: str) -> AnalysisResult:
    """
    Parse the model reply.

    Raises:
        AnalysisParseError: when the reply is not a JSON object with a
            numeric karmaChange and string summary/reasoning
    """
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisParseError(f"reply is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisParseError("reply is not a JSON object")

    raw_score = data.get("karmaChange")
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float, str)):
        raise AnalysisParseError(f"karmaChange missing or invalid: {raw_score!r}")
    try:
        score = float(raw_score)
    except ValueError:
        raise AnalysisParseError(f"karmaChange is not numeric: {raw_score!r}")
    if not math.isfinite(score):
        raise AnalysisParseError(f"karmaChange is not finite: {raw_score!r}")

    summary = data.get("summary")
    reasoning = data.get("reasoning")
    if not isinstance(summary, str) or not isinstance(reasoning, str):
        raise AnalysisParseError("summary and reasoning must be strings")

    return AnalysisResult(
        karma_change=clamp_score(score),
        summary=summary.strip(),
        reasoning=reasoning.strip(),
        source="llm",
    )


# =============================================================================
# ANALYZER
# =============================================================================

class ScoreAnalyzer:
    """
    Scores transcripts.

    llm_client is optional; without it every call takes the keyword path.
    """

    def __init__(
        self,
        llm_client: Any = None,
        model: str = "gpt-4o-mini",
        rules: Optional[List[ScoringRule]] = None,
    ):
        self.llm_client = llm_client
        self.model = model
        self.rules = rules or SCORING_RULES

    def analyze(self, messages: List[Message]) -> AnalysisResult:
        transcript = format_transcript(messages)

        if self.llm_client is None:
            logger.info("No LLM client configured, using fallback analysis")
            return self.fallback(transcript)

        try:
            result = self._analyze_with_llm(transcript)
        except Exception as e:
            logger.warning("LLM analysis failed (%s: %s), using fallback", type(e).__name__, e)
            return self.fallback(transcript)

        logger.info("LLM analysis karmaChange=%d rubric=%s", result.karma_change, RUBRIC_VERSION)
        return result

    def _analyze_with_llm(self, transcript: str) -> AnalysisResult:
        reply = self.llm_client.complete(
            system=ANALYSIS_SYSTEM_PROMPT,
            user=ANALYSIS_PROMPT_TEMPLATE.format(conversation=transcript),
            model=self.model,
            command="confession-analyze",
            temperature=0.7,
            max_tokens=500,
            response_format={"type": "json_object"},
        )
        return parse_analysis(reply.get("text", ""))

    def fallback(self, transcript: str) -> AnalysisResult:
        """Deterministic keyword scoring; never raises, never does I/O."""
        signals = detect_signals(transcript)
        rule = match_rule(signals, self.rules)
        score = clamp_score(rule.pick(transcript_rng(transcript)))

        logger.info("Fallback analysis rule=%s signals=%s karmaChange=%d", rule.name, sorted(signals), score)

        return AnalysisResult(
            karma_change=score,
            summary=rule.summary,
            reasoning=rule.reasoning,
            source="fallback",
            rule=rule.name,
        )


__all__ = [
    "AnalysisParseError",
    "AnalysisResult",
    "ScoreAnalyzer",
    "RUBRIC_VERSION",
    "format_transcript",
    "parse_analysis",
]
