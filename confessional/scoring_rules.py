# confessional/scoring_rules.py
"""
Keyword fallback scoring.

The fallback is an ordered rule table: the first rule whose condition
matches the transcript's keyword signals decides the score range and the
narrative. It never touches the network.

Vocabularies cover Russian (the product language) and English. Matching
is substring-based on the lower-cased transcript, so stems like "помог"
also match "помогла", "помогли".
"""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple


# =============================================================================
# VOCABULARIES
# =============================================================================

GOOD_DEED_WORDS: Tuple[str, ...] = (
    "помог", "помогу", "пожертвовал", "отдал", "накормил", "приютил", "спас",
    "простил обидчика", "искупил",
    "helped", "donated", "gave away", "fed ", "sheltered", "saved", "volunteered",
    "forgave",
)

REPENTANCE_WORDS: Tuple[str, ...] = (
    "раскаяние", "раскаиваюсь", "простите", "сожалею", "виноват", "прощения", "каюсь",
    "i repent", "i regret", "i'm sorry", "i am sorry", "forgive me", "ashamed",
)

SIN_WORDS: Tuple[str, ...] = (
    "украл", "обманул", "предал", "ударил", "избил", "изменил", "соврал",
    "обидел сильно",
    "stole", "cheated", "betrayed", "lied", "hit ", "beat ", "hurt someone",
)

REDEMPTION_WORDS: Tuple[str, ...] = (
    "исправил", "попросил прощения", "вернул", "загладил вину",
    "made amends", "apologized", "apologised", "gave it back", "paid back",
    "returned",
)

SIGNAL_VOCABULARIES: Dict[str, Tuple[str, ...]] = {
    "good_deeds": GOOD_DEED_WORDS,
    "repentance": REPENTANCE_WORDS,
    "sin": SIN_WORDS,
    "redemption": REDEMPTION_WORDS,
}


def detect_signals(text: str) -> FrozenSet[str]:
    """Names of the vocabularies present in text."""
    lowered = text.lower()
    return frozenset(
        name
        for name, words in SIGNAL_VOCABULARIES.items()
        if any(word in lowered for word in words)
    )


# =============================================================================
# RULE TABLE
# =============================================================================

@dataclass(frozen=True)
class ScoringRule:
    """condition(signals) → karma in [low, high] plus a fixed narrative."""
    name: str
    condition: Callable[[FrozenSet[str]], bool]
    low: int
    high: int
    summary: str
    reasoning: str

    def pick(self, rng: random.Random) -> int:
        if self.low == self.high:
            return self.low
        return rng.randint(self.low, self.high)


SCORING_RULES: List[ScoringRule] = [
    ScoringRule(
        name="good_deeds",
        condition=lambda s: "good_deeds" in s or "redemption" in s,
        low=3,
        high=6,
        summary="Благие дела и добрые поступки",
        reasoning=(
            "Ваши добрые дела приносят свет в мир. "
            "Господь видит вашу искренность и щедрость сердца."
        ),
    ),
    ScoringRule(
        name="unrepented_sin",
        condition=lambda s: "sin" in s and "repentance" not in s,
        low=-8,
        high=-3,
        summary="Грех требует осознания",
        reasoning=(
            "Содеянное требует искреннего раскаяния и стремления к исправлению. "
            "Обратитесь к Богу с чистым сердцем."
        ),
    ),
    ScoringRule(
        name="repented_sin",
        condition=lambda s: "sin" in s and "repentance" in s,
        low=0,
        high=0,
        summary="Раскаяние принято",
        reasoning=(
            "Ваше раскаяние искренне. Теперь искупите вину добрыми делами, "
            "и Господь простит вас."
        ),
    ),
    ScoringRule(
        name="repentance",
        condition=lambda s: "repentance" in s,
        low=0,
        high=0,
        summary="Исповедь с раскаянием",
        reasoning=(
            "Раскаяние - первый шаг. Теперь идите и творите добро, "
            "чтобы искупить содеянное."
        ),
    ),
    ScoringRule(
        name="conversation",
        condition=lambda s: True,
        low=0,
        high=0,
        summary="Духовная беседа",
        reasoning=(
            "Размышления и вопросы о жизни - важная часть духовного пути. "
            "Продолжайте искать истину."
        ),
    ),
]


def transcript_rng(text: str) -> random.Random:
    """RNG seeded from the transcript, so equal input gives equal scores."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def match_rule(signals: FrozenSet[str], rules: Optional[List[ScoringRule]] = None) -> ScoringRule:
    for rule in rules or SCORING_RULES:
        if rule.condition(signals):
            return rule
    # The last built-in rule always matches; custom tables should end with one too.
    raise LookupError("no scoring rule matched")


__all__ = [
    "ScoringRule",
    "SCORING_RULES",
    "SIGNAL_VOCABULARIES",
    "detect_signals",
    "match_rule",
    "transcript_rng",
]
