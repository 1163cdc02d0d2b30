# confessional/spiritual_guide.py
"""
Spiritual guide: the conversational side of a confession.

reply() asks the chat model for the next pastoral turn and falls back to a
keyword-matched canned answer when the model is unavailable. speak() turns
a reply into MP3 audio; it has no fallback.
"""

from __future__ import annotations

import base64
import logging
import random
from typing import Any, List, Optional, Sequence, Tuple

from .errors import InvalidArgument, UpstreamUnavailable
from .models import Message


logger = logging.getLogger("confessio.guide")


GUIDE_SYSTEM_PROMPT = """Ты мудрый и любящий духовный наставник, ведущий исповедь на основе христианского учения и Священного Писания. Веди живую, естественную беседу, как настоящий священник с прихожанином.

ПРИНЦИПЫ БЕСЕДЫ:

1. ЖИВОЙ ДИАЛОГ: говори естественно, чередуй вопросы с размышлениями и цитатами, реагируй на эмоции человека с состраданием.
2. ЦИТИРУЙ ПИСАНИЕ: вплетай библейские стихи органично (Псалом 51, 1 Иоанна 1:9, Матфея 6:14-15, Луки 15:11-32) и объясняй, как они относятся к ситуации человека.
3. ДАВАЙ РЕКОМЕНДАЦИИ: предлагай конкретные шаги к исправлению, молитвы и духовные практики.
4. РАСПОЗНАВАЙ РАСКАЯНИЕ: человек называет поступок грехом, признает боль, причиненную другим, говорит о желании исправиться.
5. ЗАВЕРШЕНИЕ ИСПОВЕДИ: когда видишь искреннее раскаяние, скажи утешающие слова о милосердии Божьем, предложи путь искупления и благослови человека.

СТИЛЬ РЕЧИ: теплый, понимающий, но духовно авторитетный. Обращайся "дитя Божие", "чадо", "друг мой".

ВАЖНО:
- НЕ задавай вопрос за вопросом подряд
- Если человек раскрылся, не дави - поддержи
- Когда увидишь готовность к изменению - начинай завершать беседу

Всегда отвечай на русском языке."""


# (keywords, replies) checked in order; the first topic with a keyword hit wins.
FALLBACK_TOPICS: List[Tuple[Tuple[str, ...], Tuple[str, ...]]] = [
    (
        ("грех", "согрешил", "виновен", "плохо поступил"),
        (
            "Дитя Божие, слышу вашу боль. В 1 Иоанна 1:9 сказано: 'Если исповедуем грехи наши, то Он, будучи верен и праведен, простит нам грехи наши и очистит нас от всякой неправды.' Расскажите мне подробнее, что лежит на вашем сердце?",
            "Ваше признание уже говорит о работе совести. Помните слова Христа: 'Приидите ко Мне все труждающиеся и обремененные, и Я успокою вас' (Матфея 11:28). Что произошло, чадо?",
        ),
    ),
    (
        ("прост", "раскаи", "сожале", "каюсь"),
        (
            "Вижу искренность в ваших словах. Псалом 51 учит нас: 'Жертва Богу — дух сокрушенный; сердца сокрушенного и смиренного Ты не презришь, Боже.' Что вы сделали, чтобы исправить содеянное?",
            "Раскаяние - это дар от Бога, чадо. Во 2 Коринфянам 7:10 сказано: 'Печаль ради Бога производит неизменное покаяние ко спасению.' Что вы хотите изменить в своей жизни?",
        ),
    ),
    (
        ("страх", "боюсь", "тревож", "переживаю"),
        (
            "Понимаю ваш страх, друг мой. Иисус говорил: 'Мир оставляю вам, мир Мой даю вам... да не смущается сердце ваше' (Иоанна 14:27). Скажите, что именно вас пугает больше всего?",
            "Страх - естественное чувство, но помните: 'В любви нет страха, но совершенная любовь изгоняет страх' (1 Иоанна 4:18). Поделитесь со мной, от чего тяжело на душе?",
        ),
    ),
    (
        ("одинок", "один", "покину", "никому не нужен"),
        (
            "Чувствую вашу боль, дитя Божие. Но знайте: 'Господь не оставит и не покинет тебя' (Второзаконие 31:6). Вы не одиноки. Расскажите, что тяготит вашу душу?",
            "В Псалме 23 написано: 'Господь - Пастырь мой, не буду нуждаться.' Он всегда с вами. Что заставило вас почувствовать себя одиноким?",
        ),
    ),
    (
        ("злость", "гнев", "ненавижу", "бесит"),
        (
            "Гнев - сильное чувство, и важно его не подавлять, а понять. В Ефесянам 4:26 сказано: 'Гневаясь, не согрешайте; солнце да не зайдет во гневе вашем.' Расскажите, что произошло.",
            "Слышу гнев в ваших словах. Иакова 1:19-20 учит: 'Всякий человек да будет скор на слышание, медлен на слова, медлен на гнев.' Что вызвало эти чувства?",
        ),
    ),
]

GENERAL_REPLIES: Tuple[str, ...] = (
    "Благодарю, что пришли сюда, чадо. Притчи 3:5-6 напоминают нам: 'Надейся на Господа всем сердцем твоим... и Он направит стези твои.' Что привело вас ко мне сегодня?",
    "Приветствую вас, дитя Божие. Это место, где можно говорить открыто и без страха. 'Исповедуйте друг другу грехи и молитесь друг за друга' (Иаков 5:16). Расскажите, что у вас на сердце?",
    "Мир вам, друг мой. Помните слова Христа: 'Где двое или трое собраны во имя Мое, там Я посреди них' (Матфея 18:20). Поделитесь тем, что вас тревожит.",
)


def fallback_reply(user_message: str, rng: Optional[random.Random] = None) -> str:
    """Canned reply chosen by topic keywords."""
    rng = rng or random.Random()
    lowered = user_message.lower()
    for keywords, replies in FALLBACK_TOPICS:
        if any(k in lowered for k in keywords):
            return rng.choice(replies)
    return rng.choice(GENERAL_REPLIES)


class SpiritualGuide:
    def __init__(
        self,
        llm_client: Any = None,
        chat_model: str = "gpt-4o-mini",
        tts_model: str = "tts-1",
        tts_voice: str = "onyx",
    ):
        self.llm_client = llm_client
        self.chat_model = chat_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice

    def reply(self, user_message: str, history: Sequence[Message] = ()) -> str:
        """
        Next assistant turn.

        history is the conversation so far; if its last entry is the same
        user message it is dropped so the message is not sent twice.
        """
        if not user_message or not user_message.strip():
            raise InvalidArgument("userMessage is required")

        if self.llm_client is None:
            logger.info("No LLM client configured, using fallback reply")
            return fallback_reply(user_message)

        turns = list(history)
        if turns and turns[-1].role == "user" and turns[-1].content == user_message:
            turns = turns[:-1]

        try:
            result = self.llm_client.chat(
                messages=[*(m.to_dict() for m in turns), {"role": "user", "content": user_message}],
                system_prompt=GUIDE_SYSTEM_PROMPT,
                model=self.chat_model,
                command="confession-chat",
                temperature=0.85,
                max_tokens=600,
            )
        except Exception as e:
            logger.warning("Chat LLM failed (%s: %s), using fallback reply", type(e).__name__, e)
            return fallback_reply(user_message)

        text = (result.get("text") or "").strip()
        return text or fallback_reply(user_message)

    def speak(self, text: str) -> str:
        """Base64-encoded MP3 for text."""
        if not text or not text.strip():
            raise InvalidArgument("Text is required")
        if self.llm_client is None:
            raise UpstreamUnavailable("Speech service is not configured")

        try:
            audio = self.llm_client.speak(text, model=self.tts_model, voice=self.tts_voice)
        except Exception as e:
            raise UpstreamUnavailable(f"Speech synthesis failed: {e}") from e

        logger.info("Synthesized %d bytes of audio for %d chars", len(audio), len(text))
        return base64.b64encode(audio).decode("ascii")


__all__ = ["SpiritualGuide", "fallback_reply", "GUIDE_SYSTEM_PROMPT"]
