"""
Confessio LLM Client — v1.0.0

Thin wrapper over the OpenAI SDK used by the score analyzer and the
spiritual guide:
- Explicit timeout on every API call (default 90s, below gunicorn's 120s)
- LLMTimeoutError for timeout/network failures, LLMError for the rest
- max_tokens → max_completion_tokens for gpt-5/o-series models
- Speech synthesis (audio/speech) returning raw MP3 bytes
"""

import logging
from typing import Any, Dict, List, Optional


# -----------------------------------------------------------------------------
# OpenAI Import
# -----------------------------------------------------------------------------

try:
    from openai import OpenAI, APIConnectionError, APITimeoutError
    _HAS_OPENAI = True
except ImportError:
    _HAS_OPENAI = False
    OpenAI = None
    APIConnectionError = Exception
    APITimeoutError = Exception

import httpx


logger = logging.getLogger("confessio.llm")


# -----------------------------------------------------------------------------
# Custom Exceptions
# -----------------------------------------------------------------------------

class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMTimeoutError(LLMError):
    """
    Raised when an LLM API call times out or fails due to network issues.

    Lets callers tell "service unreachable" apart from a bad response.
    """
    pass


# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

# LLM client timeout in seconds - MUST be less than Gunicorn worker timeout
LLM_CLIENT_TIMEOUT = 90

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TTS_MODEL = "tts-1"
DEFAULT_TTS_VOICE = "onyx"

ALLOWED_PARAMS = {
    "temperature",
    "max_tokens",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
    "stop",
    "n",
    "response_format",
    "seed",
    "user",
}

NETWORK_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadTimeout)


def _mask_key(api_key: str) -> str:
    return f"{api_key[:8]}...{api_key[-4:]}" if len(api_key) > 12 else "***"


# -----------------------------------------------------------------------------
# LLM Client
# -----------------------------------------------------------------------------

class LLMClient:
    """
    OpenAI client with timeout handling and call logging.

    Logs ALL LLM calls with channel, command, and model.
    """

    def __init__(self, api_key: str, timeout: int = LLM_CLIENT_TIMEOUT):
        if not _HAS_OPENAI:
            raise RuntimeError("openai package not installed. Run: pip install openai")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set. Add it to .env or the environment.")

        logger.info("Initializing client with key: %s (timeout %ss)", _mask_key(api_key), timeout)

        self.timeout = timeout
        self.client = OpenAI(api_key=api_key, timeout=timeout)

    def _call_api(
        self,
        model: str,
        system_prompt: str,
        messages: List[Dict[str, str]],
        channel: str = "unknown",
        command: str = "unknown",
        **kwargs,
    ) -> str:
        """
        Make the actual OpenAI API call.

        Only standard Chat Completions parameters are forwarded.
        """
        filtered_kwargs = {k: v for k, v in kwargs.items() if k in ALLOWED_PARAMS}

        # gpt-5 and o-series models require max_completion_tokens, not max_tokens
        if "max_tokens" in filtered_kwargs:
            if "gpt-5" in model or "o1" in model or "o3" in model:
                filtered_kwargs["max_completion_tokens"] = filtered_kwargs.pop("max_tokens")

        removed = set(kwargs.keys()) - set(filtered_kwargs.keys())
        if removed:
            logger.warning("Filtered incompatible kwargs: %s", removed)

        try:
            resp = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    *messages,
                ],
                timeout=self.timeout,
                **filtered_kwargs,
            )
            return resp.choices[0].message.content or ""

        except APITimeoutError as e:
            logger.error("TIMEOUT channel=%s command=%s model=%s error=%s", channel, command, model, e)
            raise LLMTimeoutError(
                f"LLM request timed out after {self.timeout}s. "
                f"Channel={channel}, command={command}, model={model}"
            ) from e

        except APIConnectionError as e:
            logger.error("CONNECTION ERROR channel=%s command=%s model=%s error=%s", channel, command, model, e)
            raise LLMTimeoutError(
                f"LLM connection failed (network error). "
                f"Channel={channel}, command={command}, model={model}. Error: {e}"
            ) from e

        except NETWORK_ERRORS as e:
            logger.error("HTTPX TIMEOUT channel=%s command=%s model=%s error=%s", channel, command, model, e)
            raise LLMTimeoutError(
                f"LLM request failed (httpx network error). "
                f"Channel={channel}, command={command}, model={model}. Error: {e}"
            ) from e

        except Exception as e:
            logger.error("ERROR channel=%s command=%s model=%s error=%s", channel, command, model, e)
            raise LLMError(
                f"LLM call failed for command='{command}' with model={model}. Error: {e}"
            ) from e

    # -------------------------------------------------------------------------
    # Single-turn completion
    # -------------------------------------------------------------------------

    def complete(
        self,
        system: str,
        user: str,
        model: Optional[str] = None,
        command: str = "unknown",
        **kwargs,
    ) -> Dict[str, Any]:
        """One system prompt plus one user turn."""
        model = model or DEFAULT_MODEL

        logger.info("channel=complete command=%s model=%s", command, model)

        text = self._call_api(
            model=model,
            system_prompt=system,
            messages=[{"role": "user", "content": user}],
            channel="complete",
            command=command,
            **kwargs,
        )

        return {
            "text": text,
            "model": model,
            "channel": "complete",
        }

    # -------------------------------------------------------------------------
    # Multi-turn chat
    # -------------------------------------------------------------------------

    def chat(
        self,
        messages: Optional[List[Dict[str, str]]] = None,
        system_prompt: str = "",
        model: Optional[str] = None,
        command: str = "unknown",
        **kwargs,
    ) -> Dict[str, Any]:
        """Chat completion over an existing history."""
        model = model or DEFAULT_MODEL

        logger.info("channel=chat command=%s model=%s", command, model)

        text = self._call_api(
            model=model,
            system_prompt=system_prompt,
            messages=messages or [],
            channel="chat",
            command=command,
            **kwargs,
        )

        return {
            "content": text,
            "text": text,
            "model": model,
        }

    # -------------------------------------------------------------------------
    # Speech
    # -------------------------------------------------------------------------

    def speak(
        self,
        text: str,
        model: str = DEFAULT_TTS_MODEL,
        voice: str = DEFAULT_TTS_VOICE,
        speed: float = 0.95,
    ) -> bytes:
        """Synthesize speech and return MP3 bytes."""
        logger.info("channel=speech model=%s voice=%s chars=%d", model, voice, len(text))

        try:
            resp = self.client.audio.speech.create(
                model=model,
                voice=voice,
                input=text,
                speed=speed,
                timeout=self.timeout,
            )
            return resp.content

        except (APITimeoutError, APIConnectionError) + NETWORK_ERRORS as e:
            logger.error("SPEECH NETWORK ERROR model=%s error=%s", model, e)
            raise LLMTimeoutError(f"Speech request failed (network error): {e}") from e

        except Exception as e:
            logger.error("SPEECH ERROR model=%s error=%s", model, e)
            raise LLMError(f"Speech synthesis failed with model={model}. Error: {e}") from e


__all__ = [
    "LLMClient",
    "LLMError",
    "LLMTimeoutError",
    "LLM_CLIENT_TIMEOUT",
    "DEFAULT_MODEL",
]
