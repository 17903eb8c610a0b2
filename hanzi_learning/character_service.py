"""
Character Data Service: word -> ordered list of character records.

CharacterDataService calls OpenAI directly (used by the Flask backend);
CharacterDataClient talks to the backend's /api/generate endpoint. Both expose
``lookup(word) -> LookupResult`` so the application shell can use either.
"""
import json
import logging
import ssl
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

import certifi
import openai
from openai import OpenAI

from hanzi_learning import config
from hanzi_learning.errors import ServiceUnavailableError, ValidationError
from hanzi_learning.event_log import log_event
from hanzi_learning.models import DIFFICULTY_TIERS, LookupResult

SCHEMA_NAME = "chinese_characters"

# Strict structured outputs require every property to be listed in "required";
# optional fields are expressed as nullable instead.
CHARACTER_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "characters": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "character": {"type": "string", "description": "The Chinese character"},
                    "pinyin": {"type": "string", "description": "The pinyin pronunciation"},
                    "meaning": {"type": "string", "description": "The Vietnamese and English meaning"},
                    "strokeCount": {"type": "integer", "description": "Number of strokes in the character"},
                    "strokeOrderTips": {
                        "type": ["string", "null"],
                        "description": "Tips for writing stroke order",
                    },
                    "radicals": {
                        "type": ["string", "null"],
                        "description": "Character radicals and components",
                    },
                    "difficulty": {
                        "type": "string",
                        "enum": list(DIFFICULTY_TIERS),
                        "description": "Learning difficulty level",
                    },
                },
                "required": [
                    "character", "pinyin", "meaning", "strokeCount",
                    "strokeOrderTips", "radicals", "difficulty",
                ],
                "additionalProperties": False,
            },
        },
    },
    "required": ["characters"],
    "additionalProperties": False,
}

SYSTEM_PROMPT = (
    "You are a Chinese teacher for Vietnamese and English speaking learners. "
    "You answer only with JSON matching the provided schema."
)


def build_prompt(word: str) -> str:
    """User prompt asking for a one-record-per-character decomposition of ``word``."""
    return (
        f'Convert the word "{word}" to Chinese characters. For each character, provide:\n'
        "1. The Chinese character itself\n"
        "2. Pinyin pronunciation with tone marks\n"
        '3. Meaning in both Vietnamese and English (format: "Vietnamese / English")\n'
        "4. Number of strokes (0 for punctuation)\n"
        "5. Tips for stroke order and writing technique\n"
        "6. Radicals and components of the character\n"
        "7. Learning difficulty: beginner, intermediate or advanced\n"
        "\n"
        "IMPORTANT: Output exactly ONE entry per individual character, in reading order. "
        "Never put two characters in the same entry. Punctuation marks get their own entry.\n"
        "If the input is already in Chinese, break it down character by character.\n"
        "If it's Vietnamese or English, find the most appropriate Chinese translation."
    )


def build_response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": SCHEMA_NAME,
            "schema": CHARACTER_RESPONSE_SCHEMA,
            "strict": True,
        },
    }


def validate_word(word: Optional[str]) -> str:
    """Return the trimmed word or raise ValidationError for empty input."""
    if not isinstance(word, str) or not word.strip():
        raise ValidationError()
    return word.strip()


class CharacterDataService:
    """Generates character records with an OpenAI chat completion."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model or config.get_openai_model()

    def is_configured(self) -> bool:
        return self._client is not None or bool(config.get_openai_api_key())

    def _get_client(self) -> OpenAI:
        if self._client is None:
            api_key = config.get_openai_api_key()
            if not api_key:
                raise ServiceUnavailableError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=api_key, timeout=config.get_openai_timeout())
        return self._client

    def lookup(self, word: str) -> LookupResult:
        word = validate_word(word)
        client = self._get_client()

        started = time.time()
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(word)},
                ],
                response_format=build_response_format(),
            )
        except openai.OpenAIError as e:
            log_event("generate_failed", level=logging.ERROR, word=word, error=str(e))
            raise ServiceUnavailableError(f"Upstream generation failed: {e}") from e
        latency_ms = int((time.time() - started) * 1000)

        try:
            raw = completion.choices[0].message.content or ""
            result = LookupResult.from_payload(word, json.loads(raw))
        except (IndexError, AttributeError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            log_event("generate_failed", level=logging.ERROR, word=word, error=f"malformed response: {e}")
            raise ServiceUnavailableError(f"Malformed upstream response: {e}") from e

        if not result.characters:
            log_event("generate_failed", level=logging.ERROR, word=word, error="empty character list")
            raise ServiceUnavailableError("Upstream returned no characters")

        log_event(
            "generate_completed",
            word=word,
            model=self.model,
            characters=result.text,
            latency_ms=latency_ms,
        )
        return result


class CharacterDataClient:
    """HTTP client for POST /api/generate."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 60.0, opener=None):
        self.base_url = (base_url or config.get_generate_api_url()).rstrip('/')
        self.timeout = timeout
        self._opener = opener or urllib.request.urlopen
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/generate"

    def lookup(self, word: str) -> LookupResult:
        word = validate_word(word)
        body = json.dumps({"word": word}, ensure_ascii=False).encode('utf-8')
        req = urllib.request.Request(
            self.endpoint,
            data=body,
            headers={'Content-Type': 'application/json'},
            method='POST',
        )
        kwargs = {'timeout': self.timeout}
        if self.endpoint.startswith('https://'):
            kwargs['context'] = self._ssl_context
        try:
            with self._opener(req, **kwargs) as resp:
                payload = json.loads(resp.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            message = _error_message(e)
            if e.code == 400:
                raise ValidationError(message or "Word is required") from e
            raise ServiceUnavailableError(f"HTTP {e.code}: {message}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ServiceUnavailableError(f"Network error: {e}") from e
        except ValueError as e:
            raise ServiceUnavailableError(f"Malformed response: {e}") from e

        if isinstance(payload, dict) and payload.get('error'):
            raise ServiceUnavailableError(str(payload['error']))
        try:
            return LookupResult.from_payload(word, payload)
        except ValueError as e:
            raise ServiceUnavailableError(f"Malformed response: {e}") from e


def _error_message(error: urllib.error.HTTPError) -> str:
    try:
        data = json.loads(error.read().decode('utf-8'))
    except (ValueError, OSError, AttributeError):
        return str(error.reason)
    if isinstance(data, dict) and data.get('error'):
        return str(data['error'])
    return str(error.reason)
