"""
Character records and lookup results, plus conversion from/to the wire payload.

Wire keys (camelCase) follow the /api/generate contract:
    {"characters": [{"character", "pinyin", "meaning", "strokeCount",
                     "strokeOrderTips", "radicals", "difficulty"}]}
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from hanzi_learning.characters import is_valid_chinese
from hanzi_learning.event_log import log_event

DIFFICULTY_TIERS = ("beginner", "intermediate", "advanced")
DEFAULT_DIFFICULTY = "beginner"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _stroke_count(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("strokeCount must be a number")
    if isinstance(value, int):
        count = value
    elif isinstance(value, float) and value.is_integer():
        count = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        count = int(value.strip())
    else:
        raise ValueError(f"strokeCount must be a non-negative integer, got {value!r}")
    if count < 0:
        raise ValueError(f"strokeCount must be a non-negative integer, got {value!r}")
    return count


@dataclass(frozen=True)
class CharacterRecord:
    """One entry returned by the Character Data Service."""

    character: str
    pronunciation: str
    meaning: str
    stroke_count: int
    stroke_order_guidance: str = ""
    components: str = ""
    difficulty_tier: str = DEFAULT_DIFFICULTY

    @property
    def is_valid_chinese(self) -> bool:
        return is_valid_chinese(self.character)

    @classmethod
    def from_payload(cls, entry: Dict[str, Any]) -> "CharacterRecord":
        """
        Build a record from one wire entry.

        Raises ValueError for malformed entries (missing character, bad stroke
        count). An unknown or missing difficulty degrades to "beginner".
        """
        if not isinstance(entry, dict):
            raise ValueError("Character entry must be an object")
        character = _text(entry.get('character'))
        if not character:
            raise ValueError("Character entry is missing 'character'")
        difficulty = _text(entry.get('difficulty')).lower()
        if difficulty not in DIFFICULTY_TIERS:
            difficulty = DEFAULT_DIFFICULTY
        return cls(
            character=character,
            pronunciation=_text(entry.get('pinyin')),
            meaning=_text(entry.get('meaning')),
            stroke_count=_stroke_count(entry.get('strokeCount', 0)),
            stroke_order_guidance=_text(entry.get('strokeOrderTips')),
            components=_text(entry.get('radicals')),
            difficulty_tier=difficulty,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'character': self.character,
            'pinyin': self.pronunciation,
            'meaning': self.meaning,
            'strokeCount': self.stroke_count,
            'strokeOrderTips': self.stroke_order_guidance,
            'radicals': self.components,
            'difficulty': self.difficulty_tier,
        }


@dataclass(frozen=True)
class LookupResult:
    """Ordered records for one submitted word, in reading order."""

    word: str
    characters: Tuple[CharacterRecord, ...]

    @property
    def text(self) -> str:
        return "".join(r.character for r in self.characters)

    def __len__(self) -> int:
        return len(self.characters)

    def find(self, character: str) -> CharacterRecord | None:
        for record in self.characters:
            if record.character == character:
                return record
        return None

    @classmethod
    def from_payload(cls, word: str, payload: Dict[str, Any]) -> "LookupResult":
        """
        Build a result from the wire payload. A malformed entry is logged and
        skipped so the remaining records still render; the payload itself must
        be an object with a 'characters' list.
        """
        if not isinstance(payload, dict):
            raise ValueError("Response payload must be an object")
        entries = payload.get('characters')
        if not isinstance(entries, list):
            raise ValueError("Response payload is missing 'characters'")
        records: List[CharacterRecord] = []
        for index, entry in enumerate(entries):
            try:
                records.append(CharacterRecord.from_payload(entry))
            except ValueError as e:
                log_event("granularity_warning", level=logging.WARNING, word=word, index=index,
                          error=str(e))
        return cls(word=word, characters=tuple(records))

    def to_payload(self) -> Dict[str, Any]:
        return {'characters': [r.to_payload() for r in self.characters]}
