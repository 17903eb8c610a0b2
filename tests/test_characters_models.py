"""Tests for character helpers and the record/result models."""
import pytest

from conftest import HELLO_PAYLOAD
from hanzi_learning.characters import is_cjk_ideograph, is_valid_chinese, split_glyphs, strip_tone_marks
from hanzi_learning.models import CharacterRecord, LookupResult


@pytest.mark.parametrize("text, expected", [
    ("你", True),
    ("龘", True),
    ("㐀", True),  # Extension A
    ("你好", False),
    ("!", False),
    ("，", False),
    ("a", False),
    ("", False),
])
def test_is_valid_chinese(text, expected):
    assert is_valid_chinese(text) is expected


def test_is_cjk_ideograph_rejects_multi_char():
    assert is_cjk_ideograph("好") is True
    assert is_cjk_ideograph("好好") is False


def test_split_glyphs():
    assert split_glyphs("你好") == ["你", "好"]
    assert split_glyphs(" 你 \n好 ") == ["你", "好"]
    assert split_glyphs("é!") == ["é", "!"]
    assert split_glyphs("") == []


@pytest.mark.parametrize("pinyin, expected", [
    ("nǐ hǎo", "ni hao"),
    ("xué", "xue"),
    ("lǜ", "lu"),
    ("ma", "ma"),
])
def test_strip_tone_marks(pinyin, expected):
    assert strip_tone_marks(pinyin) == expected


def test_record_from_payload():
    rec = CharacterRecord.from_payload(HELLO_PAYLOAD["characters"][0])
    assert rec.character == "你"
    assert rec.pronunciation == "nǐ"
    assert rec.stroke_count == 7
    assert rec.components == "亻 + 尔"
    assert rec.difficulty_tier == "beginner"
    assert rec.is_valid_chinese is True


def test_record_defaults_for_optional_fields():
    rec = CharacterRecord.from_payload({"character": "好", "pinyin": "hǎo", "meaning": "good",
                                        "strokeCount": 6.0, "difficulty": "EXPERT"})
    assert rec.stroke_order_guidance == ""
    assert rec.components == ""
    assert rec.stroke_count == 6
    assert rec.difficulty_tier == "beginner"


def test_record_accepts_numeric_string_stroke_count():
    rec = CharacterRecord.from_payload({"character": "好", "strokeCount": " 6 "})
    assert rec.stroke_count == 6


@pytest.mark.parametrize("entry", [
    {"pinyin": "nǐ"},
    {"character": "  "},
    {"character": "你", "strokeCount": -1},
    {"character": "你", "strokeCount": True},
    {"character": "你", "strokeCount": 6.5},
    "你",
])
def test_record_rejects_malformed_entries(entry):
    with pytest.raises(ValueError):
        CharacterRecord.from_payload(entry)


def test_record_payload_round_trip_keys():
    entry = HELLO_PAYLOAD["characters"][0]
    assert CharacterRecord.from_payload(entry).to_payload() == entry


def test_lookup_result():
    result = LookupResult.from_payload("hello", HELLO_PAYLOAD)
    assert len(result) == 2
    assert result.text == "你好"
    assert result.find("好").stroke_count == 6
    assert result.find("学") is None
    payload = result.to_payload()
    assert [c["character"] for c in payload["characters"]] == ["你", "好"]


def test_lookup_result_skips_malformed_entries():
    payload = {"characters": [{"character": "你"}, {"character": "  "}, "好", {"character": "好"}]}
    result = LookupResult.from_payload("hello", payload)
    assert result.text == "你好"


def test_lookup_result_with_no_usable_entries_is_empty():
    assert len(LookupResult.from_payload("hello", {"characters": [{"pinyin": "nǐ"}]})) == 0


@pytest.mark.parametrize("payload", [None, [], {}, {"characters": {}}])
def test_lookup_result_rejects_bad_payload(payload):
    with pytest.raises(ValueError):
        LookupResult.from_payload("hello", payload)
