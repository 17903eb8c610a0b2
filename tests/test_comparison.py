"""Tests for ComparisonView and glyph panels."""
import pytest

from conftest import HELLO_PAYLOAD
from hanzi_learning.comparison import ComparisonView, GlyphPanel, glyph_panels
from hanzi_learning.errors import MSG_NOT_CHINESE
from hanzi_learning.models import CharacterRecord, LookupResult

HELLO = LookupResult.from_payload("hello", HELLO_PAYLOAD)


def record(character):
    return CharacterRecord(character=character, pronunciation="", meaning="", stroke_count=0)


def test_valid_record_is_one_panel():
    assert glyph_panels(record("你")) == [GlyphPanel("你", True)]


def test_multi_glyph_record_is_split():
    panels = glyph_panels(record("你 好!"))
    assert [p.glyph for p in panels] == ["你", "好", "!"]
    assert [p.is_chinese for p in panels] == [True, True, False]
    assert panels[2].message == MSG_NOT_CHINESE
    assert panels[0].message is None


def test_defaults_to_first_record(controller):
    view = ComparisonView(HELLO.characters, controller)
    assert view.selected_character == "你"
    assert view.selected_record.meaning == "bạn / you"
    assert controller.character == "你"


def test_select_rebinds_controller(controller):
    view = ComparisonView(HELLO.characters, controller)
    view.select("好")
    assert controller.character == "好"
    assert controller.stroke_count == 6
    assert [q["selected"] for q in view.quick_reference()] == [False, True]


def test_select_unknown_character_raises():
    view = ComparisonView(HELLO.characters)
    with pytest.raises(KeyError):
        view.select("学")


def test_selected_panels_for_invalid_record(controller, stroke_source):
    view = ComparisonView([record("!"), record("你")], controller)
    assert [p.glyph for p in view.selected_panels()] == ["!"]
    assert view.quick_reference()[0]["is_valid_chinese"] is False
    assert stroke_source.probes == []


def test_empty_view():
    view = ComparisonView([])
    assert view.selected_character is None
    assert view.selected_record is None
    assert view.selected_panels() == []
