"""
Comparison/Selection View: several characters side by side, one selected for
animation, plus a quick-reference grid for reselection.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from hanzi_learning.animation import AnimationController
from hanzi_learning.characters import is_valid_chinese, split_glyphs
from hanzi_learning.errors import MSG_NOT_CHINESE
from hanzi_learning.event_log import log_event
from hanzi_learning.models import CharacterRecord


@dataclass(frozen=True)
class GlyphPanel:
    """One small-scale rendering panel; non-CJK glyphs are labelled, never animated."""

    glyph: str
    is_chinese: bool

    @property
    def message(self) -> Optional[str]:
        return None if self.is_chinese else MSG_NOT_CHINESE


def glyph_panels(record: CharacterRecord) -> List[GlyphPanel]:
    """
    Panels for one record. A well-formed record yields one panel; a
    multi-glyph entry is split into one panel per glyph.
    """
    if record.is_valid_chinese:
        return [GlyphPanel(record.character, True)]
    log_event(
        "granularity_warning",
        level=logging.WARNING,
        character=record.character,
        glyphs=len(split_glyphs(record.character)),
    )
    return [GlyphPanel(g, is_valid_chinese(g)) for g in split_glyphs(record.character)]


class ComparisonView:
    def __init__(self, records: Sequence[CharacterRecord], controller: Optional[AnimationController] = None):
        self.records = list(records)
        self.controller = controller
        self.selected_character: Optional[str] = self.records[0].character if self.records else None
        self._bind()

    def _bind(self) -> None:
        # A non-CJK selection puts the controller in its "not Chinese" error
        # without probing the library; the glyph panels carry the display.
        if self.controller is not None and self.selected_character is not None:
            self.controller.set_character(self.selected_character)

    @property
    def selected_record(self) -> Optional[CharacterRecord]:
        for record in self.records:
            if record.character == self.selected_character:
                return record
        return None

    def select(self, character: str) -> None:
        if not any(r.character == character for r in self.records):
            raise KeyError(character)
        if character == self.selected_character:
            return
        self.selected_character = character
        self._bind()

    def quick_reference(self) -> List[Dict[str, object]]:
        return [
            {
                'character': r.character,
                'selected': r.character == self.selected_character,
                'is_valid_chinese': r.is_valid_chinese,
            }
            for r in self.records
        ]

    def selected_panels(self) -> List[GlyphPanel]:
        record = self.selected_record
        return glyph_panels(record) if record is not None else []
