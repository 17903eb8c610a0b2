"""
Character-level helpers: CJK ideograph checks, glyph splitting, tone stripping.

The upstream service is asked for one character per entry but does not always
comply, so every consumer re-checks granularity here before animating.
"""
import unicodedata
from typing import List

# CJK Unified Ideographs and Extension A. HanziWriter stroke data covers the
# basic block; Extension A characters simply end up with "no stroke data".
_CJK_RANGES = (
    (0x4E00, 0x9FFF),
    (0x3400, 0x4DBF),
)


def is_cjk_ideograph(ch: str) -> bool:
    """True when ``ch`` is exactly one code point inside a CJK ideograph block."""
    if len(ch) != 1:
        return False
    cp = ord(ch)
    return any(lo <= cp <= hi for lo, hi in _CJK_RANGES)


def is_valid_chinese(text: str) -> bool:
    """A record is animatable only when its character is a single CJK ideograph."""
    return bool(text) and is_cjk_ideograph(text)


def split_glyphs(text: str) -> List[str]:
    """Split a (possibly multi-glyph) entry into individual glyphs, dropping whitespace."""
    glyphs = []
    for ch in text or "":
        if ch.isspace():
            continue
        # Attach combining marks to the previous glyph
        if glyphs and unicodedata.combining(ch):
            glyphs[-1] += ch
            continue
        glyphs.append(ch)
    return glyphs


def strip_tone_marks(pinyin: str) -> str:
    """
    Remove tone diacritics: "nǐ hǎo" -> "ni hao".

    Decomposes to NFD and drops the combining diacritical marks block
    (U+0300-U+036F). ü keeps its base letter u.
    """
    decomposed = unicodedata.normalize('NFD', pinyin or "")
    return "".join(c for c in decomposed if not 0x0300 <= ord(c) <= 0x036F)
