"""
Speech Adapter over a platform speech-synthesis engine.

The engine is anything with ``speak(utterance)``, ``cancel()`` and
``get_voices()``; it reports progress through the utterance's on_start /
on_end / on_error callbacks. Without an engine the adapter is unsupported and
every call is a silent no-op.
"""
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from hanzi_learning.characters import strip_tone_marks


@dataclass(frozen=True)
class Voice:
    name: str
    lang: str


@dataclass(frozen=True)
class SpeechOptions:
    lang: str = "zh-CN"
    rate: float = 0.8
    pitch: float = 1.0
    volume: float = 1.0


PINYIN_OPTIONS = SpeechOptions(lang="en-US", rate=0.7)
CHINESE_OPTIONS = SpeechOptions(lang="zh-CN", rate=0.8)


@dataclass
class Utterance:
    text: str
    lang: str
    rate: float
    pitch: float
    volume: float
    voice: Optional[Voice] = None
    on_start: Optional[Callable[[], None]] = field(default=None, repr=False)
    on_end: Optional[Callable[[], None]] = field(default=None, repr=False)
    on_error: Optional[Callable[[Exception], None]] = field(default=None, repr=False)


def pick_voice(voices: List[Voice]) -> Optional[Voice]:
    """
    First voice tagged Chinese (``zh`` language or ``CN`` region), used for
    every utterance including tone-stripped pinyin. None leaves the choice to
    the platform default.
    """
    for voice in voices:
        if 'zh' in voice.lang or 'CN' in voice.lang:
            return voice
    return None


class SpeechAdapter:
    """At most one utterance is active at a time."""

    def __init__(self, engine=None):
        self.engine = engine
        self._lock = threading.Lock()
        self._speaking = False
        self._active: Optional[Utterance] = None
        self._listeners: List[Callable[[bool], None]] = []
        self.voices: List[Voice] = []
        self.refresh_voices()

    @property
    def is_supported(self) -> bool:
        return self.engine is not None

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def refresh_voices(self) -> List[Voice]:
        if self.engine is not None:
            self.voices = list(self.engine.get_voices() or [])
        return self.voices

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Listen for is_speaking changes; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_speaking(self, utterance: Optional[Utterance], speaking: bool) -> None:
        with self._lock:
            # Events from an utterance that was already replaced are ignored
            if utterance is not None and utterance is not self._active:
                return
            if not speaking:
                self._active = None
            changed = speaking != self._speaking
            self._speaking = speaking
        if changed:
            for listener in list(self._listeners):
                listener(speaking)

    def speak(self, text: str, options: Optional[SpeechOptions] = None) -> bool:
        if not self.is_supported or not text or not text.strip():
            return False
        options = options or SpeechOptions()

        # Cancel any ongoing speech
        self.engine.cancel()
        self._set_speaking(None, False)

        utterance = Utterance(
            text=text,
            lang=options.lang or "zh-CN",
            rate=options.rate or 0.8,
            pitch=options.pitch or 1.0,
            volume=options.volume or 1.0,
            voice=pick_voice(self.voices),
        )
        utterance.on_start = lambda: self._set_speaking(utterance, True)
        utterance.on_end = lambda: self._set_speaking(utterance, False)
        utterance.on_error = lambda error=None: self._set_speaking(utterance, False)
        with self._lock:
            self._active = utterance
        self.engine.speak(utterance)
        return True

    def speak_pinyin(self, pinyin: str) -> bool:
        # Tone marks removed; the letters are tagged en-US but read by the Chinese voice
        return self.speak(strip_tone_marks(pinyin), PINYIN_OPTIONS)

    def speak_chinese(self, text: str) -> bool:
        return self.speak(text, CHINESE_OPTIONS)

    def stop(self) -> None:
        if not self.is_supported:
            return
        self.engine.cancel()
        self._set_speaking(None, False)
