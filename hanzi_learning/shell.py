"""
Application Shell: input form state, lookup submission, result list, selection,
view mode, loading and error display.

Lookups run on an executor. Every submission is tagged with a sequence number
and only the response to the latest submission is applied, so a slow earlier
request never overwrites a newer result.
"""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from hanzi_learning.animation import AnimationController
from hanzi_learning.comparison import ComparisonView, glyph_panels
from hanzi_learning.errors import MSG_EMPTY_INPUT, MSG_NOT_CHINESE, MSG_SERVICE_ERROR
from hanzi_learning.event_log import log_event
from hanzi_learning.models import LookupResult
from hanzi_learning.speech import SpeechAdapter


class ViewMode(Enum):
    INDIVIDUAL = "individual"
    COMPARISON = "comparison"


@dataclass
class SelectionState:
    selected_character: Optional[str] = None
    view_mode: ViewMode = ViewMode.INDIVIDUAL


class ApplicationShell:
    def __init__(
        self,
        service,
        controller: Optional[AnimationController] = None,
        speech: Optional[SpeechAdapter] = None,
        executor: Optional[Executor] = None,
    ):
        self.service = service
        self.controller = controller or AnimationController()
        self.speech = speech or SpeechAdapter()
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="lookup")
        self._lock = threading.RLock()
        self._sequence = 0
        self._listeners: List[Callable[[], None]] = []

        self.input_word = ""
        self.result: Optional[LookupResult] = None
        self.selection = SelectionState()
        self.comparison: Optional[ComparisonView] = None
        self.is_loading = False
        self.error: Optional[str] = None

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # Submission

    def submit(self, word: str) -> Optional[Future]:
        """
        Validate and submit ``word``. Returns the lookup future, or None when
        the input was rejected locally (no service call is made).
        """
        with self._lock:
            self.input_word = word or ""
            if not self.input_word.strip():
                self.error = MSG_EMPTY_INPUT
                self._notify()
                return None

            self._sequence += 1
            sequence = self._sequence
            self.result = None
            self.selection = SelectionState()
            self.comparison = None
            self.error = None
            self.is_loading = True
            cleaned = self.input_word.strip()
        self._notify()

        future = self._executor.submit(self.service.lookup, cleaned)
        future.add_done_callback(lambda f: self._on_lookup_done(sequence, cleaned, f))
        return future

    def _on_lookup_done(self, sequence: int, word: str, future: Future) -> None:
        with self._lock:
            if sequence != self._sequence:
                log_event("lookup_discarded", word=word, sequence=sequence, latest=self._sequence)
                return
            self.is_loading = False
            error = future.exception()
            if error is not None:
                log_event("lookup_failed", level=logging.ERROR, word=word, error=str(error),
                          error_type=type(error).__name__)
                self.error = MSG_SERVICE_ERROR
                self._notify()
                return
            result = future.result()
            self.result = result
            # Auto-select under the same lock as the sequence check
            if result.characters:
                self._select(result.characters[0].character)
        self._notify()

    # Selection and view mode

    def _select(self, character: str) -> None:
        # Caller holds the lock. Non-CJK characters end in the controller's
        # "not Chinese" error without touching the stroke library
        self.selection = SelectionState(character, ViewMode.INDIVIDUAL)
        self.comparison = None
        self.error = None
        self.controller.set_character(character)

    def select_character(self, character: str) -> None:
        with self._lock:
            self._select(character)
        self._notify()

    def can_compare(self) -> bool:
        return self.result is not None and len(self.result.characters) > 1

    def set_view_mode(self, mode: ViewMode) -> None:
        with self._lock:
            if mode == ViewMode.COMPARISON:
                if not self.can_compare():
                    return
                self.comparison = ComparisonView(self.result.characters, self.controller)
                self.selection = SelectionState(self.comparison.selected_character, ViewMode.COMPARISON)
            else:
                self.comparison = None
                self.selection = SelectionState(self.selection.selected_character, ViewMode.INDIVIDUAL)
        self._notify()

    # Display data

    def character_cards(self) -> List[Dict[str, Any]]:
        """Per-record display data for the result list."""
        if self.result is None:
            return []
        cards = []
        for record in self.result.characters:
            valid = record.is_valid_chinese
            cards.append({
                'record': record,
                'is_valid_chinese': valid,
                'warning': None if valid else MSG_NOT_CHINESE,
                'selected': record.character == self.selection.selected_character,
                'panels': glyph_panels(record) if not valid else [],
                'can_speak': self.speech.is_supported and valid,
            })
        return cards

    # Speech

    def toggle_speak_character(self, character: str) -> bool:
        """Speak one character, or stop when something is already playing."""
        if self.speech.is_speaking:
            self.speech.stop()
            return False
        return self.speech.speak_chinese(character)

    def toggle_speak_all(self) -> bool:
        if self.speech.is_speaking:
            self.speech.stop()
            return False
        if self.result is None:
            return False
        return self.speech.speak_chinese(self.result.text)

    def speak_pinyin(self, character: str) -> bool:
        if self.result is None:
            return False
        record = self.result.find(character)
        if record is None or not record.pronunciation:
            return False
        return self.speech.speak_pinyin(record.pronunciation)

    def close(self) -> None:
        self.controller.close()
        self._executor.shutdown(wait=False)
