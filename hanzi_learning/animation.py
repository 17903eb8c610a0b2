"""
Animation Controller: owns the lifecycle of one stroke-order render instance.

States:
    UNLOADED -> LOADING -> READY -> RESOLVING -> BOUND
    LOADING -> ERROR (library load failed)
    RESOLVING -> ERROR (any other ErrorReason)
    UNLOADED -> ERROR (not Chinese; the library is not loaded for it)

The stroke library is loaded once per process through a shared future. Every
(re)binding bumps a generation counter; callbacks from a torn-down instance
carry the old generation and are dropped.

There is no true pause: pause() cancels the running animation and leaves
current_stroke at the number of strokes already completed.
"""
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from hanzi_learning.characters import is_valid_chinese
from hanzi_learning.errors import (
    MSG_LIBRARY_LOAD_FAILED,
    MSG_NO_STROKE_DATA,
    MSG_NOT_CHINESE,
    MSG_RENDER_FAILED,
    RenderLibraryError,
)
from hanzi_learning.event_log import log_event
from hanzi_learning.renderer import (
    RenderOptions,
    RenderSurface,
    StrokeRenderLibrary,
    ThreadingScheduler,
    load_raster_library,
)

# Replay speed for step_backward, relative to the configured stroke speed
REPLAY_SPEEDUP = 5.0


class LibraryState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class LibraryLoader:
    """
    Process-wide loader for the stroke library.

    The first caller runs the factory; every other caller receives the same
    future. A failed load stays failed until retry() is called.
    """

    def __init__(self, factory: Callable[[], StrokeRenderLibrary] = load_raster_library, executor=None):
        self._factory = factory
        self._executor = executor
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    @property
    def state(self) -> LibraryState:
        future = self._future
        if future is None:
            return LibraryState.UNINITIALIZED
        if not future.done():
            return LibraryState.LOADING
        if future.exception() is not None:
            return LibraryState.FAILED
        return LibraryState.READY

    def ensure_loaded(self) -> Future:
        with self._lock:
            if self._future is not None:
                return self._future
            future: Future = Future()
            self._future = future
        if self._executor is not None:
            self._executor.submit(self._load, future)
        else:
            self._load(future)
        return future

    def _load(self, future: Future) -> None:
        future.set_running_or_notify_cancel()
        try:
            library = self._factory()
        except Exception as e:
            log_event("library_load_failed", level=logging.ERROR, error=str(e))
            future.set_exception(e if isinstance(e, RenderLibraryError) else RenderLibraryError(str(e)))
            return
        future.set_result(library)

    def retry(self) -> Future:
        with self._lock:
            if self._future is not None and self._future.done() and self._future.exception() is not None:
                self._future = None
        return self.ensure_loaded()


_shared_loader: Optional[LibraryLoader] = None
_shared_loader_lock = threading.Lock()


def shared_loader() -> LibraryLoader:
    global _shared_loader
    with _shared_loader_lock:
        if _shared_loader is None:
            _shared_loader = LibraryLoader()
        return _shared_loader


class HandleAdapter:
    """
    Capability-checked wrapper around a library handle, built once per binding.

    Construction fails with RenderLibraryError when the handle lacks any
    operation the controller needs, so call sites never probe for methods.
    """

    REQUIRED = (
        'animate_character',
        'animate_stroke',
        'cancel_current_animation',
        'hide_character',
        'show_character',
        'quiz',
        'submit_quiz_stroke',
        'destroy',
    )

    def __init__(self, handle: Any):
        missing = [name for name in self.REQUIRED if not callable(getattr(handle, name, None))]
        if missing:
            raise RenderLibraryError(f"Render handle is missing: {', '.join(missing)}")
        count = getattr(handle, 'stroke_count', None)
        if not isinstance(count, int) or count < 1:
            raise RenderLibraryError("Render handle reports no strokes")
        self._handle = handle
        self.stroke_count = count

    def animate_character(self, on_complete, on_stroke_complete) -> None:
        self._handle.animate_character(on_complete=on_complete, on_stroke_complete=on_stroke_complete)

    def animate_stroke(self, index: int, on_complete, duration: Optional[float] = None) -> None:
        self._handle.animate_stroke(index, on_complete=on_complete, duration=duration)

    def cancel(self) -> None:
        self._handle.cancel_current_animation()

    def hide_character(self) -> None:
        self._handle.hide_character()

    def show_character(self) -> None:
        self._handle.show_character()

    def quiz(self, on_mistake, on_correct_stroke, on_complete) -> None:
        self._handle.quiz(on_mistake=on_mistake, on_correct_stroke=on_correct_stroke, on_complete=on_complete)

    def submit_quiz_stroke(self, points) -> bool:
        return self._handle.submit_quiz_stroke(points)

    def destroy(self) -> None:
        self._handle.cancel_current_animation()
        self._handle.destroy()


class AnimationState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    RESOLVING = "resolving"
    BOUND = "bound"
    ERROR = "error"


class ErrorReason(Enum):
    LIBRARY_LOAD_FAILED = "library_load_failed"
    NO_STROKE_DATA = "no_stroke_data"
    NOT_CHINESE = "not_chinese"
    RENDER_FAILED = "render_failed"


_ERROR_MESSAGES = {
    ErrorReason.LIBRARY_LOAD_FAILED: MSG_LIBRARY_LOAD_FAILED,
    ErrorReason.NO_STROKE_DATA: MSG_NO_STROKE_DATA,
    ErrorReason.NOT_CHINESE: MSG_NOT_CHINESE,
    ErrorReason.RENDER_FAILED: MSG_RENDER_FAILED,
}


@dataclass(frozen=True)
class AnimationSession:
    """Read-only snapshot of the controller for UI rendering and tests."""

    state: AnimationState
    character: Optional[str]
    stroke_count: int
    current_stroke: int
    is_animating: bool
    practice_active: bool
    size: int
    error_reason: Optional[ErrorReason] = None
    error_message: Optional[str] = None

    @property
    def progress(self) -> float:
        if self.stroke_count <= 0:
            return 0.0
        return self.current_stroke / self.stroke_count


class AnimationController:
    """Drives one character's stroke-order animation through the library handle."""

    def __init__(
        self,
        loader: Optional[LibraryLoader] = None,
        options: Optional[RenderOptions] = None,
        surface: Optional[RenderSurface] = None,
        on_change: Optional[Callable[[AnimationSession], None]] = None,
        scheduler=None,
    ):
        self.loader = loader or shared_loader()
        self.options = options or RenderOptions()
        self.surface = surface or RenderSurface(self.options.width, self.options.height)
        # Timers for the pause between chained strokes
        self.scheduler = scheduler or ThreadingScheduler()
        self._listeners: List[Callable[[AnimationSession], None]] = []
        if on_change:
            self._listeners.append(on_change)

        self._lock = threading.RLock()
        self._library: Optional[StrokeRenderLibrary] = None
        self._adapter: Optional[HandleAdapter] = None
        self._generation = 0

        self.state = AnimationState.UNLOADED
        self.character: Optional[str] = None
        self.stroke_count = 0
        self.current_stroke = 0
        self.is_animating = False
        self.practice_active = False
        self.error_reason: Optional[ErrorReason] = None

    # Observation

    @property
    def size(self) -> int:
        return self.options.width

    @property
    def error_message(self) -> Optional[str]:
        return _ERROR_MESSAGES.get(self.error_reason) if self.error_reason else None

    def snapshot(self) -> AnimationSession:
        with self._lock:
            return AnimationSession(
                state=self.state,
                character=self.character,
                stroke_count=self.stroke_count,
                current_stroke=self.current_stroke,
                is_animating=self.is_animating,
                practice_active=self.practice_active,
                size=self.size,
                error_reason=self.error_reason,
                error_message=self.error_message,
            )

    def subscribe(self, listener: Callable[[AnimationSession], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def controls(self) -> Dict[str, bool]:
        """Which transport buttons are enabled right now."""
        with self._lock:
            bound = self.state == AnimationState.BOUND
            idle = bound and not self.is_animating
            return {
                'play': idle and self.current_stroke < self.stroke_count,
                'pause': bound and self.is_animating,
                'step_forward': idle and self.current_stroke < self.stroke_count,
                'step_backward': idle and self.current_stroke > 0,
                'reset': True,
                'practice': idle,
                'show_character': idle,
                'retry': self.state == AnimationState.ERROR,
            }

    def _notify(self) -> None:
        session = self.snapshot()
        for listener in list(self._listeners):
            listener(session)

    def _set_state(self, state: AnimationState) -> None:
        self.state = state
        log_event(
            "animation_state",
            level=logging.DEBUG,
            state=state.value,
            character=self.character,
            stroke_count=self.stroke_count,
            current_stroke=self.current_stroke,
            error=self.error_reason.value if self.error_reason else None,
        )

    def _fail(self, reason: ErrorReason) -> None:
        self.error_reason = reason
        self.is_animating = False
        self.practice_active = False
        self._set_state(AnimationState.ERROR)

    # Lifecycle

    def start(self) -> None:
        """Bootstrap the stroke library (shared, idempotent)."""
        with self._lock:
            if self._library is not None or self.state == AnimationState.LOADING:
                return
            self.error_reason = None
            self._set_state(AnimationState.LOADING)
            future = self.loader.ensure_loaded()
        self._notify()
        future.add_done_callback(self._on_library_loaded)

    def _on_library_loaded(self, future: Future) -> None:
        with self._lock:
            error = future.exception()
            if error is None:
                self._library = future.result()
            if self.state != AnimationState.LOADING:
                return
            if error is not None:
                self._fail(ErrorReason.LIBRARY_LOAD_FAILED)
            else:
                self.error_reason = None
                self._set_state(AnimationState.READY)
                if self.character is not None:
                    self._resolve()
        self._notify()

    def set_character(self, character: str) -> None:
        """Bind to ``character``; requests made while loading queue behind the load."""
        load = False
        with self._lock:
            self.character = character
            if self.state == AnimationState.LOADING:
                # Resolved by _on_library_loaded; only the latest target survives
                pass
            elif not character or not is_valid_chinese(character):
                # Rejected before any library work, including the first load
                self._teardown()
                self.stroke_count = 0
                self.current_stroke = 0
                self._fail(ErrorReason.NOT_CHINESE)
            elif self._library is not None:
                self._resolve()
            elif self.error_reason == ErrorReason.LIBRARY_LOAD_FAILED:
                # Keep the load error until retry()
                pass
            else:
                load = True
        if load:
            self.start()
        else:
            self._notify()

    def resize(self, size: int) -> None:
        """Viewport changed: geometry is rendered at a fixed pixel size, so rebuild."""
        with self._lock:
            if size == self.size:
                return
            self.options = self.options.resized(size)
            self.surface.resize(size, size)
            if self._library is not None and self.character is not None:
                self._resolve()
        self._notify()

    def retry(self) -> None:
        """Explicit user retry after an error."""
        with self._lock:
            if self.state != AnimationState.ERROR:
                return
            if self.error_reason == ErrorReason.LIBRARY_LOAD_FAILED:
                self.error_reason = None
                self._set_state(AnimationState.LOADING)
                future = self.loader.retry()
            else:
                future = None
                self._resolve()
        if future is not None:
            self._notify()
            future.add_done_callback(self._on_library_loaded)
        else:
            self._notify()

    def _teardown(self) -> None:
        self._generation += 1
        adapter, self._adapter = self._adapter, None
        if adapter is not None:
            adapter.destroy()
        self.is_animating = False
        self.practice_active = False

    def _resolve(self) -> None:
        # Caller holds the lock
        self._teardown()
        character = self.character
        self.stroke_count = 0
        self.current_stroke = 0
        self.error_reason = None
        self._set_state(AnimationState.RESOLVING)

        if not character or not is_valid_chinese(character):
            self._fail(ErrorReason.NOT_CHINESE)
            return

        try:
            geometry = self._library.load_character_data(character)
        except Exception as e:
            log_event("stroke_probe_failed", level=logging.WARNING, character=character, error=str(e))
            geometry = None
        if geometry is None:
            self._fail(ErrorReason.NO_STROKE_DATA)
            return

        try:
            self.surface.clear()
            handle = self._library.create(self.surface, character, self.options, geometry)
            self._adapter = HandleAdapter(handle)
        except Exception as e:
            log_event("render_create_failed", level=logging.ERROR, character=character, error=str(e))
            self._fail(ErrorReason.RENDER_FAILED)
            return

        self.stroke_count = self._adapter.stroke_count
        self._set_state(AnimationState.BOUND)

    # Transport

    def _can_transport(self) -> bool:
        return self.state == AnimationState.BOUND and self._adapter is not None and not self.is_animating

    def _guarded(self, generation: int, fn: Callable[[Dict[str, Any]], None]) -> Callable[[Any], None]:
        """Wrap a library callback so it is ignored once its binding is gone."""

        def callback(data=None):
            with self._lock:
                if generation != self._generation:
                    return
                fn(data or {})
            self._notify()

        return callback

    def play_full(self) -> bool:
        """Animate all remaining strokes from current_stroke."""
        with self._lock:
            if not self._can_transport() or self.current_stroke >= self.stroke_count:
                return False
            self.is_animating = True
            self.practice_active = False
            generation = self._generation
            adapter = self._adapter
            start = self.current_stroke

            def stroke_done(data):
                self.current_stroke = max(self.current_stroke, data.get('strokeNum', self.current_stroke) + 1)

            def all_done(data):
                self.current_stroke = self.stroke_count
                self.is_animating = False

            if start == 0:
                adapter.animate_character(
                    on_complete=self._guarded(generation, all_done),
                    on_stroke_complete=self._guarded(generation, stroke_done),
                )
            else:
                self._chain_strokes(generation, start, self.stroke_count, None, stroke_done, all_done,
                                    delay=self.options.delay_seconds)
        self._notify()
        return True

    def _chain_strokes(self, generation: int, index: int, end: int, duration: Optional[float],
                       stroke_done: Callable, all_done: Callable, delay: float = 0.0) -> None:
        """Animate strokes index..end-1 one after another, ``delay`` seconds apart."""
        adapter = self._adapter

        def done(data):
            stroke_done(data)
            if index + 1 < end and self.is_animating:
                if delay > 0:
                    self.scheduler.call_later(
                        delay,
                        lambda: self._continue_chain(generation, index + 1, end, duration,
                                                     stroke_done, all_done, delay),
                    )
                else:
                    self._chain_strokes(generation, index + 1, end, duration, stroke_done, all_done)
            else:
                all_done(data)

        adapter.animate_stroke(index, on_complete=self._guarded(generation, done), duration=duration)

    def _continue_chain(self, generation: int, *args) -> None:
        with self._lock:
            if generation != self._generation or not self.is_animating:
                return
            self._chain_strokes(generation, *args)

    def pause(self) -> bool:
        """Stop the running animation (no resume point below stroke granularity)."""
        with self._lock:
            if self.state != AnimationState.BOUND or not self.is_animating:
                return False
            self._adapter.cancel()
            self.is_animating = False
            # Any callback still in flight belongs to the cancelled run
            self._generation += 1
        self._notify()
        return True

    def step_forward(self) -> bool:
        with self._lock:
            if not self._can_transport() or self.current_stroke >= self.stroke_count:
                return False
            self.is_animating = True
            self.practice_active = False
            index = self.current_stroke

            def done(data):
                self.current_stroke = index + 1
                self.is_animating = False

            self._adapter.animate_stroke(index, on_complete=self._guarded(self._generation, done))
        self._notify()
        return True

    def step_backward(self) -> bool:
        """
        Show one stroke less. The library has no backward primitive, so the
        glyph is cleared and strokes 0..current_stroke-2 are replayed fast.
        """
        with self._lock:
            if not self._can_transport() or self.current_stroke == 0:
                return False
            self.practice_active = False
            self._adapter.hide_character()
            target = self.current_stroke - 1
            self.current_stroke = target
            if target > 0:
                self.is_animating = True
                duration = self.options.stroke_duration / REPLAY_SPEEDUP

                def replay_done(data):
                    self.is_animating = False

                self._chain_strokes(self._generation, 0, target, duration, lambda data: None, replay_done)
        self._notify()
        return True

    def reset(self) -> None:
        """Clear the rendering and rewind to stroke 0 from any state."""
        with self._lock:
            if self._adapter is not None:
                self._adapter.cancel()
                self._adapter.hide_character()
                self._generation += 1
            self.current_stroke = 0
            self.is_animating = False
            self.practice_active = False
        self._notify()

    def show_character(self) -> bool:
        with self._lock:
            if not self._can_transport():
                return False
            self._adapter.show_character()
            self.current_stroke = self.stroke_count
        self._notify()
        return True

    def enter_practice_mode(self) -> bool:
        """Hand control to the library quiz; outcomes are only logged."""
        with self._lock:
            if not self._can_transport():
                return False
            character = self.character
            generation = self._generation

            def on_mistake(data):
                log_event("practice_mistake", **{**data, 'character': character})

            def on_correct_stroke(data):
                self.current_stroke = data.get('strokeNum', 0) + 1
                log_event("practice_correct_stroke", **{**data, 'character': character})

            def on_complete(data):
                self.practice_active = False
                log_event("practice_complete", **{**data, 'character': character})

            self.current_stroke = 0
            self.practice_active = True
            self._adapter.quiz(
                on_mistake=self._guarded(generation, on_mistake),
                on_correct_stroke=self._guarded(generation, on_correct_stroke),
                on_complete=self._guarded(generation, on_complete),
            )
        self._notify()
        return True

    def submit_practice_stroke(self, points: Sequence) -> bool:
        """Forward one user-drawn stroke (surface pixels) to the library quiz."""
        with self._lock:
            if self.state != AnimationState.BOUND or not self.practice_active:
                return False
            adapter = self._adapter
        return adapter.submit_quiz_stroke(points)

    def close(self) -> None:
        with self._lock:
            self._teardown()
