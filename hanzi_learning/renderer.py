"""
Stroke rendering library: the boundary the Animation Controller drives, and a
raster implementation that draws HanziWriter stroke medians with Pillow.

HanziWriter geometry lives in a 1024-unit box with the y axis pointing up
(y runs from 900 at the top to -124 at the bottom). Strokes are drawn as thick
polylines along their medians, which is enough to show stroke order.

Animation timing goes through a scheduler; completion is reported through
callbacks, never by polling.
"""
import io
import math
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from hanzi_learning.errors import RenderLibraryError
from hanzi_learning.stroke_data import StrokeDataSource, validate_geometry

Point = Tuple[float, float]
Callback = Optional[Callable[..., Any]]

DATA_BOX = 1024.0
DATA_TOP = 900.0
RESAMPLE_POINTS = 16


@dataclass(frozen=True)
class RenderOptions:
    """Configuration bag for one render instance."""

    width: int = 300
    height: int = 300
    padding: int = 20
    stroke_color: str = "#2563eb"
    radical_color: str = "#dc2626"
    outline_color: str = "#e5e7eb"
    drawing_color: str = "#059669"
    highlight_color: str = "#aaaaff"
    background_color: str = "#ffffff"
    show_character: bool = False
    show_outline: bool = True
    stroke_animation_speed: float = 1.0
    delay_between_strokes: int = 300  # ms
    stroke_duration: int = 500  # ms at speed 1
    show_hint_after_misses: int = 3
    quiz_tolerance: float = 150.0  # mean distance, data units

    def resized(self, size: int) -> "RenderOptions":
        return replace(self, width=size, height=size)

    def stroke_seconds(self, duration_ms: Optional[float] = None) -> float:
        ms = self.stroke_duration if duration_ms is None else duration_ms
        speed = self.stroke_animation_speed if self.stroke_animation_speed > 0 else 1.0
        return max(ms, 0) / speed / 1000.0

    @property
    def delay_seconds(self) -> float:
        return max(self.delay_between_strokes, 0) / 1000.0


class ThreadingScheduler:
    """Runs callbacks after a delay on timer threads."""

    def call_later(self, delay: float, fn: Callable[[], None]):
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer


class _Completed:
    def cancel(self) -> None:
        pass


class ImmediateScheduler:
    """Runs callbacks synchronously; animations complete before the call returns."""

    def call_later(self, delay: float, fn: Callable[[], None]):
        fn()
        return _Completed()


class RenderSurface:
    """Fixed-size drawing region owned by exactly one render instance at a time."""

    def __init__(self, width: int = 300, height: int = 300, background: str = "#ffffff"):
        self.background = background
        self.image = Image.new("RGB", (width, height), background)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def clear(self) -> None:
        self.image = Image.new("RGB", self.image.size, self.background)

    def resize(self, width: int, height: int) -> None:
        self.image = Image.new("RGB", (width, height), self.background)

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


def resample(points: Sequence[Point], count: int = RESAMPLE_POINTS) -> List[Point]:
    """Resample a polyline to ``count`` points evenly spaced by arc length."""
    pts = [(float(x), float(y)) for x, y in points]
    if not pts:
        return []
    if len(pts) == 1:
        return pts * count
    seg_lengths = [math.dist(pts[i], pts[i + 1]) for i in range(len(pts) - 1)]
    total = sum(seg_lengths)
    if total == 0:
        return [pts[0]] * count

    out = []
    for k in range(count):
        target = total * k / (count - 1)
        walked = 0.0
        for i, seg in enumerate(seg_lengths):
            if walked + seg >= target or i == len(seg_lengths) - 1:
                t = 0.0 if seg == 0 else min(max((target - walked) / seg, 0.0), 1.0)
                (x0, y0), (x1, y1) = pts[i], pts[i + 1]
                out.append((x0 + (x1 - x0) * t, y0 + (y1 - y0) * t))
                break
            walked += seg
    return out


def mean_distance(a: Sequence[Point], b: Sequence[Point]) -> float:
    ra, rb = resample(a), resample(b)
    return sum(math.dist(p, q) for p, q in zip(ra, rb)) / len(ra)


class RenderHandle:
    """
    Imperative handle for one character bound to one surface.

    Subclasses implement the drawing; the Animation Controller only talks to
    these methods through its capability-checked adapter.
    """

    stroke_count = 0

    def animate_character(self, on_complete: Callback = None, on_stroke_complete: Callback = None) -> None:
        raise NotImplementedError

    def animate_stroke(self, index: int, on_complete: Callback = None, duration: Optional[float] = None) -> None:
        raise NotImplementedError

    def cancel_current_animation(self) -> None:
        raise NotImplementedError

    def hide_character(self) -> None:
        raise NotImplementedError

    def show_character(self) -> None:
        raise NotImplementedError

    def hide_outline(self) -> None:
        raise NotImplementedError

    def show_outline(self) -> None:
        raise NotImplementedError

    def quiz(self, on_mistake: Callback = None, on_correct_stroke: Callback = None,
             on_complete: Callback = None) -> None:
        raise NotImplementedError

    def submit_quiz_stroke(self, points: Sequence[Point]) -> bool:
        raise NotImplementedError

    def destroy(self) -> None:
        raise NotImplementedError


class StrokeRenderLibrary:
    """Library boundary: existence probe and instance construction."""

    def load_character_data(self, character: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def create(self, surface: RenderSurface, character: str, options: RenderOptions,
               geometry: Optional[Dict[str, Any]] = None) -> RenderHandle:
        raise NotImplementedError


@dataclass
class _QuizState:
    on_mistake: Callback
    on_correct_stroke: Callback
    on_complete: Callback
    stroke_index: int = 0
    misses_on_stroke: int = 0
    total_mistakes: int = 0


class RasterRenderHandle(RenderHandle):
    """Draws stroke medians onto a RenderSurface."""

    def __init__(self, surface: RenderSurface, character: str, options: RenderOptions,
                 geometry: Dict[str, Any], scheduler=None):
        if not validate_geometry(geometry):
            raise RenderLibraryError(f"Invalid stroke geometry for {character}")
        self.surface = surface
        self.character = character
        self.options = options
        self._scheduler = scheduler or ThreadingScheduler()
        self._medians: List[List[Point]] = [
            [(float(p[0]), float(p[1])) for p in median] for median in geometry['medians']
        ]
        self._radical_strokes = set(geometry.get('radStrokes') or [])
        self.stroke_count = len(self._medians)

        self._lock = threading.RLock()
        self._drawn = [options.show_character] * self.stroke_count
        self._outline_visible = options.show_outline
        self._timers: List[Any] = []
        self._animation_id = 0
        self._quiz: Optional[_QuizState] = None
        self._user_strokes: List[List[Point]] = []
        self._hint_stroke: Optional[int] = None
        self._destroyed = False

        if self.surface.size != (options.width, options.height):
            self.surface.resize(options.width, options.height)
        self.render()

    # Geometry transforms

    def _scale(self) -> float:
        side = min(self.options.width, self.options.height) - 2 * self.options.padding
        return max(side, 1) / DATA_BOX

    def _offsets(self) -> Tuple[float, float]:
        side = DATA_BOX * self._scale()
        return (self.options.width - side) / 2.0, (self.options.height - side) / 2.0

    def to_surface(self, point: Point) -> Point:
        scale = self._scale()
        ox, oy = self._offsets()
        x, y = point
        return ox + x * scale, oy + (DATA_TOP - y) * scale

    def to_data(self, point: Point) -> Point:
        scale = self._scale()
        ox, oy = self._offsets()
        x, y = point
        return (x - ox) / scale, DATA_TOP - (y - oy) / scale

    # State

    @property
    def drawn_stroke_count(self) -> int:
        with self._lock:
            return sum(1 for d in self._drawn if d)

    @property
    def is_quizzing(self) -> bool:
        return self._quiz is not None

    @property
    def hint_stroke(self) -> Optional[int]:
        return self._hint_stroke

    def render(self) -> None:
        with self._lock:
            if self._destroyed:
                return
            self.surface.clear()
            draw = ImageDraw.Draw(self.surface.image)
            width = max(2, int(round(self._scale() * 48)))
            if self._outline_visible:
                for median in self._medians:
                    self._draw_polyline(draw, median, self.options.outline_color, width)
            if self._hint_stroke is not None:
                self._draw_polyline(draw, self._medians[self._hint_stroke], self.options.highlight_color, width)
            for i, drawn in enumerate(self._drawn):
                if drawn:
                    color = self.options.radical_color if i in self._radical_strokes else self.options.stroke_color
                    self._draw_polyline(draw, self._medians[i], color, width)
            for stroke in self._user_strokes:
                if len(stroke) > 1:
                    draw.line(stroke, fill=self.options.drawing_color, width=max(2, width // 2), joint="curve")

    def _draw_polyline(self, draw: ImageDraw.ImageDraw, median: List[Point], color: str, width: int) -> None:
        pts = [self.to_surface(p) for p in median]
        if len(pts) == 1:
            x, y = pts[0]
            r = width / 2.0
            draw.ellipse((x - r, y - r, x + r, y + r), fill=color)
            return
        draw.line(pts, fill=color, width=width, joint="curve")

    # Animation

    def _schedule(self, animation_id: int, delay: float, fn: Callable[[], None]) -> None:
        def run():
            with self._lock:
                if animation_id != self._animation_id or self._destroyed:
                    return
            fn()

        timer = self._scheduler.call_later(delay, run)
        with self._lock:
            if animation_id == self._animation_id:
                self._timers.append(timer)

    def _begin_animation(self) -> int:
        self.cancel_current_animation()
        with self._lock:
            return self._animation_id

    def animate_stroke(self, index: int, on_complete: Callback = None, duration: Optional[float] = None) -> None:
        if not 0 <= index < self.stroke_count:
            raise IndexError(f"stroke {index} out of range for {self.character}")
        animation_id = self._begin_animation()

        def finish():
            with self._lock:
                self._drawn[index] = True
            self.render()
            if on_complete:
                on_complete({'character': self.character, 'strokeNum': index})

        self._schedule(animation_id, self.options.stroke_seconds(duration), finish)

    def animate_character(self, on_complete: Callback = None, on_stroke_complete: Callback = None) -> None:
        animation_id = self._begin_animation()
        with self._lock:
            self._drawn = [False] * self.stroke_count
        self.render()

        def run(index: int):
            def finish():
                with self._lock:
                    self._drawn[index] = True
                self.render()
                if on_stroke_complete:
                    on_stroke_complete({'character': self.character, 'strokeNum': index})
                if index + 1 < self.stroke_count:
                    self._schedule(animation_id, self.options.delay_seconds, lambda: run(index + 1))
                elif on_complete:
                    on_complete({'character': self.character, 'canceled': False})

            self._schedule(animation_id, self.options.stroke_seconds(), finish)

        if self.stroke_count == 0:
            if on_complete:
                on_complete({'character': self.character, 'canceled': False})
            return
        run(0)

    def cancel_current_animation(self) -> None:
        with self._lock:
            self._animation_id += 1
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()

    def hide_character(self) -> None:
        with self._lock:
            self._drawn = [False] * self.stroke_count
            self._user_strokes = []
            self._hint_stroke = None
        self.render()

    def show_character(self) -> None:
        with self._lock:
            self._drawn = [True] * self.stroke_count
        self.render()

    def hide_outline(self) -> None:
        with self._lock:
            self._outline_visible = False
        self.render()

    def show_outline(self) -> None:
        with self._lock:
            self._outline_visible = True
        self.render()

    # Quiz

    def quiz(self, on_mistake: Callback = None, on_correct_stroke: Callback = None,
             on_complete: Callback = None) -> None:
        self.cancel_current_animation()
        self.hide_character()
        with self._lock:
            self._quiz = _QuizState(on_mistake, on_correct_stroke, on_complete)

    def cancel_quiz(self) -> None:
        with self._lock:
            self._quiz = None
            self._hint_stroke = None
        self.render()

    def submit_quiz_stroke(self, points: Sequence[Point]) -> bool:
        """
        Validate one user-drawn stroke (surface pixels) against the next
        expected stroke. Returns True when it matched.
        """
        with self._lock:
            quiz = self._quiz
            if quiz is None:
                raise RenderLibraryError("Quiz is not active")
            index = quiz.stroke_index
            user = [self.to_data((float(x), float(y))) for x, y in points]
            matched = len(user) >= 2 and mean_distance(user, self._medians[index]) <= self.options.quiz_tolerance
            if matched:
                self._drawn[index] = True
                self._user_strokes = []
                self._hint_stroke = None
                quiz.stroke_index += 1
                remaining = self.stroke_count - quiz.stroke_index
                data = {
                    'character': self.character,
                    'strokeNum': index,
                    'mistakesOnStroke': quiz.misses_on_stroke,
                    'totalMistakes': quiz.total_mistakes,
                    'strokesRemaining': remaining,
                }
                quiz.misses_on_stroke = 0
                finished = remaining == 0
                if finished:
                    self._quiz = None
            else:
                quiz.misses_on_stroke += 1
                quiz.total_mistakes += 1
                self._user_strokes = [[(float(x), float(y)) for x, y in points]]
                if quiz.misses_on_stroke >= self.options.show_hint_after_misses:
                    self._hint_stroke = index
                data = {
                    'character': self.character,
                    'strokeNum': index,
                    'mistakesOnStroke': quiz.misses_on_stroke,
                    'totalMistakes': quiz.total_mistakes,
                    'strokesRemaining': self.stroke_count - index,
                }
                finished = False
        self.render()

        if matched:
            if quiz.on_correct_stroke:
                quiz.on_correct_stroke(data)
            if finished and quiz.on_complete:
                quiz.on_complete({'character': self.character, 'totalMistakes': data['totalMistakes']})
        elif quiz.on_mistake:
            quiz.on_mistake(data)
        return matched

    def destroy(self) -> None:
        self.cancel_current_animation()
        with self._lock:
            self._quiz = None
            self._destroyed = True
        self.surface.clear()


class RasterStrokeLibrary(StrokeRenderLibrary):
    """Pillow-backed stroke library fed by a StrokeDataSource."""

    def __init__(self, data_source: Optional[StrokeDataSource] = None, scheduler=None):
        self.data_source = data_source or StrokeDataSource()
        self.scheduler = scheduler or ThreadingScheduler()

    def load_character_data(self, character: str) -> Optional[Dict[str, Any]]:
        return self.data_source.probe(character)

    def create(self, surface: RenderSurface, character: str, options: RenderOptions,
               geometry: Optional[Dict[str, Any]] = None) -> RasterRenderHandle:
        if geometry is None:
            geometry = self.data_source.load(character)
        return RasterRenderHandle(surface, character, options, geometry, scheduler=self.scheduler)


def load_raster_library() -> RasterStrokeLibrary:
    """Default library bootstrap: verifies Pillow can draw, then builds the library."""
    try:
        probe = Image.new("RGB", (4, 4), "#ffffff")
        ImageDraw.Draw(probe).line([(0, 0), (3, 3)], fill="#000000", width=1)
    except (OSError, ValueError) as e:
        raise RenderLibraryError(f"Pillow drawing unavailable: {e}") from e
    return RasterStrokeLibrary()
