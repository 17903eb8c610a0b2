import json
import sys
from concurrent.futures import Future
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hanzi_learning.animation import AnimationController, LibraryLoader  # noqa: E402
from hanzi_learning.errors import StrokeDataUnavailableError  # noqa: E402
from hanzi_learning.renderer import ImmediateScheduler, RasterStrokeLibrary, RenderOptions  # noqa: E402


def make_geometry(count):
    """Vertical strokes, left to right, in the 1024-unit HanziWriter box."""
    return {
        "strokes": [f"M {100 + i * 100} 800 L {100 + i * 100} 100" for i in range(count)],
        "medians": [[[100 + i * 100, 800], [100 + i * 100, 100]] for i in range(count)],
        "radStrokes": [0],
    }


GEOMETRY = {
    "你": make_geometry(7),
    "好": make_geometry(6),
    "学": make_geometry(8),
}

HELLO_PAYLOAD = {
    "characters": [
        {
            "character": "你",
            "pinyin": "nǐ",
            "meaning": "bạn / you",
            "strokeCount": 7,
            "strokeOrderTips": "Viết bộ nhân đứng trước / Write the person radical first",
            "radicals": "亻 + 尔",
            "difficulty": "beginner",
        },
        {
            "character": "好",
            "pinyin": "hǎo",
            "meaning": "tốt / good",
            "strokeCount": 6,
            "strokeOrderTips": None,
            "radicals": "女 + 子",
            "difficulty": "beginner",
        },
    ]
}


class FakeStrokeSource:
    """In-memory stand-in for StrokeDataSource."""

    def __init__(self, geometry=None):
        self.geometry = dict(GEOMETRY if geometry is None else geometry)
        self.probes = []

    def probe(self, character):
        self.probes.append(character)
        return self.geometry.get(character)

    def load(self, character):
        data = self.geometry.get(character)
        if data is None:
            raise StrokeDataUnavailableError(character)
        return data


class ManualScheduler:
    """Collects scheduled callbacks; tests run them explicitly."""

    class Timer:
        def __init__(self, fn, delay=0):
            self.fn = fn
            self.delay = delay
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.pending = []

    def call_later(self, delay, fn):
        timer = self.Timer(fn, delay)
        self.pending.append(timer)
        return timer

    def run_next(self):
        while self.pending:
            timer = self.pending.pop(0)
            if not timer.cancelled:
                timer.fn()
                return True
        return False

    def run_all(self):
        while self.run_next():
            pass


class ManualExecutor:
    """Executor whose futures resolve only when the test says so."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, *args):
        future = Future()
        self.calls.append((fn, args, future))
        return future

    def resolve(self, index):
        fn, args, future = self.calls[index]
        try:
            future.set_result(fn(*args))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, payload=None, content=None, error=None):
        if content is None and payload is not None:
            content = json.dumps(payload, ensure_ascii=False)
        self.chat = SimpleNamespace(completions=FakeCompletions(content, error))


@pytest.fixture
def stroke_source():
    return FakeStrokeSource()


@pytest.fixture
def immediate_library(stroke_source):
    return RasterStrokeLibrary(data_source=stroke_source, scheduler=ImmediateScheduler())


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def controller(immediate_library):
    loader = LibraryLoader(factory=lambda: immediate_library)
    return AnimationController(loader=loader, options=RenderOptions(width=200, height=200),
                               scheduler=immediate_library.scheduler)


@pytest.fixture
def manual_controller(stroke_source, manual_scheduler):
    library = RasterStrokeLibrary(data_source=stroke_source, scheduler=manual_scheduler)
    loader = LibraryLoader(factory=lambda: library)
    return AnimationController(loader=loader, options=RenderOptions(width=200, height=200),
                               scheduler=manual_scheduler)
