"""
Free-hand practice canvas: a grid with center guides, freehand strokes, PNG export.

Independent of the lookup flow; nothing is validated here.
"""
import io
from pathlib import Path
from typing import List, Tuple

from PIL import Image, ImageDraw

Point = Tuple[float, float]

GRID_SIZE = 20
GRID_COLOR = "#e5e7eb"
GUIDE_COLOR = "#d1d5db"
GUIDE_DASH = (5, 5)
INK_COLOR = "#1f2937"
INK_WIDTH = 3


def _dashed_line(draw: ImageDraw.ImageDraw, start: Point, end: Point, dash: Tuple[int, int],
                 fill: str, width: int = 1) -> None:
    """Axis-aligned dashed line (Pillow has no dash pattern)."""
    (x0, y0), (x1, y1) = start, end
    on, off = dash
    if x0 == x1:
        y = y0
        while y < y1:
            draw.line([(x0, y), (x0, min(y + on, y1))], fill=fill, width=width)
            y += on + off
    else:
        x = x0
        while x < x1:
            draw.line([(x, y0), (min(x + on, x1), y0)], fill=fill, width=width)
            x += on + off


class PracticeCanvas:
    def __init__(self, character: str, size: int = 300):
        self.character = character
        self.size = size
        self.strokes: List[List[Point]] = []
        self.is_drawing = False
        self.image = Image.new("RGB", (size, size), "#ffffff")
        self._draw_grid()

    def _draw_grid(self) -> None:
        draw = ImageDraw.Draw(self.image)
        for x in range(0, self.size + 1, GRID_SIZE):
            draw.line([(x, 0), (x, self.size)], fill=GRID_COLOR, width=1)
        for y in range(0, self.size + 1, GRID_SIZE):
            draw.line([(0, y), (self.size, y)], fill=GRID_COLOR, width=1)
        # Center guidelines
        half = self.size / 2
        _dashed_line(draw, (half, 0), (half, self.size), GUIDE_DASH, GUIDE_COLOR)
        _dashed_line(draw, (0, half), (self.size, half), GUIDE_DASH, GUIDE_COLOR)

    def _clamp(self, x: float, y: float) -> Point:
        return min(max(float(x), 0.0), float(self.size)), min(max(float(y), 0.0), float(self.size))

    def begin_stroke(self, x: float, y: float) -> None:
        self.is_drawing = True
        self.strokes.append([self._clamp(x, y)])

    def extend_stroke(self, x: float, y: float) -> None:
        if not self.is_drawing or not self.strokes:
            return
        stroke = self.strokes[-1]
        point = self._clamp(x, y)
        draw = ImageDraw.Draw(self.image)
        draw.line([stroke[-1], point], fill=INK_COLOR, width=INK_WIDTH, joint="curve")
        # Round caps
        r = INK_WIDTH / 2
        draw.ellipse((point[0] - r, point[1] - r, point[0] + r, point[1] + r), fill=INK_COLOR)
        stroke.append(point)

    def end_stroke(self) -> None:
        self.is_drawing = False

    def clear(self) -> None:
        self.strokes = []
        self.is_drawing = False
        self.image = Image.new("RGB", (self.size, self.size), "#ffffff")
        self._draw_grid()

    @property
    def export_filename(self) -> str:
        return f"{self.character}-practice.png"

    def export_png(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def save(self, directory: Path | str) -> Path:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / self.export_filename
        path.write_bytes(self.export_png())
        return path
