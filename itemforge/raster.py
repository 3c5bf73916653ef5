"""
Raster compositor: ComposedItem -> RGBA pixel buffer.

Drawing is layer based and every primitive is a bounded double loop over a
local window that tests an inclusion predicate. Colours are written
straight: a later layer overwrites whatever is under it, there is no alpha
compositing. The only soft pass is the quality halo, which is written onto
transparent pixels alone.
"""

import io
import logging
import math
import random
from enum import Enum
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple, Type, Union

import numpy as np
from PIL import Image
from scipy.ndimage import gaussian_filter

from itemforge import settings
from itemforge.errors import ConfigValidationError, RasterizationFailure
from itemforge.templates import RGB, hex_to_rgb

log = logging.getLogger(__name__)

Color = Union[RGB, Callable[[float, float], Optional[RGB]]]

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


def scale_rgb(rgb: RGB, factor: float) -> RGB:
    """Straight scalar multiply, floored and clamped to 0..255."""
    return tuple(max(0, min(255, int(math.floor(c * factor)))) for c in rgb)


def span(start: float, stop: float, step: float = 1) -> Iterator[float]:
    """start, start+step, ... while < stop. Works with fractional bounds."""
    value = start
    while value < stop:
        yield value
        value += step


def check_canvas_size(width, height, config=None):
    for axis, value in (("width", width), ("height", height)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigValidationError(f"Canvas {axis} must be an integer", config, field=axis, value=value)
        if not 1 <= value <= settings.MAX_CANVAS:
            raise ConfigValidationError(
                f"Canvas {axis} {value} outside 1..{settings.MAX_CANVAS}", config, field=axis, value=value
            )


class Canvas:
    """Transparent RGBA buffer indexed [y, x] with bounds-checked writes."""

    def __init__(self, width: int, height: int):
        if width < 1 or height < 1:
            raise RasterizationFailure(f"Canvas must be at least 1x1, got {width}x{height}")
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self.clipped = 0

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2, self.height / 2

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def put(self, x: float, y: float, rgb: RGB, alpha: int = 255):
        px = int(math.floor(x))
        py = int(math.floor(y))
        # negative indices would wrap around in numpy
        if not self.in_bounds(px, py):
            self.clipped += 1
            return
        self.pixels[py, px] = (rgb[0], rgb[1], rgb[2], alpha)

    def get(self, x: int, y: int) -> Tuple[int, int, int, int]:
        return tuple(int(c) for c in self.pixels[y, x])

    def fill(self, x: float, y: float, i_range: Tuple[float, float], j_range: Tuple[float, float],
             inside: Callable[[float, float], bool], color: Color, alpha: int = 255):
        """Write color at (x+i, y+j) for every i, j in the window where inside(i, j)."""
        for j in span(*j_range):
            for i in span(*i_range):
                if not inside(i, j):
                    continue
                rgb = color(i, j) if callable(color) else color
                if rgb is not None:
                    self.put(x + i, y + j, rgb, alpha)

    def fill_rect(self, x: float, y: float, half_w: float, top: float, bottom: float, color: Color):
        """Axis-aligned block spanning [-half_w, half_w) and [top, bottom) around (x, y)."""
        self.fill(x, y, (-half_w, half_w), (top, bottom), lambda i, j: True, color)

    def fill_trapezoid(self, x: float, y: float, top_width: float, bottom_width: float, height: float,
                       color: Color, window: Optional[float] = None):
        """Half-width interpolated from top to bottom by height fraction."""
        window = window if window is not None else max(top_width, bottom_width)

        def inside(i, j):
            progress = j / height
            return abs(i) <= (top_width + (bottom_width - top_width) * progress) / 2

        self.fill(x, y, (-window, window), (0, height), inside, color)

    def fill_circle(self, x: float, y: float, radius: float, color: Color):
        self.fill(x, y, (-radius, radius), (-radius, radius),
                  lambda i, j: math.sqrt(i * i + j * j) <= radius, color)

    def fill_diamond(self, x: float, y: float, half_w: float, half_h: float, color: Color,
                     limit: float = 1.0):
        """|i|/half_w + |j|/half_h <= limit"""
        self.fill(x, y, (-half_w, half_w), (-half_h, half_h),
                  lambda i, j: abs(i) / half_w + abs(j) / half_h <= limit, color)

    def fill_manhattan(self, x: float, y: float, radius: int, color: Color):
        self.fill(x, y, (-radius, radius + 1), (-radius, radius + 1),
                  lambda i, j: abs(i) + abs(j) <= radius, color)

    def fill_rounded_rect(self, x: float, y: float, half_w: float, height: float, corner: float,
                          color: Color):
        half_h = height / 2

        def inside(i, j):
            dx = abs(i) - half_w + corner
            dy = abs(j - half_h) - half_h + corner
            return dx <= 0 or dy <= 0 or dx * dx + dy * dy <= corner * corner

        self.fill(x, y, (-half_w, half_w), (0, height), inside, color)

    # ── output ──────────────────────────────────────────────────────────────

    def alpha_mask(self) -> np.ndarray:
        return self.pixels[:, :, 3] > 0

    def is_blank(self) -> bool:
        return not self.pixels[:, :, 3].any()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels, "RGBA")

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.to_image().save(buf, "PNG")
        return buf.getvalue()


# ── flame / liquid shape library ──────────────────────────────────────────────
# x is normalised to [-1, 1] across the flame, y to [0, 1] from base to tip.

def _flickering(x, y, phase):
    flicker = math.sin(x * 10 + phase) * 0.1
    return abs(x) <= 0.5 - y * 0.3 + flicker and 0 <= y <= 1


def _steady(x, y, phase):
    return abs(x) <= 0.3 - y * 0.2 and 0 <= y <= 1


def _pulsing(x, y, phase):
    pulse = math.sin(phase) * 0.1
    return math.sqrt(x * x + (y - 0.5) ** 2) <= 0.5 + pulse


def _gentle(x, y, phase):
    return abs(x) <= 0.2 - y * 0.1 and 0 <= y <= 1


FLAME_SHAPES: Dict[str, Callable[[float, float, float], bool]] = {
    "flickering": _flickering,
    "steady": _steady,
    "pulsing": _pulsing,
    "gentle": _gentle,
}


def in_flame_shape(pattern: str, x: float, y: float, phase: float = 0.0) -> bool:
    try:
        shape = FLAME_SHAPES[pattern]
    except KeyError:
        raise RasterizationFailure(f"Unknown flame pattern '{pattern}'", layer="flame") from None
    return shape(x, y, phase)


def draw_flame(canvas: Canvas, x: float, y: float, width: float, height: float, pattern: str,
               colors: Mapping[str, str], phase: float = 0.0):
    """Flame rising from (x, y). Colour bands by height: outer, mid, core."""
    outer, mid, core = (hex_to_rgb(colors[k]) for k in ("outer", "mid", "core"))

    def color(i, j):
        fy = -j / height
        if fy < 0.3:
            return outer
        if fy < 0.7:
            return mid
        return core

    canvas.fill(x, y, (-width, width), (-height, 0),
                lambda i, j: in_flame_shape(pattern, i / width, -j / height, phase), color)


# ── quality overlay ───────────────────────────────────────────────────────────

def apply_glow(canvas: Canvas, rgb: RGB, sigma: float, strength: float, threshold: int = 8):
    """Soft halo around the silhouette, written only onto transparent pixels."""
    mask = canvas.alpha_mask()
    if not mask.any():
        return
    blurred = gaussian_filter(mask.astype(np.float32), sigma=sigma)
    halo = np.clip(blurred * strength * 255, 0, 255).astype(np.uint8)
    target = (~mask) & (halo >= threshold)
    canvas.pixels[target, 0] = rgb[0]
    canvas.pixels[target, 1] = rgb[1]
    canvas.pixels[target, 2] = rgb[2]
    canvas.pixels[target, 3] = halo[target]


def apply_quality_overlay(canvas: Canvas, item):
    """Halo strength comes from the quality template; tiers without one are left alone."""
    quality = item.templates.get("quality")
    if quality is None:
        return
    glow = quality.attr("glow")
    if not glow:
        return
    color = item.appearance.get("glow") or quality.colors.get("glow", "#FFFFFF")
    apply_glow(canvas, hex_to_rgb(color), glow["sigma"], glow["strength"])


# ── compositor base ───────────────────────────────────────────────────────────

Painter = Callable[[Canvas, object, float, float, float], None]


def ensure_exhaustive(archetypes: Type[Enum], painters: Mapping[Enum, Painter]):
    """Every archetype needs a painter; checked once at import time."""
    missing = [a.value for a in archetypes if a not in painters]
    if missing:
        raise RuntimeError(f"No painter registered for {archetypes.__name__}: {', '.join(missing)}")


class Compositor:
    """Base rasterizer. Families supply the archetype enum, painters and hooks."""

    archetypes: Type[Enum]
    painters: Mapping[Enum, Painter] = {}
    reference_size = 30  # pixel size at which scale == 1

    def canvas_size(self, item) -> Tuple[int, int]:
        raise NotImplementedError

    def scale(self, item) -> float:
        return item.template("size").attr("pixel_size", self.reference_size) / self.reference_size

    def anchor(self, canvas: Canvas, item) -> Tuple[float, float]:
        return canvas.center

    def painter_key(self, item) -> str:
        """Which config value picks the silhouette painter."""
        return item.archetype

    def paint_secondary(self, canvas: Canvas, item, x: float, y: float, scale: float):
        """Material / lock / fuel layer. Default: nothing."""

    def rasterize(self, item, width: Optional[int] = None, height: Optional[int] = None) -> Canvas:
        default_w, default_h = self.canvas_size(item)
        width = width or item.config.get("width") or default_w
        height = height or item.config.get("height") or default_h
        check_canvas_size(width, height, item.config)

        try:
            painter = self.painters[self.archetypes(self.painter_key(item))]
        except (KeyError, ValueError):
            raise RasterizationFailure(
                f"No painter for '{self.painter_key(item)}'", item.config, layer="silhouette"
            ) from None

        canvas = Canvas(width, height)
        x, y = self.anchor(canvas, item)
        scale = self.scale(item)
        painter(canvas, item, x, y, scale)
        self.paint_secondary(canvas, item, x, y, scale)
        apply_quality_overlay(canvas, item)
        if canvas.clipped:
            log.debug("%s: %d writes fell outside %dx%d", item.id, canvas.clipped, width, height)
        return canvas

    @staticmethod
    def rng_for(item, layer: str) -> random.Random:
        return random.Random(f"{item.seed}:{layer}")
