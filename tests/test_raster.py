"""Tests for the canvas primitives and the compositor"""

import math
from enum import Enum

import numpy as np
import pytest

from itemforge.errors import ConfigValidationError, RasterizationFailure
from itemforge.families.chest import ChestComposer, ChestCompositor
from itemforge.families.lantern import LanternComposer, LanternCompositor, TYPES
from itemforge.raster import (
    Canvas,
    apply_glow,
    check_canvas_size,
    ensure_exhaustive,
    in_flame_shape,
    scale_rgb,
)

RED = (255, 0, 0)
BLUE = (0, 0, 255)


class TestCanvas:

    def test_starts_transparent(self):
        canvas = Canvas(8, 4)
        assert canvas.pixels.shape == (4, 8, 4)
        assert canvas.is_blank()

    def test_out_of_bounds_is_clipped(self):
        canvas = Canvas(4, 4)
        canvas.put(-1, 0, RED)
        canvas.put(0, -1, RED)
        canvas.put(4, 0, RED)
        canvas.put(0, 4, RED)
        assert canvas.clipped == 4
        # no wrap-around onto the far edge
        assert canvas.is_blank()

    def test_put_floors_coordinates(self):
        canvas = Canvas(4, 4)
        canvas.put(1.9, 2.2, RED)
        assert canvas.get(1, 2) == (255, 0, 0, 255)

    def test_fill_circle_stays_in_window(self):
        canvas = Canvas(21, 21)
        canvas.fill_circle(10, 10, 5, RED)
        mask = canvas.alpha_mask()
        assert mask[10, 10]
        assert not mask[0, 0]
        ys, xs = np.nonzero(mask)
        assert xs.min() >= 5 and xs.max() <= 15

    def test_later_layer_overwrites(self):
        canvas = Canvas(10, 10)
        canvas.fill_rect(5, 5, 3, -3, 3, RED)
        canvas.fill_rect(5, 5, 1, -1, 1, BLUE)
        assert canvas.get(5, 5) == (0, 0, 255, 255)
        assert canvas.get(3, 3) == (255, 0, 0, 255)

    def test_callable_color_can_skip(self):
        canvas = Canvas(10, 10)
        canvas.fill_rect(5, 5, 5, -5, 5, lambda i, j: RED if i >= 0 else None)
        assert canvas.get(7, 5)[3] == 255
        assert canvas.get(2, 5)[3] == 0

    def test_trapezoid_widens(self):
        canvas = Canvas(30, 30)
        canvas.fill_trapezoid(15, 0, 4, 20, 30, RED, window=15)
        mask = canvas.alpha_mask()
        assert mask[0].sum() < mask[29].sum()

    def test_degenerate_canvas(self):
        with pytest.raises(RasterizationFailure):
            Canvas(0, 5)

    def test_to_image(self):
        canvas = Canvas(6, 3)
        canvas.put(0, 0, RED)
        image = canvas.to_image()
        assert image.size == (6, 3)
        assert image.mode == "RGBA"
        assert image.getpixel((0, 0)) == (255, 0, 0, 255)
        assert canvas.to_png().startswith(b"\x89PNG")


class TestHelpers:

    def test_scale_rgb_clamps(self):
        assert scale_rgb((200, 100, 50), 2) == (255, 200, 100)
        assert scale_rgb((200, 100, 51), 0.5) == (100, 50, 25)
        assert scale_rgb((10, 10, 10), -1) == (0, 0, 0)

    @pytest.mark.parametrize("width,height", [(0, 10), (10, 0), (100000, 10), (True, 10), (1.5, 10)])
    def test_canvas_size_rejected(self, width, height):
        with pytest.raises(ConfigValidationError):
            check_canvas_size(width, height)

    def test_ensure_exhaustive(self):
        class Shape(str, Enum):
            ROUND = "round"
            SQUARE = "square"

        with pytest.raises(RuntimeError, match="square"):
            ensure_exhaustive(Shape, {Shape.ROUND: lambda *a: None})
        ensure_exhaustive(Shape, {Shape.ROUND: None, Shape.SQUARE: None})


class TestFlameShapes:

    def test_steady(self):
        assert in_flame_shape("steady", 0.0, 0.5)
        assert not in_flame_shape("steady", 0.9, 0.5)
        assert not in_flame_shape("steady", 0.0, 1.5)

    def test_pulsing_follows_phase(self):
        # distance 0.55 from the centre: outside at rest, inside at peak
        assert not in_flame_shape("pulsing", 0.55, 0.5, phase=0.0)
        assert in_flame_shape("pulsing", 0.55, 0.5, phase=math.pi / 2)

    def test_pulsing_is_deterministic(self):
        for phase in (0.0, 1.0, 2.5):
            assert in_flame_shape("pulsing", 0.3, 0.4, phase) == in_flame_shape("pulsing", 0.3, 0.4, phase)

    def test_unknown_pattern(self):
        with pytest.raises(RasterizationFailure):
            in_flame_shape("roaring", 0, 0)


class TestGlow:

    def test_only_transparent_pixels_change(self):
        canvas = Canvas(20, 20)
        canvas.fill_rect(10, 10, 3, -3, 3, RED)
        before = canvas.pixels.copy()
        opaque = canvas.alpha_mask()
        apply_glow(canvas, BLUE, sigma=1.5, strength=1.0)
        assert np.array_equal(canvas.pixels[opaque], before[opaque])
        halo = (~opaque) & canvas.alpha_mask()
        assert halo.any()
        assert (canvas.pixels[halo][:, 2] == 255).all()

    def test_blank_canvas_untouched(self):
        canvas = Canvas(10, 10)
        apply_glow(canvas, BLUE, sigma=2.0, strength=1.0)
        assert canvas.is_blank()


class TestCompositor:

    @pytest.fixture
    def composer(self):
        return LanternComposer()

    @pytest.fixture
    def compositor(self):
        return LanternCompositor()

    def test_default_canvas_size(self, composer, compositor):
        canvas = compositor.rasterize(composer.compose({"size": "medium"}))
        assert (canvas.width, canvas.height) == (60, 90)
        assert not canvas.is_blank()

    @pytest.mark.parametrize("lantern_type", list(TYPES))
    def test_extreme_sizes_stay_on_canvas(self, composer, compositor, lantern_type):
        item = composer.compose({"type": lantern_type, "size": "extra_large", "quality": "mythical"})
        canvas = compositor.rasterize(item, 8, 8)
        assert canvas.pixels.shape == (8, 8, 4)
        assert canvas.clipped > 0

    def test_explicit_size_from_config(self, composer, compositor):
        canvas = compositor.rasterize(composer.compose({"width": 40, "height": 50}))
        assert (canvas.width, canvas.height) == (40, 50)

    def test_halo_for_higher_tiers_only(self, composer, compositor):
        common = compositor.rasterize(composer.compose({"quality": "common"}))
        uncommon = compositor.rasterize(composer.compose({"quality": "uncommon"}))
        rare = compositor.rasterize(composer.compose({"quality": "rare"}))
        assert common.alpha_mask().sum() == uncommon.alpha_mask().sum()
        assert rare.alpha_mask().sum() > common.alpha_mask().sum()

    def test_glass_tint_scaled_by_opacity(self, composer, compositor):
        canvas = compositor.rasterize(composer.compose({}))
        # right-hand panel of a medium hanging lantern anchored at (30, 30)
        assert canvas.get(35, 40) == (25, 25, 25, 255)
        frosted = compositor.rasterize(composer.compose({"glass_type": "frosted"}))
        assert frosted.get(35, 40) == scale_rgb((245, 245, 245), 0.3) + (255,)

    def test_same_item_same_pixels(self, composer, compositor):
        config = {"type": "magic_lantern", "phase": 1.0, "seed": 7}
        a = compositor.rasterize(composer.compose(config))
        b = compositor.rasterize(composer.compose(config))
        assert np.array_equal(a.pixels, b.pixels)

    def test_phase_changes_pulsing_flame(self, composer, compositor):
        low = compositor.rasterize(composer.compose({"type": "magic_lantern", "phase": 3 * math.pi / 2}))
        high = compositor.rasterize(composer.compose({"type": "magic_lantern", "phase": math.pi / 2}))
        assert not np.array_equal(low.pixels, high.pixels)

    def test_seeded_weathering(self):
        composer, compositor = ChestComposer(), ChestCompositor()
        a = compositor.rasterize(composer.compose({"type": "ancient", "seed": 1}))
        b = compositor.rasterize(composer.compose({"type": "ancient", "seed": 1}))
        assert np.array_equal(a.pixels, b.pixels)
