"""
Tests for CanvasRenderer.
"""

import numpy as np
from PIL import Image

from pixellar.core.models import Chain
from pixellar.core.pixel_cache import PixelCache
from pixellar.core.renderer import CanvasRenderer

PALETTE = [(255, 255, 255), (0, 0, 0), (255, 0, 0), (0, 0, 255)]


def make_cache():
    return PixelCache(4, 3, palette_size=len(PALETTE))


class TestRender:

    def test_unpainted_cells_use_background(self):
        renderer = CanvasRenderer(PALETTE, 4, 3)

        pixels = renderer.render(make_cache())

        assert pixels.shape == (3, 4, 3)
        assert pixels.dtype == np.uint8
        assert (pixels == 255).all()

    def test_painted_cells(self, row):
        cache = make_cache()
        cache.load([row(1, 2, 2), row(3, 0, 3)])
        renderer = CanvasRenderer(PALETTE, 4, 3)

        pixels = renderer.render(cache)

        assert tuple(pixels[2, 1]) == (255, 0, 0)
        assert tuple(pixels[0, 3]) == (0, 0, 255)
        assert tuple(pixels[0, 0]) == (255, 255, 255)

    def test_optimistic_records_are_rendered(self):
        cache = make_cache()
        cache.apply_optimistic((0, 1), 1, "W2", Chain.SUI)

        pixels = CanvasRenderer(PALETTE, 4, 3).render(cache)

        assert tuple(pixels[1, 0]) == (0, 0, 0)

    def test_update_cell_in_place(self):
        cache = make_cache()
        renderer = CanvasRenderer(PALETTE, 4, 3)
        pixels = renderer.render(cache)

        cache.apply_optimistic((2, 2), 3, "W2", Chain.SUI)
        renderer.update_cell(pixels, cache, (2, 2))
        assert tuple(pixels[2, 2]) == (0, 0, 255)

        cache.revert((2, 2), None)
        renderer.update_cell(pixels, cache, (2, 2))
        assert tuple(pixels[2, 2]) == (255, 255, 255)


class TestImages:

    def test_to_image_scales_with_nearest(self, row):
        cache = make_cache()
        cache.load([row(0, 0, 2)])

        image = CanvasRenderer(PALETTE, 4, 3).to_image(cache, pixel_size=5)

        assert image.size == (20, 15)
        assert image.getpixel((4, 4)) == (255, 0, 0)
        assert image.getpixel((5, 5)) == (255, 255, 255)

    def test_grid_lines_drawn(self):
        image = CanvasRenderer(PALETTE, 4, 3).to_image(make_cache(), pixel_size=8, with_grid=True,
                                                      grid_color=(0, 0, 0, 255))
        assert image.getpixel((8, 3)) == (0, 0, 0)
        assert image.getpixel((3, 3)) == (255, 255, 255)

    def test_export_png(self, tmp_path, row):
        cache = make_cache()
        cache.load([row(3, 2, 1)])
        target = tmp_path / "snapshots" / "canvas.png"

        path = CanvasRenderer(PALETTE, 4, 3).export_png(cache, target, pixel_size=2)

        assert path == target
        with Image.open(path) as image:
            assert image.format == "PNG"
            assert image.size == (8, 6)
            assert image.convert("RGB").getpixel((7, 5)) == (0, 0, 0)
