from __future__ import annotations


from pathlib import Path
from typing import Optional, Sequence, Tuple


import numpy as np
from PIL import Image, ImageDraw


from pixellar.core.models import Cell
from pixellar.core.pixel_cache import PixelCache


class CanvasRenderer:
    """
    Renders the pixel cache into RGB arrays and images.
    Each cell is one palette index; unpainted cells use index 0.
    """

    def __init__(self, palette: Sequence[Tuple[int, int, int]], width: int, height: int):
        """
        Initializes the renderer.

        Args:
            palette: RGB tuple per color index
            width: Grid width in cells
            height: Grid height in cells
        """
        self.width = width
        self.height = height
        self._palette = np.asarray(palette, dtype=np.uint8).reshape(-1, 3)

    def color_of(self, index: int) -> Tuple[int, int, int]:
        r, g, b = self._palette[index]
        return int(r), int(g), int(b)

    def indices(self, cache: PixelCache) -> np.ndarray:
        """Returns the (height, width) array of palette indices."""
        grid = np.zeros((self.height, self.width), dtype=np.uint8)
        for (x, y), record in cache.items():
            grid[y, x] = record.color
        return grid

    def render(self, cache: PixelCache) -> np.ndarray:
        """
        Renders the cache at one pixel per cell.

        Returns:
            (height, width, 3) uint8 RGB array
        """
        return self._palette[self.indices(cache)]

    def update_cell(self, pixels: np.ndarray, cache: PixelCache, cell: Cell) -> None:
        """Repaints a single cell of an array previously returned by ``render``."""
        x, y = cell
        pixels[y, x] = self._palette[cache.read(cell).color]

    def to_image(
        self,
        cache: PixelCache,
        pixel_size: int = 1,
        with_grid: bool = False,
        grid_color: Tuple[int, int, int, int] = (128, 128, 128, 128)
    ) -> Image.Image:
        """
        Renders the cache into a PIL image.

        Args:
            cache: Pixel cache to render
            pixel_size: Output pixels per cell (nearest-neighbour scaling)
            with_grid: Draw lines between cells
            grid_color: RGBA color of grid lines

        Returns:
            RGB PIL Image of size (width * pixel_size, height * pixel_size)
        """
        image = Image.fromarray(self.render(cache), "RGB")
        if pixel_size > 1:
            image = image.resize(
                (self.width * pixel_size, self.height * pixel_size),
                Image.Resampling.NEAREST
            )

        if with_grid and pixel_size > 1:
            draw = ImageDraw.Draw(image, "RGBA")
            full_w = self.width * pixel_size
            full_h = self.height * pixel_size

            # Vertical lines
            for x in range(self.width + 1):
                x_pos = min(x * pixel_size, full_w - 1)
                draw.line([(x_pos, 0), (x_pos, full_h)], fill=grid_color, width=1)

            # Horizontal lines
            for y in range(self.height + 1):
                y_pos = min(y * pixel_size, full_h - 1)
                draw.line([(0, y_pos), (full_w, y_pos)], fill=grid_color, width=1)

        return image

    def export_png(
        self,
        cache: PixelCache,
        output_path: Path,
        pixel_size: int = 1,
        with_grid: bool = False,
        grid_color: Optional[Tuple[int, int, int, int]] = None
    ) -> Path:
        """
        Saves a snapshot of the canvas as PNG.

        Returns:
            Path written
        """
        image = self.to_image(
            cache,
            pixel_size=pixel_size,
            with_grid=with_grid,
            grid_color=grid_color or (128, 128, 128, 128)
        )
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        image.save(output_path, format="PNG")
        return output_path
