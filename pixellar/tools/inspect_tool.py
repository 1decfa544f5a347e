"""
Eyedropper/Inspect Tool - Pick a cell's color from the canvas.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Callable, Optional
from pixellar.core.models import PaintRecord
from pixellar.tools.base_tool import BaseTool

if TYPE_CHECKING:
    from pixellar.core.controller import ReconciliationController
    from pixellar.ui.canvas_widget import CanvasWidget


class InspectTool(BaseTool):
    """Eyedropper tool for picking colors from the canvas."""

    def __init__(self, controller: ReconciliationController):
        super().__init__("Eyedropper")
        self.controller = controller
        self._on_color_picked: Optional[Callable[[int], None]] = None

    def set_on_color_picked(self, callback: Callable[[int], None]) -> None:
        """
        Sets callback for when a color is picked.

        Args:
            callback: Function(color_index) called when a color is picked
        """
        self._on_color_picked = callback

    def on_click(self, canvas: CanvasWidget, grid_x: int, grid_y: int, button: str) -> Optional[PaintRecord]:
        """Pick color on click; returns the inspected record."""
        if button != "left":
            return None
        cell = (grid_x, grid_y)
        if not self.controller.cache.in_bounds(cell):
            return None

        record = self.controller.cache.read(cell)
        self.controller.select_color(record.color)
        if self._on_color_picked:
            self._on_color_picked(record.color)
        return record

    def get_cursor(self) -> str:
        """Returns cursor type."""
        return "hand"
