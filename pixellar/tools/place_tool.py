"""
Place Tool - Put the selected color on a cell through the selected chain.
"""

from __future__ import annotations
import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Set
from pixellar.tools.base_tool import BaseTool

if TYPE_CHECKING:
    from pixellar.core.controller import ReconciliationController
    from pixellar.ui.canvas_widget import CanvasWidget

logger = logging.getLogger(__name__)


class PlaceTool(BaseTool):
    """Starts a placement attempt for every click on the canvas."""

    def __init__(self, controller: ReconciliationController):
        super().__init__("Place")
        self.controller = controller
        self._tasks: Set[asyncio.Task] = set()

    def on_click(self, canvas: CanvasWidget, grid_x: int, grid_y: int, button: str) -> Optional[asyncio.Task]:
        """
        Schedules ``place_pixel`` on the running loop.

        Returns:
            The attempt task, or None if nothing was started
        """
        if button != "left":
            return None
        cell = (grid_x, grid_y)
        if not self.controller.cache.in_bounds(cell):
            return None

        task = asyncio.ensure_future(self.controller.place_pixel(cell))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Placement task failed: %s", error, exc_info=error)

    @property
    def pending(self) -> int:
        """Attempts started by this tool that have not finished yet."""
        return len(self._tasks)

    def get_cursor(self) -> str:
        """Returns cursor type."""
        return "crosshair"
