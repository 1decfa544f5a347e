"""
Base Tool class for all canvas tools.
"""

from __future__ import annotations
from typing import TYPE_CHECKING
from abc import ABC, abstractmethod

if TYPE_CHECKING:
    from pixellar.ui.canvas_widget import CanvasWidget


class BaseTool(ABC):
    """Base class for all canvas tools."""

    def __init__(self, name: str):
        """
        Initialize the tool.

        Args:
            name: Tool name
        """
        self.name = name
        self.is_active = False

    @abstractmethod
    def on_click(self, canvas: CanvasWidget, grid_x: int, grid_y: int, button: str):
        """
        Called when a press/release pair was classified as a click.

        Args:
            canvas: Canvas widget
            grid_x: Grid X coordinate
            grid_y: Grid Y coordinate
            button: Mouse button ("left" or "right")
        """
        pass

    def on_hover(self, canvas: CanvasWidget, grid_x: int, grid_y: int) -> None:
        """Called when the selected cell changes."""
        pass

    def activate(self) -> None:
        """Activates this tool."""
        self.is_active = True

    def deactivate(self) -> None:
        """Deactivates this tool."""
        self.is_active = False

    def get_cursor(self) -> str:
        """Returns cursor type for this tool."""
        return "default"
