"""
Canvas Widget - Interactive view of the shared pixel canvas.
"""

from __future__ import annotations
import logging
from typing import Optional, Tuple

import numpy as np
from PySide6.QtWidgets import QWidget
from PySide6.QtCore import Qt, Signal, QPointF, QRectF
from PySide6.QtGui import QColor, QImage, QPainter, QPen

from pixellar.core.pixel_cache import PixelCache
from pixellar.core.renderer import CanvasRenderer
from pixellar.core.viewport import CoordinateTransform, GestureTracker, ViewportState
from pixellar.core.models import Cell

logger = logging.getLogger(__name__)

_CURSORS = {
    "crosshair": Qt.CursorShape.CrossCursor,
    "hand": Qt.CursorShape.PointingHandCursor,
    "default": Qt.CursorShape.ArrowCursor,
}


class CanvasWidget(QWidget):
    """
    Interactive canvas for the shared pixel grid.

    Features:
    - Wheel zoom anchored on the reference point
    - Drag to pan, click (drag below threshold) to use the active tool
    - Grid overlay when zoomed in
    - Hover highlight with a translucent preview of the selected color
    - Center crosshair in the center-locked interaction model

    Signals:
    - selection_changed(x, y): Selected cell changed (-1, -1 when off the grid)
    - cell_clicked(x, y): A click landed on a cell
    """

    selection_changed = Signal(int, int)
    cell_clicked = Signal(int, int)

    def __init__(
        self,
        cache: PixelCache,
        renderer: CanvasRenderer,
        transform: CoordinateTransform,
        interaction_mode: str = "pointer",
        zoom_in_factor: float = 1.1,
        zoom_out_factor: float = 0.9,
        click_threshold: float = 5.0,
        parent=None
    ):
        """
        Initialize the canvas widget.

        Args:
            cache: Pixel cache to display
            renderer: Renderer turning the cache into RGB pixels
            transform: Screen <-> grid mapping
            interaction_mode: "pointer" or "center"
            zoom_in_factor: Scale factor per wheel step up
            zoom_out_factor: Scale factor per wheel step down
            click_threshold: Drag distance (px) separating a click from a pan
            parent: Parent widget
        """
        super().__init__(parent)
        self._cache = cache
        self._renderer = renderer
        self._transform = transform
        self._center_mode = interaction_mode == "center"
        self._zoom_in_factor = zoom_in_factor
        self._zoom_out_factor = zoom_out_factor

        # Zoom and pan
        self._state = ViewportState()
        self._gesture = GestureTracker(click_threshold)
        self._press_button = None
        self._fitted = False

        # Pixels
        self._pixels: np.ndarray = renderer.render(cache)
        self._image_bytes: bytes = b""
        self._image: Optional[QImage] = None
        self._image_dirty = True

        # Overlays
        self._show_grid = True
        self._grid_color = QColor(128, 128, 128, 128)
        self._background_color = QColor(45, 45, 48)
        self._preview_color: Optional[Tuple[int, int, int]] = None
        self._selected_cell: Optional[Cell] = None
        self._pointer: Optional[QPointF] = None

        # Tool
        self._active_tool = None

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(200, 200)

        cache.add_listener(self._on_cache_changed)

    # ========================================================================
    # Public API
    # ========================================================================

    @property
    def viewport(self) -> ViewportState:
        return self._state

    @property
    def selected_cell(self) -> Optional[Cell]:
        return self._selected_cell

    def set_active_tool(self, tool) -> None:
        """Sets the tool receiving clicks."""
        if self._active_tool:
            self._active_tool.deactivate()
        self._active_tool = tool
        if tool:
            tool.activate()
            self.setCursor(_CURSORS.get(tool.get_cursor(), Qt.CursorShape.ArrowCursor))

    def get_active_tool(self):
        return self._active_tool

    def set_preview_color(self, rgb: Optional[Tuple[int, int, int]]) -> None:
        """Color drawn translucently over the selected cell."""
        self._preview_color = rgb
        self.update()

    def set_show_grid(self, show: bool) -> None:
        """Enables or disables grid overlay."""
        self._show_grid = show
        self.update()

    def is_grid_visible(self) -> bool:
        return self._show_grid

    def zoom_in(self) -> None:
        self._zoom(self._zoom_in_factor, *self._view_center())

    def zoom_out(self) -> None:
        self._zoom(self._zoom_out_factor, *self._view_center())

    def zoom_to_fit(self) -> None:
        """Zooms to fit the entire grid in the viewport."""
        self._set_state(self._transform.fit(self.width(), self.height()))

    def reset_view(self) -> None:
        """Resets zoom to 1.0 with the grid centered."""
        state = ViewportState(scale=1.0)
        cell = (self._transform.grid_width // 2, self._transform.grid_height // 2)
        self._set_state(self._transform.center_on(state, cell, *self._view_center()))

    def center_on_cell(self, x: int, y: int) -> None:
        """Scrolls so the cell sits under the view center."""
        self._set_state(self._transform.center_on(self._state, (x, y), *self._view_center()))

    # ========================================================================
    # Internal state
    # ========================================================================

    def _view_center(self) -> Tuple[float, float]:
        return self.width() / 2, self.height() / 2

    def _reference(self, pos: QPointF) -> Tuple[float, float]:
        """Pointer in pointer mode, view center in center-locked mode."""
        if self._center_mode:
            return self._view_center()
        return pos.x(), pos.y()

    def _zoom(self, factor: float, ref_x: float, ref_y: float) -> None:
        self._set_state(self._transform.zoom(self._state, factor, ref_x, ref_y))

    def _set_state(self, state: ViewportState) -> None:
        self._state = state
        self._update_selection()
        self.update()

    def _update_selection(self) -> None:
        if self._center_mode:
            ref = self._view_center()
        elif self._pointer is not None:
            ref = (self._pointer.x(), self._pointer.y())
        else:
            ref = None

        cell = self._transform.selected_cell(self._state, *ref) if ref else None
        if cell != self._selected_cell:
            self._selected_cell = cell
            x, y = cell if cell else (-1, -1)
            if self._active_tool and cell:
                self._active_tool.on_hover(self, x, y)
            self.selection_changed.emit(x, y)

    def _on_cache_changed(self, cell: Optional[Cell]) -> None:
        if cell is None:
            self._pixels = self._renderer.render(self._cache)
        else:
            self._renderer.update_cell(self._pixels, self._cache, cell)
        self._image_dirty = True
        self.update()

    def _current_image(self) -> QImage:
        if self._image_dirty or self._image is None:
            height, width, _ = self._pixels.shape
            # QImage does not copy: keep the buffer alive on self
            self._image_bytes = self._pixels.tobytes()
            self._image = QImage(self._image_bytes, width, height, width * 3, QImage.Format.Format_RGB888)
            self._image_dirty = False
        return self._image

    # ========================================================================
    # Qt events
    # ========================================================================

    def showEvent(self, event):
        super().showEvent(event)
        if not self._fitted:
            self._fitted = True
            self.zoom_to_fit()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), self._background_color)

        unit = self._transform.unit(self._state)
        grid_w = self._transform.grid_width
        grid_h = self._transform.grid_height
        origin_x = self._state.offset_x
        origin_y = self._state.offset_y

        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
        painter.drawImage(QRectF(origin_x, origin_y, grid_w * unit, grid_h * unit), self._current_image())

        if self._show_grid and unit >= 6:
            self._draw_grid(painter, unit, origin_x, origin_y)

        if self._selected_cell and not self._gesture.is_pan:
            self._draw_selection(painter, unit)

        if self._center_mode:
            self._draw_crosshair(painter)

        painter.end()

    def _draw_grid(self, painter: QPainter, unit: float, origin_x: float, origin_y: float) -> None:
        """Draws grid lines over the visible cells only."""
        start_x, start_y = self._transform.cell_at(self._state, 0, 0)
        end_x, end_y = self._transform.cell_at(self._state, self.width(), self.height())
        start_x = max(start_x, 0)
        start_y = max(start_y, 0)
        end_x = min(end_x + 1, self._transform.grid_width)
        end_y = min(end_y + 1, self._transform.grid_height)

        painter.setPen(QPen(self._grid_color, 1))
        top = origin_y + start_y * unit
        bottom = origin_y + end_y * unit
        left = origin_x + start_x * unit
        right = origin_x + end_x * unit

        # Vertical lines
        for x in range(start_x, end_x + 1):
            screen_x = origin_x + x * unit
            painter.drawLine(QPointF(screen_x, top), QPointF(screen_x, bottom))

        # Horizontal lines
        for y in range(start_y, end_y + 1):
            screen_y = origin_y + y * unit
            painter.drawLine(QPointF(left, screen_y), QPointF(right, screen_y))

    def _draw_selection(self, painter: QPainter, unit: float) -> None:
        x, y = self._selected_cell
        screen_x, screen_y = self._transform.grid_to_screen(self._state, x, y)
        rect = QRectF(screen_x, screen_y, unit, unit)

        if self._preview_color:
            painter.fillRect(rect, QColor(*self._preview_color, 128))
        painter.setPen(QPen(QColor(255, 255, 255, 200), 2))
        painter.drawRect(rect)

    def _draw_crosshair(self, painter: QPainter) -> None:
        cx, cy = self._view_center()
        painter.setPen(QPen(QColor(255, 255, 255, 160), 1))
        painter.drawLine(QPointF(cx - 8, cy), QPointF(cx + 8, cy))
        painter.drawLine(QPointF(cx, cy - 8), QPointF(cx, cy + 8))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._set_state(self._transform.constrain(self._state, *self._view_center()))

    def wheelEvent(self, event):
        delta = event.angleDelta().y()
        if delta == 0:
            return
        factor = self._zoom_in_factor if delta > 0 else self._zoom_out_factor
        self._zoom(factor, *self._reference(event.position()))
        event.accept()

    def mousePressEvent(self, event):
        if event.button() in (Qt.MouseButton.LeftButton, Qt.MouseButton.MiddleButton):
            pos = event.position()
            self._gesture.press(pos.x(), pos.y(), self._state)
            self._press_button = event.button()
            event.accept()

    def mouseMoveEvent(self, event):
        pos = event.position()
        self._pointer = pos

        if self._gesture.active:
            delta_x, delta_y = self._gesture.move(pos.x(), pos.y())
            if self._gesture.is_pan:
                self.setCursor(Qt.CursorShape.ClosedHandCursor)
                state = self._transform.pan(
                    self._gesture.start_state, delta_x, delta_y, *self._reference(pos)
                )
                self._set_state(state)
                return

        self._update_selection()
        self.update()

    def mouseReleaseEvent(self, event):
        if not self._gesture.active:
            return
        pos = event.position()
        gesture = self._gesture.release(pos.x(), pos.y())
        if self._active_tool:
            self.setCursor(_CURSORS.get(self._active_tool.get_cursor(), Qt.CursorShape.ArrowCursor))

        if gesture == "click" and self._press_button == Qt.MouseButton.LeftButton:
            self._pointer = pos
            self._update_selection()
            if self._selected_cell:
                x, y = self._selected_cell
                self.cell_clicked.emit(x, y)
                if self._active_tool:
                    self._active_tool.on_click(self, x, y, "left")
        self.update()

    def leaveEvent(self, event):
        self._pointer = None
        if not self._center_mode:
            self._update_selection()
        self.update()
        super().leaveEvent(event)
