"""
Viewport coordinate transform: screen space <-> grid space under pan and zoom.

All operations are pure. They take a ``ViewportState`` and return a new one, so a
zoom changes scale and offset in the same step and the view never renders a
frame with one updated and not the other.

Screen position of a grid point ``g`` is ``offset + g * unit`` where
``unit = pixel_size * scale``. The reference point is the pointer in the
"pointer" interaction model and the viewport center in the "center" model.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from pixellar.core.models import Cell

# Keeps the reference point strictly inside [0, W) after clamping
_EDGE_EPSILON = 1e-6


@dataclass(frozen=True)
class ViewportState:
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0


class CoordinateTransform:
    """
    Maps between screen and grid coordinates for a fixed grid.

    Args:
        grid_width: Grid width in cells
        grid_height: Grid height in cells
        pixel_size: Size of a cell in screen pixels at scale 1.0
        min_scale: Lower zoom bound
        max_scale: Upper zoom bound
        snap: If True, panning snaps the reference point to a cell center
              (center-locked interaction model)
    """

    def __init__(
        self,
        grid_width: int,
        grid_height: int,
        pixel_size: float = 1.0,
        min_scale: float = 0.5,
        max_scale: float = 5.0,
        snap: bool = False,
    ):
        if min_scale <= 0 or max_scale < min_scale:
            raise ValueError(f"Invalid scale bounds: [{min_scale}, {max_scale}]")
        self.grid_width = grid_width
        self.grid_height = grid_height
        self.pixel_size = pixel_size
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.snap_enabled = snap

    # ========================================================================
    # Coordinate Conversion
    # ========================================================================

    def unit(self, state: ViewportState) -> float:
        """Screen size of one cell."""
        return self.pixel_size * state.scale

    def screen_to_grid(self, state: ViewportState, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """Converts a screen point to continuous grid coordinates."""
        unit = self.unit(state)
        return ((screen_x - state.offset_x) / unit, (screen_y - state.offset_y) / unit)

    def grid_to_screen(self, state: ViewportState, grid_x: float, grid_y: float) -> Tuple[float, float]:
        """Converts grid coordinates to a screen point (top-left corner for integer cells)."""
        unit = self.unit(state)
        return (grid_x * unit + state.offset_x, grid_y * unit + state.offset_y)

    def cell_at(self, state: ViewportState, screen_x: float, screen_y: float) -> Cell:
        """
        Returns the cell under a screen point, possibly out of bounds.

        Floor division is used on both axes, so a point lying exactly on the
        edge between cells k-1 and k always resolves to k, also for negative
        coordinates.
        """
        grid_x, grid_y = self.screen_to_grid(state, screen_x, screen_y)
        return (math.floor(grid_x), math.floor(grid_y))

    def in_bounds(self, cell: Cell) -> bool:
        x, y = cell
        return 0 <= x < self.grid_width and 0 <= y < self.grid_height

    def selected_cell(self, state: ViewportState, ref_x: float, ref_y: float) -> Optional[Cell]:
        """Returns the cell under the reference point, or None outside the grid."""
        cell = self.cell_at(state, ref_x, ref_y)
        return cell if self.in_bounds(cell) else None

    # ========================================================================
    # Bounds and Snapping
    # ========================================================================

    def clamp_scale(self, scale: float) -> float:
        return max(self.min_scale, min(self.max_scale, scale))

    def clamp(self, state: ViewportState, ref_x: float, ref_y: float) -> ViewportState:
        """
        Clamps the offset so the reference point stays over the grid.

        The allowed offset range depends on the current scale.
        """
        unit = self.unit(state)
        grid_x, grid_y = self.screen_to_grid(state, ref_x, ref_y)
        grid_x = min(max(grid_x, 0.0), self.grid_width - _EDGE_EPSILON)
        grid_y = min(max(grid_y, 0.0), self.grid_height - _EDGE_EPSILON)
        return replace(state, offset_x=ref_x - grid_x * unit, offset_y=ref_y - grid_y * unit)

    def snap(self, state: ViewportState, ref_x: float, ref_y: float) -> ViewportState:
        """Moves the offset so the reference point sits exactly on a cell center."""
        state = self.clamp(state, ref_x, ref_y)
        cell_x, cell_y = self.cell_at(state, ref_x, ref_y)
        return self.center_on(state, (cell_x, cell_y), ref_x, ref_y)

    def constrain(self, state: ViewportState, ref_x: float, ref_y: float) -> ViewportState:
        """Clamps, and snaps as well when snapping is enabled (e.g. after a resize)."""
        if self.snap_enabled:
            return self.snap(state, ref_x, ref_y)
        return self.clamp(state, ref_x, ref_y)

    def center_on(self, state: ViewportState, cell: Cell, ref_x: float, ref_y: float) -> ViewportState:
        """Returns a state whose offset puts the center of ``cell`` under the reference point."""
        unit = self.unit(state)
        return replace(
            state,
            offset_x=ref_x - (cell[0] + 0.5) * unit,
            offset_y=ref_y - (cell[1] + 0.5) * unit,
        )

    # ========================================================================
    # Zoom and Pan
    # ========================================================================

    def zoom(self, state: ViewportState, factor: float, ref_x: float, ref_y: float) -> ViewportState:
        """
        Multiplies the scale by ``factor`` keeping the content under the reference point.

        Args:
            state: Current viewport
            factor: Per-tick factor (>1 zooms in, <1 zooms out)
            ref_x: Reference point X (pointer or viewport center)
            ref_y: Reference point Y

        Returns:
            New viewport with scale and offset updated together
        """
        new_scale = self.clamp_scale(state.scale * factor)
        if new_scale == state.scale:
            return state

        # Grid position under the reference point before the zoom
        grid_x, grid_y = self.screen_to_grid(state, ref_x, ref_y)

        new_unit = self.pixel_size * new_scale
        zoomed = ViewportState(
            scale=new_scale,
            offset_x=ref_x - grid_x * new_unit,
            offset_y=ref_y - grid_y * new_unit,
        )
        return self.clamp(zoomed, ref_x, ref_y)

    def pan(
        self,
        start: ViewportState,
        delta_x: float,
        delta_y: float,
        ref_x: float,
        ref_y: float,
        snap: Optional[bool] = None,
    ) -> ViewportState:
        """
        Applies the raw drag delta accumulated since the gesture started.

        Args:
            start: Viewport when the drag started
            delta_x: Total pointer movement on X since the drag started
            delta_y: Total pointer movement on Y since the drag started
            ref_x: Reference point X
            ref_y: Reference point Y
            snap: Override for snapping; defaults to the transform's setting
        """
        moved = replace(start, offset_x=start.offset_x + delta_x, offset_y=start.offset_y + delta_y)
        if self.snap_enabled if snap is None else snap:
            return self.snap(moved, ref_x, ref_y)
        return self.clamp(moved, ref_x, ref_y)

    def fit(self, view_width: float, view_height: float, margin: float = 20.0) -> ViewportState:
        """Returns a viewport showing the whole grid centered in the view."""
        grid_pixel_width = self.grid_width * self.pixel_size
        grid_pixel_height = self.grid_height * self.pixel_size

        scale = min(
            (view_width - 2 * margin) / grid_pixel_width,
            (view_height - 2 * margin) / grid_pixel_height,
        )
        scale = self.clamp_scale(scale)
        unit = self.pixel_size * scale
        state = ViewportState(
            scale=scale,
            offset_x=(view_width - self.grid_width * unit) / 2,
            offset_y=(view_height - self.grid_height * unit) / 2,
        )
        if self.snap_enabled:
            return self.snap(state, view_width / 2, view_height / 2)
        return state


class GestureTracker:
    """
    Tells clicks from pans for one pointer-down/up gesture.

    The drag distance is the length of the path travelled by the pointer, so a
    wiggle that ends where it started still counts as a pan.
    """

    def __init__(self, threshold: float = 5.0):
        self.threshold = threshold
        self.active = False
        self.distance = 0.0
        self.start_state: Optional[ViewportState] = None
        self._start: Tuple[float, float] = (0.0, 0.0)
        self._last: Tuple[float, float] = (0.0, 0.0)

    def press(self, x: float, y: float, state: ViewportState) -> None:
        self.active = True
        self.distance = 0.0
        self.start_state = state
        self._start = (x, y)
        self._last = (x, y)

    def move(self, x: float, y: float) -> Tuple[float, float]:
        """Records a pointer move and returns the total delta since the press."""
        if not self.active:
            return (0.0, 0.0)
        self.distance += math.hypot(x - self._last[0], y - self._last[1])
        self._last = (x, y)
        return (x - self._start[0], y - self._start[1])

    @property
    def is_pan(self) -> bool:
        return self.distance >= self.threshold

    def release(self, x: float, y: float) -> str:
        """Ends the gesture and returns ``"click"`` or ``"pan"``."""
        self.move(x, y)
        self.active = False
        return "pan" if self.is_pan else "click"

    def cancel(self) -> None:
        self.active = False
        self.distance = 0.0
