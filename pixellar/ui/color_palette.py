"""
Color Palette Widget - Visual color selector.
"""

from __future__ import annotations
from typing import Optional, Sequence, Tuple

from PySide6.QtWidgets import QWidget, QGridLayout, QPushButton, QButtonGroup
from PySide6.QtCore import Signal


class ColorPalette(QWidget):
    """Grid of color swatches; exactly one is selected."""

    color_selected = Signal(int)

    def __init__(self, palette: Sequence[Tuple[int, int, int]], columns: int = 4, parent=None):
        """
        Initialize color palette widget.

        Args:
            palette: RGB tuple per color index
            columns: Swatches per row
            parent: Parent widget
        """
        super().__init__(parent)
        self._palette = list(palette)
        self._selected: Optional[int] = None

        layout = QGridLayout(self)
        layout.setSpacing(4)
        layout.setContentsMargins(0, 0, 0, 0)

        self._group = QButtonGroup(self)
        self._group.setExclusive(True)
        for index, (r, g, b) in enumerate(self._palette):
            button = QPushButton()
            button.setCheckable(True)
            button.setFixedSize(32, 32)
            button.setToolTip(f"#{r:02X}{g:02X}{b:02X}")
            button.setStyleSheet(
                f"QPushButton {{ background-color: rgb({r}, {g}, {b}); border: 1px solid #555; }}"
                "QPushButton:checked { border: 3px solid #FFD700; }"
            )
            self._group.addButton(button, index)
            layout.addWidget(button, index // columns, index % columns)

        self._group.idClicked.connect(self._on_clicked)

    def _on_clicked(self, index: int) -> None:
        self._selected = index
        self.color_selected.emit(index)

    def set_selected(self, index: int) -> None:
        """Selects a swatch without emitting ``color_selected``."""
        button = self._group.button(index)
        if button is None:
            return
        button.setChecked(True)
        self._selected = index

    def get_selected(self) -> Optional[int]:
        return self._selected

    def rgb(self, index: int) -> Tuple[int, int, int]:
        return self._palette[index]
