"""
Main Window - Pixellar desktop client.
"""

from __future__ import annotations
from typing import Dict, Optional, Sequence, Tuple
from pathlib import Path

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QComboBox,
    QToolBar, QStatusBar, QPushButton, QLabel, QDockWidget,
    QFileDialog, QMessageBox, QProgressBar, QGroupBox, QFormLayout
)
from PySide6.QtCore import Qt, Signal, QSize
from PySide6.QtGui import QAction

from pixellar.core.models import Cell, Chain, Notice, PaintRecord
from pixellar.core.wallets import shorten_address
from pixellar.ui.canvas_widget import CanvasWidget
from pixellar.ui.color_palette import ColorPalette

_NOTICE_STYLES = {
    "error": "background-color: #B3261E; color: white; padding: 6px; font-weight: bold;",
    "success": "background-color: #2E7D32; color: white; padding: 6px; font-weight: bold;",
}


class MainWindow(QMainWindow):
    """Main window: canvas, palette, chain/wallet controls and status."""

    # Signals
    export_requested = Signal(Path)
    chain_selected = Signal(str)
    connect_wallet_requested = Signal(str)

    def __init__(self, canvas: CanvasWidget, palette: Sequence[Tuple[int, int, int]], title: str = "Pixellar",
                 size: Tuple[int, int] = (1280, 800)):
        super().__init__()

        self.canvas = canvas
        self._palette = list(palette)
        self._wallet_buttons: Dict[Chain, QPushButton] = {}
        self._wallet_labels: Dict[Chain, QLabel] = {}

        # Setup UI
        self.setWindowTitle(title)
        self.resize(*size)

        # Create widgets
        self._create_widgets()
        self._create_menu_bar()
        self._create_toolbar()
        self._create_dock_widgets()
        self._create_status_bar()

    def _create_widgets(self):
        """Creates main widgets: notice banner over the canvas."""
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.notice_label = QLabel()
        self.notice_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.notice_label.setVisible(False)
        layout.addWidget(self.notice_label)

        layout.addWidget(self.canvas, stretch=1)
        self.setCentralWidget(central)

    def _create_menu_bar(self):
        """Creates menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        export_action = QAction("&Export Snapshot...", self)
        export_action.setShortcut("Ctrl+E")
        export_action.triggered.connect(self._on_export_snapshot)
        file_menu.addAction(export_action)

        file_menu.addSeparator()

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut("Ctrl+Q")
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        # View menu
        view_menu = menubar.addMenu("&View")

        zoom_in_action = QAction("Zoom &In", self)
        zoom_in_action.setShortcut("Ctrl++")
        zoom_in_action.triggered.connect(self.canvas.zoom_in)
        view_menu.addAction(zoom_in_action)

        zoom_out_action = QAction("Zoom &Out", self)
        zoom_out_action.setShortcut("Ctrl+-")
        zoom_out_action.triggered.connect(self.canvas.zoom_out)
        view_menu.addAction(zoom_out_action)

        zoom_fit_action = QAction("&Fit to Window", self)
        zoom_fit_action.setShortcut("Ctrl+0")
        zoom_fit_action.triggered.connect(self.canvas.zoom_to_fit)
        view_menu.addAction(zoom_fit_action)

        zoom_reset_action = QAction("&Reset View", self)
        zoom_reset_action.setShortcut("Ctrl+R")
        zoom_reset_action.triggered.connect(self.canvas.reset_view)
        view_menu.addAction(zoom_reset_action)

        view_menu.addSeparator()

        grid_action = QAction("Toggle &Grid", self)
        grid_action.setShortcut("Ctrl+G")
        grid_action.setCheckable(True)
        grid_action.setChecked(True)
        grid_action.triggered.connect(self._on_toggle_grid)
        view_menu.addAction(grid_action)
        self.grid_action = grid_action

    def _create_toolbar(self):
        """Creates main toolbar."""
        toolbar = QToolBar("Main Toolbar")
        toolbar.setIconSize(QSize(24, 24))
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        # Chain selector
        toolbar.addWidget(QLabel(" Chain: "))
        self.chain_combo = QComboBox()
        for chain in Chain:
            self.chain_combo.addItem(chain.label, chain.value)
        self.chain_combo.currentIndexChanged.connect(self._on_chain_changed)
        toolbar.addWidget(self.chain_combo)

        toolbar.addSeparator()

        # Tools
        self.place_btn = QPushButton("Place")
        self.place_btn.setCheckable(True)
        self.place_btn.setChecked(True)
        toolbar.addWidget(self.place_btn)

        self.inspect_btn = QPushButton("Eyedropper")
        self.inspect_btn.setCheckable(True)
        toolbar.addWidget(self.inspect_btn)

        toolbar.addSeparator()

        # Zoom controls
        zoom_in_btn = QPushButton("Zoom +")
        zoom_in_btn.clicked.connect(self.canvas.zoom_in)
        toolbar.addWidget(zoom_in_btn)

        zoom_out_btn = QPushButton("Zoom -")
        zoom_out_btn.clicked.connect(self.canvas.zoom_out)
        toolbar.addWidget(zoom_out_btn)

        zoom_fit_btn = QPushButton("Fit")
        zoom_fit_btn.clicked.connect(self.canvas.zoom_to_fit)
        toolbar.addWidget(zoom_fit_btn)

    def _create_dock_widgets(self):
        """Creates dock widgets."""
        # Left dock - Palette & Wallets
        left_dock = QDockWidget("Palette & Wallets", self)
        left_dock.setAllowedAreas(Qt.DockWidgetArea.LeftDockWidgetArea | Qt.DockWidgetArea.RightDockWidgetArea)

        left_widget = QWidget()
        left_layout = QVBoxLayout(left_widget)

        left_layout.addWidget(QLabel("<b>Colors</b>"))
        self.color_palette = ColorPalette(self._palette)
        left_layout.addWidget(self.color_palette)

        self.selected_color_label = QLabel()
        self.selected_color_label.setFixedHeight(24)
        left_layout.addWidget(self.selected_color_label)

        wallet_group = QGroupBox("Wallets")
        wallet_layout = QVBoxLayout(wallet_group)
        for chain in Chain:
            row = QHBoxLayout()
            button = QPushButton(f"Connect {chain.label}")
            button.clicked.connect(lambda checked=False, c=chain: self.connect_wallet_requested.emit(c.value))
            row.addWidget(button)

            label = QLabel("Not connected")
            row.addWidget(label, stretch=1)
            wallet_layout.addLayout(row)

            self._wallet_buttons[chain] = button
            self._wallet_labels[chain] = label
        left_layout.addWidget(wallet_group)
        left_layout.addStretch(1)

        left_widget.setLayout(left_layout)
        left_dock.setWidget(left_widget)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, left_dock)

        # Right dock - Pixel info
        right_dock = QDockWidget("Pixel Info", self)
        right_dock.setAllowedAreas(Qt.DockWidgetArea.LeftDockWidgetArea | Qt.DockWidgetArea.RightDockWidgetArea)

        info_widget = QWidget()
        info_layout = QFormLayout(info_widget)
        self.info_position = QLabel("-")
        self.info_color = QLabel("-")
        self.info_chain = QLabel("-")
        self.info_painter = QLabel("-")
        self.info_status = QLabel("-")
        info_layout.addRow("Position:", self.info_position)
        info_layout.addRow("Color:", self.info_color)
        info_layout.addRow("Chain:", self.info_chain)
        info_layout.addRow("Painter:", self.info_painter)
        info_layout.addRow("Status:", self.info_status)

        right_dock.setWidget(info_widget)
        right_dock.setMinimumWidth(240)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, right_dock)

    def _create_status_bar(self):
        """Creates status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.status_label = QLabel("Ready")
        self.status_bar.addWidget(self.status_label)

        self.in_flight_label = QLabel()
        self.in_flight_label.setVisible(False)
        self.status_bar.addWidget(self.in_flight_label)

        # Cooldown (text + bar)
        self.cooldown_label = QLabel("Ready to place")
        self.status_bar.addPermanentWidget(self.cooldown_label)

        self.cooldown_bar = QProgressBar()
        self.cooldown_bar.setMaximumWidth(200)
        self.cooldown_bar.setRange(0, 100)
        self.cooldown_bar.setTextVisible(False)
        self.cooldown_bar.setVisible(False)
        self.status_bar.addPermanentWidget(self.cooldown_bar)

    # Event handlers
    def _on_export_snapshot(self):
        """Asks for a target file and requests the export."""
        file_path, _ = QFileDialog.getSaveFileName(
            self,
            "Export Snapshot",
            "canvas.png",
            "PNG Images (*.png)"
        )

        if file_path:
            self.export_requested.emit(Path(file_path))

    def _on_chain_changed(self, index: int):
        self.chain_selected.emit(self.chain_combo.itemData(index))

    def _on_toggle_grid(self, checked: bool):
        """Toggles grid visibility."""
        self.canvas.set_show_grid(checked)

    # Public methods
    def set_selected_chain(self, chain: Chain):
        index = self.chain_combo.findData(chain.value)
        if index >= 0:
            self.chain_combo.setCurrentIndex(index)

    def set_selected_color(self, index: int):
        """Updates the palette selection and the swatch under it."""
        self.color_palette.set_selected(index)
        r, g, b = self._palette[index]
        self.selected_color_label.setStyleSheet(f"background-color: rgb({r}, {g}, {b}); border: 1px solid #555;")
        self.selected_color_label.setToolTip(f"Color {index}")

    def set_wallet(self, chain: Chain, address: Optional[str]):
        label = self._wallet_labels[chain]
        button = self._wallet_buttons[chain]
        if address:
            label.setText(shorten_address(address))
            label.setToolTip(address)
            button.setText(f"{chain.label} connected")
        else:
            label.setText("Not connected")
            label.setToolTip("")
            button.setText(f"Connect {chain.label}")

    def set_wallet_available(self, chain: Chain, available: bool):
        button = self._wallet_buttons[chain]
        button.setEnabled(available)
        if not available:
            button.setToolTip(f"No {chain.label} wallet found on the wallet bridge")

    def set_pixel_info(self, cell: Optional[Cell], record: Optional[PaintRecord]):
        """Shows the record of the selected cell (record None = background)."""
        if cell is None:
            for label in (self.info_position, self.info_color, self.info_chain, self.info_painter, self.info_status):
                label.setText("-")
            return

        self.info_position.setText(f"({cell[0]}, {cell[1]})")
        if record is None or record.owner is None:
            color = record.color if record else 0
            self.info_color.setText(self._color_text(color))
            self.info_chain.setText("-")
            self.info_painter.setText("Empty")
            self.info_status.setText("-")
            return

        self.info_color.setText(self._color_text(record.color))
        self.info_chain.setText(record.chain.label)
        self.info_painter.setText(shorten_address(record.owner))
        self.info_painter.setToolTip(record.owner)
        self.info_status.setText("Confirmed" if record.confirmed else "Pending")

    def _color_text(self, index: int) -> str:
        r, g, b = self._palette[index]
        return f"{index} (#{r:02X}{g:02X}{b:02X})"

    def set_notice(self, notice: Optional[Notice]):
        """Shows or hides the notice banner."""
        if notice is None:
            self.notice_label.setVisible(False)
            self.notice_label.setText("")
            return
        self.notice_label.setStyleSheet(_NOTICE_STYLES.get(notice.kind, _NOTICE_STYLES["error"]))
        self.notice_label.setText(notice.text)
        self.notice_label.setVisible(True)

    def set_in_flight(self, chain: Optional[Chain], count: int = 0):
        """Shows the "placing pixel" indicator while dispatches are outstanding."""
        if count <= 0 or chain is None:
            self.in_flight_label.setVisible(False)
            return
        suffix = f" ({count})" if count > 1 else ""
        self.in_flight_label.setText(f"Placing pixel on {chain.label}...{suffix}")
        self.in_flight_label.setVisible(True)

    def set_cooldown(self, chain: Chain, remaining: float, progress: float):
        """Updates the cooldown timer for the selected chain."""
        if remaining <= 0:
            self.cooldown_label.setText(f"{chain.label}: ready to place")
            self.cooldown_bar.setVisible(False)
            return
        self.cooldown_label.setText(f"{chain.label} cooldown: {remaining:.0f}s")
        self.cooldown_bar.setValue(int(progress * 100))
        self.cooldown_bar.setVisible(True)

    def set_status(self, message: str):
        """Sets status bar message."""
        self.status_label.setText(message)

    def show_error(self, title: str, message: str):
        """Shows error dialog."""
        QMessageBox.critical(self, title, message)

    def show_info(self, title: str, message: str):
        """Shows info dialog."""
        QMessageBox.information(self, title, message)
