"""
Main Application Module
Builds every component once and wires them to the Qt user interface.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

import config
from pixellar.chains.registry import build_registry
from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.controller import ReconciliationController
from pixellar.core.cooldown import CooldownGate
from pixellar.core.errors import StoreError, WalletBridgeError
from pixellar.core.models import Chain, PixelRow, PlacementAttempt
from pixellar.core.pixel_cache import PixelCache
from pixellar.core.renderer import CanvasRenderer
from pixellar.core.viewport import CoordinateTransform
from pixellar.core.wallets import ConnectedWalletSet
from pixellar.store.client import MirroredStore
from pixellar.store.realtime import RealtimeSubscription
from pixellar.tools.inspect_tool import InspectTool
from pixellar.tools.place_tool import PlaceTool
from pixellar.ui.canvas_widget import CanvasWidget
from pixellar.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


class PixellarApp(QObject):
    """Composition root of the desktop client."""

    # Realtime rows arrive on a worker thread; queued onto the GUI thread
    row_received = Signal(object)
    resync_requested = Signal()

    def __init__(self):
        super().__init__()

        # Shared state
        self.cache = PixelCache(config.CANVAS_WIDTH, config.CANVAS_HEIGHT, len(config.PALETTE))
        self.cooldown = CooldownGate(config.COOLDOWN_SECONDS)
        self.wallets = ConnectedWalletSet()

        # Collaborators
        self.bridge = WalletBridge(config.WALLET_BRIDGE_URL, timeout=config.HTTP_TIMEOUT_SECONDS)
        self.registry = build_registry(
            self.bridge,
            sui_package_id=config.SUI_PACKAGE_ID,
            sui_canvas_object_id=config.SUI_CANVAS_OBJECT_ID,
            stellar_contract_id=config.STELLAR_CANVAS_CONTRACT,
            stellar_horizon_url=config.STELLAR_HORIZON_URL,
            stellar_network_passphrase=config.STELLAR_NETWORK_PASSPHRASE,
            starknet_contract_address=config.STARKNET_CONTRACT_ADDRESS,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
        self.store: Optional[MirroredStore] = None
        is_valid, message = config.validate_store()
        if is_valid:
            self.store = MirroredStore(
                config.SUPABASE_URL,
                config.SUPABASE_KEY,
                table=config.PIXELS_TABLE,
                timeout=config.HTTP_TIMEOUT_SECONDS,
            )
        else:
            logger.warning(message)

        self.controller = ReconciliationController(
            self.cache,
            self.cooldown,
            self.wallets,
            self.registry,
            store=self.store,
            notice_seconds=config.NOTICE_SECONDS,
            default_color=config.DEFAULT_COLOR,
            default_chain=Chain.parse(config.DEFAULT_CHAIN),
        )
        self.renderer = CanvasRenderer(config.PALETTE, config.CANVAS_WIDTH, config.CANVAS_HEIGHT)

        # Tools
        self.place_tool = PlaceTool(self.controller)
        self.inspect_tool = InspectTool(self.controller)
        self.active_tool = None

        self.main_window: Optional[MainWindow] = None
        self._subscription: Optional[RealtimeSubscription] = None
        self._realtime_thread: Optional[threading.Thread] = None
        self._cooldown_timer = QTimer(self)
        self._cooldown_timer.setInterval(200)
        self._background_tasks = set()

    def setup(self):
        """Creates the UI and connects every signal."""
        transform = CoordinateTransform(
            config.CANVAS_WIDTH,
            config.CANVAS_HEIGHT,
            pixel_size=config.PIXEL_SIZE,
            min_scale=config.MIN_SCALE,
            max_scale=config.MAX_SCALE,
            snap=config.INTERACTION_MODE == "center",
        )
        canvas = CanvasWidget(
            self.cache,
            self.renderer,
            transform,
            interaction_mode=config.INTERACTION_MODE,
            zoom_in_factor=config.ZOOM_IN_FACTOR,
            zoom_out_factor=config.ZOOM_OUT_FACTOR,
            click_threshold=config.CLICK_THRESHOLD_PX,
        )
        self.main_window = MainWindow(canvas, config.PALETTE, title=config.APP_TITLE, size=config.WINDOW_SIZE)

        self._connect_signals()
        self._setup_tools()

        self._select_color(self.controller.selected_color)
        self.main_window.set_selected_chain(self.controller.selected_chain)
        self._refresh_cooldown()
        self._cooldown_timer.start()

        self.main_window.show()
        self.main_window.set_status("Loading canvas...")

    def _connect_signals(self):
        """Connects signals between components."""
        window = self.main_window

        window.export_requested.connect(self._on_export_requested)
        window.chain_selected.connect(self._on_chain_selected)
        window.connect_wallet_requested.connect(self._on_connect_wallet_requested)
        window.color_palette.color_selected.connect(self._select_color)
        window.canvas.selection_changed.connect(self._on_selection_changed)

        self.row_received.connect(self._on_row_received)
        self.resync_requested.connect(self._on_resync_requested)
        self._cooldown_timer.timeout.connect(self._refresh_cooldown)

        self.controller.on_notice(window.set_notice)
        self.controller.on_attempt(self._on_attempt)
        self.controller.on_loading(self._on_loading)
        self.wallets.add_listener(window.set_wallet)
        self.cache.add_listener(self._on_cell_changed)

    def _setup_tools(self):
        """Setup tools and their connections."""
        self.inspect_tool.set_on_color_picked(self._select_color)

        self.main_window.place_btn.clicked.connect(lambda: self._select_tool(self.place_tool))
        self.main_window.inspect_btn.clicked.connect(lambda: self._select_tool(self.inspect_tool))

        # Place tool by default
        self._select_tool(self.place_tool)

    def _select_tool(self, tool):
        """Selects a tool and updates UI."""
        self.active_tool = tool
        self.main_window.canvas.set_active_tool(tool)
        self.main_window.place_btn.setChecked(tool is self.place_tool)
        self.main_window.inspect_btn.setChecked(tool is self.inspect_tool)
        self.main_window.set_status(f"Tool selected: {tool.name}")

    # ========================================================================
    # Startup and shutdown
    # ========================================================================

    async def start(self):
        """Loads the canvas, probes wallets and starts the realtime feed."""
        self._spawn(self._probe_wallets())
        loaded = await self.controller.load()
        self.main_window.set_status(f"Canvas loaded: {loaded} painted cells")
        self._start_realtime()

    def _start_realtime(self):
        if self.store is None:
            return
        self._subscription = RealtimeSubscription(
            config.SUPABASE_URL,
            config.SUPABASE_KEY,
            table=config.PIXELS_TABLE,
            heartbeat=config.REALTIME_HEARTBEAT_SECONDS,
            max_backoff=config.REALTIME_MAX_BACKOFF_SECONDS,
            on_resubscribe=self.resync_requested.emit,
        )
        self._realtime_thread = threading.Thread(
            target=self._realtime_worker,
            name="pixellar-realtime",
            daemon=True,
        )
        self._realtime_thread.start()

    def _realtime_worker(self):
        for row in self._subscription.iter_rows():
            self.row_received.emit(row)

    def shutdown(self):
        """Stops the realtime feed, timers and worker threads."""
        logger.info("Shutting down")
        self._cooldown_timer.stop()
        if self._subscription:
            self._subscription.close()
        self.controller.shutdown()

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    # ========================================================================
    # Store / chain events
    # ========================================================================

    def _on_row_received(self, row: PixelRow):
        self.controller.merge_authoritative_row(row)

    def _on_resync_requested(self):
        self._spawn(self._resync())

    async def _resync(self):
        try:
            rows = await self.controller.run_blocking(self.store.fetch_all)
        except StoreError as e:
            logger.warning("Resync after reconnect failed: %s", e)
            return
        self.controller.resync(rows)

    async def _probe_wallets(self):
        for chain in self.registry.chains():
            dispatcher = self.registry.get(chain)
            available = await self.controller.run_blocking(dispatcher.is_available)
            self.main_window.set_wallet_available(chain, available)

    def _on_connect_wallet_requested(self, chain_value: str):
        self._spawn(self._connect_wallet(Chain.parse(chain_value)))

    async def _connect_wallet(self, chain: Chain):
        self.main_window.set_status(f"Connecting {chain.label} wallet...")
        try:
            address = await self.controller.run_blocking(self.bridge.connect, chain)
        except WalletBridgeError as e:
            logger.error("%s wallet connection failed: %s", chain.label, e)
            self.controller.show_notice("error", f"Could not connect {chain.label} wallet")
            self.main_window.set_status("Ready")
            return
        self.wallets.set(chain, address)
        self.main_window.set_status(f"{chain.label} wallet connected")

    # ========================================================================
    # UI events
    # ========================================================================

    def _select_color(self, index: int):
        self.controller.select_color(index)
        self.main_window.set_selected_color(index)
        self.main_window.canvas.set_preview_color(config.PALETTE[index])

    def _on_chain_selected(self, chain_value: str):
        self.controller.select_chain(chain_value)
        self._refresh_cooldown()

    def _on_selection_changed(self, x: int, y: int):
        if x < 0 or y < 0:
            self.main_window.set_pixel_info(None, None)
            return
        self.main_window.set_pixel_info((x, y), self.cache.get((x, y)))

    def _on_cell_changed(self, cell):
        selected = self.main_window.canvas.selected_cell
        if selected is not None and (cell is None or cell == selected):
            self.main_window.set_pixel_info(selected, self.cache.get(selected))

    def _on_attempt(self, attempt: PlacementAttempt):
        self.main_window.set_in_flight(attempt.chain, self.controller.in_flight)
        if attempt.finished:
            self.main_window.set_status(f"Placement at {attempt.cell}: {attempt.state.value}")

    def _on_loading(self, loading: bool):
        if loading:
            self.main_window.set_status("Loading canvas...")

    def _refresh_cooldown(self):
        chain = self.controller.selected_chain
        self.main_window.set_cooldown(chain, self.cooldown.remaining(chain), self.cooldown.progress(chain))

    def _on_export_requested(self, file_path: Path):
        """Handles export request."""
        try:
            path = self.renderer.export_png(
                self.cache,
                file_path,
                pixel_size=config.PIXEL_SIZE,
                with_grid=self.main_window.canvas.is_grid_visible(),
                grid_color=config.GRID_COLOR,
            )
        except OSError as e:
            self.main_window.show_error("Export Error", f"Error exporting snapshot: {e}")
            return
        self.main_window.set_status(f"Snapshot exported: {path.name}")
