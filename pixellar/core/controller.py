"""
Reconciliation Controller: drives one placement attempt from click to outcome
and keeps the cache in step with the mirrored store.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

from pixellar.chains.registry import DispatchRegistry
from pixellar.core.cooldown import CooldownGate
from pixellar.core.errors import (
    CooldownActive,
    DispatchFailed,
    LoadFailed,
    PixellarError,
    StoreError,
    UserRejected,
    WalletNotConnected,
)
from pixellar.core.models import (
    AttemptState,
    Cell,
    Chain,
    DispatchOutcome,
    DispatchResult,
    Notice,
    PaintRecord,
    PixelRow,
    PlacementAttempt,
)
from pixellar.core.pixel_cache import PixelCache
from pixellar.core.wallets import ConnectedWalletSet

logger = logging.getLogger(__name__)


class ReconciliationController:
    """
    Orchestrates cooldown, wallet, cache and dispatch for each placement.

    All state changes happen on the event loop thread. The only suspension
    point of ``place_pixel`` is the dispatch itself, which runs on the
    controller's thread pool; everything before and after it is a single
    synchronous transition.

    Args:
        cache: Pixel cache to write optimistic and confirmed records into
        cooldown: Per-chain cooldown gate
        wallets: Connected addresses per chain
        registry: Dispatcher lookup by chain
        store: Mirrored store client (``fetch_all``/``upsert``), optional
        notice_seconds: How long a notice stays before auto-dismiss
        default_color: Initially selected palette index
        default_chain: Initially selected chain
        executor: Thread pool for blocking calls
        scheduler: Object with ``call_later``; the running loop if omitted
    """

    def __init__(
        self,
        cache: PixelCache,
        cooldown: CooldownGate,
        wallets: ConnectedWalletSet,
        registry: DispatchRegistry,
        store=None,
        notice_seconds: float = 3.0,
        default_color: int = 0,
        default_chain: Chain = Chain.SUI,
        executor: Optional[ThreadPoolExecutor] = None,
        scheduler=None,
    ):
        self.cache = cache
        self.cooldown = cooldown
        self.wallets = wallets
        self.registry = registry
        self.store = store
        self.notice_seconds = notice_seconds

        self.selected_color = default_color
        self.selected_chain = default_chain
        self.loading = False
        self.in_flight = 0
        self.notice: Optional[Notice] = None

        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="pixellar")
        self._scheduler = scheduler
        self._notice_timer = None
        # Placement attempts per cell while any of them is still in flight
        self._outstanding: Dict[Cell, List[PlacementAttempt]] = {}

        self._notice_listeners: List[Callable[[Optional[Notice]], None]] = []
        self._attempt_listeners: List[Callable[[PlacementAttempt], None]] = []
        self._loading_listeners: List[Callable[[bool], None]] = []

    # ========================================================================
    # Listeners
    # ========================================================================

    def on_notice(self, callback: Callable[[Optional[Notice]], None]) -> None:
        """Called with the new notice, or None when it is dismissed."""
        self._notice_listeners.append(callback)

    def on_attempt(self, callback: Callable[[PlacementAttempt], None]) -> None:
        """Called when an attempt starts dispatching and when it finishes."""
        self._attempt_listeners.append(callback)

    def on_loading(self, callback: Callable[[bool], None]) -> None:
        self._loading_listeners.append(callback)

    # ========================================================================
    # Selection
    # ========================================================================

    def select_color(self, color: int) -> None:
        if not 0 <= color < self.cache.palette_size:
            raise ValueError(f"Color index out of palette: {color}")
        self.selected_color = color

    def select_chain(self, chain) -> None:
        self.selected_chain = Chain.parse(chain)

    # ========================================================================
    # Loading and authoritative updates
    # ========================================================================

    async def load(self) -> int:
        """
        Performs the initial bulk fetch into the cache.

        On failure the cache is left empty, an error notice is shown and no
        retry is scheduled.

        Returns:
            Number of cells loaded
        """
        self._set_loading(True)
        try:
            if self.store is None:
                logger.warning("No store configured, starting with an empty canvas")
                return self.cache.load([])
            try:
                rows = await self.run_blocking(self.store.fetch_all)
            except StoreError as e:
                error = LoadFailed(str(e))
                logger.error("Initial load failed: %s", e)
                self.cache.load([])
                self.show_error(error)
                return 0
            return self.cache.load(rows)
        finally:
            self._set_loading(False)

    def merge_authoritative_row(self, row: PixelRow) -> bool:
        """Push path: merges one authoritative row, independent of any attempt."""
        return self.cache.merge_authoritative(row)

    def resync(self, rows: Iterable[PixelRow]) -> int:
        """Merges a fresh snapshot after the push channel reconnected."""
        merged = sum(1 for row in rows if self.cache.merge_authoritative(row))
        logger.info("Resynced %d cells from store", merged)
        return merged

    # ========================================================================
    # Placement
    # ========================================================================

    async def place_pixel(self, cell: Cell, color: Optional[int] = None, chain=None) -> PlacementAttempt:
        """
        Runs one placement attempt to a terminal state.

        Args:
            cell: Target cell (must be inside the grid)
            color: Palette index, the selected color if omitted
            chain: Chain to place on, the selected chain if omitted

        Returns:
            The finished attempt (CONFIRMED, REVERTED or ABORTED)

        Raises:
            ValueError: If the cell or color is outside the canvas/palette
        """
        chain = Chain.parse(chain) if chain is not None else self.selected_chain
        color = self.selected_color if color is None else color
        if not self.cache.in_bounds(cell):
            raise ValueError(f"Cell out of bounds: {cell}")
        if not 0 <= color < self.cache.palette_size:
            raise ValueError(f"Color index out of palette: {color}")

        attempt = PlacementAttempt(cell=cell, color=color, chain=chain)

        attempt.state = AttemptState.COOLDOWN_CHECK
        if not self.cooldown.is_eligible(chain):
            return self._abort(attempt, CooldownActive(chain, self.cooldown.remaining(chain)))

        attempt.state = AttemptState.WALLET_CHECK
        owner = self.wallets.get(chain)
        if not owner:
            return self._abort(attempt, WalletNotConnected(chain))
        try:
            dispatcher = self.registry.get(chain)
        except ValueError as e:
            return self._abort(attempt, DispatchFailed(chain, str(e)))
        attempt.owner = owner

        attempt.state = AttemptState.OPTIMISTIC_APPLY
        attempt.prior = self.cache.apply_optimistic(cell, color, owner, chain)
        attempt.applied = self.cache.get(cell)
        self._outstanding.setdefault(cell, []).append(attempt)

        attempt.state = AttemptState.DISPATCHING
        self.in_flight += 1
        self._emit_attempt(attempt)
        try:
            result = await self.run_blocking(dispatcher.dispatch, cell, color, owner)
        except asyncio.CancelledError:
            attempt.state = AttemptState.REVERTED
            self._restore(attempt)
            self._settle(attempt)
            raise
        except Exception as e:
            logger.error("%s dispatch did not complete: %s", chain.label, e, exc_info=True)
            result = DispatchResult(DispatchOutcome.FAILED, chain, error=str(e))
        finally:
            self.in_flight -= 1

        if result.confirmed:
            await self._confirm(attempt, result)
        else:
            self._revert(attempt, result)
        self._emit_attempt(attempt)
        return attempt

    async def _confirm(self, attempt: PlacementAttempt, result: DispatchResult) -> None:
        attempt.state = AttemptState.CONFIRMED
        attempt.tx_id = result.tx_id
        self.cooldown.start(attempt.chain)
        self.cache.confirm(attempt.cell, attempt.applied, result.tx_id)
        self._settle(attempt)
        self.show_notice("success", f"Pixel placed on {attempt.chain.label}!")

        if self.store is None:
            return
        row = PixelRow.from_record(attempt.cell, attempt.applied.confirm(result.tx_id))
        try:
            await self.run_blocking(self.store.upsert, row)
        except StoreError as e:
            # The chain accepted it; the indexer will mirror the row later
            logger.error("Direct store write failed: %s", e)

    def _revert(self, attempt: PlacementAttempt, result: DispatchResult) -> None:
        attempt.state = AttemptState.REVERTED
        if not self._restore(attempt):
            logger.info("Cell %s changed during dispatch, keeping the newer record", attempt.cell)
        self._settle(attempt)

        if result.outcome is DispatchOutcome.REJECTED:
            error = UserRejected(attempt.chain, result.error)
        else:
            error = DispatchFailed(attempt.chain, result.error)
        attempt.error = error
        self.show_error(error)

    def _restore(self, attempt: PlacementAttempt) -> bool:
        """Reverts the attempt's own optimistic write to its resolved prior."""
        return self.cache.revert(attempt.cell, self._resolve_prior(attempt), attempt.applied)

    def _resolve_prior(self, attempt: PlacementAttempt) -> Optional[PaintRecord]:
        """
        Follows the prior chain of overlapping attempts on the same cell.

        A prior that is the optimistic record of an earlier, already finished
        attempt is replaced by that attempt's outcome: its confirmed record, or
        (for a reverted attempt) its own resolved prior.
        """
        prior = attempt.prior
        earlier = self._owner_of(attempt.cell, prior)
        while earlier is not None and earlier.finished:
            if earlier.state is AttemptState.CONFIRMED:
                return earlier.applied.confirm(earlier.tx_id)
            prior = earlier.prior
            earlier = self._owner_of(attempt.cell, prior)
        return prior

    def _owner_of(self, cell: Cell, record: Optional[PaintRecord]) -> Optional[PlacementAttempt]:
        if record is None:
            return None
        for attempt in self._outstanding.get(cell, ()):
            if attempt.applied is record:
                return attempt
        return None

    def _settle(self, attempt: PlacementAttempt) -> None:
        # Drop the cell's attempt chain once nothing on it is still in flight
        attempts = self._outstanding.get(attempt.cell)
        if attempts and all(a.finished for a in attempts):
            del self._outstanding[attempt.cell]

    def _abort(self, attempt: PlacementAttempt, error: PixellarError) -> PlacementAttempt:
        logger.info("Placement at %s aborted: %s", attempt.cell, error)
        attempt.state = AttemptState.ABORTED
        attempt.error = error
        self.show_error(error)
        self._emit_attempt(attempt)
        return attempt

    # ========================================================================
    # Notices
    # ========================================================================

    def show_error(self, error: PixellarError) -> None:
        self.show_notice("error", error.user_message)

    def show_notice(self, kind: str, text: str) -> None:
        """Shows a notice, replacing (and cancelling the timer of) the previous one."""
        self._cancel_notice_timer()
        self.notice = Notice(kind, text)
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._notice_timer = scheduler.call_later(self.notice_seconds, self.dismiss_notice)
        self._emit_notice()

    def dismiss_notice(self) -> None:
        self._notice_timer = None
        if self.notice is None:
            return
        self.notice = None
        self._emit_notice()

    def _cancel_notice_timer(self) -> None:
        if self._notice_timer is not None:
            self._notice_timer.cancel()
            self._notice_timer = None

    # ========================================================================
    # Plumbing
    # ========================================================================

    async def run_blocking(self, func, *args):
        """Runs a blocking call on the controller's thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    def shutdown(self) -> None:
        """Cancels timers and stops the thread pool without waiting for it."""
        self.cooldown.cancel_all()
        self._cancel_notice_timer()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _set_loading(self, loading: bool) -> None:
        self.loading = loading
        for callback in self._loading_listeners:
            callback(loading)

    def _emit_notice(self) -> None:
        for callback in self._notice_listeners:
            callback(self.notice)

    def _emit_attempt(self, attempt: PlacementAttempt) -> None:
        for callback in self._attempt_listeners:
            callback(attempt)
