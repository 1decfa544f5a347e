"""
Per-chain cooldown gate.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

from pixellar.core.models import Chain

logger = logging.getLogger(__name__)


class CooldownGate:
    """
    Blocks new placements on a chain until its cooldown has elapsed.

    Eligibility is read from the clock, so it never depends on whether the clear
    timer already fired. The timer only resets the entry and notifies
    listeners. Each chain keeps the handle of its pending timer; re-arming
    cancels it before scheduling a new one, so an older timer can never clear a
    newer cooldown.

    Args:
        duration: Cooldown length in seconds
        chains: Chains to track (all supported chains by default)
        clock: Monotonic time source in seconds
        scheduler: Object with ``call_later(delay, callback)`` returning a
                   cancellable handle; the running asyncio loop if omitted
    """

    def __init__(
        self,
        duration: float,
        chains: Iterable[Chain] = tuple(Chain),
        clock: Callable[[], float] = time.monotonic,
        scheduler=None,
    ):
        self.duration = duration
        self._clock = clock
        self._scheduler = scheduler
        self._expiry: Dict[Chain, Optional[float]] = {chain: None for chain in chains}
        self._timers: Dict[Chain, object] = {}
        self._listeners: List[Callable[[Chain], None]] = []

    def add_listener(self, callback: Callable[[Chain], None]) -> None:
        """Registers a callback run whenever a chain's cooldown starts or clears."""
        self._listeners.append(callback)

    def expiry(self, chain: Chain) -> Optional[float]:
        return self._expiry.get(chain)

    def is_eligible(self, chain: Chain) -> bool:
        expiry = self._expiry.get(chain)
        return expiry is None or expiry <= self._clock()

    def remaining(self, chain: Chain) -> float:
        """Seconds left before the chain accepts a placement (0 when eligible)."""
        expiry = self._expiry.get(chain)
        if expiry is None:
            return 0.0
        return max(0.0, expiry - self._clock())

    def progress(self, chain: Chain) -> float:
        """Fraction of the cooldown already elapsed, 1.0 when eligible."""
        if self.duration <= 0:
            return 1.0
        return 1.0 - self.remaining(chain) / self.duration

    def start(self, chain: Chain) -> None:
        """Starts (or restarts with a full duration) the cooldown for a chain."""
        self._cancel_timer(chain)
        self._expiry[chain] = self._clock() + self.duration
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._timers[chain] = scheduler.call_later(self.duration, self._clear, chain)
        logger.debug("Cooldown started for %s (%.1fs)", chain.label, self.duration)
        self._notify(chain)

    def cancel_all(self) -> None:
        """Cancels every pending clear timer (used on shutdown)."""
        for chain in list(self._timers):
            self._cancel_timer(chain)

    def _clear(self, chain: Chain) -> None:
        self._timers.pop(chain, None)
        self._expiry[chain] = None
        logger.debug("Cooldown cleared for %s", chain.label)
        self._notify(chain)

    def _cancel_timer(self, chain: Chain) -> None:
        handle = self._timers.pop(chain, None)
        if handle is not None:
            handle.cancel()

    def _notify(self, chain: Chain) -> None:
        for callback in self._listeners:
            callback(chain)
