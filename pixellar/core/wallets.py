from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from pixellar.core.models import Chain

logger = logging.getLogger(__name__)


class ConnectedWalletSet:
    """Connected address per chain; written by wallet connection, read by placement."""

    def __init__(self, addresses: Optional[Dict[Chain, Optional[str]]] = None):
        self._addresses: Dict[Chain, Optional[str]] = {chain: None for chain in Chain}
        self._listeners: List[Callable[[Chain, Optional[str]], None]] = []
        for chain, address in (addresses or {}).items():
            self._addresses[chain] = address or None

    def add_listener(self, callback: Callable[[Chain, Optional[str]], None]) -> None:
        self._listeners.append(callback)

    def get(self, chain: Chain) -> Optional[str]:
        return self._addresses.get(chain)

    def set(self, chain: Chain, address: Optional[str]) -> None:
        self._addresses[chain] = address or None
        if address:
            logger.info("%s wallet connected: %s", chain.label, shorten_address(address))
        else:
            logger.info("%s wallet disconnected", chain.label)
        for callback in self._listeners:
            callback(chain, self._addresses[chain])

    def is_connected(self, chain: Chain) -> bool:
        return self._addresses.get(chain) is not None


def shorten_address(address: Optional[str]) -> str:
    """0x1234...abcd style display form."""
    if not address:
        return ""
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
