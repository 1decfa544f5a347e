"""
Lookup of the dispatcher for each supported chain.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from pixellar.chains.base_dispatcher import ChainDispatcher
from pixellar.chains.starknet import StarknetDispatcher
from pixellar.chains.stellar import StellarDispatcher
from pixellar.chains.sui import SuiDispatcher
from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.models import Chain


class DispatchRegistry:
    """Chain -> ChainDispatcher, resolved once per placement."""

    def __init__(self, dispatchers: Iterable[ChainDispatcher] = ()):
        self._dispatchers: Dict[Chain, ChainDispatcher] = {}
        for dispatcher in dispatchers:
            self.register(dispatcher)

    def register(self, dispatcher: ChainDispatcher) -> None:
        self._dispatchers[dispatcher.chain] = dispatcher

    def get(self, chain: Chain) -> ChainDispatcher:
        try:
            return self._dispatchers[chain]
        except KeyError:
            raise ValueError(f"No dispatcher registered for {chain.label}") from None

    def chains(self) -> List[Chain]:
        return list(self._dispatchers)

    def __contains__(self, chain: Chain) -> bool:
        return chain in self._dispatchers


def build_registry(
    bridge: WalletBridge,
    sui_package_id: str = "",
    sui_canvas_object_id: str = "",
    stellar_contract_id: str = "",
    stellar_horizon_url: str = "https://horizon-testnet.stellar.org",
    stellar_network_passphrase: str = "Test SDF Network ; September 2015",
    starknet_contract_address: str = "",
    timeout: int = 30,
) -> DispatchRegistry:
    """Creates the registry with one dispatcher per supported chain."""
    return DispatchRegistry([
        SuiDispatcher(bridge, sui_package_id, sui_canvas_object_id),
        StellarDispatcher(
            bridge,
            stellar_contract_id,
            stellar_horizon_url,
            stellar_network_passphrase,
            timeout=timeout,
        ),
        StarknetDispatcher(bridge, starknet_contract_address),
    ])
