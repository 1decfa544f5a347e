"""
Sui dispatcher: Move call into the canvas package.
"""

from __future__ import annotations

from pixellar.chains.base_dispatcher import ChainDispatcher
from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.models import Cell, Chain

# Shared Clock object, passed to every entry function that reads time
SUI_CLOCK_OBJECT_ID = "0x6"


class SuiDispatcher(ChainDispatcher):
    """Calls ``{package}::canvas::draw`` through the wallet bridge."""

    chain = Chain.SUI

    def __init__(self, bridge: WalletBridge, package_id: str, canvas_object_id: str):
        super().__init__(bridge)
        self.package_id = package_id
        self.canvas_object_id = canvas_object_id

    def build_transaction(self, cell: Cell, color: int, actor: str) -> dict:
        package_id = self._require(self.package_id, "package id")
        canvas_id = self._require(self.canvas_object_id, "canvas object id")
        x, y = cell
        return {
            "kind": "moveCall",
            "sender": actor,
            "target": f"{package_id}::canvas::draw",
            "arguments": [
                {"object": canvas_id},
                {"object": SUI_CLOCK_OBJECT_ID},
                {"u64": x},
                {"u64": y},
                {"u8": color},
            ],
        }

    def sign_and_submit(self, payload: dict, actor: str) -> str:
        # signAndExecuteTransaction: the bridge broadcasts and returns the digest
        return self.bridge.execute(self.chain, payload, actor)
