"""
Starknet dispatcher: invoke ``draw_pixel`` with uint256 arguments.
"""

from __future__ import annotations

from typing import List

from pixellar.chains.base_dispatcher import ChainDispatcher
from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.models import Cell, Chain

_WORD_BITS = 128
_WORD_MASK = (1 << _WORD_BITS) - 1


def to_uint256(value: int) -> List[str]:
    """
    Splits an integer into the (low, high) felts of a Cairo u256.

    Args:
        value: Non-negative integer below 2**256

    Returns:
        Hex strings [low, high]
    """
    if value < 0 or value >> (2 * _WORD_BITS):
        raise ValueError(f"Value does not fit in u256: {value}")
    return [hex(value & _WORD_MASK), hex(value >> _WORD_BITS)]


class StarknetDispatcher(ChainDispatcher):
    """Executes ``draw_pixel(x, y, color)`` on the canvas contract."""

    chain = Chain.STARKNET

    def __init__(self, bridge: WalletBridge, contract_address: str):
        super().__init__(bridge)
        self.contract_address = contract_address

    def build_transaction(self, cell: Cell, color: int, actor: str) -> dict:
        contract = self._require(self.contract_address, "contract address")
        x, y = cell
        return {
            "contractAddress": contract,
            "entrypoint": "draw_pixel",
            "calldata": to_uint256(x) + to_uint256(y) + to_uint256(color),
        }

    def sign_and_submit(self, payload: dict, actor: str) -> str:
        # account.execute(); the bridge answers with transaction_hash as tx_id
        return self.bridge.execute(self.chain, payload, actor)
