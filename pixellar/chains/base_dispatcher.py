"""
Base class for per-chain transaction dispatch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.errors import WalletBridgeError
from pixellar.core.models import Cell, Chain, DispatchOutcome, DispatchResult

logger = logging.getLogger(__name__)

# Wallets do not share a rejection error code, only the wording
REJECTION_MARKERS = ("reject", "cancel", "denied", "declined")


def is_user_rejection(error: Exception) -> bool:
    """True if a signing-step error reads like the user declined the request."""
    if not isinstance(error, WalletBridgeError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in REJECTION_MARKERS)


class ChainDispatcher(ABC):
    """
    Builds, signs and submits a pixel placement on one chain.

    Subclasses provide the chain-native payload and the sign/submit flow;
    ``dispatch`` turns whatever happens into exactly one DispatchResult.
    """

    chain: Chain

    def __init__(self, bridge: WalletBridge):
        self.bridge = bridge

    @abstractmethod
    def build_transaction(self, cell: Cell, color: int, actor: str) -> dict:
        """
        Builds the chain-native transaction payload.

        Args:
            cell: Target grid cell
            color: Palette index
            actor: Address of the signer

        Returns:
            Payload understood by the wallet bridge for this chain
        """

    @abstractmethod
    def sign_and_submit(self, payload: dict, actor: str) -> str:
        """
        Drives signing and submission.

        Returns:
            Chain transaction id

        Raises:
            Exception: Any failure; signing-step errors are WalletBridgeError
        """

    def is_available(self) -> bool:
        """Returns whether a wallet for this chain can sign right now."""
        return self.bridge.is_available(self.chain)

    def dispatch(self, cell: Cell, color: int, actor: Optional[str]) -> DispatchResult:
        """Runs build -> sign -> submit and classifies the outcome. Blocking."""
        if not actor:
            return DispatchResult(DispatchOutcome.FAILED, self.chain, error=f"No {self.chain.label} wallet")

        try:
            payload = self.build_transaction(cell, color, actor)
            tx_id = self.sign_and_submit(payload, actor)
        except Exception as e:
            if is_user_rejection(e):
                logger.info("%s signature declined: %s", self.chain.label, e)
                return DispatchResult(DispatchOutcome.REJECTED, self.chain, error=str(e))
            logger.error("%s transaction failed: %s", self.chain.label, e)
            return DispatchResult(DispatchOutcome.FAILED, self.chain, error=str(e))

        logger.info("%s pixel placed at %s, tx %s", self.chain.label, cell, tx_id)
        return DispatchResult(DispatchOutcome.CONFIRMED, self.chain, tx_id=tx_id)

    def _require(self, value: str, name: str) -> str:
        if not value:
            raise ValueError(f"{self.chain.label} {name} is not configured")
        return value
