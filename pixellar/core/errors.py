"""
Error types raised by the canvas engine and its collaborators.
"""

from __future__ import annotations

from typing import Optional

from pixellar.core.models import Chain


class PixellarError(Exception):
    """Base class for all Pixellar errors."""

    # Message shown to the user; subclasses override
    user_message = "Something went wrong"


class CooldownActive(PixellarError):
    """Placement refused because the chain is still cooling down."""

    user_message = "Please wait for cooldown to finish"

    def __init__(self, chain: Chain, remaining: float):
        super().__init__(f"{chain.label} cooldown active for another {remaining:.1f}s")
        self.chain = chain
        self.remaining = remaining


class WalletNotConnected(PixellarError):
    """Placement refused because no address is connected for the chain."""

    def __init__(self, chain: Chain):
        super().__init__(f"No {chain.label} wallet connected")
        self.chain = chain
        self.user_message = f"Please connect your {chain.label} wallet first"


class UserRejected(PixellarError):
    """The signing step was declined by the user."""

    user_message = "Transaction rejected by user"

    def __init__(self, chain: Chain, reason: Optional[str] = None):
        super().__init__(reason or f"{chain.label} signature rejected")
        self.chain = chain


class DispatchFailed(PixellarError):
    """Any other failure while building, signing or submitting a transaction."""

    def __init__(self, chain: Chain, reason: Optional[str] = None):
        super().__init__(reason or f"{chain.label} transaction failed")
        self.chain = chain
        self.user_message = f"{chain.label} transaction failed"


class LoadFailed(PixellarError):
    """The initial bulk fetch of the canvas failed."""

    user_message = "Failed to load canvas"


class StoreError(PixellarError):
    """HTTP or decoding failure talking to the mirrored store."""


class WalletBridgeError(PixellarError):
    """Error reported by (or while reaching) the wallet bridge."""
