"""
Stellar dispatcher: Soroban contract invocation submitted through Horizon.

The wallet bridge only signs here (Freighter style); the signed envelope is
posted to Horizon ourselves.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from pixellar.chains.base_dispatcher import ChainDispatcher
from pixellar.chains.wallet_bridge import WalletBridge
from pixellar.core.errors import DispatchFailed
from pixellar.core.models import Cell, Chain

logger = logging.getLogger(__name__)

# Minimum fee in stroops
BASE_FEE = 100

# Seconds before the transaction is no longer valid
TX_TIMEOUT = 30


class StellarDispatcher(ChainDispatcher):
    """Invokes ``draw(x, y, color)`` on the Soroban canvas contract."""

    chain = Chain.STELLAR

    def __init__(
        self,
        bridge: WalletBridge,
        contract_id: str,
        horizon_url: str,
        network_passphrase: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(bridge)
        self.contract_id = contract_id
        self.horizon_url = horizon_url.rstrip("/")
        self.network_passphrase = network_passphrase
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_transaction(self, cell: Cell, color: int, actor: str) -> dict:
        contract = self._require(self.contract_id, "canvas contract")
        x, y = cell
        return {
            "source": actor,
            "fee": BASE_FEE,
            "network_passphrase": self.network_passphrase,
            "timeout": TX_TIMEOUT,
            "operation": {
                "type": "invokeContractFunction",
                "contract": contract,
                "function": "draw",
                "args": [{"u64": x}, {"u64": y}, {"u32": color}],
            },
        }

    def sign_and_submit(self, payload: dict, actor: str) -> str:
        signed_xdr = self.bridge.sign(self.chain, payload, actor)
        return self.submit(signed_xdr)

    def submit(self, signed_xdr: str) -> str:
        """
        Posts a signed envelope to Horizon.

        Returns:
            Transaction hash

        Raises:
            DispatchFailed: If Horizon is unreachable or refuses the transaction
        """
        url = f"{self.horizon_url}/transactions"
        try:
            resp = self.session.post(url, data={"tx": signed_xdr}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise DispatchFailed(self.chain, f"Horizon unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.ok:
            detail = None
            if isinstance(data, dict):
                detail = data.get("extras", {}).get("result_codes") or data.get("title")
            raise DispatchFailed(self.chain, f"Horizon returned HTTP {resp.status_code}: {detail}")

        tx_hash = data.get("hash")
        if not tx_hash:
            raise DispatchFailed(self.chain, "Horizon response is missing the transaction hash")
        logger.debug("Horizon accepted transaction %s", tx_hash)
        return tx_hash
