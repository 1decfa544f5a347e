"""
HTTP client for the local wallet bridge.

The bridge is the signing provider: it holds the user's keys (or forwards to a
hardware/browser wallet), asks the user to approve each request and returns
either a signed payload or the id of a transaction it broadcast itself.

Endpoints:
    GET  /status              -> {"chains": {"sui": true, ...}}
    POST /{chain}/connect     -> {"address": "..."}
    POST /{chain}/sign        -> {"signed": "..."}
    POST /{chain}/execute     -> {"tx_id": "..."}

Failures come back as a non-2xx status with {"error": "..."}.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from pixellar.core.errors import WalletBridgeError
from pixellar.core.models import Chain

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class WalletBridge:
    """Talks to the wallet bridge on behalf of every chain dispatcher."""

    def __init__(self, base_url: str, timeout: int = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def status(self) -> dict:
        """Returns the bridge status document."""
        return self._request("GET", "/status")

    def is_available(self, chain: Chain) -> bool:
        """Capability probe: can the bridge sign for this chain right now."""
        try:
            chains = self.status().get("chains", {})
        except WalletBridgeError as e:
            logger.debug("Wallet bridge probe failed: %s", e)
            return False
        return bool(chains.get(chain.value))

    def connect(self, chain: Chain) -> str:
        """Asks the bridge for the user's address on a chain."""
        data = self._request("POST", f"/{chain.value}/connect", {})
        return self._field(data, "address")

    def sign(self, chain: Chain, payload: dict, address: str) -> str:
        """Requests a signature and returns the signed, encoded transaction."""
        data = self._request("POST", f"/{chain.value}/sign", {"address": address, "payload": payload})
        return self._field(data, "signed")

    def execute(self, chain: Chain, payload: dict, address: str) -> str:
        """Requests signature and broadcast; returns the chain transaction id."""
        data = self._request("POST", f"/{chain.value}/execute", {"address": address, "payload": payload})
        return self._field(data, "tx_id")

    def _request(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise WalletBridgeError(f"Wallet bridge timed out: {url}") from e
        except requests.exceptions.RequestException as e:
            raise WalletBridgeError(f"Wallet bridge unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.ok:
            message = data.get("error") if isinstance(data, dict) else None
            raise WalletBridgeError(message or f"Wallet bridge returned HTTP {resp.status_code}")
        if not isinstance(data, dict):
            raise WalletBridgeError(f"Unexpected wallet bridge response from {path}")
        return data

    @staticmethod
    def _field(data: dict, name: str) -> str:
        value = data.get(name)
        if not value:
            raise WalletBridgeError(f"Wallet bridge response is missing '{name}'")
        return str(value)
