"""
Push subscription to row changes of the mirrored ``pixels`` table.

Speaks the Phoenix channel protocol used by Supabase Realtime over a
synchronous websocket, so it is meant to run on a worker thread.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Callable, Iterator, Optional
from urllib.parse import urlsplit, urlunsplit

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from pixellar.core.models import PixelRow

logger = logging.getLogger(__name__)

ROW_EVENTS = ("INSERT", "UPDATE")


def realtime_url(base_url: str, key: str) -> str:
    """https://<project>.supabase.co -> wss://<project>.supabase.co/realtime/v1/websocket?..."""
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, "/realtime/v1/websocket", f"apikey={key}&vsn=1.0.0", ""))


def parse_message(raw) -> Optional[PixelRow]:
    """
    Extracts the changed row from a channel message.

    Returns:
        PixelRow for an insert/update event, None for anything else
        (replies, heartbeats, deletes, malformed rows)
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-JSON realtime frame")
        return None
    if not isinstance(message, dict):
        return None

    event = message.get("event")
    payload = message.get("payload")
    if not isinstance(payload, dict):
        return None
    if event == "postgres_changes":
        change = payload.get("data")
    elif event in ROW_EVENTS:
        change = payload
    else:
        return None

    if not isinstance(change, dict) or change.get("type", event) not in ROW_EVENTS:
        return None
    record = change.get("record")
    if not isinstance(record, dict):
        return None
    try:
        return PixelRow.from_dict(record)
    except ValueError as e:
        logger.warning("Ignoring realtime row: %s", e)
        return None


class RealtimeSubscription:
    """
    Lazy, endless stream of authoritative rows.

    The channel does not replay missed changes. After a dropped connection is
    re-established ``on_resubscribe`` is called so the owner can fill the gap
    (re-fetch the snapshot).

    Args:
        url: Store base URL
        key: Anon API key
        table: Table to watch
        heartbeat: Seconds between heartbeats
        max_backoff: Cap of the exponential reconnect delay
        on_resubscribe: Called after every successful re-join
        connect: Websocket connect function
    """

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "pixels",
        heartbeat: float = 30.0,
        max_backoff: float = 30.0,
        on_resubscribe: Optional[Callable[[], None]] = None,
        connect=ws_connect,
    ):
        self.uri = realtime_url(url, key)
        self.topic = f"realtime:public:{table}"
        self.table = table
        self.heartbeat = heartbeat
        self.max_backoff = max_backoff
        self.on_resubscribe = on_resubscribe
        self._connect = connect
        self._closed = threading.Event()
        self._ws = None
        self._ref = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def backoff(self, attempt: int) -> float:
        """1, 2, 4, ... seconds, capped at ``max_backoff``."""
        return min(self.max_backoff, float(2 ** attempt))

    def iter_rows(self) -> Iterator[PixelRow]:
        """Yields every row change until ``close()`` is called. Blocking."""
        attempt = 0
        joined_before = False
        while not self._closed.is_set():
            try:
                with self._connect(self.uri) as ws:
                    self._ws = ws
                    self._join(ws)
                    if joined_before:
                        logger.info("Realtime channel re-joined")
                        if self.on_resubscribe:
                            self.on_resubscribe()
                    else:
                        logger.info("Realtime channel joined: %s", self.topic)
                    joined_before = True
                    attempt = 0
                    yield from self._receive(ws)
            except (WebSocketException, OSError) as e:
                if self._closed.is_set():
                    break
                delay = self.backoff(attempt)
                attempt += 1
                logger.warning("Realtime connection lost (%s), reconnecting in %.0fs", e, delay)
                self._closed.wait(delay)
            finally:
                self._ws = None
        logger.info("Realtime subscription closed")

    def close(self) -> None:
        """Stops the stream; safe to call from any thread."""
        self._closed.set()
        ws = self._ws
        if ws is not None:
            ws.close()

    def _receive(self, ws) -> Iterator[PixelRow]:
        next_heartbeat = time.monotonic() + self.heartbeat
        while not self._closed.is_set():
            try:
                raw = ws.recv(timeout=max(0.0, next_heartbeat - time.monotonic()))
            except TimeoutError:
                self._send(ws, "phoenix", "heartbeat", {})
                next_heartbeat = time.monotonic() + self.heartbeat
                continue
            row = parse_message(raw)
            if row is not None:
                yield row

    def _join(self, ws) -> None:
        config = {
            "postgres_changes": [
                {"event": "*", "schema": "public", "table": self.table},
            ],
        }
        self._send(ws, self.topic, "phx_join", {"config": config})

    def _send(self, ws, topic: str, event: str, payload: dict) -> None:
        self._ref += 1
        ws.send(json.dumps({"topic": topic, "event": event, "payload": payload, "ref": str(self._ref)}))
