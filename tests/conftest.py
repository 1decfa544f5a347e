"""
Shared fakes for the test suite: a manual clock/scheduler, a scripted chain
dispatcher, an in-memory store and a scripted HTTP session.
"""

import pytest
import requests

from pixellar.chains.base_dispatcher import ChainDispatcher
from pixellar.chains.registry import DispatchRegistry
from pixellar.core.controller import ReconciliationController
from pixellar.core.cooldown import CooldownGate
from pixellar.core.models import Chain, PixelRow
from pixellar.core.pixel_cache import PixelCache
from pixellar.core.wallets import ConnectedWalletSet


class FakeHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual time: ``call_later`` handles fire only when ``advance`` passes them."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def clock(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    def advance(self, seconds):
        self.now += seconds
        due = [h for h in self.handles if h.when <= self.now and not h.cancelled]
        self.handles = [h for h in self.handles if h not in due]
        for handle in sorted(due, key=lambda h: h.when):
            handle.callback(*handle.args)

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]


class ScriptedDispatcher(ChainDispatcher):
    """Dispatcher whose sign/submit step succeeds or raises as scripted."""

    def __init__(self, chain, error=None, tx_id="0xtx", gate=None):
        super().__init__(bridge=None)
        self.chain = chain
        self.error = error
        self.tx_id = tx_id
        self.gate = gate
        self.calls = []

    def build_transaction(self, cell, color, actor):
        return {"cell": cell, "color": color}

    def sign_and_submit(self, payload, actor):
        self.calls.append((payload, actor))
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.tx_id

    def is_available(self):
        return True


class FakeStore:
    def __init__(self, rows=None, fetch_error=None, upsert_error=None):
        self.rows = list(rows or [])
        self.fetch_error = fetch_error
        self.upsert_error = upsert_error
        self.upserts = []

    def fetch_all(self):
        if self.fetch_error:
            raise self.fetch_error
        return list(self.rows)

    def upsert(self, row):
        if self.upsert_error:
            raise self.upsert_error
        self.upserts.append(row)


class FakeResponse:
    def __init__(self, status_code=200, json_data=None):
        self.status_code = status_code
        self._json = json_data

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """Records every request and answers from a queue of responses (or exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        return self._next()

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def cache():
    return PixelCache(10, 10, palette_size=16)


@pytest.fixture
def cooldown(scheduler):
    return CooldownGate(10.0, clock=scheduler.clock, scheduler=scheduler)


@pytest.fixture
def wallets():
    return ConnectedWalletSet()


@pytest.fixture
def dispatchers():
    return {chain: ScriptedDispatcher(chain) for chain in Chain}


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def controller(cache, cooldown, wallets, dispatchers, store, scheduler):
    ctrl = ReconciliationController(
        cache,
        cooldown,
        wallets,
        DispatchRegistry(dispatchers.values()),
        store=store,
        notice_seconds=3.0,
        default_color=5,
        scheduler=scheduler,
    )
    yield ctrl
    ctrl.shutdown()


@pytest.fixture
def row():
    def make(x, y, color, painter="W1", chain="sui"):
        return PixelRow.from_dict({"x": x, "y": y, "color": color, "last_painter": painter, "blockchain": chain})
    return make
