"""
Tests for ReconciliationController.

Covers the placement state machine end to end:
- Confirmed placement starts the cooldown and writes through to the store
- Rejected / failed dispatch restores the exact prior record
- Pre-checks (cooldown, wallet) abort without touching the cache
- Authoritative merges during an in-flight dispatch are never discarded
- Initial load failure degrades to an empty canvas
- Notices auto-dismiss
"""

import asyncio
import threading

import pytest

from conftest import ScriptedDispatcher
from pixellar.core.errors import (
    CooldownActive,
    DispatchFailed,
    LoadFailed,
    StoreError,
    UserRejected,
    WalletBridgeError,
    WalletNotConnected,
)
from pixellar.core.models import AttemptState, Chain, PaintRecord


async def wait_until_dispatching(controller, count=1):
    for _ in range(100):
        if controller.in_flight >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError("dispatch never started")


@pytest.fixture
def loaded(cache, row):
    """Cache holding (3, 3) = color 5 by W1 on Sui."""
    cache.load([row(3, 3, 5, painter="W1", chain="sui")])
    return cache


class TestConfirmedPlacement:

    @pytest.mark.asyncio
    async def test_confirmed_updates_cache_and_starts_cooldown(self, controller, loaded, wallets, cooldown):
        """Confirmed dispatch leaves the new record confirmed and locks the chain."""
        wallets.set(Chain.SUI, "W2")

        attempt = await controller.place_pixel((3, 3), 2, Chain.SUI)

        assert attempt.state == AttemptState.CONFIRMED
        assert attempt.tx_id == "0xtx"
        record = loaded.read((3, 3))
        assert (record.color, record.owner, record.chain, record.confirmed) == (2, "W2", Chain.SUI, True)
        assert record.tx_hash == "0xtx"
        assert not cooldown.is_eligible(Chain.SUI)
        assert cooldown.is_eligible(Chain.STELLAR)

    @pytest.mark.asyncio
    async def test_confirmed_writes_row_to_store(self, controller, loaded, wallets, store):
        wallets.set(Chain.SUI, "W2")

        await controller.place_pixel((3, 3), 2, Chain.SUI)

        assert len(store.upserts) == 1
        written = store.upserts[0]
        assert (written.x, written.y, written.color) == (3, 3, 2)
        assert written.last_painter == "W2"
        assert written.blockchain == Chain.SUI
        assert written.tx_hash == "0xtx"

    @pytest.mark.asyncio
    async def test_confirmed_shows_success_notice(self, controller, wallets):
        wallets.set(Chain.STELLAR, "GABC")

        await controller.place_pixel((0, 0), 1, Chain.STELLAR)

        assert controller.notice.kind == "success"
        assert controller.notice.text == "Pixel placed on STELLAR!"

    @pytest.mark.asyncio
    async def test_store_write_failure_is_not_fatal(self, controller, wallets, store, cache):
        """The chain accepted the write; a failing direct write is only logged."""
        store.upsert_error = StoreError("down")
        wallets.set(Chain.SUI, "W2")

        attempt = await controller.place_pixel((1, 2), 4, Chain.SUI)

        assert attempt.state == AttemptState.CONFIRMED
        assert cache.read((1, 2)).color == 4

    @pytest.mark.asyncio
    async def test_uses_selected_color_and_chain(self, controller, wallets, cache, dispatchers):
        wallets.set(Chain.STARKNET, "0x1")
        controller.select_chain("starknet")
        controller.select_color(9)

        attempt = await controller.place_pixel((2, 2))

        assert attempt.chain == Chain.STARKNET
        assert cache.read((2, 2)).color == 9
        assert len(dispatchers[Chain.STARKNET].calls) == 1


class TestRevertedPlacement:

    @pytest.mark.asyncio
    async def test_rejected_restores_prior_record(self, controller, loaded, wallets, dispatchers, cooldown):
        """User rejection reverts to exactly the loaded record; cooldown untouched."""
        dispatchers[Chain.SUI].error = WalletBridgeError("User rejected the request")
        wallets.set(Chain.SUI, "W2")
        before = loaded.get((3, 3))

        attempt = await controller.place_pixel((3, 3), 2, Chain.SUI)

        assert attempt.state == AttemptState.REVERTED
        assert isinstance(attempt.error, UserRejected)
        assert loaded.get((3, 3)) is before
        assert loaded.read((3, 3)) == PaintRecord(5, "W1", Chain.SUI, confirmed=True)
        assert cooldown.is_eligible(Chain.SUI)
        assert cooldown.expiry(Chain.SUI) is None
        assert controller.notice.text == "Transaction rejected by user"

    @pytest.mark.asyncio
    async def test_failed_reverts_background_cell(self, controller, wallets, dispatchers, cache, store):
        dispatchers[Chain.STARKNET].error = RuntimeError("contract reverted")
        wallets.set(Chain.STARKNET, "0x1")

        attempt = await controller.place_pixel((4, 4), 3, Chain.STARKNET)

        assert attempt.state == AttemptState.REVERTED
        assert isinstance(attempt.error, DispatchFailed)
        assert (4, 4) not in cache
        assert store.upserts == []
        assert controller.notice.kind == "error"
        assert controller.notice.text == "STARKNET transaction failed"

    @pytest.mark.asyncio
    async def test_rejection_phrasing_outside_signing_is_failure(self, controller, wallets, dispatchers):
        """Only wallet bridge errors are classified as user rejections."""
        dispatchers[Chain.SUI].error = RuntimeError("transaction rejected by validator")
        wallets.set(Chain.SUI, "W2")

        attempt = await controller.place_pixel((0, 0), 1, Chain.SUI)

        assert isinstance(attempt.error, DispatchFailed)


    @pytest.mark.asyncio
    async def test_dispatch_that_cannot_run_reverts(self, controller, loaded, wallets, cooldown):
        """An executor that is already shut down still ends the attempt as reverted."""
        wallets.set(Chain.SUI, "W2")
        controller.shutdown()

        attempt = await controller.place_pixel((3, 3), 9, Chain.SUI)

        assert attempt.state == AttemptState.REVERTED
        assert isinstance(attempt.error, DispatchFailed)
        assert loaded.read((3, 3)) == PaintRecord(5, "W1", Chain.SUI, confirmed=True)
        assert controller.in_flight == 0
        assert cooldown.is_eligible(Chain.SUI)
        assert controller.notice.text == "SUI transaction failed"

    @pytest.mark.asyncio
    async def test_existing_cooldown_left_as_is(self, controller, wallets, dispatchers, cooldown, scheduler):
        """A failed attempt on another chain does not touch any cooldown."""
        cooldown.start(Chain.STELLAR)
        expiry = cooldown.expiry(Chain.STELLAR)
        dispatchers[Chain.SUI].error = WalletBridgeError("Request cancelled")
        wallets.set(Chain.SUI, "W2")

        await controller.place_pixel((0, 0), 1, Chain.SUI)

        assert cooldown.expiry(Chain.STELLAR) == expiry
        assert cooldown.is_eligible(Chain.SUI)


class TestPreChecks:

    @pytest.mark.asyncio
    async def test_cooldown_active_aborts_without_mutation(self, controller, loaded, wallets, dispatchers, cooldown):
        cooldown.start(Chain.STELLAR)
        wallets.set(Chain.STELLAR, "GABC")

        attempt = await controller.place_pixel((3, 3), 2, Chain.STELLAR)

        assert attempt.state == AttemptState.ABORTED
        assert isinstance(attempt.error, CooldownActive)
        assert attempt.error.remaining == pytest.approx(10.0)
        assert loaded.read((3, 3)).color == 5
        assert loaded.pending_cells() == []
        assert dispatchers[Chain.STELLAR].calls == []
        assert controller.notice.text == "Please wait for cooldown to finish"

    @pytest.mark.asyncio
    async def test_missing_wallet_aborts_without_mutation(self, controller, cache, dispatchers):
        attempt = await controller.place_pixel((1, 1), 2, Chain.STARKNET)

        assert attempt.state == AttemptState.ABORTED
        assert isinstance(attempt.error, WalletNotConnected)
        assert len(cache) == 0
        assert dispatchers[Chain.STARKNET].calls == []
        assert controller.notice.text == "Please connect your STARKNET wallet first"

    @pytest.mark.asyncio
    async def test_cooldown_expiry_allows_next_placement(self, controller, wallets, scheduler):
        wallets.set(Chain.SUI, "W2")
        await controller.place_pixel((0, 0), 1, Chain.SUI)

        blocked = await controller.place_pixel((0, 1), 1, Chain.SUI)
        scheduler.advance(10.0)
        allowed = await controller.place_pixel((0, 1), 1, Chain.SUI)

        assert blocked.state == AttemptState.ABORTED
        assert allowed.state == AttemptState.CONFIRMED

    @pytest.mark.asyncio
    async def test_out_of_bounds_cell_raises(self, controller, wallets):
        wallets.set(Chain.SUI, "W2")
        with pytest.raises(ValueError):
            await controller.place_pixel((10, 0), 1, Chain.SUI)


class TestAuthoritativeMerges:

    @pytest.mark.asyncio
    async def test_merge_during_flight_then_confirmed(self, controller, cache, wallets, dispatchers, store, row):
        """
        An authoritative row landing mid-dispatch shows immediately and survives
        the confirm; our own store write then wins at the store level and comes
        back through the push path.
        """
        gate = threading.Event()
        dispatchers[Chain.SUI].gate = gate
        wallets.set(Chain.SUI, "W2")

        task = asyncio.ensure_future(controller.place_pixel((1, 1), 3, Chain.SUI))
        await wait_until_dispatching(controller)
        assert cache.read((1, 1)).confirmed is False

        controller.merge_authoritative_row(row(1, 1, 7, painter="W9", chain="stellar"))
        assert cache.read((1, 1)) == PaintRecord(7, "W9", Chain.STELLAR, confirmed=True)

        gate.set()
        attempt = await task

        assert attempt.state == AttemptState.CONFIRMED
        assert cache.read((1, 1)).owner == "W9"
        assert store.upserts[0].color == 3

        controller.merge_authoritative_row(store.upserts[0])
        assert cache.read((1, 1)).color == 3
        assert cache.read((1, 1)).owner == "W2"

    @pytest.mark.asyncio
    async def test_merge_during_flight_survives_revert(self, controller, cache, wallets, dispatchers, row):
        gate = threading.Event()
        dispatchers[Chain.SUI].gate = gate
        dispatchers[Chain.SUI].error = WalletBridgeError("User denied transaction signature")
        wallets.set(Chain.SUI, "W2")

        task = asyncio.ensure_future(controller.place_pixel((1, 1), 3, Chain.SUI))
        await wait_until_dispatching(controller)
        controller.merge_authoritative_row(row(1, 1, 7, painter="W9"))
        gate.set()
        attempt = await task

        assert attempt.state == AttemptState.REVERTED
        assert cache.read((1, 1)).color == 7

    @pytest.mark.asyncio
    async def test_overlapping_attempts_are_not_fenced(self, controller, cache, wallets, dispatchers):
        """The second attempt's prior is the first attempt's optimistic record."""
        gate = threading.Event()
        dispatchers[Chain.SUI].gate = gate
        dispatchers[Chain.STELLAR].gate = gate
        wallets.set(Chain.SUI, "W2")
        wallets.set(Chain.STELLAR, "GABC")

        first = asyncio.ensure_future(controller.place_pixel((2, 2), 3, Chain.SUI))
        await wait_until_dispatching(controller, 1)
        second = asyncio.ensure_future(controller.place_pixel((2, 2), 4, Chain.STELLAR))
        await wait_until_dispatching(controller, 2)
        gate.set()
        first_attempt, second_attempt = await asyncio.gather(first, second)

        assert second_attempt.prior is first_attempt.applied
        assert cache.read((2, 2)).color == 4
        assert cache.read((2, 2)).confirmed is True

    @pytest.mark.asyncio
    async def test_overlapping_attempts_both_fail_in_order(self, controller, cache, wallets, dispatchers):
        """The cell ends on the record held before either attempt, not on a dead optimistic one."""
        first_gate, second_gate = threading.Event(), threading.Event()
        dispatchers[Chain.SUI].gate = first_gate
        dispatchers[Chain.SUI].error = WalletBridgeError("network down")
        dispatchers[Chain.STELLAR].gate = second_gate
        dispatchers[Chain.STELLAR].error = WalletBridgeError("network down")
        wallets.set(Chain.SUI, "W2")
        wallets.set(Chain.STELLAR, "GABC")

        first = asyncio.ensure_future(controller.place_pixel((2, 2), 3, Chain.SUI))
        await wait_until_dispatching(controller, 1)
        second = asyncio.ensure_future(controller.place_pixel((2, 2), 4, Chain.STELLAR))
        await wait_until_dispatching(controller, 2)

        first_gate.set()
        first_attempt = await first
        assert cache.read((2, 2)).color == 4

        second_gate.set()
        second_attempt = await second

        assert first_attempt.state == AttemptState.REVERTED
        assert second_attempt.state == AttemptState.REVERTED
        assert cache.get((2, 2)) is None
        assert cache.pending_cells() == []

    @pytest.mark.asyncio
    async def test_overlapping_first_confirmed_second_fails(self, controller, cache, wallets, dispatchers):
        first_gate, second_gate = threading.Event(), threading.Event()
        dispatchers[Chain.SUI].gate = first_gate
        dispatchers[Chain.SUI].tx_id = "0xfirst"
        dispatchers[Chain.STELLAR].gate = second_gate
        dispatchers[Chain.STELLAR].error = WalletBridgeError("User rejected the request")
        wallets.set(Chain.SUI, "W2")
        wallets.set(Chain.STELLAR, "GABC")

        first = asyncio.ensure_future(controller.place_pixel((2, 2), 3, Chain.SUI))
        await wait_until_dispatching(controller, 1)
        second = asyncio.ensure_future(controller.place_pixel((2, 2), 4, Chain.STELLAR))
        await wait_until_dispatching(controller, 2)

        first_gate.set()
        assert (await first).state == AttemptState.CONFIRMED
        second_gate.set()
        assert (await second).state == AttemptState.REVERTED

        assert cache.read((2, 2)) == PaintRecord(3, "W2", Chain.SUI, confirmed=True, tx_hash="0xfirst")

    @pytest.mark.asyncio
    async def test_overlapping_second_fails_first_still_pending(self, controller, cache, wallets, dispatchers):
        """A revert may restore an earlier optimistic record while its attempt is still in flight."""
        first_gate, second_gate = threading.Event(), threading.Event()
        dispatchers[Chain.SUI].gate = first_gate
        dispatchers[Chain.STELLAR].gate = second_gate
        dispatchers[Chain.STELLAR].error = WalletBridgeError("network down")
        wallets.set(Chain.SUI, "W2")
        wallets.set(Chain.STELLAR, "GABC")

        first = asyncio.ensure_future(controller.place_pixel((2, 2), 3, Chain.SUI))
        await wait_until_dispatching(controller, 1)
        second = asyncio.ensure_future(controller.place_pixel((2, 2), 4, Chain.STELLAR))
        await wait_until_dispatching(controller, 2)

        second_gate.set()
        await second
        assert cache.read((2, 2)).color == 3
        assert cache.read((2, 2)).confirmed is False

        first_gate.set()
        await first
        assert cache.read((2, 2)).color == 3
        assert cache.read((2, 2)).confirmed is True

    def test_resync_merges_snapshot(self, controller, cache, row):
        cache.apply_optimistic((0, 0), 1, "W2", Chain.SUI)

        merged = controller.resync([row(0, 0, 8), row(5, 5, 2)])

        assert merged == 2
        assert cache.read((0, 0)).color == 8
        assert cache.read((0, 0)).confirmed is True


class TestLoading:

    @pytest.mark.asyncio
    async def test_load_fills_cache(self, controller, store, cache, row):
        store.rows = [row(0, 0, 1), row(9, 9, 15)]
        events = []
        controller.on_loading(events.append)

        loaded = await controller.load()

        assert loaded == 2
        assert cache.read((9, 9)).color == 15
        assert events == [True, False]
        assert controller.loading is False

    @pytest.mark.asyncio
    async def test_load_failure_degrades_to_empty_canvas(self, controller, store, cache):
        cache.apply_optimistic((0, 0), 1, "W2", Chain.SUI)
        store.fetch_error = StoreError("connection refused")

        loaded = await controller.load()

        assert loaded == 0
        assert len(cache) == 0
        assert controller.loading is False
        assert controller.notice.text == LoadFailed.user_message


class TestNotices:

    def test_notice_auto_dismisses(self, controller, scheduler):
        seen = []
        controller.on_notice(seen.append)

        controller.show_notice("error", "first")
        scheduler.advance(3.0)

        assert controller.notice is None
        assert [n.text if n else None for n in seen] == ["first", None]

    def test_new_notice_replaces_timer(self, controller, scheduler):
        controller.show_notice("error", "first")
        scheduler.advance(2.0)
        controller.show_notice("success", "second")
        scheduler.advance(1.5)

        assert controller.notice.text == "second"
        scheduler.advance(1.5)
        assert controller.notice is None


class TestAttemptEvents:

    @pytest.mark.asyncio
    async def test_attempt_listener_sees_dispatch_and_outcome(self, controller, wallets):
        wallets.set(Chain.SUI, "W2")
        states = []
        controller.on_attempt(lambda attempt: states.append((attempt.state, controller.in_flight)))

        await controller.place_pixel((0, 0), 1, Chain.SUI)

        assert states == [(AttemptState.DISPATCHING, 1), (AttemptState.CONFIRMED, 0)]

    @pytest.mark.asyncio
    async def test_unregistered_chain_fails_closed(self, cache, cooldown, wallets, scheduler):
        from pixellar.chains.registry import DispatchRegistry
        from pixellar.core.controller import ReconciliationController

        controller = ReconciliationController(
            cache, cooldown, wallets, DispatchRegistry([ScriptedDispatcher(Chain.SUI)]), scheduler=scheduler
        )
        wallets.set(Chain.STELLAR, "GABC")
        try:
            attempt = await controller.place_pixel((0, 0), 1, Chain.STELLAR)
        finally:
            controller.shutdown()

        assert attempt.state == AttemptState.ABORTED
        assert len(cache) == 0
