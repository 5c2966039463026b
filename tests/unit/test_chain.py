"""
Unit tests for the simulated host chain.

Tests cover:
1. Clock advance and bounded skew
2. Native transfers and recipient hooks
3. Atomic rollback of balances and participants
"""

import pytest

from dutchauction.core.chain import Clock, Host
from dutchauction.core.errors import TransferFailure, ZeroIdentity
from dutchauction.crypto import ZERO_ADDRESS, keccak256

ALICE = keccak256(b"alice")[-20:]
BOB = keccak256(b"bob")[-20:]


class Counter:
    """Participant with rollback-able state."""

    def __init__(self):
        self.value = 0

    def snapshot(self):
        return self.value

    def restore(self, value):
        self.value = value


class Rejecting:
    def on_receive(self, sender, amount):
        raise RuntimeError("no thanks")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def host():
    host = Host(clock=Clock(timestamp=1_000, height=10))
    host.fund(ALICE, 500)
    return host


# =============================================================================
# Clock Tests
# =============================================================================


class TestClock:
    """Tests for Clock."""

    def test_advance_derives_height(self):
        clock = Clock(timestamp=0, height=0, block_time=5)
        clock.advance(23)
        assert clock.timestamp == 23
        assert clock.height == 4

    def test_advance_explicit_blocks(self):
        clock = Clock(timestamp=0)
        clock.advance(10, blocks=1)
        assert clock.height == 1

    def test_advance_negative(self):
        clock = Clock(timestamp=0)
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_skew_bounded(self):
        clock = Clock(timestamp=100, max_skew=15)
        clock.skew(-15)
        assert clock.timestamp == 85
        clock.skew(15)
        assert clock.timestamp == 100

        with pytest.raises(ValueError):
            clock.skew(16)
        assert clock.timestamp == 100


# =============================================================================
# Transfer Tests
# =============================================================================


class TestTransfer:
    """Tests for Host.transfer."""

    def test_transfer(self, host):
        host.transfer(ALICE, BOB, 200)
        assert host.balance_of(ALICE) == 300
        assert host.balance_of(BOB) == 200

    def test_insufficient_funds(self, host):
        with pytest.raises(TransferFailure):
            host.transfer(ALICE, BOB, 501)
        assert host.balance_of(ALICE) == 500

    def test_zero_recipient(self, host):
        with pytest.raises(ZeroIdentity):
            host.transfer(ALICE, ZERO_ADDRESS, 1)

    def test_invalid_amount(self, host):
        with pytest.raises(TransferFailure):
            host.transfer(ALICE, BOB, -1)

    def test_rejecting_recipient_keeps_balances(self, host):
        host.register(BOB, Rejecting())

        with pytest.raises(TransferFailure, match="rejected"):
            host.transfer(ALICE, BOB, 100)

        assert host.balance_of(ALICE) == 500
        assert host.balance_of(BOB) == 0

    def test_notify_false_skips_hook(self, host):
        host.register(BOB, Rejecting())
        host.transfer(ALICE, BOB, 100, notify=False)
        assert host.balance_of(BOB) == 100


# =============================================================================
# Registration / Atomicity Tests
# =============================================================================


class TestAtomic:
    """Tests for Host.atomic and participant registration."""

    def test_register_duplicate(self, host):
        host.register(BOB, Counter())
        with pytest.raises(ValueError):
            host.register(BOB, Counter())

    def test_register_zero_address(self, host):
        with pytest.raises(ZeroIdentity):
            host.register(ZERO_ADDRESS, Counter())

    def test_new_address_unique(self, host):
        first = host.new_address(ALICE)
        second = host.new_address(ALICE)
        assert first != second

    def test_rollback_restores_everything(self, host):
        counter = Counter()
        host.register(BOB, counter)

        with pytest.raises(RuntimeError):
            with host.atomic():
                host.transfer(ALICE, BOB, 100)
                counter.value = 7
                raise RuntimeError("abort")

        assert host.balance_of(ALICE) == 500
        assert host.balance_of(BOB) == 0
        assert counter.value == 0
        assert host.depth == 0

    def test_success_keeps_effects(self, host):
        counter = Counter()
        host.register(BOB, counter)

        with host.atomic():
            host.transfer(ALICE, BOB, 100)
            counter.value = 7

        assert host.balance_of(BOB) == 100
        assert counter.value == 7

    def test_nested_inner_rollback_only(self, host):
        counter = Counter()
        host.register(BOB, counter)

        with host.atomic():
            counter.value = 1
            try:
                with host.atomic():
                    counter.value = 2
                    raise RuntimeError("inner")
            except RuntimeError:
                pass
            assert counter.value == 1

        assert counter.value == 1

    def test_stats(self, host):
        stats = host.stats()
        assert stats["timestamp"] == 1_000
        assert stats["height"] == 10
        assert stats["total_native"] == 500


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
