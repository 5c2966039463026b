"""
Unit tests for the hash-chained event log.

Tests cover:
1. Deterministic event encoding
2. Head chaining and order sensitivity
3. Filtering and truncating rollback
"""

import pytest

from dutchauction.core.auction import (
    AuctionEnded,
    AuctionStarted,
    BidSubmission,
    EventLog,
    Setup,
)
from dutchauction.core.auction.events import EMPTY_HEAD
from dutchauction.crypto import keccak256

BIDDER = b"\x11" * 20


class TestEventLog:
    """Tests for EventLog."""

    def test_empty_head(self):
        log = EventLog()
        assert log.head == EMPTY_HEAD
        assert len(log) == 0

    def test_encoding(self):
        event = AuctionEnded(final_price=7)
        assert event.name == "AuctionEnded"
        assert event.encode() == b"AuctionEnded" + (7).to_bytes(32, "big")

        bid = BidSubmission(bidder=BIDDER, accepted=1, refunded=0, missing_reserve_before=1)
        assert BIDDER in bid.encode()

    def test_head_chains(self):
        log = EventLog()
        entry = log.emit(Setup())
        assert entry.index == 0
        assert log.head == keccak256(EMPTY_HEAD + b"Setup")

        second = log.emit(AuctionStarted(start_time=1, start_height=2))
        assert second.index == 1
        assert log.head == keccak256(entry.head + second.event.encode())

    def test_same_history_same_head(self):
        a, b = EventLog(), EventLog()
        for log in (a, b):
            log.emit(Setup())
            log.emit(AuctionEnded(final_price=3))
        assert a.head == b.head

    def test_order_matters(self):
        a, b = EventLog(), EventLog()
        a.emit(Setup())
        a.emit(AuctionEnded(final_price=3))
        b.emit(AuctionEnded(final_price=3))
        b.emit(Setup())
        assert a.head != b.head

    def test_of_type_and_names(self):
        log = EventLog()
        log.emit(Setup())
        log.emit(AuctionEnded(final_price=3))

        assert log.of_type(AuctionEnded) == [AuctionEnded(final_price=3)]
        assert log.names() == ["Setup", "AuctionEnded"]
        assert list(log) == [Setup(), AuctionEnded(final_price=3)]

    def test_restore_truncates(self):
        log = EventLog()
        log.emit(Setup())
        saved_len, saved_head = log.snapshot(), log.head

        log.emit(AuctionEnded(final_price=3))
        log.restore(saved_len)

        assert len(log) == 1
        assert log.head == saved_head

    def test_events_are_frozen(self):
        event = AuctionEnded(final_price=3)
        with pytest.raises(Exception):
            event.final_price = 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
