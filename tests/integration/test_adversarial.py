"""
Adversarial Tests - Robustness of the auction against hostile collaborators.

Tests verify:
1. Reentrant refund recipients observe the finished state
2. Reentrant asset ledgers cannot double-claim or double-distribute
3. Failed outward calls roll the whole operation back
4. Clock skew and arithmetic overflow never corrupt state
5. Invalid identities and values are rejected without effects
"""

import pytest

from dutchauction.core.auction import DutchAuction, Stage, TokensDistributed, TradingStarted
from dutchauction.core.chain import Clock, Host
from dutchauction.core.errors import (
    ArithmeticOverflow,
    InvalidStage,
    TransferFailure,
    ZeroIdentity,
    ZeroOrInvalidBid,
)
from dutchauction.core.token import ReserveToken
from dutchauction.crypto import ZERO_ADDRESS, keccak256

OWNER = keccak256(b"owner")[-20:]
ALICE = keccak256(b"alice")[-20:]
BOB = keccak256(b"bob")[-20:]
CAROL = keccak256(b"carol")[-20:]

SUPPLY = 1000 * 100
RESERVE_AT_9 = 10_001_000


# =============================================================================
# Hostile Collaborators
# =============================================================================


class ReentrantBidder:
    """Refund recipient that tries to bid again while being paid."""

    def __init__(self, host, auction, address):
        self.host = host
        self.auction = auction
        self.address = address
        self.seen = []
        self.errors = []
        host.register(address, self)

    def on_receive(self, sender, amount):
        self.seen.append((self.auction.stage, self.auction.bid_of(self.address)))
        try:
            self.auction.bid(self.address, 1)
        except InvalidStage as exc:
            self.errors.append(exc)


class RejectingBidder:
    """Refund recipient that refuses payment."""

    def __init__(self, host, address):
        host.register(address, self)

    def on_receive(self, sender, amount):
        raise RuntimeError("refund refused")


class ReentrantToken(ReserveToken):
    """Asset ledger that re-enters the auction on every recipient transfer."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.auction_engine = None
        self.targets = []
        self.reentered = []

    def transfer(self, sender, to, amount):
        ok = super().transfer(sender, to, amount)
        if self.auction_engine is not None and to in self.targets and to not in self.reentered:
            self.reentered.append(to)
            self.auction_engine.claim_tokens_batch(self.targets)
        return ok


class FailingToken(ReserveToken):
    """Asset ledger that refuses transfers to one recipient."""

    blocked = None

    def transfer(self, sender, to, amount):
        if to == self.blocked:
            return False
        return super().transfer(sender, to, amount)


# =============================================================================
# Helpers
# =============================================================================


def deploy(token_cls=ReserveToken, price_factor=1000):
    host = Host(clock=Clock(timestamp=1_000_000))
    auction = DutchAuction(host, OWNER, price_factor=price_factor, price_const=1, owner_fr=15, owner_fr_dec=2)
    token = token_cls(host, OWNER, decimals=2)
    token.issue(OWNER, auction.address, SUPPLY)
    token.bind_auction(OWNER, auction.address)
    auction.setup(OWNER, token)
    auction.start_auction(OWNER)
    return host, auction, token


def place_bid(host, auction, bidder, value):
    host.fund(bidder, value)
    return auction.bid(bidder, value)


def snapshot_of(host, auction, token):
    return (
        auction.stage,
        auction.state.total_collected,
        auction.state.funds_claimed,
        dict(auction.ledger.entries),
        auction.events.head,
        dict(host.balances),
        dict(token.balances),
    )


# =============================================================================
# Reentrancy
# =============================================================================


class TestReentrantRefund:
    """The refund is paid after every state change."""

    def test_refund_recipient_sees_ended(self):
        host, auction, _ = deploy()
        host.clock.advance(9)
        attacker = ReentrantBidder(host, auction, ALICE)

        receipt = place_bid(host, auction, ALICE, RESERVE_AT_9 + 500)

        assert receipt.refunded == 500
        assert attacker.seen == [(Stage.ENDED, RESERVE_AT_9)]
        assert len(attacker.errors) == 1
        assert host.balance_of(ALICE) == 500
        assert auction.state.total_collected == RESERVE_AT_9

    def test_rejected_refund_undoes_bid(self):
        host, auction, token = deploy()
        host.clock.advance(9)
        RejectingBidder(host, ALICE)
        host.fund(ALICE, RESERVE_AT_9 + 500)
        before = snapshot_of(host, auction, token)

        with pytest.raises(TransferFailure):
            auction.bid(ALICE, RESERVE_AT_9 + 500)

        assert snapshot_of(host, auction, token) == before
        assert auction.stage == Stage.STARTED

    def test_exact_bid_needs_no_refund(self):
        """A refusing recipient can still bid when nothing is refunded."""
        host, auction, _ = deploy()
        host.clock.advance(9)
        RejectingBidder(host, ALICE)

        receipt = place_bid(host, auction, ALICE, 1_000)
        assert receipt.refunded == 0
        assert auction.bid_of(ALICE) == 1_000


class TestReentrantToken:
    """Claims re-entered from the asset ledger settle each bid once."""

    def test_nested_claims(self):
        host, auction, token = deploy(token_cls=ReentrantToken)
        host.clock.advance(9)
        for bidder, value in ((ALICE, 2_000_000), (BOB, 3_000_000), (CAROL, 6_000_000)):
            place_bid(host, auction, bidder, value)
        assert auction.stage == Stage.ENDED

        token.auction_engine = auction
        token.targets = [ALICE, BOB, CAROL]

        outer = auction.claim_tokens(ALICE)

        assert outer.recipient == ALICE
        assert token.reentered == [ALICE, BOB, CAROL]
        assert auction.stage == Stage.TRADING_STARTED
        assert len(auction.events.of_type(TokensDistributed)) == 1
        assert len(auction.events.of_type(TradingStarted)) == 1
        assert token.balance_of(ALICE) == 16_999
        assert token.balance_of(BOB) == 25_498
        assert token.balance_of(CAROL) == 42_504
        assert token.reserve == RESERVE_AT_9
        assert auction.ledger.outstanding() == 0


class TestFailedTransfers:
    """A refused asset transfer aborts the whole claim."""

    def test_failing_token_rolls_back(self):
        host, auction, token = deploy(token_cls=FailingToken)
        host.clock.advance(9)
        place_bid(host, auction, ALICE, 2_000_000)
        place_bid(host, auction, BOB, RESERVE_AT_9)
        token.blocked = BOB
        before = snapshot_of(host, auction, token)

        with pytest.raises(TransferFailure):
            auction.claim_tokens_batch([ALICE, BOB])

        assert snapshot_of(host, auction, token) == before
        assert auction.bid_of(ALICE) == 2_000_000

        token.blocked = None
        auction.claim_tokens_batch([ALICE, BOB])
        assert auction.stage == Stage.TRADING_STARTED

    def test_bid_without_funds(self):
        host, auction, token = deploy()
        host.fund(ALICE, 10)
        before = snapshot_of(host, auction, token)

        with pytest.raises(TransferFailure):
            auction.bid(ALICE, 11)

        assert snapshot_of(host, auction, token) == before


# =============================================================================
# Clock Skew / Overflow
# =============================================================================


class TestClockAndArithmetic:
    """Timestamp manipulation and extreme parameters."""

    def test_skew_shifts_price_within_bound(self):
        host, auction, _ = deploy()
        host.clock.advance(100)
        honest = auction.price()

        host.clock.skew(-15)
        assert auction.price() > honest

        with pytest.raises(ValueError):
            host.clock.skew(-16)

    def test_clock_before_start(self):
        host, auction, token = deploy()
        host.clock.skew(-10)
        host.fund(ALICE, 1_000)
        before = snapshot_of(host, auction, token)

        with pytest.raises(ArithmeticOverflow):
            auction.bid(ALICE, 1_000)
        with pytest.raises(ArithmeticOverflow):
            auction.price()

        assert snapshot_of(host, auction, token) == before

        host.clock.skew(10)
        place_bid(host, auction, ALICE, 1_000)
        assert auction.bid_of(ALICE) == 1_000

    def test_price_overflow_rejects_bids(self):
        host, auction, token = deploy(price_factor=2**255)
        host.fund(ALICE, 1_000)
        before = snapshot_of(host, auction, token)

        with pytest.raises(ArithmeticOverflow):
            auction.bid(ALICE, 1_000)

        assert snapshot_of(host, auction, token) == before


class TestPriceBelowCollectedReserve:
    """The price keeps decaying after enough value is collected to end the auction."""

    @pytest.fixture
    def oversubscribed(self):
        host, auction, token = deploy()
        host.clock.advance(9)
        receipt = place_bid(host, auction, ALICE, 9_000_000)
        assert not receipt.ended

        # reserve at 8_334 is 8_334_000, already below the 9_000_000 held
        host.clock.advance(2)
        receipt = place_bid(host, auction, BOB, 10)
        return host, auction, token, receipt

    def test_next_bid_ends_at_lower_price(self, oversubscribed):
        host, auction, _, receipt = oversubscribed

        assert receipt.missing_reserve_before == 0
        assert receipt.accepted == 0
        assert receipt.refunded == 10
        assert receipt.ended
        assert auction.stage == Stage.ENDED
        assert auction.final_price == 8_334
        assert host.balance_of(BOB) == 10
        assert auction.bid_of(BOB) == 0

    def test_allocation_exceeding_supply_stays_ended(self, oversubscribed):
        host, auction, token, _ = oversubscribed

        assert auction.claim_tokens(BOB) is None
        before = snapshot_of(host, auction, token)

        # 9_000_000 * 100 // 8_334 = 107_991 tokens; only 100_000 exist
        with pytest.raises(TransferFailure):
            auction.claim_tokens(ALICE)

        assert snapshot_of(host, auction, token) == before
        assert auction.stage == Stage.ENDED
        assert auction.bid_of(ALICE) == 9_000_000
        assert token.balance_of(auction.address) == SUPPLY


# =============================================================================
# Invalid Input
# =============================================================================


class TestInvalidInput:
    """Null identities and empty values are rejected without effects."""

    @pytest.fixture
    def market(self):
        host, auction, token = deploy()
        host.fund(ALICE, 1_000)
        return host, auction, token

    def test_zero_receiver(self, market):
        host, auction, token = market
        before = snapshot_of(host, auction, token)
        with pytest.raises(ZeroIdentity):
            auction.bid(ALICE, 100, ZERO_ADDRESS)
        assert snapshot_of(host, auction, token) == before

    @pytest.mark.parametrize("value", [0, -1, True, 1.5])
    def test_invalid_value(self, market, value):
        host, auction, token = market
        before = snapshot_of(host, auction, token)
        with pytest.raises(ZeroOrInvalidBid):
            auction.bid(ALICE, value)
        assert snapshot_of(host, auction, token) == before

    def test_bid_on_behalf(self, market):
        host, auction, _ = market
        auction.bid(ALICE, 100, BOB)
        assert auction.bid_of(BOB) == 100
        assert auction.bid_of(ALICE) == 0
        assert host.balance_of(ALICE) == 900

    def test_direct_payment_refused(self, market):
        host, auction, token = market
        before = snapshot_of(host, auction, token)
        with pytest.raises(TransferFailure):
            host.transfer(ALICE, auction.address, 100)
        assert snapshot_of(host, auction, token) == before


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
