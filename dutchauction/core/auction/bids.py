"""
Bid Ledger - Committed amounts and admission control.

A bid is admitted against the auction's residual capacity:

1. max_accepted = missing reserve, given what the auction already holds
2. accepted = min(amount, max_accepted)
3. the rest is scheduled as a refund
4. the bidder's entry and total_collected grow by `accepted`
5. if the bid filled the capacity exactly, the auction finalizes

The ledger performs no outward calls; the refund is returned to the caller
in the receipt and paid by the engine after every effect is in place.
Entries only grow while STARTED and are zeroed, once, by the claim for
that bidder.
"""

from dataclasses import dataclass
from typing import Dict

from dutchauction.core.auction.events import AuctionEnded, BidSubmission, EventLog
from dutchauction.core.auction.price import PriceCurve
from dutchauction.core.auction.stages import StageMachine
from dutchauction.core.auction.state import AuctionState, Stage
from dutchauction.core.chain import Clock
from dutchauction.core.errors import ZeroIdentity, ZeroOrInvalidBid
from dutchauction.core.safe_math import safe_add, safe_min, safe_sub
from dutchauction.crypto import short_address
from dutchauction.utils.logger import get_logger
from dutchauction.utils.validation import validate_address, validate_amount

logger = get_logger("bids")


@dataclass(frozen=True)
class BidReceipt:
    """
    Outcome of an admitted bid.

    Attributes:
        bidder: Ledger entry credited
        amount: Value attached to the bid
        accepted: Part of `amount` recorded in the ledger
        refunded: Part of `amount` to send back
        missing_reserve_before: Capacity open when the bid arrived
        ended: Whether this bid finalized the auction
    """
    bidder: bytes
    amount: int
    accepted: int
    refunded: int
    missing_reserve_before: int
    ended: bool


class BidLedger:
    """Per-bidder committed amounts during the open bidding window."""

    def __init__(
        self,
        state: AuctionState,
        stages: StageMachine,
        curve: PriceCurve,
        clock: Clock,
        events: EventLog,
    ):
        self.state = state
        self.stages = stages
        self.curve = curve
        self.clock = clock
        self.events = events

        # bidder -> committed amount
        self.entries: Dict[bytes, int] = {}

    # =========================================================================
    # Queries
    # =========================================================================

    def bid_of(self, bidder: bytes) -> int:
        return self.entries.get(bidder, 0)

    def outstanding(self) -> int:
        """Sum of unclaimed entries; equals total_collected - funds_claimed."""
        return sum(self.entries.values())

    def bidders(self) -> int:
        return sum(1 for amount in self.entries.values() if amount > 0)

    # =========================================================================
    # Admission
    # =========================================================================

    def bid(self, bidder: bytes, amount: int, held_before: int) -> BidReceipt:
        """
        Admit a bid.

        Args:
            bidder: Identity credited with the bid
            amount: Value attached to the bid
            held_before: Auction balance excluding `amount`

        Returns:
            BidReceipt describing the accepted and refunded parts
        """
        self.stages.require(Stage.STARTED, "bid")

        valid, err = validate_address(bidder, "bidder")
        if not valid:
            raise ZeroIdentity(err)

        valid, err = validate_amount(amount, "bid amount")
        if not valid or amount == 0:
            raise ZeroOrInvalidBid(err or "Bid must carry a nonzero value")

        max_accepted = self.curve.missing_reserve(held_before)
        accepted = safe_min(amount, max_accepted)
        refunded = safe_sub(amount, accepted)

        entry = safe_add(self.bid_of(bidder), accepted)
        total = safe_add(self.state.total_collected, accepted)

        self.entries[bidder] = entry
        self.state.total_collected = total

        self.events.emit(BidSubmission(
            bidder=bidder,
            accepted=accepted,
            refunded=refunded,
            missing_reserve_before=max_accepted,
        ))
        logger.debug(
            f"Bid from {short_address(bidder)}: accepted={accepted}, "
            f"refunded={refunded}, missing_before={max_accepted}"
        )

        ended = accepted == max_accepted
        if ended:
            self.finalize_auction()

        return BidReceipt(
            bidder=bidder,
            amount=amount,
            accepted=accepted,
            refunded=refunded,
            missing_reserve_before=max_accepted,
            ended=ended,
        )

    def finalize_auction(self) -> int:
        """
        Freeze the price at the current elapsed time and end the auction.

        Returns:
            The final price
        """
        self.stages.require(Stage.STARTED, "finalize_auction")

        final_price = self.curve.current_price()
        self.state.final_price = final_price
        self.state.end_time = self.clock.timestamp
        self.stages.advance(Stage.STARTED, Stage.ENDED)

        self.events.emit(AuctionEnded(final_price=final_price))
        logger.info(
            f"Auction ended: final_price={final_price}, "
            f"collected={self.state.total_collected}"
        )
        return final_price

    # =========================================================================
    # Settlement Support
    # =========================================================================

    def clear(self, bidder: bytes) -> int:
        """Zero an entry permanently and return what it held."""
        amount = self.bid_of(bidder)
        if amount:
            self.entries[bidder] = 0
        return amount

    def snapshot(self) -> Dict[bytes, int]:
        return dict(self.entries)

    def restore(self, entries: Dict[bytes, int]) -> None:
        self.entries.clear()
        self.entries.update(entries)
