"""
Price Curve - Decaying auction price and reserve queries.

While the auction runs:

    price(elapsed) = price_factor * token_multiplier // (elapsed + price_const) + 1

The product is taken before the division; the truncation that follows
decides the exact clearing amount, so the order must not change. The
trailing +1 keeps the price above zero forever.

Once the auction ends the price is frozen at final_price.

The reserve needed to sell the whole supply at the current price is

    reserve_at_price = tokens_auctioned * price // token_multiplier

and the missing reserve is whatever part of that has not been committed yet.
"""

from dutchauction.core.auction.state import AuctionConfig, AuctionState, Stage
from dutchauction.core.chain import Clock
from dutchauction.core.errors import InvalidStage
from dutchauction.core.safe_math import (
    safe_add,
    safe_div,
    safe_mul,
    safe_sub,
)


class PriceCurve:
    """Price function bound to an auction's config, state and clock."""

    def __init__(self, config: AuctionConfig, state: AuctionState, clock: Clock):
        self.config = config
        self.state = state
        self.clock = clock

    # =========================================================================
    # Pure Functions
    # =========================================================================

    def price_at(self, elapsed: int) -> int:
        """Price after `elapsed` seconds, ignoring any frozen price."""
        numerator = safe_mul(self.config.price_factor, self.config.token_multiplier)
        denominator = safe_add(elapsed, self.config.price_const)
        return safe_add(safe_div(numerator, denominator), 1)

    def reserve_at(self, price: int) -> int:
        """Reserve that subscribes the full supply at `price`."""
        if self.config.token_multiplier == 0:
            raise InvalidStage("Reserve is unknown until the auction is set up")
        return safe_div(
            safe_mul(self.config.tokens_auctioned, price),
            self.config.token_multiplier,
        )

    # =========================================================================
    # Auction Queries
    # =========================================================================

    def elapsed(self) -> int:
        """
        Seconds since the auction started; 0 before it starts.

        A clock reading earlier than start_time raises ArithmeticOverflow.
        """
        if self.state.stage < Stage.STARTED:
            return 0
        return safe_sub(self.clock.timestamp, self.state.start_time)

    def current_price(self) -> int:
        """Price at the current clock reading, even after the auction ended."""
        return self.price_at(self.elapsed())

    def price(self) -> int:
        """Auction price: decaying while open, final_price once ended."""
        if self.state.final_price is not None:
            return self.state.final_price
        return self.current_price()

    def reserve_at_price(self) -> int:
        return self.reserve_at(self.price())

    def missing_reserve(self, reserve: int) -> int:
        """max(0, reserve_at_price - reserve)"""
        required = self.reserve_at_price()
        if reserve >= required:
            return 0
        return safe_sub(required, reserve)
