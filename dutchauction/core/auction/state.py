"""
Auction data model.

AuctionConfig holds the parameters fixed before the auction starts;
AuctionState holds everything that moves afterwards. Both are plain
dataclasses shared by reference between the components, so snapshot and
restore copy field values in place rather than swapping objects.
"""

from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Optional

from dutchauction.core.errors import InvalidConfiguration
from dutchauction.utils.validation import validate_owner_fraction, validate_price_params


class Stage(IntEnum):
    """Auction lifecycle, in strict forward order."""
    DEPLOYED = 0          # Parameters set, no asset bound
    SETUP = 1             # Asset bound, settings still adjustable
    STARTED = 2           # Accepting bids, price decaying
    ENDED = 3             # Supply subscribed, price frozen, claims open
    DISTRIBUTED = 4       # Every bid claimed
    TRADING_STARTED = 5   # Reserve handed to the asset (terminal)


@dataclass
class AuctionConfig:
    """
    Auction parameters.

    Attributes:
        price_factor: Scales the starting price
        price_const: Time offset controlling how fast the price decays
        owner_fr: Owner fraction numerator
        owner_fr_dec: Owner fraction decimal exponent (fraction = owner_fr / 10**owner_fr_dec)
        tokens_auctioned: Supply on sale, in subunits (read at setup)
        token_multiplier: Subunits per display unit (read at setup)
    """
    price_factor: int
    price_const: int
    owner_fr: int
    owner_fr_dec: int
    tokens_auctioned: int = 0
    token_multiplier: int = 0

    def validate(self) -> None:
        """Raise InvalidConfiguration if the parameters are unusable."""
        valid, err = validate_price_params(self.price_factor, self.price_const)
        if not valid:
            raise InvalidConfiguration(err)

        valid, err = validate_owner_fraction(self.owner_fr, self.owner_fr_dec)
        if not valid:
            raise InvalidConfiguration(err)

    def copy(self) -> "AuctionConfig":
        return replace(self)

    def restore(self, other: "AuctionConfig") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))


@dataclass
class AuctionState:
    """
    Mutable auction state.

    Attributes:
        stage: Current lifecycle stage
        start_time: Timestamp the auction started at
        start_height: Block height the auction started at
        end_time: Timestamp the auction ended at
        final_price: Clearing price, None until ended
        funds_claimed: Bid value already converted into tokens
        total_collected: Sum of all accepted bids
    """
    stage: Stage = Stage.DEPLOYED
    start_time: int = 0
    start_height: int = 0
    end_time: int = 0
    final_price: Optional[int] = None
    funds_claimed: int = 0
    total_collected: int = 0

    def copy(self) -> "AuctionState":
        return replace(self)

    def restore(self, other: "AuctionState") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))
