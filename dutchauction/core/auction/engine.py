"""
Dutch Auction - Public surface of the auction engine.

Lifecycle:
---------
1. Deploy with price and owner-fraction parameters (DEPLOYED)
2. The token issues the supply to the auction address; the owner calls
   setup() to bind it (SETUP)
3. Optionally adjust parameters with change_settings() (SETUP)
4. start_auction() starts the price decay (STARTED)
5. bid() until a bid exactly fills the missing reserve (ENDED)
6. claim_tokens()/claim_tokens_batch() until every bid is settled
   (DISTRIBUTED, then TRADING_STARTED once the reserve is handed over)

Execution Model:
---------------
Every public operation runs inside Host.atomic(): either all of its effects
persist (state, ledger, events, native and token transfers) or none do.
Within an operation all owned state is updated before any outward call
(refund, token transfer, reserve handoff), so a collaborator calling back
in observes the new state.

Identities are explicit: the caller's address is passed to each operation
instead of being read from ambient context.
"""

import functools
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from dutchauction.core.auction.bids import BidLedger, BidReceipt
from dutchauction.core.auction.claims import Allocation, ClaimSettlement
from dutchauction.core.auction.events import (
    AuctionStarted,
    Deployed,
    EventLog,
    SettingsChanged,
    Setup,
)
from dutchauction.core.auction.price import PriceCurve
from dutchauction.core.auction.stages import StageMachine
from dutchauction.core.auction.state import AuctionConfig, AuctionState, Stage
from dutchauction.core.chain import Host
from dutchauction.core.errors import (
    ArithmeticOverflow,
    AuctionError,
    InvalidConfiguration,
    TransferFailure,
    Unauthorized,
    ZeroIdentity,
    ZeroOrInvalidBid,
)
from dutchauction.core.safe_math import safe_pow, safe_sub
from dutchauction.core.token import AssetLedger
from dutchauction.crypto import short_address
from dutchauction.utils.logger import get_logger
from dutchauction.utils.validation import validate_address, validate_amount

logger = get_logger("auction")


def atomic(method):
    """Run a public operation all-or-nothing and log rejections."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            with self.host.atomic():
                return method(self, *args, **kwargs)
        except AuctionError as exc:
            logger.warning(f"{method.__name__} rejected: {type(exc).__name__}: {exc}")
            raise

    return wrapper


@dataclass
class AuctionSnapshot:
    """Everything the auction owns, captured for rollback."""
    config: AuctionConfig
    state: AuctionState
    entries: Dict[bytes, int]
    events: int
    token: Optional[AssetLedger]


class DutchAuction:
    """
    Descending-price auction selling a fixed token supply.

    Attributes:
        host: Execution environment (clock, native balances, atomicity)
        owner: Administrative identity; receives the owner share
        address: The auction's own address
        config: Price and owner-fraction parameters
        state: Stage, timing and totals
        events: Append-only event log
    """

    def __init__(
        self,
        host: Host,
        owner: bytes,
        price_factor: int,
        price_const: int,
        owner_fr: int,
        owner_fr_dec: int,
        address: Optional[bytes] = None,
    ):
        valid, err = validate_address(owner, "owner")
        if not valid:
            raise ZeroIdentity(err)

        self.config = AuctionConfig(
            price_factor=price_factor,
            price_const=price_const,
            owner_fr=owner_fr,
            owner_fr_dec=owner_fr_dec,
        )
        self.config.validate()

        self.host = host
        self.owner = owner
        self.address = address or host.new_address(owner)
        self.token: Optional[AssetLedger] = None

        self.state = AuctionState()
        self.events = EventLog()
        self.stages = StageMachine(self.state)
        self.curve = PriceCurve(self.config, self.state, host.clock)
        self.ledger = BidLedger(self.state, self.stages, self.curve, host.clock, self.events)
        self.claims = ClaimSettlement(
            self.config,
            self.state,
            self.stages,
            self.ledger,
            host,
            self.events,
            self.address,
            owner,
        )

        host.register(self.address, self)

        self.events.emit(Deployed(
            price_factor=price_factor,
            price_const=price_const,
            owner_fr=owner_fr,
            owner_fr_dec=owner_fr_dec,
        ))
        logger.info(
            f"Auction deployed at {short_address(self.address)}: "
            f"factor={price_factor}, const={price_const}, owner_fr={owner_fr}/10^{owner_fr_dec}"
        )

    # =========================================================================
    # Administration
    # =========================================================================

    def _require_owner(self, caller: bytes) -> None:
        if caller != self.owner:
            raise Unauthorized(f"Caller {short_address(caller)} is not the owner")

    @atomic
    def setup(self, caller: bytes, token: Optional[AssetLedger]) -> None:
        """
        Bind the token being sold. DEPLOYED -> SETUP.

        Reads the supply held by the auction and the token's decimals.
        """
        self.stages.require(Stage.DEPLOYED, "setup")
        self._require_owner(caller)

        if token is None:
            raise ZeroIdentity("Token reference is null")
        valid, err = validate_address(getattr(token, "address", None), "token")
        if not valid:
            raise ZeroIdentity(err)

        tokens_auctioned = token.balance_of(self.address)
        if tokens_auctioned == 0:
            raise InvalidConfiguration("Auction holds no tokens to sell")
        token_multiplier = safe_pow(10, token.decimals())

        self.config.tokens_auctioned = tokens_auctioned
        self.config.token_multiplier = token_multiplier
        self.token = token
        self.claims.token = token

        self.stages.advance(Stage.DEPLOYED, Stage.SETUP)
        self.events.emit(Setup())
        logger.info(f"Setup: {tokens_auctioned} subunits on sale, multiplier={token_multiplier}")

    @atomic
    def change_settings(
        self,
        caller: bytes,
        price_factor: int,
        price_const: int,
        owner_fr: int,
        owner_fr_dec: int,
    ) -> None:
        """Replace the price and owner-fraction parameters. SETUP only."""
        self.stages.require(Stage.SETUP, "change_settings")
        self._require_owner(caller)

        candidate = self.config.copy()
        candidate.price_factor = price_factor
        candidate.price_const = price_const
        candidate.owner_fr = owner_fr
        candidate.owner_fr_dec = owner_fr_dec
        candidate.validate()

        self.config.restore(candidate)
        self.events.emit(SettingsChanged(
            price_factor=price_factor,
            price_const=price_const,
            owner_fr=owner_fr,
            owner_fr_dec=owner_fr_dec,
        ))
        logger.info(
            f"Settings changed: factor={price_factor}, const={price_const}, "
            f"owner_fr={owner_fr}/10^{owner_fr_dec}"
        )

    @atomic
    def start_auction(self, caller: bytes) -> None:
        """Start the price decay. SETUP -> STARTED."""
        self.stages.require(Stage.SETUP, "start_auction")
        self._require_owner(caller)

        self.state.start_time = self.host.clock.timestamp
        self.state.start_height = self.host.clock.height
        self.stages.advance(Stage.SETUP, Stage.STARTED)

        self.events.emit(AuctionStarted(
            start_time=self.state.start_time,
            start_height=self.state.start_height,
        ))
        logger.info(
            f"Auction started at t={self.state.start_time}, height={self.state.start_height}"
        )

    # =========================================================================
    # Bidding
    # =========================================================================

    @atomic
    def bid(self, sender: bytes, value: int, receiver: Optional[bytes] = None) -> BidReceipt:
        """
        Bid `value` of native currency, credited to `receiver`.

        Value above the missing reserve is refunded to `sender`. A bid that
        fills the missing reserve exactly ends the auction.

        Args:
            sender: Paying identity
            value: Attached native value
            receiver: Identity credited with the bid; defaults to `sender`

        Returns:
            BidReceipt
        """
        self.stages.require(Stage.STARTED, "bid")

        if receiver is None:
            receiver = sender
        valid, err = validate_address(receiver, "receiver")
        if not valid:
            raise ZeroIdentity(err)

        valid, err = validate_amount(value, "bid value")
        if not valid or value == 0:
            raise ZeroOrInvalidBid(err or "Bid must carry a nonzero value")

        self.host.transfer(sender, self.address, value, notify=False)
        held_before = safe_sub(self.host.balance_of(self.address), value)

        receipt = self.ledger.bid(receiver, value, held_before)

        if receipt.refunded:
            self.host.transfer(self.address, sender, receipt.refunded)

        return receipt

    # =========================================================================
    # Claims
    # =========================================================================

    @atomic
    def claim_tokens(self, caller: bytes, receiver: Optional[bytes] = None) -> Optional[Allocation]:
        """
        Settle the bid of `receiver` (default: the caller). ENDED only.

        Returns:
            The allocation issued, or None if there was nothing to claim
        """
        allocations = self.claims.claim([caller if receiver is None else receiver])
        return allocations[0] if allocations else None

    @atomic
    def claim_tokens_batch(self, receivers: Iterable[bytes]) -> List[Allocation]:
        """
        Settle the bids of several receivers. ENDED only.

        Safe to call repeatedly with overlapping receiver sets.
        """
        return self.claims.claim(receivers)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def final_price(self) -> Optional[int]:
        return self.state.final_price

    def price(self) -> int:
        """Current price, or the final price once the auction has ended."""
        return self.curve.price()

    def reserve_at_price(self) -> int:
        """Reserve that subscribes the full supply at the current price."""
        return self.curve.reserve_at_price()

    def missing_reserve_to_end_auction(self, reserve: Optional[int] = None) -> int:
        """
        Value still needed to end the auction at the current price.

        Args:
            reserve: Assumed collected reserve; defaults to the auction balance
        """
        if reserve is None:
            reserve = self.host.balance_of(self.address)
        return self.curve.missing_reserve(reserve)

    def owner_fraction(self, supply: int) -> int:
        return self.claims.owner_fraction(supply)

    def bid_of(self, bidder: bytes) -> int:
        return self.ledger.bid_of(bidder)

    # =========================================================================
    # Host Hooks
    # =========================================================================

    def on_receive(self, sender: bytes, amount: int) -> None:
        raise TransferFailure("Plain payments are refused; use bid()")

    def snapshot(self) -> AuctionSnapshot:
        return AuctionSnapshot(
            config=self.config.copy(),
            state=self.state.copy(),
            entries=self.ledger.snapshot(),
            events=self.events.snapshot(),
            token=self.token,
        )

    def restore(self, snapshot: AuctionSnapshot) -> None:
        self.config.restore(snapshot.config)
        self.state.restore(snapshot.state)
        self.ledger.restore(snapshot.entries)
        self.events.restore(snapshot.events)
        self.token = snapshot.token
        self.claims.token = snapshot.token

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (
            f"DutchAuction(address={short_address(self.address)}, stage={self.stage.name}, "
            f"collected={self.state.total_collected})"
        )

    def stats(self) -> Dict[str, Any]:
        """Get auction statistics."""
        stats: Dict[str, Any] = {
            "stage": self.stage.name,
            "total_collected": self.state.total_collected,
            "funds_claimed": self.state.funds_claimed,
            "outstanding": self.ledger.outstanding(),
            "bidders": self.ledger.bidders(),
            "final_price": self.state.final_price,
            "events": len(self.events),
        }
        if self.stages.reached(Stage.SETUP):
            try:
                stats["price"] = self.price()
            except ArithmeticOverflow:
                # clock behind start_time
                stats["price"] = None
            stats["tokens_auctioned"] = self.config.tokens_auctioned
        return stats
