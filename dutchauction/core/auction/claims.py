"""
Claim Settlement - Converting committed bids into tokens.

After the auction ends every bid buys tokens at the single final price:

    num             = amount * token_multiplier // final_price
    owner_share     = num * owner_fr // 10**owner_fr_dec
    recipient_share = num - owner_share

Ordering per recipient:
1. Read the ledger entry; zero means nothing to do (idempotent)
2. Zero the entry and add to funds_claimed
3. Only then ask the asset ledger to transfer the two shares

A reentrant claim issued from inside step 3 therefore sees a zeroed entry
and contributes nothing.

When a call brings funds_claimed up to total_collected, the auction moves
to DISTRIBUTED and immediately hands its whole reserve to the asset,
moving to TRADING_STARTED. Stage gating makes that happen at most once.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from dutchauction.core.auction.bids import BidLedger
from dutchauction.core.auction.events import (
    ClaimedTokens,
    EventLog,
    TokensDistributed,
    TradingStarted,
)
from dutchauction.core.auction.stages import StageMachine
from dutchauction.core.auction.state import AuctionConfig, AuctionState, Stage
from dutchauction.core.chain import Host
from dutchauction.core.errors import TransferFailure
from dutchauction.core.safe_math import safe_add, safe_div, safe_mul, safe_pow, safe_sub
from dutchauction.core.token import AssetLedger
from dutchauction.crypto import short_address
from dutchauction.utils.logger import get_logger
from dutchauction.utils.validation import validate_address

logger = get_logger("claims")


@dataclass(frozen=True)
class Allocation:
    """Tokens issued for one claimed bid."""
    recipient: bytes
    bid_amount: int
    num: int
    recipient_share: int
    owner_share: int


class ClaimSettlement:
    """
    Post-auction settlement.

    Attributes:
        token: Asset ledger bound at setup
        auction_address: Address holding the tokens and the reserve
        owner: Receives the owner share of every allocation
    """

    def __init__(
        self,
        config: AuctionConfig,
        state: AuctionState,
        stages: StageMachine,
        ledger: BidLedger,
        host: Host,
        events: EventLog,
        auction_address: bytes,
        owner: bytes,
    ):
        self.config = config
        self.state = state
        self.stages = stages
        self.ledger = ledger
        self.host = host
        self.events = events
        self.auction_address = auction_address
        self.owner = owner
        self.token: Optional[AssetLedger] = None

    # =========================================================================
    # Allocation Math
    # =========================================================================

    def owner_fraction(self, supply: int) -> int:
        """Owner's part of `supply`: supply * owner_fr // 10**owner_fr_dec."""
        return safe_div(
            safe_mul(supply, self.config.owner_fr),
            safe_pow(10, self.config.owner_fr_dec),
        )

    def allocation_for(self, amount: int) -> Tuple[int, int, int]:
        """
        Split the tokens bought by `amount` at the final price.

        Returns:
            (num, owner_share, recipient_share)
        """
        num = safe_div(
            safe_mul(amount, self.config.token_multiplier),
            self.state.final_price,
        )
        owner_share = self.owner_fraction(num)
        return num, owner_share, safe_sub(num, owner_share)

    # =========================================================================
    # Claims
    # =========================================================================

    def claim(self, recipients: Iterable[bytes]) -> List[Allocation]:
        """
        Settle the bids of `recipients`, in order.

        Recipients with nothing to claim, including invalid identities, are
        skipped, so overlapping or repeated batches are safe.

        Returns:
            Allocations actually issued by this call
        """
        self.stages.require(Stage.ENDED, "claim_tokens")

        allocations = []
        for recipient in recipients:
            # A null or malformed identity never holds a bid
            valid, err = validate_address(recipient, "recipient")
            if not valid:
                logger.debug(f"Skipping claim: {err}")
                continue

            allocation = self._claim_one(recipient)
            if allocation is not None:
                allocations.append(allocation)

        # A reentrant claim may already have completed distribution
        if (
            self.state.stage == Stage.ENDED
            and self.state.funds_claimed == self.state.total_collected
        ):
            self._distribute()

        return allocations

    def _claim_one(self, recipient: bytes) -> Optional[Allocation]:
        amount = self.ledger.bid_of(recipient)
        if amount == 0:
            return None

        num, owner_share, recipient_share = self.allocation_for(amount)
        funds_claimed = safe_add(self.state.funds_claimed, amount)

        self.ledger.clear(recipient)
        self.state.funds_claimed = funds_claimed

        allocation = Allocation(
            recipient=recipient,
            bid_amount=amount,
            num=num,
            recipient_share=recipient_share,
            owner_share=owner_share,
        )
        self.events.emit(ClaimedTokens(
            recipient=recipient,
            bid_amount=amount,
            num=num,
            recipient_share=recipient_share,
            owner_share=owner_share,
        ))
        logger.debug(
            f"Claimed for {short_address(recipient)}: bid={amount}, num={num}, "
            f"owner_share={owner_share}"
        )

        self._issue(self.owner, owner_share)
        self._issue(recipient, recipient_share)
        return allocation

    def _issue(self, to: bytes, amount: int) -> None:
        if not self.token.transfer(self.auction_address, to, amount):
            raise TransferFailure(f"Token transfer of {amount} to {short_address(to)} failed")

    # =========================================================================
    # Distribution
    # =========================================================================

    def _distribute(self) -> None:
        self.stages.advance(Stage.ENDED, Stage.DISTRIBUTED)
        self.events.emit(TokensDistributed())
        logger.info(f"All bids claimed: {self.state.funds_claimed} settled")

        self.transfer_reserve_to_token()

    def transfer_reserve_to_token(self) -> int:
        """
        Hand the whole auction balance to the asset and open trading.

        Returns:
            Reserve handed over
        """
        self.stages.require(Stage.DISTRIBUTED, "transfer_reserve_to_token")

        reserve = self.host.balance_of(self.auction_address)
        self.stages.advance(Stage.DISTRIBUTED, Stage.TRADING_STARTED)
        self.events.emit(TradingStarted())

        self.token.receive_reserve(self.auction_address, reserve)
        logger.info(f"Reserve of {reserve} handed to token, trading started")
        return reserve
