"""
Reserve Token - Reference issued-asset ledger.

The auction consumes the issued asset only through a narrow interface:

    decimals() -> n
    balance_of(holder) -> amount
    transfer(sender, to, amount) -> success
    receive_reserve(sender, value)

ReserveToken implements that interface for simulation and tests. The whole
auctioned supply is issued to the auction's address before setup; after the
auction distributes it, the collected reserve is handed to the token and
trading opens. There is no minting curve and no trading logic here.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from dutchauction.core.chain import Host
from dutchauction.core.errors import (
    InvalidStage,
    TransferFailure,
    Unauthorized,
    ZeroIdentity,
)
from dutchauction.crypto import ZERO_ADDRESS, short_address
from dutchauction.utils.logger import get_logger
from dutchauction.utils.validation import validate_address, validate_amount

logger = get_logger("token")


DEFAULT_DECIMALS = 18


class AssetLedger(Protocol):
    """The slice of the issued asset the auction depends on."""

    address: bytes

    def decimals(self) -> int: ...

    def balance_of(self, holder: bytes) -> int: ...

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool: ...

    def receive_reserve(self, sender: bytes, value: int) -> None: ...


@dataclass
class TokenSnapshot:
    balances: Dict[bytes, int]
    auction: Optional[bytes]
    reserve: int
    trading_started: bool


class ReserveToken:
    """
    Account-based fungible token backed by an auction reserve.

    Attributes:
        address: Token contract address
        owner: Issuer allowed to issue supply and bind the auction
        balances: Token balance per holder, in subunits
        auction: Address allowed to hand over the reserve
        reserve: Native currency received from the auction
        trading_started: Set once the reserve has been received
    """

    def __init__(
        self,
        host: Host,
        owner: bytes,
        decimals: int = DEFAULT_DECIMALS,
        address: Optional[bytes] = None,
    ):
        valid, err = validate_address(owner, "owner")
        if not valid:
            raise ZeroIdentity(err)

        self.host = host
        self.owner = owner
        self._decimals = decimals
        self.address = address or host.new_address(owner)

        self.balances: Dict[bytes, int] = {}
        self.auction: Optional[bytes] = None
        self.reserve = 0
        self.trading_started = False

        host.register(self.address, self)

    # =========================================================================
    # Queries
    # =========================================================================

    def decimals(self) -> int:
        return self._decimals

    @property
    def multiplier(self) -> int:
        """Subunits per display unit."""
        return 10 ** self._decimals

    def balance_of(self, holder: bytes) -> int:
        return self.balances.get(holder, 0)

    @property
    def total_supply(self) -> int:
        return sum(self.balances.values())

    # =========================================================================
    # Issuance
    # =========================================================================

    def issue(self, caller: bytes, to: bytes, amount: int) -> None:
        """Issue new supply. Owner only, before trading starts."""
        if caller != self.owner:
            raise Unauthorized("Only the token owner can issue supply")
        if self.trading_started:
            raise InvalidStage("Supply is fixed once trading has started")

        valid, err = validate_address(to, "recipient")
        if not valid:
            raise ZeroIdentity(err)
        valid, err = validate_amount(amount)
        if not valid:
            raise ValueError(err)

        self.balances[to] = self.balance_of(to) + amount
        logger.info(f"Issued {amount} subunits to {short_address(to)}")

    def bind_auction(self, caller: bytes, auction: bytes) -> None:
        """Name the only address allowed to hand over the reserve."""
        if caller != self.owner:
            raise Unauthorized("Only the token owner can bind the auction")
        if self.auction is not None:
            raise InvalidStage("Auction already bound")

        valid, err = validate_address(auction, "auction")
        if not valid:
            raise ZeroIdentity(err)

        self.auction = auction

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(self, sender: bytes, to: bytes, amount: int) -> bool:
        """
        Move tokens from `sender` to `to`.

        Returns:
            True on success, False if the transfer cannot be made
        """
        if to == ZERO_ADDRESS:
            return False

        valid, _ = validate_amount(amount)
        if not valid:
            return False

        available = self.balance_of(sender)
        if available < amount:
            logger.warning(
                f"Transfer refused: {short_address(sender)} has {available}, needs {amount}"
            )
            return False

        self.balances[sender] = available - amount
        self.balances[to] = self.balance_of(to) + amount
        return True

    def receive_reserve(self, sender: bytes, value: int) -> None:
        """
        Accept the auction reserve and open trading.

        Pulls `value` of native currency from the auction through the host.
        """
        if self.auction is None or sender != self.auction:
            raise Unauthorized("Reserve may only come from the bound auction")
        if self.trading_started:
            raise InvalidStage("Reserve already received")

        self.host.transfer(sender, self.address, value, notify=False)
        self.reserve += value
        self.trading_started = True

        logger.info(f"Reserve received: {value}, trading started")

    def on_receive(self, sender: bytes, amount: int) -> None:
        raise TransferFailure("Token does not accept plain payments")

    # =========================================================================
    # Rollback
    # =========================================================================

    def snapshot(self) -> TokenSnapshot:
        return TokenSnapshot(
            balances=dict(self.balances),
            auction=self.auction,
            reserve=self.reserve,
            trading_started=self.trading_started,
        )

    def restore(self, snapshot: TokenSnapshot) -> None:
        self.balances = dict(snapshot.balances)
        self.auction = snapshot.auction
        self.reserve = snapshot.reserve
        self.trading_started = snapshot.trading_started

    def __repr__(self) -> str:
        return (
            f"ReserveToken(address={short_address(self.address)}, "
            f"supply={self.total_supply}, trading={self.trading_started})"
        )
