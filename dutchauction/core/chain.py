"""
Chain - Host execution environment for the auction engine.

The host supplies what the auction cannot own itself:

1. **Clock**: a coarse timestamp and block height. It only moves forward
   under normal operation, but whoever produces blocks may skew the
   timestamp within a small bound.
2. **Native balances**: the monetary currency bids are paid in, with a
   transfer primitive that can fail (insufficient funds, rejecting
   recipient).
3. **Atomic execution**: `atomic()` snapshots native balances and every
   registered participant, and restores all of them if the wrapped call
   raises. Nested blocks roll back only their own effects unless the
   exception keeps propagating.

Participants are registered by address. A participant may expose:
- `on_receive(sender, amount)`: called after native value lands on it;
  raising rejects the transfer.
- `snapshot()` / `restore(snapshot)`: state capture for rollback.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from dutchauction.core.errors import TransferFailure, ZeroIdentity
from dutchauction.crypto import ZERO_ADDRESS, contract_address, short_address
from dutchauction.utils.logger import get_logger
from dutchauction.utils.validation import validate_address, validate_amount

logger = get_logger("chain")


# =============================================================================
# Clock
# =============================================================================


DEFAULT_BLOCK_TIME = 5   # seconds per block
DEFAULT_MAX_SKEW = 15    # seconds a block producer may shift the timestamp


@dataclass
class Clock:
    """
    Coarse wall-clock and height oracle.

    Attributes:
        timestamp: Current time in seconds
        height: Current block height
        block_time: Seconds per block, used to derive height from elapsed time
        max_skew: Largest timestamp adjustment skew() accepts
    """
    timestamp: int = field(default_factory=lambda: int(time.time()))
    height: int = 0
    block_time: int = DEFAULT_BLOCK_TIME
    max_skew: int = DEFAULT_MAX_SKEW

    def advance(self, seconds: int, blocks: Optional[int] = None) -> None:
        """
        Move time forward.

        Args:
            seconds: Seconds to add (>= 0)
            blocks: Blocks to add. Defaults to seconds // block_time.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance by negative time: {seconds}")
        if blocks is None:
            blocks = seconds // self.block_time
        if blocks < 0:
            raise ValueError(f"Cannot advance by negative blocks: {blocks}")

        self.timestamp += seconds
        self.height += blocks

    def skew(self, seconds: int) -> None:
        """Shift the timestamp by at most max_skew seconds, either way."""
        if abs(seconds) > self.max_skew:
            raise ValueError(f"Skew {seconds}s exceeds bound of {self.max_skew}s")
        self.timestamp += seconds


# =============================================================================
# Host
# =============================================================================


@dataclass
class HostSnapshot:
    """Captured host state for rollback."""
    balances: Dict[bytes, int]
    nonces: Dict[bytes, int]
    participants: Dict[bytes, Any]


class Host:
    """
    Simulated host chain.

    Attributes:
        clock: Time and height oracle
        balances: Native currency balance per address
        participants: Registered contracts/accounts by address
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self.balances: Dict[bytes, int] = {}
        self.participants: Dict[bytes, Any] = {}
        self._nonces: Dict[bytes, int] = {}
        self.depth = 0

    # =========================================================================
    # Accounts
    # =========================================================================

    def new_address(self, deployer: bytes) -> bytes:
        """Derive a fresh contract address for `deployer`."""
        nonce = self._nonces.get(deployer, 0)
        self._nonces[deployer] = nonce + 1
        return contract_address(deployer, nonce)

    def register(self, address: bytes, participant: Any) -> None:
        """Register a participant so it can receive hooks and be rolled back."""
        valid, err = validate_address(address)
        if not valid:
            raise ZeroIdentity(err)
        if address in self.participants:
            raise ValueError(f"Address {short_address(address)} already registered")
        self.participants[address] = participant

    def fund(self, address: bytes, amount: int) -> None:
        """Credit native currency out of thin air (genesis/faucet)."""
        valid, err = validate_amount(amount)
        if not valid:
            raise ValueError(err)
        self.balances[address] = self.balances.get(address, 0) + amount

    def balance_of(self, address: bytes) -> int:
        return self.balances.get(address, 0)

    # =========================================================================
    # Value Transfer
    # =========================================================================

    def transfer(
        self,
        sender: bytes,
        to: bytes,
        amount: int,
        notify: bool = True,
    ) -> None:
        """
        Move native currency from `sender` to `to`.

        Args:
            sender: Paying address
            to: Receiving address
            amount: Value to move
            notify: Invoke the recipient's on_receive hook

        Raises:
            ZeroIdentity: recipient is the zero address
            TransferFailure: insufficient funds or recipient rejected
        """
        if to == ZERO_ADDRESS:
            raise ZeroIdentity("Cannot transfer to the zero address")

        valid, err = validate_amount(amount)
        if not valid:
            raise TransferFailure(err)

        available = self.balance_of(sender)
        if available < amount:
            raise TransferFailure(
                f"Insufficient funds: {short_address(sender)} has {available}, needs {amount}"
            )

        with self.atomic():
            self.balances[sender] = available - amount
            self.balances[to] = self.balance_of(to) + amount

            if notify:
                hook = getattr(self.participants.get(to), "on_receive", None)
                if hook is not None:
                    try:
                        hook(sender, amount)
                    except Exception as exc:
                        raise TransferFailure(
                            f"Recipient {short_address(to)} rejected transfer: {exc}"
                        ) from exc

        logger.debug(f"Transfer {short_address(sender)} -> {short_address(to)}: {amount}")

    # =========================================================================
    # Atomic Execution
    # =========================================================================

    def snapshot(self) -> HostSnapshot:
        participants = {}
        for address, participant in self.participants.items():
            take = getattr(participant, "snapshot", None)
            if take is not None:
                participants[address] = take()

        return HostSnapshot(
            balances=dict(self.balances),
            nonces=dict(self._nonces),
            participants=participants,
        )

    def restore(self, snapshot: HostSnapshot) -> None:
        self.balances = dict(snapshot.balances)
        self._nonces = dict(snapshot.nonces)
        for address, state in snapshot.participants.items():
            self.participants[address].restore(state)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run a block with all-or-nothing semantics.

        On any exception every native balance and registered participant is
        restored to its state at block entry, then the exception propagates.
        """
        snapshot = self.snapshot()
        self.depth += 1
        try:
            yield
        except Exception:
            self.restore(snapshot)
            logger.debug(f"Rolled back call at depth {self.depth}")
            raise
        finally:
            self.depth -= 1

    def stats(self) -> dict:
        """Get host statistics."""
        return {
            "timestamp": self.clock.timestamp,
            "height": self.clock.height,
            "accounts": len(self.balances),
            "participants": len(self.participants),
            "total_native": sum(self.balances.values()),
        }
