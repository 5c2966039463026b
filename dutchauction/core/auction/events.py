"""
Auction events - Append-only, hash-chained event log.

Each event is a frozen dataclass with a fixed field list. Appending an
event extends a keccak chain:

    head' = keccak256(head || name || fields)

Two logs holding the same events in the same order share a head, so a
single digest is enough to compare auction histories. Rolling back a
failed call truncates the log to its earlier length and head.
"""

from dataclasses import dataclass, fields
from typing import Iterator, List, Type, TypeVar

from dutchauction.crypto import keccak256

EMPTY_HEAD = bytes(32)


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class AuctionEvent:
    """Base class for observable auction events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def encode(self) -> bytes:
        """Deterministic encoding: name, then each field in declaration order."""
        out = self.name.encode()
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (bytes, bytearray)):
                out += bytes(value)
            else:
                out += int(value).to_bytes(32, byteorder="big")
        return out


@dataclass(frozen=True)
class Deployed(AuctionEvent):
    price_factor: int
    price_const: int
    owner_fr: int
    owner_fr_dec: int


@dataclass(frozen=True)
class Setup(AuctionEvent):
    pass


@dataclass(frozen=True)
class SettingsChanged(AuctionEvent):
    price_factor: int
    price_const: int
    owner_fr: int
    owner_fr_dec: int


@dataclass(frozen=True)
class AuctionStarted(AuctionEvent):
    start_time: int
    start_height: int


@dataclass(frozen=True)
class BidSubmission(AuctionEvent):
    bidder: bytes
    accepted: int
    refunded: int
    missing_reserve_before: int


@dataclass(frozen=True)
class ClaimedTokens(AuctionEvent):
    recipient: bytes
    bid_amount: int
    num: int
    recipient_share: int
    owner_share: int


@dataclass(frozen=True)
class AuctionEnded(AuctionEvent):
    final_price: int


@dataclass(frozen=True)
class TokensDistributed(AuctionEvent):
    pass


@dataclass(frozen=True)
class TradingStarted(AuctionEvent):
    pass


# =============================================================================
# Event Log
# =============================================================================


E = TypeVar("E", bound=AuctionEvent)


@dataclass(frozen=True)
class LoggedEvent:
    """An event with its position and the chain head after it."""
    index: int
    event: AuctionEvent
    head: bytes


class EventLog:
    """Append-only event log with a running keccak head."""

    def __init__(self):
        self.entries: List[LoggedEvent] = []

    @property
    def head(self) -> bytes:
        return self.entries[-1].head if self.entries else EMPTY_HEAD

    def emit(self, event: AuctionEvent) -> LoggedEvent:
        entry = LoggedEvent(
            index=len(self.entries),
            event=event,
            head=keccak256(self.head + event.encode()),
        )
        self.entries.append(entry)
        return entry

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e.event for e in self.entries if isinstance(e.event, event_type)]

    def names(self) -> List[str]:
        return [e.event.name for e in self.entries]

    def __iter__(self) -> Iterator[AuctionEvent]:
        return (e.event for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def snapshot(self) -> int:
        return len(self.entries)

    def restore(self, length: int) -> None:
        # Entries below the snapshot are never rewritten, so truncation
        # also restores the head.
        del self.entries[length:]


__all__ = [
    "AuctionEvent",
    "Deployed",
    "Setup",
    "SettingsChanged",
    "AuctionStarted",
    "BidSubmission",
    "ClaimedTokens",
    "AuctionEnded",
    "TokensDistributed",
    "TradingStarted",
    "LoggedEvent",
    "EventLog",
    "EMPTY_HEAD",
]
