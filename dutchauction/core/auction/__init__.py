"""
Auction Module.

This module provides the descending-price auction engine:
- Stage machine and data model
- Price curve and reserve queries
- Bid ledger with admission control
- Claim settlement and reserve handoff
- Hash-chained event log
"""

from dutchauction.core.auction.state import (
    AuctionConfig,
    AuctionState,
    Stage,
)

from dutchauction.core.auction.stages import StageMachine, NEXT_STAGE

from dutchauction.core.auction.price import PriceCurve

from dutchauction.core.auction.events import (
    AuctionEvent,
    Deployed,
    Setup,
    SettingsChanged,
    AuctionStarted,
    BidSubmission,
    ClaimedTokens,
    AuctionEnded,
    TokensDistributed,
    TradingStarted,
    EventLog,
)

from dutchauction.core.auction.bids import BidLedger, BidReceipt

from dutchauction.core.auction.claims import ClaimSettlement, Allocation

from dutchauction.core.auction.engine import DutchAuction

__all__ = [
    # Data model
    "AuctionConfig",
    "AuctionState",
    "Stage",
    # Components
    "StageMachine",
    "NEXT_STAGE",
    "PriceCurve",
    "BidLedger",
    "BidReceipt",
    "ClaimSettlement",
    "Allocation",
    "DutchAuction",
    # Events
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
    "EventLog",
]
