"""
Dutch Auction Engine

A descending-price token auction:
- Decaying price curve with a frozen clearing price
- Bid admission with clamping and automatic finalization
- Idempotent, batched claim settlement
- Reserve handoff to the issued asset once all bids are claimed
"""

__version__ = "0.1.0"
