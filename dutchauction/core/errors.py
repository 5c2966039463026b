"""
Error taxonomy for the auction engine.

Every public operation is all-or-nothing: when one of these is raised the
host rolls back every effect of the call, so callers can simply resubmit.
"""


class AuctionError(Exception):
    """Base class for all auction failures."""


class InvalidStage(AuctionError):
    """Operation invoked outside the single stage it requires."""


class Unauthorized(AuctionError):
    """Caller lacks the capability (owner identity) the operation needs."""


class ZeroIdentity(AuctionError):
    """A null or malformed identity was supplied where a real one is needed."""


class ArithmeticOverflow(AuctionError):
    """Checked arithmetic left the unsigned 256-bit domain."""


class ZeroOrInvalidBid(AuctionError):
    """Bid carried no value or a value that is not an amount."""


class TransferFailure(AuctionError):
    """A value or asset transfer was refused or could not be funded."""


class InvalidConfiguration(AuctionError):
    """Auction parameters violate their constraints."""


__all__ = [
    "AuctionError",
    "InvalidStage",
    "Unauthorized",
    "ZeroIdentity",
    "ArithmeticOverflow",
    "ZeroOrInvalidBid",
    "TransferFailure",
    "InvalidConfiguration",
]
