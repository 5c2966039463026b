"""
Stage Machine - Forward-only auction lifecycle.

    DEPLOYED -> SETUP -> STARTED -> ENDED -> DISTRIBUTED -> TRADING_STARTED

Every operation names the single stage it requires; anything else fails
with InvalidStage before touching state. Stages are never skipped and
never revisited.
"""

from typing import Dict

from dutchauction.core.auction.state import AuctionState, Stage
from dutchauction.core.errors import InvalidStage
from dutchauction.utils.logger import get_logger

logger = get_logger("stages")


NEXT_STAGE: Dict[Stage, Stage] = {
    Stage.DEPLOYED: Stage.SETUP,
    Stage.SETUP: Stage.STARTED,
    Stage.STARTED: Stage.ENDED,
    Stage.ENDED: Stage.DISTRIBUTED,
    Stage.DISTRIBUTED: Stage.TRADING_STARTED,
}


class StageMachine:
    """Guards and applies stage transitions on a shared AuctionState."""

    def __init__(self, state: AuctionState):
        self.state = state

    @property
    def stage(self) -> Stage:
        return self.state.stage

    def require(self, stage: Stage, action: str = "operation") -> None:
        """Fail unless the auction is exactly at `stage`."""
        if self.state.stage != stage:
            raise InvalidStage(
                f"{action} requires stage {stage.name}, auction is {self.state.stage.name}"
            )

    def reached(self, stage: Stage) -> bool:
        """Whether the auction is at or past `stage`."""
        return self.state.stage >= stage

    def advance(self, source: Stage, target: Stage) -> None:
        """
        Move from `source` to its immediate successor `target`.

        Raises:
            InvalidStage: not currently at `source`, or `target` skips ahead
        """
        self.require(source, f"transition to {target.name}")
        if NEXT_STAGE.get(source) != target:
            raise InvalidStage(f"Illegal transition {source.name} -> {target.name}")

        self.state.stage = target
        logger.info(f"Stage {source.name} -> {target.name}")
