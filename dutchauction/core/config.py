"""
Deployment configuration for the auction engine.

Defines the auction parameters and the simulated token used by the CLI.
Values come from DUTCH_AUCTION_* environment variables, optionally
preloaded from a .env file.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, model_validator

from dutchauction.utils.validation import MAX_FRACTION_DECIMALS, validate_owner_fraction

ENV_PREFIX = "DUTCH_AUCTION_"


class DeploymentConfig(BaseModel):
    """Parameters for deploying one auction"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    # Price curve: price(t) = price_factor * 10**token_decimals // (t + price_const) + 1
    price_factor: int = Field(default=3_600_000, gt=0)
    price_const: int = Field(default=3_600, gt=0)  # Price halves after this many seconds

    # Owner fraction: owner_fr / 10**owner_fr_dec of every allocation
    owner_fr: int = Field(default=15, gt=0)
    owner_fr_dec: int = Field(default=2, gt=0, le=MAX_FRACTION_DECIMALS)

    # Token being sold
    token_decimals: int = Field(default=18, ge=0, le=MAX_FRACTION_DECIMALS)
    token_supply: int = Field(default=1_000, gt=0)  # In display units

    # Paths
    log_dir: Path = Path("logs")

    @model_validator(mode="after")
    def check_owner_fraction(self) -> "DeploymentConfig":
        valid, err = validate_owner_fraction(self.owner_fr, self.owner_fr_dec)
        if not valid:
            raise ValueError(err)
        return self

    @property
    def token_multiplier(self) -> int:
        return 10 ** self.token_decimals

    @property
    def supply_subunits(self) -> int:
        """Supply on sale in the token's smallest unit."""
        return self.token_supply * self.token_multiplier


def _prefixed(values: Dict[str, Optional[str]]) -> Dict[str, str]:
    return {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in values.items()
        if key.startswith(ENV_PREFIX) and value is not None
    }


def load_config(env_file: Optional[str] = None) -> DeploymentConfig:
    """
    Load configuration from the environment.

    Process environment variables override values read from `env_file`.

    Args:
        env_file: Optional path to a .env file

    Returns:
        DeploymentConfig instance

    Raises:
        pydantic.ValidationError: a value is missing its constraints
    """
    values: Dict[str, str] = {}
    if env_file:
        values.update(_prefixed(dotenv_values(env_file)))
    values.update(_prefixed(dict(os.environ)))

    return DeploymentConfig(**values)
