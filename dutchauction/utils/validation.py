"""
Input Validation - Security-focused input sanitization.

Provides validation for all external inputs to prevent:
- Integer overflows (values outside the unsigned 256-bit domain)
- Invalid identities (wrong length, null address)
- Invalid auction parameters

Validators return (is_valid, error_message); the engine turns failures
into typed exceptions at its boundary.
"""

from typing import Any, Optional, Tuple

from dutchauction.crypto import ADDRESS_SIZE, ZERO_ADDRESS

# =============================================================================
# Constants
# =============================================================================

MIN_AMOUNT = 0
MAX_UINT256 = 2**256 - 1

# 10**77 is the largest power of ten below 2**256
MAX_FRACTION_DECIMALS = 77


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte address. The zero address is rejected."""
    valid, err = validate_bytes(address, name, expected_length=ADDRESS_SIZE)
    if not valid:
        return False, err
    if bytes(address) == ZERO_ADDRESS:
        return False, f"{name} is the zero address"
    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_UINT256,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; never a valid amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a monetary or token amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_UINT256)


def validate_owner_fraction(owner_fr: Any, owner_fr_dec: Any) -> Tuple[bool, str]:
    """
    Validate the owner fraction pair.

    The fraction is owner_fr / 10**owner_fr_dec; both must be nonzero and
    owner_fr may not have more decimal digits than owner_fr_dec, which keeps
    the fraction strictly below one.
    """
    valid, err = validate_integer(owner_fr, "owner_fr", 1)
    if not valid:
        return False, err

    valid, err = validate_integer(owner_fr_dec, "owner_fr_dec", 1, MAX_FRACTION_DECIMALS)
    if not valid:
        return False, err

    if len(str(owner_fr)) > owner_fr_dec:
        return False, f"owner_fr {owner_fr} has more than {owner_fr_dec} digits"

    return True, ""


def validate_price_params(price_factor: Any, price_const: Any) -> Tuple[bool, str]:
    """Validate the price curve parameters (both strictly positive)."""
    valid, err = validate_integer(price_factor, "price_factor", 1)
    if not valid:
        return False, err
    return validate_integer(price_const, "price_const", 1)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_address",
    "validate_integer",
    "validate_amount",
    "validate_owner_fraction",
    "validate_price_params",
    "MIN_AMOUNT",
    "MAX_UINT256",
    "MAX_FRACTION_DECIMALS",
]
