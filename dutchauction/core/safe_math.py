"""
Safe Arithmetic - Overflow-checked unsigned integer primitives.

Python integers never wrap, so the checks here enforce the unsigned 256-bit
domain explicitly. Every operand and every result must lie in
[0, MAX_UINT256]; anything else raises ArithmeticOverflow instead of
producing a silently wrong value.

Division truncates toward zero, matching the integer semantics the price
curve and claim settlement depend on.
"""

from dutchauction.core.errors import ArithmeticOverflow
from dutchauction.utils.validation import MAX_UINT256, validate_amount


def _check(value: int, name: str) -> int:
    valid, err = validate_amount(value, name)
    if not valid:
        raise ArithmeticOverflow(err)
    return value


def safe_add(a: int, b: int) -> int:
    """a + b, failing when the sum leaves the domain."""
    _check(a, "a")
    _check(b, "b")
    c = a + b
    if c > MAX_UINT256:
        raise ArithmeticOverflow(f"addition overflow: {a} + {b}")
    return c


def safe_sub(a: int, b: int) -> int:
    """a - b, failing when the subtrahend exceeds the minuend."""
    _check(a, "a")
    _check(b, "b")
    if b > a:
        raise ArithmeticOverflow(f"subtraction underflow: {a} - {b}")
    return a - b


def safe_mul(a: int, b: int) -> int:
    """a * b, failing when the product leaves the domain."""
    _check(a, "a")
    _check(b, "b")
    c = a * b
    if c > MAX_UINT256:
        raise ArithmeticOverflow(f"multiplication overflow: {a} * {b}")
    return c


def safe_div(a: int, b: int) -> int:
    """a // b (truncating), failing on a zero divisor."""
    _check(a, "a")
    _check(b, "b")
    if b == 0:
        raise ArithmeticOverflow(f"division by zero: {a} / 0")
    return a // b


def safe_pow(base: int, exponent: int) -> int:
    """base ** exponent, failing when the power leaves the domain."""
    _check(base, "base")
    _check(exponent, "exponent")
    # Bound the work before materialising the power
    if base > 1 and exponent > 256:
        raise ArithmeticOverflow(f"exponentiation overflow: {base} ** {exponent}")
    c = base ** exponent
    if c > MAX_UINT256:
        raise ArithmeticOverflow(f"exponentiation overflow: {base} ** {exponent}")
    return c


def safe_min(a: int, b: int) -> int:
    return a if a <= b else b


def safe_max(a: int, b: int) -> int:
    return a if a >= b else b


__all__ = [
    "safe_add",
    "safe_sub",
    "safe_mul",
    "safe_div",
    "safe_pow",
    "safe_min",
    "safe_max",
    "MAX_UINT256",
]
