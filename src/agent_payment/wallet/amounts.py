"""Conversion between human-readable amounts and raw on-chain integer units."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from agent_payment.errors import InvalidAmountError

UINT256_MAX = 2**256 - 1
UINT256_DIGITS = len(str(UINT256_MAX))
GWEI = 10**9


def human_to_raw(text: str, decimals: int) -> int:
    """Convert a decimal numeral such as ``"5.25"`` to raw units.

    Extra fractional digits beyond *decimals* are truncated, not rounded:
    ``human_to_raw("5.0000015", 6) == 5_000_001``.

    Raises
    ------
    InvalidAmountError
        If *text* is not a plain unsigned numeral or the result does not fit
        in an unsigned 256-bit integer.
    """
    integer_part, sep, fraction_part = text.partition(".")
    if not integer_part and not fraction_part:
        raise InvalidAmountError(f"'{text}' is not a number")
    if not _is_digits(integer_part):
        raise InvalidAmountError(f"'{text}' has an invalid integer part")
    if not _is_digits(fraction_part):
        raise InvalidAmountError(f"'{text}' has an invalid decimal part")

    fraction_part = fraction_part[:decimals].ljust(decimals, "0")
    digits = (integer_part + fraction_part).lstrip("0") or "0"
    if len(digits) > UINT256_DIGITS:
        raise InvalidAmountError(f"'{text}' overflows a 256-bit amount")

    raw = int(digits)
    if raw > UINT256_MAX:
        raise InvalidAmountError(f"'{text}' overflows a 256-bit amount")
    return raw


def raw_to_human(raw: int | str, decimals: int) -> str:
    """Render raw units as a decimal string without trailing zeros."""
    digits = str(raw)
    if decimals == 0:
        return digits

    padded = digits.rjust(decimals + 1, "0")
    integer_part = padded[:-decimals]
    fraction_part = padded[-decimals:].rstrip("0")
    if not fraction_part:
        return integer_part
    return f"{integer_part}.{fraction_part}"


def gwei_to_wei(gwei: float | str | Decimal) -> int:
    """Convert a Gwei gas price to wei, truncating any sub-wei remainder."""
    try:
        value = Decimal(str(gwei))
    except InvalidOperation as exc:
        raise InvalidAmountError(f"gas price '{gwei}' is not a number") from exc
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(f"gas price '{gwei}' must be a non-negative number")
    return int(value * GWEI)


def _is_digits(part: str) -> bool:
    # str.isdigit() accepts non-ASCII digits such as "²"
    return all("0" <= ch <= "9" for ch in part)
