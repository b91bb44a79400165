"""
Token unit conversion helpers.

Display amounts are Decimal, on-chain values are int in the token's smallest
unit. Conversions are exact; nothing is rounded silently.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

GWEI = 10 ** 9
#: Priority fee used when no block information is available (1.5 gwei).
DEFAULT_PRIORITY_FEE_PER_GAS = 1_500_000_000


def amount_to_value(*, amount: Union[Decimal, int, str, float], decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. Decimal("1.5")). Accepts Decimal/int/str/float.
        decimals: Token decimals (e.g. 18 for RLY, 6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float artefacts (0.1 -> 0.1000000000000000055...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    scaled = dec_amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: Union[int, str, Decimal], decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable Decimal `amount`.

    Args:
        value: Smallest-unit integer value (e.g. 1230000 for 1.23 USDC).
        decimals: Token decimals.

    Returns:
        Decimal: Human-readable amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    return dec_value.scaleb(-decimals)


def to_int(value: Union[int, str, None], default: int = 0) -> int:
    """Parse an int given as int, decimal string or 0x-hex string."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)
