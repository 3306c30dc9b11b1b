#!/usr/bin/env python3
"""
Currency Conversion and Handling Utilities

All financial calculations use integer arithmetic to avoid floating-point errors.

Currency Systems:
- The remote system of record stores amounts as NUMERIC(15, 2) values, which
  arrive as JSON numbers or strings ("45.99", 45.99)
- Internal calculations use minor units (cents): 100 cents = 1.00
- Exchange rates are NUMERIC(15, 6) and are applied with Decimal arithmetic,
  rounding half-up back to cents

Key Principles:
- Never use floating-point arithmetic for currency calculations
- Parse remote amounts through Decimal, never through float multiplication
- Round exactly once, at the end of a conversion
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

AmountLike = Union[str, int, float, Decimal, None]

CENTS_PER_UNIT = 100
RATE_PRECISION = Decimal("0.000001")


def normalize_currency_code(code: str | None) -> str:
    """
    Normalize an ISO-4217 currency code.

    Args:
        code: Currency code in any case, possibly padded

    Returns:
        Upper-cased, stripped code ("" for None)
    """
    if not code:
        return ""
    return code.strip().upper()


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a remote amount to Decimal without going through binary floats.

    Args:
        value: Amount as str, int, float, Decimal or None

    Returns:
        Decimal value (0 for None or unparseable input)
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    try:
        # str() of a float gives the shortest repr, which is what the server sent
        return Decimal(str(value).replace(",", "").strip() or "0")
    except (InvalidOperation, ValueError):
        return Decimal(0)


def amount_to_cents(value: AmountLike) -> int:
    """
    Convert a remote amount to integer cents.

    Args:
        value: Amount like "45.99", 45.99, 12 or Decimal("1.005")

    Returns:
        Amount in cents, rounded half-up

    Examples:
        amount_to_cents("45.99") -> 4599
        amount_to_cents(12) -> 1200
        amount_to_cents(None) -> 0
    """
    quantized = (to_decimal(value) * CENTS_PER_UNIT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(quantized)


def cents_to_amount_str(cents: int) -> str:
    """
    Convert cents to a plain decimal string using pure integer arithmetic.

    Args:
        cents: Amount in cents

    Returns:
        Formatted amount string

    Example:
        cents_to_amount_str(4599) -> "45.99"
        cents_to_amount_str(-5) -> "-0.05"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))

    units = abs_cents // CENTS_PER_UNIT
    remainder = abs_cents % CENTS_PER_UNIT

    if is_negative:
        return f"-{units}.{remainder:02d}"
    return f"{units}.{remainder:02d}"


def cents_to_decimal(cents: int) -> Decimal:
    """Convert cents to a Decimal amount with two places."""
    return Decimal(cents) / CENTS_PER_UNIT


def apply_rate(cents: int, rate: AmountLike) -> int:
    """
    Multiply an amount in cents by an exchange rate.

    Args:
        cents: Amount in cents
        rate: Exchange rate (units of target currency per unit of source)

    Returns:
        Converted amount in cents, rounded half-up
    """
    converted = Decimal(cents) * to_decimal(rate)
    return int(converted.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def divide_by_rate(cents: int, rate: AmountLike) -> int:
    """
    Divide an amount in cents by an exchange rate (inverse conversion).

    Dividing directly instead of multiplying by a rounded reciprocal keeps
    100 / 0.9 at 111.11 rather than drifting with the reciprocal's precision.

    Args:
        cents: Amount in cents
        rate: Exchange rate of the reverse direction

    Returns:
        Converted amount in cents, rounded half-up

    Raises:
        ZeroDivisionError: If the rate is zero
    """
    divisor = to_decimal(rate)
    if divisor == 0:
        raise ZeroDivisionError("Exchange rate must be non-zero")
    converted = Decimal(cents) / divisor
    return int(converted.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def invert_rate(rate: AmountLike) -> Decimal:
    """
    Invert an exchange rate, keeping the remote's six decimal places.

    Args:
        rate: Exchange rate to invert

    Returns:
        1 / rate quantized to 6 places

    Raises:
        ZeroDivisionError: If the rate is zero
    """
    value = to_decimal(rate)
    if value == 0:
        raise ZeroDivisionError("Exchange rate must be non-zero")
    return (Decimal(1) / value).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)


def format_cents(cents: int, currency: str = "") -> str:
    """Format cents as an amount string with an optional currency code prefix."""
    amount = cents_to_amount_str(cents)
    if currency:
        return f"{normalize_currency_code(currency)} {amount}"
    return amount
