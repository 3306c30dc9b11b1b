#!/usr/bin/env python3
"""
Currency Conversion over Cached Exchange Rates

Rates are directional: a row {from: USD, to: EUR, rate: 0.9} means 1 USD buys
0.9 EUR. A conversion uses the most recent direct rate; failing that, the most
recent rate in the opposite direction, inverted. When neither exists the
conversion is unavailable and callers get None, never zero.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ..core.currency import apply_rate, divide_by_rate, invert_rate, normalize_currency_code
from ..core.models import ExchangeRate
from ..core.money import Money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateQuote:
    """
    Rate used for one conversion.

    ``rate`` is always expressed from_currency -> to_currency. For an inverted
    quote, ``source_rate`` keeps the cached reverse rate so amounts can be
    divided by it exactly instead of multiplied by a rounded reciprocal.
    """

    from_currency: str
    to_currency: str
    rate: Decimal
    inverted: bool = False
    source_rate: Decimal | None = None
    exchange_rate_id: str | None = None
    date: str | None = None

    @property
    def is_identity(self) -> bool:
        return self.from_currency == self.to_currency

    def apply(self, cents: int) -> int:
        """Convert an amount in cents with this quote."""
        if self.is_identity:
            return cents
        if self.inverted and self.source_rate is not None:
            return divide_by_rate(cents, self.source_rate)
        return apply_rate(cents, self.rate)


def _recency(rate: ExchangeRate) -> tuple[str, str]:
    return (rate.date or "", rate.created_at or "")


def _latest(rates: Iterable[ExchangeRate], from_currency: str, to_currency: str) -> ExchangeRate | None:
    candidates = [
        rate
        for rate in rates
        if rate.from_currency == from_currency and rate.to_currency == to_currency and rate.rate > 0
    ]
    if not candidates:
        return None
    return max(candidates, key=_recency)


def find_exchange_rate(rates: Iterable[ExchangeRate], from_currency: str, to_currency: str) -> RateQuote | None:
    """
    Find the rate converting from_currency into to_currency.

    Args:
        rates: Cached exchange rates
        from_currency: Source currency code
        to_currency: Target currency code

    Returns:
        RateQuote (identity when the currencies match), or None when no direct
        or inverse rate is cached
    """
    source = normalize_currency_code(from_currency)
    target = normalize_currency_code(to_currency)
    if source == target:
        return RateQuote(from_currency=source, to_currency=target, rate=Decimal(1))

    rates = list(rates)
    direct = _latest(rates, source, target)
    if direct is not None:
        return RateQuote(
            from_currency=source,
            to_currency=target,
            rate=direct.rate,
            exchange_rate_id=direct.exchange_rate_id,
            date=direct.date,
        )

    reverse = _latest(rates, target, source)
    if reverse is not None:
        return RateQuote(
            from_currency=source,
            to_currency=target,
            rate=invert_rate(reverse.rate),
            inverted=True,
            source_rate=reverse.rate,
            exchange_rate_id=reverse.exchange_rate_id,
            date=reverse.date,
        )

    logger.debug(f"No exchange rate cached for {source} -> {target}")
    return None


def convert_amount(amount: Money, to_currency: str, rates: Iterable[ExchangeRate]) -> Money | None:
    """
    Convert a Money value into another currency.

    Returns:
        Converted Money, or None when the conversion is unavailable

    Example:
        With only USD->EUR 0.9 cached, EUR 100.00 converts to USD 111.11.
    """
    quote = find_exchange_rate(rates, amount.currency, to_currency)
    if quote is None:
        return None
    return Money(cents=quote.apply(amount.cents), currency=quote.to_currency)
