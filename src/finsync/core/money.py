#!/usr/bin/env python3
"""
Money Primitive Type

Immutable currency value wrapper that uses integer cents internally and carries
its ISO currency code. Prevents floating-point errors and refuses to mix
currencies silently.
"""

from dataclasses import dataclass
from decimal import Decimal

from .currency import (
    AmountLike,
    amount_to_cents,
    cents_to_amount_str,
    cents_to_decimal,
    normalize_currency_code,
)


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in cents of a given currency.

    Supports both positive (inflow) and negative (outflow) amounts.
    Uses integer arithmetic throughout to prevent floating-point errors.

    Examples:
        >>> income = Money.from_amount("50.00", "usd")
        >>> str(income)
        'USD 50.00'

        >>> expense = Money.from_cents(-3000, "USD")
        >>> str(income + expense)
        'USD 20.00'

        >>> expense.abs()
        Money(cents=3000, currency='USD')
    """

    cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", normalize_currency_code(self.currency))

    @classmethod
    def from_cents(cls, cents: int, currency: str = "USD") -> "Money":
        """Create Money from cents."""
        return cls(cents=cents, currency=currency)

    @classmethod
    def from_amount(cls, amount: AmountLike, currency: str = "USD") -> "Money":
        """
        Create Money from a remote amount value.

        Args:
            amount: Amount as sent by the remote ("45.99", 45.99, 12)
            currency: ISO currency code

        Returns:
            Money object
        """
        return cls(cents=amount_to_cents(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        """Zero amount in the given currency."""
        return cls(cents=0, currency=currency)

    def to_cents(self) -> int:
        """Get value in cents."""
        return self.cents

    def to_decimal(self) -> Decimal:
        """Get value as a two-place Decimal."""
        return cents_to_decimal(self.cents)

    def abs(self) -> "Money":
        """Return absolute value of Money."""
        return Money(cents=abs(self.cents), currency=self.currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects of the same currency."""
        self._check_currency(other)
        return Money(cents=self.cents + other.cents, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract two Money objects of the same currency."""
        self._check_currency(other)
        return Money(cents=self.cents - other.cents, currency=self.currency)

    def __neg__(self) -> "Money":
        return Money(cents=-self.cents, currency=self.currency)

    def __mul__(self, scalar: int) -> "Money":
        """Multiply Money by integer scalar."""
        return Money(cents=self.cents * scalar, currency=self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.cents < other.cents

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.cents <= other.cents

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.cents > other.cents

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.cents >= other.cents

    def __str__(self) -> str:
        """Format as 'CUR 12.34'."""
        return f"{self.currency} {cents_to_amount_str(self.cents)}"

    def __repr__(self) -> str:
        return f"Money(cents={self.cents}, currency={self.currency!r})"
