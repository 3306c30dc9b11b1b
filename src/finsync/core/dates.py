#!/usr/bin/env python3
"""
Date, Month and Timestamp Primitives

Immutable date wrappers with consistent formatting for financial records, plus
the UTC timestamp helpers used by the sync cursors.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso_timestamp(moment: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC timestamp.

    Naive datetimes are assumed to already be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as sent by the remote.

    Accepts a trailing 'Z' and date-only strings. Returns an aware UTC datetime,
    or None when the value is empty or unparseable.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class FinancialDate:
    """Immutable financial date wrapper with consistent formatting."""

    date: date

    @classmethod
    def from_string(cls, date_str: str, format: str = "%Y-%m-%d") -> "FinancialDate":
        """
        Parse from string in specified format.

        Dates with a time component ("2024-08-15T00:00:00") are normalized to
        their date part first.
        """
        if format == "%Y-%m-%d" and "T" in date_str:
            date_str = date_str.split("T")[0]
        return cls(date=datetime.strptime(date_str, format).date())

    @classmethod
    def today(cls) -> "FinancialDate":
        """Get today's date."""
        return cls(date=date.today())

    @property
    def month(self) -> "Month":
        return Month(self.date.year, self.date.month)

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def __str__(self) -> str:
        return self.to_iso_string()

    def __lt__(self, other: "FinancialDate") -> bool:
        return self.date < other.date

    def __le__(self, other: "FinancialDate") -> bool:
        return self.date <= other.date

    def __gt__(self, other: "FinancialDate") -> bool:
        return self.date > other.date

    def __ge__(self, other: "FinancialDate") -> bool:
        return self.date >= other.date


@dataclass(frozen=True, order=True)
class Month:
    """
    Calendar month used by budgets and reports.

    Budget months are stored remotely as the 6th day of the month
    ("2024-05-06") to dodge timezone shifts; only year and month matter.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month out of range: {self.month}")

    @classmethod
    def from_string(cls, value: str) -> "Month":
        """
        Parse "YYYY-MM" or any "YYYY-MM-DD..." string.

        Raises:
            ValueError: If the string does not start with a year and month
        """
        parts = value.strip().split("-")
        if len(parts) < 2:
            raise ValueError(f"Month must be in YYYY-MM format: {value!r}")
        return cls(int(parts[0]), int(parts[1][:2]))

    @classmethod
    def parse_optional(cls, value: str | None) -> "Month | None":
        """Parse a month, returning None for empty or malformed values."""
        if not value:
            return None
        try:
            return cls.from_string(value)
        except ValueError:
            return None

    def contains(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month

    def to_storage_date(self) -> str:
        """Format the way the remote stores budget months (6th of the month)."""
        return f"{self.year:04d}-{self.month:02d}-06"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
