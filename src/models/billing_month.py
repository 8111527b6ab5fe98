"""Calendar month value used for billing periods.

Billing months are compared as (year, month) pairs rather than datetimes, so
no timezone conversion can move an item into a neighbouring month.
"""

from calendar import monthrange
from datetime import date
from typing import Iterator, NamedTuple

from dateutil.relativedelta import relativedelta


class BillingMonth(NamedTuple):
    """A calendar month (year + month pair)."""

    year: int
    month: int

    @classmethod
    def of(cls, value: date) -> "BillingMonth":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "BillingMonth":
        """Parse ``YYYY-MM`` (a trailing ``-DD`` is accepted and ignored)."""
        parts = value.strip().split("-")
        if len(parts) < 2:
            raise ValueError(f"Invalid billing month: {value!r}")
        year, month = int(parts[0]), int(parts[1])
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid billing month: {value!r}")
        return cls(year, month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, monthrange(self.year, self.month)[1])

    def shift(self, months: int) -> "BillingMonth":
        return BillingMonth.of(self.first_day + relativedelta(months=months))

    def contains(self, value: date) -> bool:
        return (value.year, value.month) == (self.year, self.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def iter_months(start: date, end: date) -> Iterator[BillingMonth]:
    """Yield every billing month from start's month to end's month inclusive."""
    current = BillingMonth.of(start)
    last = BillingMonth.of(end)
    while current <= last:
        yield current
        current = current.shift(1)


def months_between(later: date, earlier: date) -> int:
    """Number of whole months from earlier to later (negative when reversed)."""
    delta = relativedelta(later, earlier)
    return delta.years * 12 + delta.months


__all__ = ["BillingMonth", "iter_months", "months_between"]
