"""Reporting periods.

A period is a (month, year) pair. Months are 1-based everywhere inside the
service (1 = January ... 12 = December). Clients that count months from zero
(JavaScript ``Date.getMonth()``) are translated once, at the request schema,
with ``Period.from_zero_based``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from cellreports.core.errors import InvalidArgumentError

MONTHS_PER_YEAR = 12

# Every period is modeled as exactly four weeks, whatever its calendar length.
WEEKS_PER_PERIOD = 4
VALID_WEEKS = range(1, WEEKS_PER_PERIOD + 1)


@dataclass(frozen=True, order=True)
class Period:
    """A reporting month. Field order makes instances sort chronologically."""

    year: int
    month: int

    @classmethod
    def from_zero_based(cls, month: int, year: int) -> "Period":
        return cls(year=year, month=month + 1)

    @classmethod
    def from_wire(cls, month: int, year: int, month_base: int = 1) -> "Period":
        """Build a period from a request that counts months from ``month_base``."""
        return cls(year=year, month=normalize_month(month, month_base))

    def to_zero_based(self) -> int:
        return self.month - 1

    def previous(self) -> "Period":
        if self.month == 1:
            return Period(year=self.year - 1, month=MONTHS_PER_YEAR)
        return Period(year=self.year, month=self.month - 1)

    def next(self) -> "Period":
        if self.month == MONTHS_PER_YEAR:
            return Period(year=self.year + 1, month=1)
        return Period(year=self.year, month=self.month + 1)

    def validate(self, min_year: int) -> "Period":
        """
        Check the month range and that the year is plausible.

        Raises:
            InvalidArgumentError: month outside 1..12, year before ``min_year``
                or more than one year in the future
        """
        validate_month(self.month)
        max_year = datetime.now(timezone.utc).year + 1
        if not min_year <= self.year <= max_year:
            raise InvalidArgumentError(
                f"Year must be between {min_year} and {max_year}, got {self.year}",
                field="year",
            )
        return self

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def validate_month(month: int) -> int:
    if not 1 <= month <= MONTHS_PER_YEAR:
        raise InvalidArgumentError(
            f"Month must be between 1 and {MONTHS_PER_YEAR}, got {month}",
            field="month",
        )
    return month


def validate_week(week: int) -> int:
    if week not in VALID_WEEKS:
        raise InvalidArgumentError(
            f"Week must be between 1 and {WEEKS_PER_PERIOD}, got {week}",
            field="week",
        )
    return week


def normalize_month(month: int, month_base: int = 1) -> int:
    """Translate a month counted from ``month_base`` (0 or 1) to 1-based."""
    if month_base == 0:
        return month + 1
    if month_base != 1:
        raise InvalidArgumentError(
            f"month_base must be 0 or 1, got {month_base}", field="month_base"
        )
    return month
