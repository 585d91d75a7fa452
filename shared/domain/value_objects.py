"""
Common Value Objects

Value objects used across multiple domains:
- Money: Integer amount in minor currency units with a currency code
- DateRange: Half-open range of nights (check-in inclusive, check-out exclusive)
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator, Optional

from shared.domain.base import ValueObject
from shared.domain.exceptions import InvalidDateRange, ValidationFailed

DEFAULT_CURRENCY = 'UZS'
SUPPORTED_CURRENCIES = ('UZS', 'USD', 'EUR', 'RUB', 'KZT')


def round_half_up(value: Decimal) -> int:
    """Round a decimal to the nearest integer, halves away from zero"""
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def apply_discount(amount: int, percent: int) -> int:
    """
    Reduce an integer amount by ``percent`` and round half-up.

    >>> apply_discount(100_000, 15)
    85000
    >>> apply_discount(99_999, 50)
    50000
    """
    if not 0 <= percent <= 100:
        raise ValidationFailed("Discount percent must be between 0 and 100", discount_percent=percent)
    return round_half_up(Decimal(amount) * (Decimal(100) - Decimal(percent)) / Decimal(100))


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Amounts are integers in the smallest currency unit. Negative values
    are allowed because refunds are recorded as negative payments.
    """
    amount: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationFailed("Money amount must be an integer of minor units", amount=self.amount)
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValidationFailed(f"Unsupported currency: {self.currency}", currency=self.currency)

    def __add__(self, other: 'Money') -> 'Money':
        self._check_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_same_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def is_negative(self) -> bool:
        return self.amount < 0

    def _check_same_currency(self, other: 'Money'):
        if not isinstance(other, Money):
            raise TypeError("Can only combine Money with Money")
        if self.currency != other.currency:
            raise ValidationFailed(
                f"Cannot combine different currencies: {self.currency} and {other.currency}"
            )

    def __str__(self):
        return f"{self.amount:,} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Date range value object

    Represents a range from start_date (inclusive) to end_date (exclusive),
    so a booking ending on a day and another starting that day do not
    overlap.
    """
    start_date: date
    end_date: date

    def __post_init__(self):
        if not isinstance(self.start_date, date) or not isinstance(self.end_date, date):
            raise InvalidDateRange(self.start_date, self.end_date, "Both dates are required")
        if self.start_date >= self.end_date:
            raise InvalidDateRange(self.start_date, self.end_date)

    def overlaps_with(self, other: 'DateRange') -> bool:
        """
        Check if this range overlaps with another

        Examples:
            - DateRange(25, 28) overlaps with DateRange(27, 30) -> True
            - DateRange(25, 28) overlaps with DateRange(28, 31) -> False (adjacent)
        """
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.start_date < other.end_date and self.end_date > other.start_date

    def intersection(self, other: 'DateRange') -> Optional['DateRange']:
        if not self.overlaps_with(other):
            return None
        return DateRange(max(self.start_date, other.start_date), min(self.end_date, other.end_date))

    def contains(self, check_date: date) -> bool:
        """start_date is inclusive, end_date is exclusive"""
        return self.start_date <= check_date < self.end_date

    def nights(self) -> Iterator[date]:
        """Yield every night of the stay, check-in through the day before check-out"""
        current = self.start_date
        while current < self.end_date:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        """Number of nights"""
        return (self.end_date - self.start_date).days

    def __str__(self):
        return f"{self.start_date.isoformat()} - {self.end_date.isoformat()}"

    def __repr__(self):
        return f"DateRange({self.start_date}, {self.end_date})"
