"""
Money and calendar-month helpers.

Amounts stay unrounded Decimals while they are being computed.
round_for_display / format_currency are for presentation only and
must never be written back to storage.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from household_ledger.config import get_settings


CENTS = Decimal("0.01")

MoneyInput = Union[Decimal, int, float, str]
DateLike = Union[date, datetime]


def to_money(value: MoneyInput) -> Decimal:
    """
    Parse a user or storage value into a Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary
    expansion. Raises ValueError for anything non-numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            raise ValueError("Empty monetary amount")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round_for_display(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_currency(value: Decimal, symbol: Optional[str] = None) -> str:
    """Format an amount for display, e.g. 'R$ 1,234.50' or '-R$ 10.00'."""
    if symbol is None:
        symbol = get_settings().app.currency_symbol
    rounded = round_for_display(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol} {abs(rounded):,.2f}"


class CalendarMonth(BaseModel):
    """A calendar year + month, the unit every dashboard is built on."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def from_date(cls, value: DateLike) -> 'CalendarMonth':
        return cls(year=value.year, month=value.month)

    @classmethod
    def current(cls) -> 'CalendarMonth':
        return cls.from_date(date.today())

    def contains(self, value: DateLike) -> bool:
        """True if value falls in this month; the day is irrelevant."""
        return value.year == self.year and value.month == self.month

    def previous(self) -> 'CalendarMonth':
        if self.month == 1:
            return CalendarMonth(year=self.year - 1, month=12)
        return CalendarMonth(year=self.year, month=self.month - 1)

    def next(self) -> 'CalendarMonth':
        if self.month == 12:
            return CalendarMonth(year=self.year + 1, month=1)
        return CalendarMonth(year=self.year, month=self.month + 1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.label


def as_month(reference: Union[CalendarMonth, DateLike]) -> CalendarMonth:
    if isinstance(reference, CalendarMonth):
        return reference
    return CalendarMonth.from_date(reference)


def is_same_month(value: DateLike, reference: Union[CalendarMonth, DateLike]) -> bool:
    return as_month(reference).contains(value)
