"""
Monthly Aggregator

Turns the raw list of expenses / receivables into the numbers shown on
the monthly dashboard.

Flow:
1. select_for_month -> items whose due_date is in the month
2. totals           -> sum, paid / pending split and counts
3. projected_balance = monthly income + receivables - expenses

Everything here is a pure function of its inputs. Nothing is rounded;
the balance may be negative.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Sequence, TypeVar, Union

from pydantic import BaseModel, Field

from household_ledger.calculations.money import CalendarMonth, as_month
from household_ledger.calculations.split import PersonShare, person_shares
from household_ledger.models.finance import (
    Expense,
    HouseholdSettings,
    ItemStatus,
    LedgerItem,
    Receivable,
)


T = TypeVar("T", bound=LedgerItem)


class Totals(BaseModel):
    """Aggregate of a list of items."""

    sum: Decimal = Decimal("0")
    paid_sum: Decimal = Decimal("0")
    pending_sum: Decimal = Decimal("0")
    paid_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)

    @property
    def pending_count(self) -> int:
        return self.total_count - self.paid_count


class MonthlySummary(BaseModel):
    """Everything the dashboard needs for one month."""

    month: CalendarMonth
    monthly_income: Decimal
    expenses: Totals
    receivables: Totals
    projected_balance: Decimal
    pending_expenses: list[Expense] = Field(default_factory=list)
    pending_receivables: list[Receivable] = Field(default_factory=list)
    expense_shares: list[PersonShare] = Field(default_factory=list)

    @property
    def is_negative(self) -> bool:
        return self.projected_balance < 0


def select_for_month(
    items: Iterable[T],
    month: Union[CalendarMonth, date, datetime],
) -> list[T]:
    """
    Items whose due_date falls in month (same year and month).

    Stable: items keep the order of the source collection.
    """
    target = as_month(month)
    return [item for item in items if target.contains(item.due_date)]


def totals(items: Iterable[LedgerItem]) -> Totals:
    """Sum over all items regardless of status; counts split by status == paid."""
    result = Totals()
    for item in items:
        result.sum += item.amount
        result.total_count += 1
        if item.status == ItemStatus.PAID:
            result.paid_sum += item.amount
            result.paid_count += 1
        else:
            result.pending_sum += item.amount
    return result


def projected_balance(
    monthly_income: Decimal,
    receivables_total: Decimal,
    expenses_total: Decimal,
) -> Decimal:
    """monthly_income + receivables_total - expenses_total. No floor or cap."""
    return monthly_income + receivables_total - expenses_total


def pending(items: Iterable[T]) -> list[T]:
    return [item for item in items if item.status == ItemStatus.PENDING]


def essential_only(expenses: Iterable[Expense]) -> list[Expense]:
    return [expense for expense in expenses if expense.is_essential]


def summarize_month(
    expenses: Sequence[Expense],
    receivables: Sequence[Receivable],
    settings: HouseholdSettings,
    month: Union[CalendarMonth, date, datetime],
) -> MonthlySummary:
    """Build the dashboard for one month from the full item lists."""
    target = as_month(month)
    month_expenses = select_for_month(expenses, target)
    month_receivables = select_for_month(receivables, target)

    expense_totals = totals(month_expenses)
    receivable_totals = totals(month_receivables)

    return MonthlySummary(
        month=target,
        monthly_income=settings.monthly_income,
        expenses=expense_totals,
        receivables=receivable_totals,
        projected_balance=projected_balance(
            settings.monthly_income,
            receivable_totals.sum,
            expense_totals.sum,
        ),
        pending_expenses=pending(month_expenses),
        pending_receivables=pending(month_receivables),
        expense_shares=person_shares(month_expenses, settings.people),
    )
