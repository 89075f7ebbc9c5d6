"""Shared test helpers: item factories and a default household."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.models.finance import (
    Expense,
    ExpenseKind,
    HouseholdSettings,
    Receivable,
)


def build_expense(**overrides) -> Expense:
    fields = dict(
        description="Aluguel",
        amount=Decimal("1200.00"),
        kind=ExpenseKind.FIXED,
        category="Aluguel",
        due_date=date(2024, 3, 10),
        split_between=["1", "2"],
    )
    fields.update(overrides)
    return Expense(**fields)


def build_receivable(**overrides) -> Receivable:
    fields = dict(
        description="Freelance",
        amount=Decimal("500.00"),
        category="Salário",
        due_date=date(2024, 3, 20),
        split_between=["1"],
    )
    fields.update(overrides)
    return Receivable(**fields)


@pytest.fixture
def make_expense():
    return build_expense


@pytest.fixture
def make_receivable():
    return build_receivable


@pytest.fixture
def household() -> HouseholdSettings:
    return HouseholdSettings.defaults()
