"""Monthly aggregation and split calculation."""

from household_ledger.calculations.aggregator import (
    MonthlySummary,
    Totals,
    essential_only,
    pending,
    projected_balance,
    select_for_month,
    summarize_month,
    totals,
)
from household_ledger.calculations.money import (
    CalendarMonth,
    format_currency,
    is_same_month,
    round_for_display,
    to_money,
)
from household_ledger.calculations.split import (
    InvalidSplitError,
    PersonShare,
    item_share,
    participant_names,
    person_shares,
    share_amount,
)

__all__ = [
    "CalendarMonth",
    "InvalidSplitError",
    "MonthlySummary",
    "PersonShare",
    "Totals",
    "essential_only",
    "format_currency",
    "is_same_month",
    "item_share",
    "participant_names",
    "pending",
    "person_shares",
    "projected_balance",
    "round_for_display",
    "select_for_month",
    "share_amount",
    "summarize_month",
    "to_money",
    "totals",
]
