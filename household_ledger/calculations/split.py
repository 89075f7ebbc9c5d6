"""
Split Calculator

Divides an amount equally between the people listed on an item.

DESIGN DECISION: Shares are NOT rounded. 100.00 / 3 stays
33.333..., so summing shares over many items does not drift.
Round with round_for_display() only when showing a number.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from pydantic import BaseModel

from household_ledger.models.finance import LedgerItem, Person


class InvalidSplitError(ValueError):
    """A split was requested between zero (or fewer) participants."""
    pass


class PersonShare(BaseModel):
    """Total share of one participant over a set of items."""

    person_id: str
    name: str
    amount: Decimal
    item_count: int
    is_known: bool = True


def share_amount(total: Decimal, participant_count: int) -> Decimal:
    """
    Per-participant share of total.

    Raises InvalidSplitError when participant_count is not positive.
    Items are validated at creation time, so this only trips on
    corrupted data or direct calls.
    """
    if participant_count <= 0:
        raise InvalidSplitError(
            f"Cannot split between {participant_count} participants"
        )
    return total / Decimal(participant_count)


def item_share(item: LedgerItem) -> Decimal:
    """Share of an expense/receivable per person in its split_between."""
    return share_amount(item.amount, len(item.split_between))


def participant_names(item: LedgerItem, people: Sequence[Person]) -> list[str]:
    """Names for the people on an item; removed people show as 'Unknown (<id>)'."""
    names = {person.id: person.name for person in people}
    return [names.get(pid, f"Unknown ({pid})") for pid in item.split_between]


def person_shares(
    items: Iterable[LedgerItem],
    people: Sequence[Person],
) -> list[PersonShare]:
    """
    Sum each participant's share over items.

    Known people come first, in settings order (including people with
    nothing to pay). Ids that no longer match a person are kept,
    labelled with the id, in the order they were first seen.
    """
    amounts: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    orphans: list[str] = []
    known = {person.id for person in people}

    for item in items:
        share = item_share(item)
        for pid in item.split_between:
            if pid not in amounts:
                amounts[pid] = Decimal("0")
                counts[pid] = 0
                if pid not in known:
                    orphans.append(pid)
            amounts[pid] += share
            counts[pid] += 1

    result = [
        PersonShare(
            person_id=person.id,
            name=person.name,
            amount=amounts.get(person.id, Decimal("0")),
            item_count=counts.get(person.id, 0),
        )
        for person in people
    ]
    for pid in orphans:
        result.append(PersonShare(
            person_id=pid,
            name=pid,
            amount=amounts[pid],
            item_count=counts[pid],
            is_known=False,
        ))
    return result
