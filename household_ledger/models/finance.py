"""
Core Data Models for Household Ledger

These models define the strict schemas for everything the ledger stores:
people, categories, expenses, receivables and the household settings.
They are designed to:
1. Enforce currency precision and required fields at runtime
2. Be serializable for storage (JSON snapshot, spreadsheet rows)
3. Keep partial updates typed (one Patch model per entity)

DESIGN DECISION: Amounts are Decimal with two decimal places.
Floats never enter the ledger; split shares are computed on Decimal
and only rounded when displayed.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def new_id() -> str:
    """Generate a unique entity id."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


Money = Annotated[Decimal, Field(gt=0, decimal_places=2)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseKind(str, Enum):
    """How an expense recurs."""
    FIXED = "fixed"
    VARIABLE = "variable"
    INSTALLMENT = "installment"


class ItemStatus(str, Enum):
    """
    Payment status shared by expenses and receivables.

    The only transition exposed by an action is PENDING -> PAID.
    A generic update may set anything.
    """
    PENDING = "pending"
    PAID = "paid"


class CategoryKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


# =============================================================================
# PEOPLE & CATEGORIES
# =============================================================================

class Person(BaseModel):
    """Someone an amount can be split with."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)


class Category(BaseModel):
    """
    Expense or income category.

    Names are not required to be unique; only the id is.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    kind: CategoryKind


# =============================================================================
# LEDGER ITEMS
# =============================================================================

class InstallmentInfo(BaseModel):
    """Position of an installment expense within its plan (e.g. 3 of 10)."""

    current: int = Field(..., ge=1)
    total: int = Field(..., ge=1)

    @model_validator(mode='after')
    def validate_position(self) -> 'InstallmentInfo':
        if self.current > self.total:
            raise ValueError("Current installment cannot exceed total installments")
        return self

    @property
    def label(self) -> str:
        return f"{self.current}/{self.total}"


class LedgerItem(BaseModel):
    """
    Fields shared by expenses and receivables.

    split_between lists Person ids. It may contain ids of people that
    were removed later; readers must tolerate them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id, min_length=1)
    description: str = Field(..., min_length=1, max_length=200)
    amount: Money
    category: str = Field(..., min_length=1)
    due_date: date
    status: ItemStatus = ItemStatus.PENDING
    split_between: list[str] = Field(..., min_length=1)

    @property
    def is_paid(self) -> bool:
        return self.status == ItemStatus.PAID


class Expense(LedgerItem):
    """An amount the household has to pay."""

    kind: ExpenseKind
    is_essential: bool = False
    paid_date: Optional[datetime] = None
    paid_by: Optional[str] = None
    installments: Optional[InstallmentInfo] = None

    @model_validator(mode='after')
    def validate_installments(self) -> 'Expense':
        """installments must be present exactly when kind is INSTALLMENT."""
        if self.kind == ExpenseKind.INSTALLMENT and self.installments is None:
            raise ValueError("Installment expenses require installment details")
        if self.kind != ExpenseKind.INSTALLMENT and self.installments is not None:
            raise ValueError("Only installment expenses can have installment details")
        return self


class Receivable(LedgerItem):
    """An amount the household expects to receive."""

    received_date: Optional[datetime] = None
    received_by: Optional[str] = None


# =============================================================================
# SETTINGS
# =============================================================================

class HouseholdSettings(BaseModel):
    """
    Per-owner settings.

    people / *_categories are cached copies of the Person and Category
    lists; they are written separately and may drift after a partial
    failure.
    """

    monthly_income: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    people: list[Person] = Field(default_factory=list)
    expense_categories: list[Category] = Field(default_factory=list)
    income_categories: list[Category] = Field(default_factory=list)

    @classmethod
    def defaults(cls) -> 'HouseholdSettings':
        categories = default_categories()
        return cls(
            monthly_income=Decimal("0"),
            people=default_people(),
            expense_categories=[c for c in categories if c.kind == CategoryKind.EXPENSE],
            income_categories=[c for c in categories if c.kind == CategoryKind.INCOME],
        )

    @property
    def person_ids(self) -> list[str]:
        return [person.id for person in self.people]

    def find_person(self, person_id: str) -> Optional[Person]:
        for person in self.people:
            if person.id == person_id:
                return person
        return None

    def categories_for(self, kind: CategoryKind) -> list[Category]:
        if kind == CategoryKind.EXPENSE:
            return self.expense_categories
        return self.income_categories


def default_people() -> list[Person]:
    """People every new household starts with."""
    return [
        Person(id="1", name="Pessoa 1"),
        Person(id="2", name="Pessoa 2"),
    ]


def default_categories() -> list[Category]:
    """Categories every new household starts with."""
    return [
        Category(id="1", name="Aluguel", kind=CategoryKind.EXPENSE),
        Category(id="2", name="Energia", kind=CategoryKind.EXPENSE),
        Category(id="3", name="Água", kind=CategoryKind.EXPENSE),
        Category(id="4", name="Internet", kind=CategoryKind.EXPENSE),
        Category(id="5", name="Supermercado", kind=CategoryKind.EXPENSE),
        Category(id="6", name="Salário", kind=CategoryKind.INCOME),
    ]


# =============================================================================
# PATCHES - typed partial updates
# =============================================================================

class Patch(BaseModel):
    """
    Base for partial updates.

    Only fields that were explicitly set are applied, so passing
    paid_date=None clears the field while omitting it leaves it alone.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    def changes(self) -> dict:
        # Top-level fields only: nested models (people, categories) are
        # dumped whole so their generated ids survive.
        dumped = self.model_dump()
        return {name: dumped[name] for name in self.model_fields_set}

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set


class ExpensePatch(Patch):
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Money] = None
    kind: Optional[ExpenseKind] = None
    category: Optional[str] = Field(default=None, min_length=1)
    is_essential: Optional[bool] = None
    due_date: Optional[date] = None
    status: Optional[ItemStatus] = None
    paid_date: Optional[datetime] = None
    paid_by: Optional[str] = None
    split_between: Optional[list[str]] = Field(default=None, min_length=1)
    installments: Optional[InstallmentInfo] = None

    @classmethod
    def mark_paid(cls, paid_by: Optional[str] = None) -> 'ExpensePatch':
        """PENDING -> PAID, stamped with the current time."""
        fields = {"status": ItemStatus.PAID, "paid_date": utc_now()}
        if paid_by is not None:
            fields["paid_by"] = paid_by
        return cls(**fields)


class ReceivablePatch(Patch):
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Money] = None
    category: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[date] = None
    status: Optional[ItemStatus] = None
    received_date: Optional[datetime] = None
    received_by: Optional[str] = None
    split_between: Optional[list[str]] = Field(default=None, min_length=1)

    @classmethod
    def mark_received(cls, received_by: Optional[str] = None) -> 'ReceivablePatch':
        """PENDING -> PAID (received), stamped with the current time."""
        fields = {"status": ItemStatus.PAID, "received_date": utc_now()}
        if received_by is not None:
            fields["received_by"] = received_by
        return cls(**fields)


class PersonPatch(Patch):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class CategoryPatch(Patch):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    kind: Optional[CategoryKind] = None


class SettingsPatch(Patch):
    monthly_income: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    people: Optional[list[Person]] = None
    expense_categories: Optional[list[Category]] = None
    income_categories: Optional[list[Category]] = None


def apply_patch(entity: BaseModel, patch: Patch) -> BaseModel:
    """
    Return a re-validated copy of entity with the patch applied.

    Raises pydantic.ValidationError if the merged entity breaks a
    model invariant.
    """
    merged = entity.model_dump()
    merged.update(patch.changes())
    return type(entity).model_validate(merged)
