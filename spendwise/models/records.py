"""
Financial Record Models

Incomes and expenses share one shape: an immutable identifier, a title,
a timestamp, a non-negative amount that is always paired with its
currency, an optional note and an optional photo. Expenses add a
recurrence tag and draw their category from a separate enumeration.

DESIGN DECISION: Records are frozen pydantic models. Edits produce a new
record via ``model_copy(update=...)`` with the same ``id``; collections
handed to consumers can therefore never be mutated in place.

Serialization is JSON via pydantic. Binary photos are base64 encoded,
``Decimal`` amounts are written as strings, and ``note=None`` and
``note=""`` survive a round trip as distinct values.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, ClassVar, Optional, Type, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class Currency(str, Enum):
    """Supported currencies."""
    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"

    @property
    def symbol(self) -> str:
        return _CURRENCY_SYMBOLS[self]

    @property
    def display_name(self) -> str:
        return _CURRENCY_NAMES[self]


_CURRENCY_SYMBOLS = {
    Currency.TRY: "₺",
    Currency.USD: "$",
    Currency.EUR: "€",
    Currency.GBP: "£",
}

_CURRENCY_NAMES = {
    Currency.TRY: "Turkish Lira",
    Currency.USD: "US Dollar",
    Currency.EUR: "Euro",
    Currency.GBP: "British Pound",
}


class IncomeCategory(str, Enum):
    """Income categories."""
    SALARY = "Salary"
    ADDITIONAL_INCOME = "Additional Income"
    GIFT = "Gift"
    OTHER = "Other"


class ExpenseCategory(str, Enum):
    """
    Expense categories.

    Disjoint from IncomeCategory (the shared "Other" label belongs to a
    different enumeration).
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    BILL = "Bill"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    OTHER = "Other"


class ExpenseType(str, Enum):
    """Recurrence of an expense."""
    ONE_TIME = "One Time"
    MONTHLY = "Monthly"


class RecordKind(str, Enum):
    """
    The two record collections.

    The value doubles as the storage slot prefix and the remote
    resource collection name.
    """
    INCOMES = "incomes"
    EXPENSES = "expenses"

    @property
    def record_model(self) -> Type["FinancialRecord"]:
        return Income if self is RecordKind.INCOMES else Expense


# =============================================================================
# RECORDS
# =============================================================================

class FinancialRecord(BaseModel):
    """
    Common shape of incomes and expenses.

    Never instantiated directly; use Income or Expense.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    kind: ClassVar[RecordKind]

    id: UUID = Field(
        default_factory=uuid4,
        description="Assigned at creation, never reassigned"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    occurred_at: datetime = Field(
        ...,
        description="When the income was received or the expense was made"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, description="Non-negative amount in `currency`")
    ]
    currency: Currency = Field(
        default=Currency.TRY,
        description="Currency of `amount`"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    photo: Optional[bytes] = Field(
        default=None,
        description="Optional receipt photo"
    )


class Income(FinancialRecord):
    """An income entry."""

    kind: ClassVar[RecordKind] = RecordKind.INCOMES

    category: IncomeCategory = Field(default=IncomeCategory.OTHER)


class Expense(FinancialRecord):
    """An expense entry."""

    kind: ClassVar[RecordKind] = RecordKind.EXPENSES

    category: ExpenseCategory = Field(default=ExpenseCategory.OTHER)
    recurrence: ExpenseType = Field(default=ExpenseType.ONE_TIME)


AnyRecord = Union[Income, Expense]


# =============================================================================
# REMOTE WRITE QUEUE
# =============================================================================

class WriteOperation(str, Enum):
    """Remote write mirrored from a local mutation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PendingWrite(BaseModel):
    """
    A remote write that the remote store has not confirmed yet.

    Only the record id is queued: create and update are replayed with the
    record's current local state.
    """
    model_config = ConfigDict(frozen=True)

    write_id: UUID = Field(default_factory=uuid4)
    operation: WriteOperation
    kind: RecordKind
    record_id: UUID
