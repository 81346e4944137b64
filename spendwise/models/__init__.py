"""
Data Models Package

This package contains all Pydantic models used in SpendWise.
All data flowing through the system must conform to these schemas.
"""

from spendwise.models.records import (
    AnyRecord,
    Currency,
    Expense,
    ExpenseCategory,
    ExpenseType,
    FinancialRecord,
    Income,
    IncomeCategory,
    PendingWrite,
    RecordKind,
    WriteOperation,
)
from spendwise.models.user import (
    GUEST_STORAGE_KEY,
    GuestSessionMarker,
    StorageKey,
    User,
    derive_storage_key,
)
from spendwise.models.preferences import (
    AppTheme,
    Preference,
    SecurityMode,
)
from spendwise.models.recommendation import (
    Recommendation,
    RecommendationType,
)
from spendwise.models.events import (
    EventSeverity,
    SessionEvent,
    SessionEventBuilder,
    SessionEventType,
)

__all__ = [
    # Record models
    "AnyRecord",
    "Currency",
    "Expense",
    "ExpenseCategory",
    "ExpenseType",
    "FinancialRecord",
    "Income",
    "IncomeCategory",
    "PendingWrite",
    "RecordKind",
    "WriteOperation",
    # Identity models
    "GUEST_STORAGE_KEY",
    "GuestSessionMarker",
    "StorageKey",
    "User",
    "derive_storage_key",
    # Preferences
    "AppTheme",
    "Preference",
    "SecurityMode",
    # Recommendations
    "Recommendation",
    "RecommendationType",
    # Events
    "EventSeverity",
    "SessionEvent",
    "SessionEventBuilder",
    "SessionEventType",
]
