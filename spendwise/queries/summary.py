"""
Period Summaries

DESIGN DECISION: Summaries are DETERMINISTIC and pure.
They take the record collections the session controller serves and
never touch storage, so the same numbers back the summary screen and
the recommendation engine.

Dates are compared by calendar day / month only, so naive and
timezone-aware timestamps can be mixed safely.
"""

import calendar
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel

from spendwise.models.records import Currency, FinancialRecord

if TYPE_CHECKING:
    from spendwise.services.currency import CurrencyConverter


class PeriodSummary(BaseModel):
    """Totals for one period."""

    total_income: Decimal = Decimal(0)
    total_expense: Decimal = Decimal(0)
    income_count: int = 0
    expense_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def savings_rate(self) -> Optional[Decimal]:
        """Share of income not spent; None without income."""
        if self.total_income <= 0:
            return None
        return self.net / self.total_income


def in_month(record: FinancialRecord, year: int, month: int) -> bool:
    return record.occurred_at.year == year and record.occurred_at.month == month


def current_month(records: Iterable[FinancialRecord], now: datetime) -> list[FinancialRecord]:
    """Records dated in the same calendar month as ``now``."""
    return [r for r in records if in_month(r, now.year, now.month)]


def months_before(day: date, months: int) -> date:
    """Same day ``months`` calendar months earlier, clamped to the month's length."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def since(records: Iterable[FinancialRecord], start: date) -> list[FinancialRecord]:
    """Records dated on or after ``start``."""
    return [r for r in records if r.occurred_at.date() >= start]


def amount_in(
    record: FinancialRecord,
    converter: Optional["CurrencyConverter"] = None,
    target: Optional[Currency] = None,
) -> Decimal:
    """The record's amount, converted to ``target`` when a converter is given."""
    if converter is None or target is None:
        return record.amount
    return converter.convert(record.amount, record.currency, target)


def total(
    records: Iterable[FinancialRecord],
    converter: Optional["CurrencyConverter"] = None,
    target: Optional[Currency] = None,
) -> Decimal:
    return sum((amount_in(r, converter, target) for r in records), Decimal(0))


def totals_by_category(
    records: Iterable[FinancialRecord],
    converter: Optional["CurrencyConverter"] = None,
    target: Optional[Currency] = None,
) -> dict[str, Decimal]:
    """Sum per category label, in first-seen order."""
    groups: dict[str, Decimal] = {}
    for record in records:
        key = record.category.value
        groups[key] = groups.get(key, Decimal(0)) + amount_in(record, converter, target)
    return groups


def summarize(
    incomes: Iterable[FinancialRecord],
    expenses: Iterable[FinancialRecord],
    converter: Optional["CurrencyConverter"] = None,
    target: Optional[Currency] = None,
) -> PeriodSummary:
    incomes = list(incomes)
    expenses = list(expenses)
    return PeriodSummary(
        total_income=total(incomes, converter, target),
        total_expense=total(expenses, converter, target),
        income_count=len(incomes),
        expense_count=len(expenses),
    )


def summarize_month(
    incomes: Iterable[FinancialRecord],
    expenses: Iterable[FinancialRecord],
    now: datetime,
    converter: Optional["CurrencyConverter"] = None,
    target: Optional[Currency] = None,
) -> PeriodSummary:
    """Totals for the calendar month containing ``now``."""
    return summarize(current_month(incomes, now), current_month(expenses, now), converter, target)
