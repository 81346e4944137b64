from spendwise.queries.summary import (
    PeriodSummary,
    amount_in,
    current_month,
    in_month,
    months_before,
    since,
    summarize,
    summarize_month,
    total,
    totals_by_category,
)

__all__ = [
    "PeriodSummary",
    "amount_in",
    "current_month",
    "in_month",
    "months_before",
    "since",
    "summarize",
    "summarize_month",
    "total",
    "totals_by_category",
]
