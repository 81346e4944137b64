"""
Recommendation Engine

Rule-based advice derived from the user's incomes and expenses.

DESIGN DECISION: ``generate_recommendations`` is a PURE function.
Same inputs (including ``now``) always give the same list, so the rules
are tested without a session, and the service can run it off the event
loop without locking anything.

Rules, in evaluation order:
1. Spending limit     - current-month spend >= 90% of the monthly limit (5)
2. Category alert     - a category > 40% of current-month spend (4)
3. Saving tips        - spend > 80% of income (3); food > 30% of income (3)
4. Budget             - all-time savings rate < 10% (3) or > 30% (2)
5. Trend              - current month vs. the trailing three-month average
                        (4 when > 120%, 2 when < 80%)

Results are sorted by priority, highest first; ties keep rule order.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence

from spendwise.events import EventBus
from spendwise.log import get_logger
from spendwise.models.events import SessionEventBuilder
from spendwise.models.recommendation import Recommendation, RecommendationType
from spendwise.models.records import Currency, Expense, ExpenseCategory, Income
from spendwise.queries.summary import (
    current_month,
    months_before,
    since,
    total,
    totals_by_category,
)
from spendwise.services.currency import CurrencyConverter
from spendwise.services.storage.interface import LocalStoreInterface


logger = get_logger(__name__)

LIMIT_ALERT_RATIO = Decimal("0.9")
CATEGORY_SHARE_RATIO = Decimal("0.4")
SPENDING_INCOME_RATIO = Decimal("0.8")
FOOD_INCOME_RATIO = Decimal("0.3")
LOW_SAVINGS_RATE = Decimal("0.1")
HIGH_SAVINGS_RATE = Decimal("0.3")
TREND_WINDOW_MONTHS = 3
TREND_MIN_EXPENSES = 5
TREND_HIGH_RATIO = Decimal("1.2")
TREND_LOW_RATIO = Decimal("0.8")


def _percent(ratio: Decimal) -> int:
    return int(ratio * 100)


def generate_recommendations(
    incomes: Sequence[Income],
    expenses: Sequence[Expense],
    monthly_limit: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    converter: Optional[CurrencyConverter] = None,
    target_currency: Optional[Currency] = None,
) -> list[Recommendation]:
    """
    Evaluate every rule.

    Args:
        incomes: All incomes of the live partition
        expenses: All expenses of the live partition
        monthly_limit: Spending limit; None or non-positive skips rule 1
        now: Reference time (defaults to the current local time)
        converter: Converts amounts to ``target_currency`` before summing

    Returns:
        Recommendations, highest priority first
    """
    now = now or datetime.now()
    convert = dict(converter=converter, target=target_currency)

    month_incomes = current_month(incomes, now)
    month_expenses = current_month(expenses, now)
    month_income = total(month_incomes, **convert)
    month_spending = total(month_expenses, **convert)

    recommendations: list[Recommendation] = []

    # 1. Spending limit
    if monthly_limit is not None and monthly_limit > 0:
        ratio = month_spending / monthly_limit
        if ratio >= LIMIT_ALERT_RATIO:
            recommendations.append(Recommendation(
                type=RecommendationType.SPENDING_LIMIT,
                title="Spending Limit Alert!",
                description=(
                    f"You have spent {_percent(ratio)}% of your monthly spending "
                    "limit this month. Be careful!"
                ),
                priority=5,
                created_at=now,
                actionable=True,
                action_title="Set Limit",
            ))

    # 2. Category concentration
    if month_spending > 0:
        by_category = totals_by_category(month_expenses, **convert)
        for category, amount in sorted(by_category.items(), key=lambda item: item[1], reverse=True):
            share = amount / month_spending
            if share > CATEGORY_SHARE_RATIO:
                recommendations.append(Recommendation(
                    type=RecommendationType.CATEGORY_ALERT,
                    title=f"{category} High Spending",
                    description=(
                        f"Your spending is {_percent(share)}% of your total spending in the "
                        f"{category} category. You can save in this area."
                    ),
                    priority=4,
                    created_at=now,
                ))

    # 3. Saving tips
    if month_spending > month_income * SPENDING_INCOME_RATIO:
        recommendations.append(Recommendation(
            type=RecommendationType.SAVING_TIP,
            title="Saving Tip",
            description=(
                "More than 80% of your income is being spent. "
                "Consider saving for emergencies."
            ),
            priority=3,
            created_at=now,
        ))

    food = total((e for e in month_expenses if e.category == ExpenseCategory.FOOD), **convert)
    if food > month_income * FOOD_INCOME_RATIO:
        recommendations.append(Recommendation(
            type=RecommendationType.SAVING_TIP,
            title="Food Savings",
            description=(
                "More than 30% of your income is being spent on food. "
                "You can prepare meals and do bulk shopping."
            ),
            priority=3,
            created_at=now,
        ))

    # 4. Budget optimization (all-time)
    all_income = total(incomes, **convert)
    if all_income > 0:
        savings_rate = (all_income - total(expenses, **convert)) / all_income
        if savings_rate < LOW_SAVINGS_RATE:
            recommendations.append(Recommendation(
                type=RecommendationType.BUDGET_OPTIMIZATION,
                title="Budget Optimization",
                description=(
                    f"Your savings rate is {_percent(savings_rate)}%. "
                    "Aim to save at least 20% of your income."
                ),
                priority=3,
                created_at=now,
            ))
        elif savings_rate > HIGH_SAVINGS_RATE:
            recommendations.append(Recommendation(
                type=RecommendationType.BUDGET_OPTIMIZATION,
                title="Perfect Savings!",
                description=f"Your savings rate is {_percent(savings_rate)}%. Great job!",
                priority=2,
                created_at=now,
            ))

    # 5. Trend
    window = since(expenses, months_before(now.date(), TREND_WINDOW_MONTHS))
    if len(window) > TREND_MIN_EXPENSES:
        average = total(window, **convert) / TREND_WINDOW_MONTHS
        if month_spending > average * TREND_HIGH_RATIO:
            recommendations.append(Recommendation(
                type=RecommendationType.TREND_ANALYSIS,
                title="Spending Increase",
                description=(
                    f"You spent {int(month_spending - average * TREND_HIGH_RATIO)} more than "
                    "your average monthly expense this month. Check the trend."
                ),
                priority=4,
                created_at=now,
            ))
        elif month_spending < average * TREND_LOW_RATIO:
            recommendations.append(Recommendation(
                type=RecommendationType.TREND_ANALYSIS,
                title="Spending Decrease",
                description=(
                    f"You spent {int(average * TREND_LOW_RATIO - month_spending)} less than "
                    "your average monthly expense this month. Well done!"
                ),
                priority=2,
                created_at=now,
            ))

    # sorted() is stable, so equal priorities keep rule order
    return sorted(recommendations, key=lambda r: r.priority, reverse=True)


class RecommendationService:
    """
    Runs the engine for the live session and keeps the latest result.

    Recommendations are opt-in: until the user enables them, ``refresh``
    returns an empty list without evaluating anything.
    """

    def __init__(
        self,
        local_store: LocalStoreInterface,
        events: Optional[EventBus] = None,
        converter: Optional[CurrencyConverter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._local = local_store
        self._events = events
        self._converter = converter
        self._clock = clock or datetime.now
        self._latest: list[Recommendation] = []

    @property
    def latest(self) -> list[Recommendation]:
        return list(self._latest)

    @property
    def enabled(self) -> bool:
        return self._local.load_recommendations_enabled()

    def set_enabled(self, enabled: bool) -> None:
        self._local.save_recommendations_enabled(enabled)
        if not enabled:
            self._latest = []

    async def refresh(
        self,
        incomes: Sequence[Income],
        expenses: Sequence[Expense],
    ) -> list[Recommendation]:
        if not self.enabled:
            self._latest = []
            return []

        recommendations = await asyncio.to_thread(
            generate_recommendations,
            list(incomes),
            list(expenses),
            self._local.load_monthly_limit(),
            self._clock(),
            self._converter,
            self._local.load_default_currency() if self._converter is not None else None,
        )

        self._latest = recommendations
        logger.info("recommendations_generated", count=len(recommendations))
        if self._events is not None:
            self._events.emit(SessionEventBuilder.recommendations_updated(len(recommendations)))
        return list(recommendations)
