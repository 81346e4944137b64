"""Tests for the recommendation engine, summaries and service."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import NOW, make_expense, make_income
from spendwise.config import CurrencySettings
from spendwise.models import Currency, ExpenseCategory, RecommendationType
from spendwise.queries import months_before, summarize_month, totals_by_category
from spendwise.recommendations import RecommendationService, generate_recommendations
from spendwise.services.currency import CurrencyConverter


def at(month: int, day: int) -> datetime:
    return datetime(2024, month, day, 10, 0, tzinfo=timezone.utc)


def types_of(recommendations) -> list[RecommendationType]:
    return [r.type for r in recommendations]


class TestRules:
    """Tests for individual rules."""

    def test_reference_scenario_order(self):
        """Test that limit, category and savings alerts come out in priority order."""
        incomes = [make_income("2000")]
        expenses = [make_expense("1900", category=ExpenseCategory.FOOD)]

        result = generate_recommendations(incomes, expenses, monthly_limit=Decimal("1000"), now=NOW)

        assert types_of(result)[:3] == [
            RecommendationType.SPENDING_LIMIT,
            RecommendationType.CATEGORY_ALERT,
            RecommendationType.SAVING_TIP,
        ]
        assert result[0].priority == 5
        assert result[0].actionable
        assert "190%" in result[0].description
        assert result[1].title == "Food High Spending"

    def test_no_data_no_recommendations(self):
        assert generate_recommendations([], [], now=NOW) == []

    def test_limit_below_threshold(self):
        expenses = [make_expense("800", category=ExpenseCategory.BILL)]
        result = generate_recommendations([make_income("5000")], expenses, monthly_limit=Decimal("1000"), now=NOW)
        assert RecommendationType.SPENDING_LIMIT not in types_of(result)

    def test_limit_only_counts_current_month(self):
        expenses = [make_expense("5000", occurred_at=at(5, 1))]
        result = generate_recommendations([], expenses, monthly_limit=Decimal("1000"), now=NOW)
        assert RecommendationType.SPENDING_LIMIT not in types_of(result)

    def test_category_share_threshold(self):
        """Test that only categories above 40% are flagged."""
        expenses = [
            make_expense("45", category=ExpenseCategory.FOOD),
            make_expense("35", category=ExpenseCategory.BILL),
            make_expense("20", category=ExpenseCategory.HEALTH),
        ]
        result = generate_recommendations([make_income("10000")], expenses, now=NOW)
        alerts = [r for r in result if r.type == RecommendationType.CATEGORY_ALERT]
        assert [a.title for a in alerts] == ["Food High Spending"]

    def test_food_savings_tip(self):
        incomes = [make_income("1000")]
        expenses = [make_expense("350", category=ExpenseCategory.FOOD)]
        result = generate_recommendations(incomes, expenses, now=NOW)
        assert "Food Savings" in [r.title for r in result]

    def test_low_savings_rate(self):
        result = generate_recommendations(
            [make_income("1000")],
            [make_expense("950", category=ExpenseCategory.BILL)],
            now=NOW,
        )
        budget = [r for r in result if r.type == RecommendationType.BUDGET_OPTIMIZATION]
        assert budget[0].priority == 3
        assert "5%" in budget[0].description

    def test_high_savings_rate(self):
        result = generate_recommendations(
            [make_income("1000")],
            [make_expense("100", category=ExpenseCategory.BILL)],
            now=NOW,
        )
        budget = [r for r in result if r.type == RecommendationType.BUDGET_OPTIMIZATION]
        assert budget[0].title == "Perfect Savings!"
        assert budget[0].priority == 2

    def test_budget_skipped_without_income(self):
        result = generate_recommendations([], [make_expense("100")], now=NOW)
        assert RecommendationType.BUDGET_OPTIMIZATION not in types_of(result)


class TestTrendRule:
    """Tests for the three-month trend rule."""

    def history(self, amount: str) -> list:
        return [
            make_expense(amount, category=ExpenseCategory.TRANSPORTATION, occurred_at=day)
            for day in (at(4, 1), at(4, 10), at(5, 1), at(5, 10), at(5, 20))
        ]

    def test_spending_increase(self):
        expenses = self.history("100") + [
            make_expense("500", category=ExpenseCategory.TRANSPORTATION, occurred_at=NOW)
        ]
        trend = [r for r in generate_recommendations([], expenses, now=NOW)
                 if r.type == RecommendationType.TREND_ANALYSIS]
        assert trend[0].title == "Spending Increase"
        assert trend[0].priority == 4

    def test_spending_decrease(self):
        expenses = self.history("300") + [
            make_expense("100", category=ExpenseCategory.TRANSPORTATION, occurred_at=NOW)
        ]
        trend = [r for r in generate_recommendations([], expenses, now=NOW)
                 if r.type == RecommendationType.TREND_ANALYSIS]
        assert trend[0].title == "Spending Decrease"
        assert trend[0].priority == 2

    def test_requires_more_than_five_expenses(self):
        expenses = self.history("100")
        result = generate_recommendations([], expenses, now=NOW)
        assert RecommendationType.TREND_ANALYSIS not in types_of(result)

    def test_window_excludes_older_expenses(self):
        expenses = self.history("100") + [
            make_expense("100", category=ExpenseCategory.TRANSPORTATION, occurred_at=at(3, 1))
        ]
        result = generate_recommendations([], expenses, now=NOW)
        assert RecommendationType.TREND_ANALYSIS not in types_of(result)

    def test_sorted_by_priority(self):
        expenses = self.history("100") + [
            make_expense("500", category=ExpenseCategory.TRANSPORTATION, occurred_at=NOW)
        ]
        priorities = [r.priority for r in generate_recommendations([], expenses, now=NOW)]
        assert priorities == sorted(priorities, reverse=True)


class TestSummaries:
    """Tests for summary helpers."""

    def test_months_before_clamps_day(self):
        assert months_before(datetime(2024, 5, 31).date(), 3).isoformat() == "2024-02-29"
        assert months_before(datetime(2024, 1, 15).date(), 3).isoformat() == "2023-10-15"

    def test_summarize_month(self):
        summary = summarize_month(
            [make_income("1000"), make_income("500", occurred_at=at(5, 1))],
            [make_expense("250")],
            NOW,
        )
        assert summary.total_income == Decimal("1000")
        assert summary.total_expense == Decimal("250")
        assert summary.net == Decimal("750")
        assert summary.savings_rate == Decimal("0.75")
        assert summary.income_count == 1

    def test_totals_by_category(self):
        totals = totals_by_category([
            make_expense("10", category=ExpenseCategory.FOOD),
            make_expense("5", category=ExpenseCategory.FOOD),
            make_expense("7", category=ExpenseCategory.BILL),
        ])
        assert totals == {"Food": Decimal("15"), "Bill": Decimal("7")}


class TestCurrencyAwareRules:
    """Tests for spot conversion before summation."""

    def test_amounts_converted_to_target(self):
        converter = CurrencyConverter(CurrencySettings(), rates={"USD": 0.05})
        expenses = [make_expense("50", currency=Currency.USD, category=ExpenseCategory.BILL)]

        plain = generate_recommendations([], expenses, monthly_limit=Decimal("1000"), now=NOW)
        converted = generate_recommendations(
            [], expenses,
            monthly_limit=Decimal("1000"),
            now=NOW,
            converter=converter,
            target_currency=Currency.TRY,
        )

        assert RecommendationType.SPENDING_LIMIT not in types_of(plain)
        assert types_of(converted)[0] == RecommendationType.SPENDING_LIMIT


class TestRecommendationService:
    """Tests for the opt-in service."""

    async def test_disabled_by_default(self, local_store, events, recorder):
        service = RecommendationService(local_store, events, clock=lambda: NOW)
        result = await service.refresh([make_income("2000")], [make_expense("1900")])
        assert result == []
        assert recorder.of_type("recommendations_updated") == []

    async def test_enabled_generates_and_emits(self, local_store, events, recorder):
        local_store.save_monthly_limit(Decimal("1000"))
        service = RecommendationService(local_store, events, clock=lambda: NOW)
        service.set_enabled(True)

        result = await service.refresh([make_income("2000")], [make_expense("1900")])

        assert result[0].type == RecommendationType.SPENDING_LIMIT
        assert service.latest == result
        assert recorder.of_type("recommendations_updated")[-1].details["count"] == len(result)

    async def test_disabling_clears_latest(self, local_store, events):
        service = RecommendationService(local_store, events, clock=lambda: NOW)
        service.set_enabled(True)
        await service.refresh([], [make_expense("10")])
        service.set_enabled(False)
        assert service.latest == []
        assert not service.enabled


@pytest.mark.parametrize("amount,expected", [("899", False), ("900", True)])
def test_limit_boundary(amount, expected):
    expenses = [make_expense(amount, category=ExpenseCategory.BILL)]
    result = generate_recommendations([make_income("100000")], expenses, monthly_limit=Decimal("1000"), now=NOW)
    assert (RecommendationType.SPENDING_LIMIT in types_of(result)) is expected
