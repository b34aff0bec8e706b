import unittest
from datetime import date, datetime, timezone

from pocketquest.money import Currency
from pocketquest.period_window import PeriodType
from pocketquest.progress_engine import (
    BudgetGoal,
    Plan,
    SavingsGoal,
    budget_term,
    score,
    score_all_time,
    tally_transactions,
)
from pocketquest.transactions import Transaction, TransactionType

NOW = datetime(2025, 1, 15, 12, tzinfo=timezone.utc)
IN_WINDOW = datetime(2025, 1, 10, 12, tzinfo=timezone.utc)


def expense(amount_minor: int, category: str = "groceries", **kwargs) -> Transaction:
    return Transaction(
        type=TransactionType.EXPENSE,
        amount_minor=amount_minor,
        occurred_at=kwargs.pop("occurred_at", IN_WINDOW),
        category=category,
        **kwargs,
    )


def saving(amount_minor: int, **kwargs) -> Transaction:
    return Transaction(
        type=TransactionType.SAVING,
        amount_minor=amount_minor,
        occurred_at=kwargs.pop("occurred_at", IN_WINDOW),
        category=kwargs.pop("category", "savings"),
        **kwargs,
    )


def grocery_plan(**overrides) -> Plan:
    values = {
        "period_type": PeriodType.MONTHLY,
        "currency": Currency.USD,
        "time_zone": "UTC",
        "budget_goals": (BudgetGoal(category="groceries", limit_minor=10000),),
    }
    values.update(overrides)
    return Plan(**values)


class ScoreTests(unittest.TestCase):
    def test_half_spent_with_no_savings_goals_is_fifty(self) -> None:
        result = score(grocery_plan(), [expense(5000)], NOW)

        self.assertEqual(result.budget_score, 0.5)
        self.assertEqual(result.savings_score, 0.5)
        self.assertEqual(result.percent, 50)
        self.assertEqual(result.spent_minor, 5000)
        self.assertEqual(result.per_category, {"groceries": 5000})

    def test_over_limit_scores_zero_budget(self) -> None:
        result = score(grocery_plan(), [expense(12000)], NOW)

        self.assertEqual(result.budget_score, 0.0)
        self.assertEqual(result.percent, 15)
        self.assertAlmostEqual(result.category_ratios["groceries"], 1.2)

    def test_no_goals_is_neutral(self) -> None:
        plan = grocery_plan(budget_goals=())

        result = score(plan, [expense(999999)], NOW)

        self.assertEqual(result.percent, 50)

    def test_transactions_outside_window_are_ignored(self) -> None:
        december = datetime(2024, 12, 31, 12, tzinfo=timezone.utc)

        result = score(grocery_plan(), [expense(12000, occurred_at=december)], NOW)

        self.assertEqual(result.spent_minor, 0)
        self.assertEqual(result.percent, 85)

    def test_local_date_decides_window_membership(self) -> None:
        # 02:00 UTC on Feb 1 is still Jan 31 in New York.
        late_evening = datetime(2025, 2, 1, 2, tzinfo=timezone.utc)
        plan = grocery_plan(time_zone="America/New_York")

        result = score(plan, [expense(5000, occurred_at=late_evening)], NOW)

        self.assertEqual(result.spent_minor, 5000)

    def test_savings_goal_progress(self) -> None:
        plan = grocery_plan(
            budget_goals=(),
            savings_goals=(
                SavingsGoal(id="1", name="Emergency", target_minor=10000),
                SavingsGoal(id="2", name="Trip", target_minor=4000),
            ),
        )
        txns = [
            saving(10000, savings_goal_id="1"),
            saving(8000, category="Trip"),
        ]

        result = score(plan, txns, NOW)

        self.assertEqual(result.per_goal, {"1": 10000, "2": 8000})
        self.assertEqual(result.savings_score, 1.0)
        self.assertEqual(result.saved_minor, 18000)
        self.assertEqual(result.percent, 65)

    def test_duplicate_goal_names_resolve_to_first_goal(self) -> None:
        plan = grocery_plan(
            budget_goals=(),
            savings_goals=(
                SavingsGoal(id="1", name="Trip", target_minor=10000),
                SavingsGoal(id="2", name=" trip ", target_minor=10000),
            ),
        )

        result = score(plan, [saving(5000, category="TRIP")], NOW)

        self.assertEqual(result.per_goal, {"1": 5000})

    def test_total_limit_adds_budget_term(self) -> None:
        plan = grocery_plan(total_budget_limit_minor=20000)

        result = score(plan, [expense(5000), expense(15000, category="rent")], NOW)

        self.assertAlmostEqual(result.budget_score, 0.25)

    def test_missing_fx_transaction_contributes_zero(self) -> None:
        txn = expense(50000, currency=Currency.KRW, fx_usd_krw=None)

        result = score(grocery_plan(), [txn], NOW)

        self.assertEqual(result.spent_minor, 0)
        self.assertEqual(result.percent, 85)

    def test_percent_stays_bounded(self) -> None:
        result = score(grocery_plan(), [expense(10**12)], NOW)

        self.assertGreaterEqual(result.percent, 0)
        self.assertLessEqual(result.percent, 100)

    def test_biweekly_plan_uses_anchor(self) -> None:
        plan = grocery_plan(period_type=PeriodType.BIWEEKLY, period_anchor=date(2025, 1, 6))
        before_block = datetime(2025, 1, 5, 12, tzinfo=timezone.utc)

        result = score(plan, [expense(5000), expense(5000, occurred_at=before_block)], NOW)

        self.assertEqual(result.spent_minor, 5000)
        self.assertEqual(result.window.start_date, date(2025, 1, 6))


class TallyTests(unittest.TestCase):
    def test_income_and_missing_fx_are_tracked(self) -> None:
        txns = [
            Transaction(
                type=TransactionType.INCOME,
                amount_minor=300000,
                occurred_at=IN_WINDOW,
                category="salary",
            ),
            expense(1000, currency=Currency.KRW),
        ]

        tally = tally_transactions(grocery_plan(), txns)

        self.assertEqual(tally.income_minor, 300000)
        self.assertEqual(tally.missing_fx, {("KRW", "USD")})

    def test_score_all_time_skips_window(self) -> None:
        old = datetime(2020, 1, 1, tzinfo=timezone.utc)

        result = score_all_time(grocery_plan(), [expense(5000, occurred_at=old)])

        self.assertEqual(result.spent_minor, 5000)
        self.assertIsNone(result.window)

    def test_budget_term(self) -> None:
        self.assertEqual(budget_term(0.0), 1.0)
        self.assertEqual(budget_term(1.0), 0.0)
        self.assertEqual(budget_term(1.5), 0.0)


if __name__ == "__main__":
    unittest.main()
