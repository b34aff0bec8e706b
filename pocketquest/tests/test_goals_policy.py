import unittest

from pocketquest.goals_policy import GoalsMode, convert_goals
from pocketquest.money import Currency, CurrencyConversionError
from pocketquest.period_window import PeriodType
from pocketquest.progress_engine import BudgetGoal, Plan, SavingsGoal


class ConvertGoalsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.plan = Plan(
            period_type=PeriodType.MONTHLY,
            currency=Currency.USD,
            time_zone="UTC",
            total_budget_limit_minor=50000,
            budget_goals=(BudgetGoal(category="groceries", limit_minor=10000),),
            savings_goals=(SavingsGoal(id="1", name="Trip", target_minor=25000),),
        )

    def test_reset_empty_drops_everything(self) -> None:
        payload = convert_goals(self.plan, Currency.KRW, GoalsMode.RESET_EMPTY)

        self.assertEqual(payload.total_budget_limit_minor, 0)
        self.assertEqual(payload.budget_goals, ())
        self.assertEqual(payload.savings_goals, ())

    def test_copy_as_is_keeps_numbers(self) -> None:
        payload = convert_goals(self.plan, Currency.KRW, "COPY_AS_IS")

        self.assertEqual(payload.total_budget_limit_minor, 50000)
        self.assertEqual(payload.budget_goals[0].limit_minor, 10000)
        self.assertEqual(payload.savings_goals[0].target_minor, 25000)

    def test_convert_using_fx(self) -> None:
        payload = convert_goals(self.plan, Currency.KRW, GoalsMode.CONVERT_USING_FX, 1300.0)

        self.assertEqual(payload.total_budget_limit_minor, 650000)
        self.assertEqual(payload.budget_goals[0].limit_minor, 130000)
        self.assertEqual(payload.savings_goals[0].target_minor, 325000)
        self.assertEqual(payload.savings_goals[0].name, "Trip")

    def test_convert_without_rate_raises(self) -> None:
        with self.assertRaises(CurrencyConversionError):
            convert_goals(self.plan, Currency.KRW, GoalsMode.CONVERT_USING_FX)

    def test_unknown_mode_raises(self) -> None:
        with self.assertRaises(ValueError):
            convert_goals(self.plan, Currency.KRW, "MERGE")


if __name__ == "__main__":
    unittest.main()
