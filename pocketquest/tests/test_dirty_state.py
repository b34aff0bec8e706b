import unittest

from pocketquest.dirty_state import (
    derive_budget_dirty,
    derive_savings_dirty,
    derive_transaction_dirty,
    is_blank_text,
    is_money_dirty,
    is_name_dirty,
    money_text_to_minor,
)
from pocketquest.money import Currency


class MoneyDirtyTests(unittest.TestCase):
    def test_empty_and_zero_text_match_stored_zero(self) -> None:
        for text in ("", "0", "0.00", None):
            with self.subTest(text=text):
                self.assertFalse(is_money_dirty(text, 0, Currency.USD))

    def test_changed_amount_is_dirty(self) -> None:
        self.assertTrue(is_money_dirty("12.50", 1200, Currency.USD))
        self.assertFalse(is_money_dirty("12.00", 1200, Currency.USD))

    def test_negative_text_clamps_to_zero(self) -> None:
        self.assertEqual(money_text_to_minor("-5", Currency.USD), 0)

    def test_stored_value_is_tolerant(self) -> None:
        self.assertFalse(is_money_dirty("1500", "1500", Currency.KRW))
        self.assertFalse(is_money_dirty("", None, Currency.KRW))
        self.assertFalse(is_money_dirty("", "junk", Currency.KRW))


class TextDirtyTests(unittest.TestCase):
    def test_whitespace_is_ignored(self) -> None:
        self.assertFalse(is_name_dirty("  Trip ", "Trip"))
        self.assertTrue(is_name_dirty("Trip!", "Trip"))
        self.assertFalse(is_name_dirty(None, ""))

    def test_blank_text(self) -> None:
        self.assertTrue(is_blank_text("   "))
        self.assertFalse(is_blank_text("x"))


class FormDirtyTests(unittest.TestCase):
    def test_budget_form(self) -> None:
        clean = derive_budget_dirty("100.00", 10000, Currency.USD)
        changed = derive_budget_dirty("150", 10000, Currency.USD)

        self.assertFalse(clean.dirty)
        self.assertTrue(changed.dirty)
        self.assertEqual(changed.next_limit_minor, 15000)

    def test_savings_form_reports_each_field(self) -> None:
        result = derive_savings_dirty("Trip ", "Trip", "₩300,000", 250000, Currency.KRW)

        self.assertTrue(result.dirty)
        self.assertFalse(result.name_dirty)
        self.assertTrue(result.target_dirty)
        self.assertEqual(result.next_target_minor, 300000)

    def test_transaction_form_clean(self) -> None:
        result = derive_transaction_dirty(
            draft_type="EXPENSE",
            current_type="EXPENSE",
            draft_category="groceries",
            current_category="groceries",
            draft_savings_goal_id=None,
            current_savings_goal_id="",
            draft_amount_text="40.00",
            current_amount_minor=4000,
            currency=Currency.USD,
        )

        self.assertFalse(result.dirty)
        self.assertEqual(result.next_amount_minor, 4000)

    def test_transaction_form_goal_change(self) -> None:
        result = derive_transaction_dirty(
            draft_type="SAVING",
            current_type="SAVING",
            draft_category="savings",
            current_category="savings",
            draft_savings_goal_id=2,
            current_savings_goal_id="1",
            draft_amount_text="40",
            current_amount_minor=4000,
            currency=Currency.USD,
            draft_note="trip",
            current_note="trip",
        )

        self.assertTrue(result.dirty)
        self.assertTrue(result.savings_goal_dirty)
        self.assertFalse(result.amount_dirty)
        self.assertFalse(result.note_dirty)


if __name__ == "__main__":
    unittest.main()
