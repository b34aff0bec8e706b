"""Decide whether an edit form holds changes worth a save round-trip.

Money fields go through the same parser as the input widgets, so "", "0"
and "0.00" all compare equal to a stored 0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pocketquest.money import Currency, parse_input_to_minor


@dataclass(frozen=True)
class BudgetDirty:
    dirty: bool
    next_limit_minor: int


@dataclass(frozen=True)
class SavingsDirty:
    dirty: bool
    name_dirty: bool
    target_dirty: bool
    next_target_minor: int


@dataclass(frozen=True)
class TransactionDirty:
    dirty: bool
    type_dirty: bool
    category_dirty: bool
    savings_goal_dirty: bool
    amount_dirty: bool
    note_dirty: bool
    next_amount_minor: int


def is_name_dirty(draft: object, current: object) -> bool:
    return _text(draft) != _text(current)


def is_blank_text(value: object) -> bool:
    return not _text(value)


def money_text_to_minor(draft_text: object, currency: Currency | str) -> int:
    return max(0, parse_input_to_minor(_text(draft_text), currency))


def is_money_dirty(draft_text: object, current_minor: object, currency: Currency | str) -> bool:
    return money_text_to_minor(draft_text, currency) != _stored_minor(current_minor)


def derive_budget_dirty(
    limit_text: object,
    current_limit_minor: object,
    currency: Currency | str,
) -> BudgetDirty:
    next_limit = money_text_to_minor(limit_text, currency)
    return BudgetDirty(
        dirty=next_limit != _stored_minor(current_limit_minor),
        next_limit_minor=next_limit,
    )


def derive_savings_dirty(
    draft_name: object,
    current_name: object,
    draft_target_text: object,
    current_target_minor: object,
    currency: Currency | str,
) -> SavingsDirty:
    name_dirty = is_name_dirty(draft_name, current_name)
    next_target = money_text_to_minor(draft_target_text, currency)
    target_dirty = next_target != _stored_minor(current_target_minor)
    return SavingsDirty(
        dirty=name_dirty or target_dirty,
        name_dirty=name_dirty,
        target_dirty=target_dirty,
        next_target_minor=next_target,
    )


def derive_transaction_dirty(
    *,
    draft_type: object,
    current_type: object,
    draft_category: object,
    current_category: object,
    draft_savings_goal_id: object,
    current_savings_goal_id: object,
    draft_amount_text: object,
    current_amount_minor: object,
    currency: Currency | str,
    draft_note: object = None,
    current_note: object = None,
) -> TransactionDirty:
    type_dirty = is_name_dirty(draft_type, current_type)
    category_dirty = is_name_dirty(draft_category, current_category)
    savings_goal_dirty = is_name_dirty(draft_savings_goal_id, current_savings_goal_id)
    next_amount = money_text_to_minor(draft_amount_text, currency)
    amount_dirty = next_amount != _stored_minor(current_amount_minor)
    note_dirty = is_name_dirty(draft_note, current_note)
    return TransactionDirty(
        dirty=type_dirty or category_dirty or savings_goal_dirty or amount_dirty or note_dirty,
        type_dirty=type_dirty,
        category_dirty=category_dirty,
        savings_goal_dirty=savings_goal_dirty,
        amount_dirty=amount_dirty,
        note_dirty=note_dirty,
        next_amount_minor=next_amount,
    )


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _stored_minor(value: object) -> int:
    if isinstance(value, str):
        try:
            value = Decimal(value.strip())
        except InvalidOperation:
            return 0
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP)))
