from __future__ import annotations

from typing import Mapping

UNCATEGORIZED = "uncategorized"
SAVINGS_CATEGORY = "savings"

EXPENSE_CATEGORY_KEYS = (
    "uncategorized",
    "groceries",
    "rent",
    "utilities",
    "gas",
    "dining",
    "transport",
    "shopping",
    "entertainment",
    "health",
    "insurance",
    "education",
    "travel",
    "subscriptions",
    "misc",
)

INCOME_CATEGORY_KEYS = (
    "salary",
    "bonus",
    "interest",
    "refund",
    "gift",
    "other",
)

# Legacy UI labels that older clients still send.
CATEGORY_ALIASES: dict[str, str] = {
    "restaurant": "dining",
    "transportation": "transport",
    "medical": "health",
    "miscellaneous": "misc",
    "paycheck": "salary",
    "wages": "salary",
    "other_income": "other",
}


def canonical_category_key(raw: str | None) -> str:
    key = (raw or "").strip().lower()
    if not key:
        return UNCATEGORIZED
    return CATEGORY_ALIASES.get(key, key)


def is_expense_category(key: str) -> bool:
    return key in EXPENSE_CATEGORY_KEYS


def is_income_category(key: str) -> bool:
    return key in INCOME_CATEGORY_KEYS


def category_label(key: str | None, labels: Mapping[str, str] | None = None) -> str:
    canonical = canonical_category_key(key)
    if labels and canonical in labels:
        return labels[canonical]
    return canonical.replace("_", " ").title()
