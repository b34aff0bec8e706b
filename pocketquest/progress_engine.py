from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pocketquest.categories import canonical_category_key
from pocketquest.money import Currency, clamp01, normalize_currency, ratio_to_percent
from pocketquest.period_window import PeriodType, PeriodWindow, compute_window
from pocketquest.transactions import (
    Transaction,
    TransactionType,
    convert_to_home,
    is_savings_transaction,
)

NEUTRAL_SCORE = 0.5
BUDGET_WEIGHT = 0.7
SAVINGS_WEIGHT = 0.3


@dataclass(frozen=True)
class BudgetGoal:
    category: str
    limit_minor: int
    id: Optional[str] = None


@dataclass(frozen=True)
class SavingsGoal:
    id: str
    name: str
    target_minor: int


@dataclass(frozen=True)
class Plan:
    period_type: PeriodType
    currency: Currency
    time_zone: str
    period_anchor: Optional[date | datetime] = None
    total_budget_limit_minor: int = 0
    budget_goals: Tuple[BudgetGoal, ...] = ()
    savings_goals: Tuple[SavingsGoal, ...] = ()
    id: Optional[str] = None


@dataclass
class Tally:
    """Home-currency sums over a set of transactions."""

    income_minor: int = 0
    spent_minor: int = 0
    saved_minor: int = 0
    per_category: Dict[str, int] = field(default_factory=dict)
    per_goal: Dict[str, int] = field(default_factory=dict)
    missing_fx: Set[Tuple[str, str]] = field(default_factory=set)


@dataclass(frozen=True)
class ProgressResult:
    percent: int
    spent_minor: int
    saved_minor: int
    budget_score: float
    savings_score: float
    per_category: Dict[str, int]
    per_goal: Dict[str, int]
    category_ratios: Dict[str, float]
    goal_ratios: Dict[str, float]
    window: Optional[PeriodWindow] = None


def score(plan: Plan, transactions: Iterable[Transaction], now: datetime) -> ProgressResult:
    window = compute_window(plan.period_type, now, plan.time_zone, plan.period_anchor)
    return score_transactions(plan, filter_to_window(transactions, window), window)


def score_all_time(plan: Plan, transactions: Iterable[Transaction]) -> ProgressResult:
    return score_transactions(plan, list(transactions))


def filter_to_window(transactions: Iterable[Transaction], window: PeriodWindow) -> List[Transaction]:
    # Compared on local calendar dates so a late-evening expense lands in the
    # user's day, not the UTC one.
    return [
        txn
        for txn in transactions
        if window.contains_date(window.local_date_of(txn.occurred_at))
    ]


def tally_transactions(plan: Plan, transactions: Iterable[Transaction]) -> Tally:
    tally = Tally()
    goal_keys = _goal_keys_by_name(plan.savings_goals)
    for txn in transactions:
        converted = convert_to_home(txn, plan.currency)
        if converted.fx_missing:
            source = normalize_currency(txn.currency, fallback=Currency.USD)
            tally.missing_fx.add((source.value, plan.currency.value))
        amount = converted.amount_minor

        if txn.type is TransactionType.EXPENSE:
            key = canonical_category_key(txn.category)
            tally.spent_minor += amount
            tally.per_category[key] = tally.per_category.get(key, 0) + amount
        elif is_savings_transaction(txn):
            key = savings_goal_key(txn, goal_keys)
            tally.saved_minor += amount
            tally.per_goal[key] = tally.per_goal.get(key, 0) + amount
        elif txn.type is TransactionType.INCOME:
            tally.income_minor += amount
    return tally


def savings_goal_key(txn: Transaction, goal_keys_by_name: Dict[str, str]) -> str:
    """Linked goal id first; older rows only name the goal in ``category``."""
    if txn.savings_goal_id:
        return txn.savings_goal_id
    name_key = canonical_category_key(txn.category)
    return goal_keys_by_name.get(name_key, name_key)


def budget_term(ratio: float) -> float:
    if ratio > 1:
        return 0.0
    return max(0.0, 1.0 - ratio)


def score_transactions(
    plan: Plan,
    transactions: List[Transaction],
    window: Optional[PeriodWindow] = None,
) -> ProgressResult:
    """Score transactions that were already narrowed to the period of interest."""
    tally = tally_transactions(plan, transactions)

    category_ratios: Dict[str, float] = {}
    budget_terms: List[float] = []
    for goal in plan.budget_goals:
        if goal.limit_minor <= 0:
            continue
        key = canonical_category_key(goal.category)
        ratio = tally.per_category.get(key, 0) / goal.limit_minor
        category_ratios[key] = ratio
        budget_terms.append(budget_term(ratio))
    if plan.total_budget_limit_minor > 0:
        budget_terms.append(budget_term(tally.spent_minor / plan.total_budget_limit_minor))
    budget_score = _mean(budget_terms)

    goal_ratios: Dict[str, float] = {}
    savings_terms: List[float] = []
    for goal in plan.savings_goals:
        if goal.target_minor <= 0:
            continue
        ratio = tally.per_goal.get(goal.id, 0) / goal.target_minor
        goal_ratios[goal.id] = ratio
        savings_terms.append(clamp01(ratio))
    savings_score = _mean(savings_terms)

    combined = budget_score * BUDGET_WEIGHT + savings_score * SAVINGS_WEIGHT
    return ProgressResult(
        percent=ratio_to_percent(clamp01(combined)),
        spent_minor=tally.spent_minor,
        saved_minor=tally.saved_minor,
        budget_score=budget_score,
        savings_score=savings_score,
        per_category=tally.per_category,
        per_goal=tally.per_goal,
        category_ratios=category_ratios,
        goal_ratios=goal_ratios,
        window=window,
    )


def _mean(terms: List[float]) -> float:
    # No configured goals reads as neutral, not as failing.
    if not terms:
        return NEUTRAL_SCORE
    return sum(terms) / len(terms)


def _goal_keys_by_name(goals: Iterable[SavingsGoal]) -> Dict[str, str]:
    # First goal wins when two names fold to the same key.
    keys: Dict[str, str] = {}
    for goal in goals:
        keys.setdefault(canonical_category_key(goal.name), goal.id)
    return keys