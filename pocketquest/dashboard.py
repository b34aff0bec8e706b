from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from pydantic import BaseModel

from pocketquest.categories import canonical_category_key
from pocketquest.period_window import compute_window, to_utc
from pocketquest.progress_engine import (
    Plan,
    ProgressResult,
    filter_to_window,
    score_transactions,
    tally_transactions,
)
from pocketquest.transactions import Transaction, TransactionType, convert_to_home

RECENT_TRANSACTION_LIMIT = 10
LOCAL_DATE_FORMAT = "%Y-%m-%d"
LOCAL_DATETIME_FORMAT = "%Y-%m-%d %H:%M"


class DashboardRange(BaseModel):
    period_start_utc: datetime
    period_end_utc: datetime
    period_start_local: str
    period_end_local: str


class DashboardTotals(BaseModel):
    income_minor: int
    spent_minor: int
    saving_minor: int
    net_minor: int


class OperationalCashflow(BaseModel):
    income_minor: int
    expense_minor: int
    net_minor: int


class SpendableCashflow(BaseModel):
    income_minor: int
    expense_minor: int
    saving_minor: int
    net_minor: int


class DashboardCashflow(BaseModel):
    operational: OperationalCashflow
    spendable: SpendableCashflow


class SpentByCategoryRow(BaseModel):
    category_key: str
    spent_minor: int


class BudgetStatusRow(BaseModel):
    category_key: str
    limit_minor: int
    spent_minor: int
    remaining_minor: int


class SavingsProgressRow(BaseModel):
    goal_id: str
    name: str
    target_minor: int
    saved_minor: int
    progress_ratio: float


class RecentTransaction(BaseModel):
    id: str | None = None
    type: TransactionType
    amount_minor: int
    category_key: str
    savings_goal_id: str | None = None
    occurred_at_utc: datetime
    occurred_at_local: str
    note: str | None = None
    fx_missing: bool = False


class ProgressSummary(BaseModel):
    percent: int
    spent_minor: int
    saved_minor: int
    budget_score: float
    savings_score: float

    @classmethod
    def from_result(cls, result: ProgressResult) -> "ProgressSummary":
        return cls(
            percent=result.percent,
            spent_minor=result.spent_minor,
            saved_minor=result.saved_minor,
            budget_score=result.budget_score,
            savings_score=result.savings_score,
        )


class Dashboard(BaseModel):
    range: DashboardRange
    totals: DashboardTotals
    cashflow: DashboardCashflow
    spent_by_category: List[SpentByCategoryRow]
    budget_status_rows: List[BudgetStatusRow]
    savings_progress_rows: List[SavingsProgressRow]
    recent_transactions: List[RecentTransaction]
    progress: ProgressSummary
    warnings: List[str]


def build_dashboard(
    plan: Plan,
    transactions: Iterable[Transaction],
    now: datetime,
    recent_limit: int = RECENT_TRANSACTION_LIMIT,
) -> Dashboard:
    window = compute_window(plan.period_type, now, plan.time_zone, plan.period_anchor)
    in_window = filter_to_window(transactions, window)
    tally = tally_transactions(plan, in_window)
    progress = score_transactions(plan, in_window, window)
    zone = window.start_local.tzinfo

    spent_by_category = sorted(
        (
            SpentByCategoryRow(category_key=key, spent_minor=amount)
            for key, amount in tally.per_category.items()
        ),
        key=lambda row: (-row.spent_minor, row.category_key),
    )

    budget_status_rows: List[BudgetStatusRow] = []
    for goal in plan.budget_goals:
        if goal.limit_minor <= 0:
            continue
        key = canonical_category_key(goal.category)
        spent = tally.per_category.get(key, 0)
        budget_status_rows.append(
            BudgetStatusRow(
                category_key=key,
                limit_minor=goal.limit_minor,
                spent_minor=spent,
                remaining_minor=goal.limit_minor - spent,
            )
        )

    savings_progress_rows: List[SavingsProgressRow] = []
    for goal in plan.savings_goals:
        saved = tally.per_goal.get(goal.id, 0)
        if goal.target_minor <= 0 and saved <= 0:
            continue
        savings_progress_rows.append(
            SavingsProgressRow(
                goal_id=goal.id,
                name=goal.name,
                target_minor=goal.target_minor,
                saved_minor=saved,
                progress_ratio=saved / goal.target_minor if goal.target_minor > 0 else 0.0,
            )
        )

    recent_transactions: List[RecentTransaction] = []
    newest_first = sorted(in_window, key=lambda txn: to_utc(txn.occurred_at), reverse=True)
    for txn in newest_first[: max(0, recent_limit)]:
        converted = convert_to_home(txn, plan.currency)
        occurred_utc = to_utc(txn.occurred_at)
        recent_transactions.append(
            RecentTransaction(
                id=txn.id,
                type=txn.type,
                amount_minor=converted.amount_minor,
                category_key=canonical_category_key(txn.category),
                savings_goal_id=txn.savings_goal_id,
                occurred_at_utc=occurred_utc,
                occurred_at_local=occurred_utc.astimezone(zone).strftime(LOCAL_DATETIME_FORMAT),
                note=txn.note,
                fx_missing=converted.fx_missing,
            )
        )

    warnings = [
        f"missing_fx_excluded:{source}->{target}"
        for source, target in sorted(tally.missing_fx)
    ]

    return Dashboard(
        range=DashboardRange(
            period_start_utc=window.start_utc,
            period_end_utc=window.end_utc,
            period_start_local=window.start_local.strftime(LOCAL_DATE_FORMAT),
            period_end_local=window.end_local.strftime(LOCAL_DATE_FORMAT),
        ),
        totals=DashboardTotals(
            income_minor=tally.income_minor,
            spent_minor=tally.spent_minor,
            saving_minor=tally.saved_minor,
            net_minor=tally.income_minor - tally.spent_minor,
        ),
        cashflow=DashboardCashflow(
            operational=OperationalCashflow(
                income_minor=tally.income_minor,
                expense_minor=tally.spent_minor,
                net_minor=tally.income_minor - tally.spent_minor,
            ),
            spendable=SpendableCashflow(
                income_minor=tally.income_minor,
                expense_minor=tally.spent_minor,
                saving_minor=tally.saved_minor,
                net_minor=tally.income_minor - tally.spent_minor - tally.saved_minor,
            ),
        ),
        spent_by_category=spent_by_category,
        budget_status_rows=budget_status_rows,
        savings_progress_rows=savings_progress_rows,
        recent_transactions=recent_transactions,
        progress=ProgressSummary.from_result(progress),
        warnings=warnings,
    )
