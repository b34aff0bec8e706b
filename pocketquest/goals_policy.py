from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from pocketquest.money import Currency, convert_minor, normalize_currency
from pocketquest.progress_engine import BudgetGoal, Plan, SavingsGoal

logger = logging.getLogger(__name__)


class GoalsMode(str, Enum):
    COPY_AS_IS = "COPY_AS_IS"
    CONVERT_USING_FX = "CONVERT_USING_FX"
    RESET_EMPTY = "RESET_EMPTY"


@dataclass(frozen=True)
class GoalsPayload:
    total_budget_limit_minor: int
    budget_goals: Tuple[BudgetGoal, ...]
    savings_goals: Tuple[SavingsGoal, ...]


def convert_goals(
    plan: Plan,
    to_currency: Currency | str,
    mode: GoalsMode | str,
    fx_usd_krw: float | None = None,
) -> GoalsPayload:
    """Carry a plan's limits and targets over to a plan in ``to_currency``.

    Nothing is written here; the caller creates the new plan from the payload.
    """
    target = normalize_currency(to_currency)
    goals_mode = GoalsMode(mode)
    if goals_mode is GoalsMode.RESET_EMPTY:
        return GoalsPayload(total_budget_limit_minor=0, budget_goals=(), savings_goals=())

    def carry(value: int) -> int:
        amount = max(0, int(value))
        if goals_mode is GoalsMode.COPY_AS_IS:
            return amount
        return convert_minor(amount, plan.currency, target, fx_usd_krw)

    payload = GoalsPayload(
        total_budget_limit_minor=carry(plan.total_budget_limit_minor),
        budget_goals=tuple(
            BudgetGoal(category=goal.category, limit_minor=carry(goal.limit_minor))
            for goal in plan.budget_goals
        ),
        savings_goals=tuple(
            SavingsGoal(id=goal.id, name=goal.name, target_minor=carry(goal.target_minor))
            for goal in plan.savings_goals
        ),
    )
    logger.info(
        "Carried %d budget and %d savings goals %s -> %s (%s)",
        len(payload.budget_goals),
        len(payload.savings_goals),
        plan.currency.value,
        target.value,
        goals_mode.value,
    )
    return payload
