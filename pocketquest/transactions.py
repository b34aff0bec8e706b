from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pocketquest.money import Currency, abs_minor, convert_minor, is_usable_rate, normalize_currency

logger = logging.getLogger(__name__)

SAVINGS_KEYWORDS = ("savings", "save")


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    SAVING = "SAVING"


TYPE_ALIASES = {
    "SAVINGS": TransactionType.SAVING,
}


@dataclass(frozen=True)
class Transaction:
    type: TransactionType
    amount_minor: int
    occurred_at: datetime
    currency: Optional[Currency | str] = Currency.USD
    fx_usd_krw: Optional[float] = None
    category: Optional[str] = None
    savings_goal_id: Optional[str] = None
    id: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class HomeAmount:
    amount_minor: int
    fx_missing: bool = False


class TransactionRecord(BaseModel):
    """A transaction as the store or a client hands it over.

    Accepts camelCase or snake_case keys and the legacy ``amountHomeMinor``
    field; ``to_transaction`` is the only way records reach the engine.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | str | None = None
    type: TransactionType
    amount_minor: int | None = Field(default=None, alias="amountMinor")
    amount_home_minor: int | None = Field(default=None, alias="amountHomeMinor")
    currency: str | None = None
    fx_usd_krw: float | None = Field(default=None, alias="fxUsdKrw")
    category: str | None = None
    savings_goal_id: int | str | None = Field(default=None, alias="savingsGoalId")
    occurred_at: datetime | None = Field(default=None, alias="occurredAt")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    note: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> TransactionType:
        return normalize_transaction_type(value)

    def to_transaction(self) -> Transaction:
        occurred_at = self.occurred_at or self.created_at
        if occurred_at is None:
            raise ValueError("Transaction record has no occurrence time.")
        amount = self.amount_minor if self.amount_minor is not None else self.amount_home_minor
        return Transaction(
            type=self.type,
            amount_minor=abs_minor(amount),
            occurred_at=occurred_at,
            currency=normalize_currency(self.currency, fallback=Currency.USD),
            fx_usd_krw=self.fx_usd_krw,
            category=self.category.strip() if self.category else None,
            savings_goal_id=str(self.savings_goal_id) if self.savings_goal_id not in (None, "") else None,
            id=str(self.id) if self.id is not None else None,
            note=self.note,
        )


def normalize_transaction_type(value: TransactionType | str) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    normalized = str(value or "").strip().upper()
    if normalized in TYPE_ALIASES:
        return TYPE_ALIASES[normalized]
    try:
        return TransactionType(normalized)
    except ValueError as exc:
        raise ValueError("Transaction type must be EXPENSE, INCOME, or SAVING.") from exc


def transactions_from_records(records: Iterable[Mapping[str, Any] | TransactionRecord]) -> List[Transaction]:
    parsed: List[Transaction] = []
    for record in records:
        if not isinstance(record, TransactionRecord):
            record = TransactionRecord.model_validate(record)
        parsed.append(record.to_transaction())
    return parsed


def is_savings_transaction(tx: Transaction) -> bool:
    """Classify savings, honouring the free-text categories older clients wrote.

    The ``type`` tag decides whenever it is EXPENSE or SAVING; only other
    types fall back to looking for "save" in the category.
    """
    if tx.type is TransactionType.EXPENSE:
        return False
    if tx.type is TransactionType.SAVING:
        return True
    category = (tx.category or "").lower()
    return any(keyword in category for keyword in SAVINGS_KEYWORDS)


def convert_to_home(tx: Transaction, home_currency: Currency | str) -> HomeAmount:
    currency = normalize_currency(tx.currency, fallback=Currency.USD)
    home = normalize_currency(home_currency)
    amount = abs_minor(tx.amount_minor)
    if currency is home:
        return HomeAmount(amount)

    # Totals never include a guessed rate.
    if not is_usable_rate(tx.fx_usd_krw):
        logger.debug(
            "Transaction %s has no usable FX snapshot for %s -> %s; counting 0",
            tx.id,
            currency.value,
            home.value,
        )
        return HomeAmount(0, fx_missing=True)

    return HomeAmount(abs(convert_minor(amount, currency, home, tx.fx_usd_krw)))


def to_home_amount(tx: Transaction, home_currency: Currency | str) -> int:
    return convert_to_home(tx, home_currency).amount_minor
