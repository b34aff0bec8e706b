import logging
import os
from datetime import date, datetime, timezone

from fastapi import FastAPI, HTTPException, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.exc import IntegrityError

from pocketquest.categories import (
    SAVINGS_CATEGORY,
    canonical_category_key,
    is_expense_category,
    is_income_category,
)
from pocketquest.dashboard import Dashboard, build_dashboard
from pocketquest.goals_policy import GoalsMode, convert_goals
from pocketquest.money import (
    Currency,
    format_money,
    normalize_currency,
    parse_input_to_minor,
)
from pocketquest.period_window import (
    DEFAULT_BIWEEKLY_ANCHOR,
    PeriodType,
    PeriodWindow,
    compute_window,
    normalize_period_type,
    normalize_time_zone,
    period_label_key,
    to_utc,
)
from pocketquest.progress_engine import BudgetGoal, Plan, SavingsGoal, score_transactions
from pocketquest.transactions import (
    Transaction,
    TransactionRecord,
    TransactionType,
    normalize_transaction_type,
)

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./pocketquest.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()


def get_system_default_currency() -> Currency:
    return normalize_currency(os.getenv("DEFAULT_CURRENCY", "USD"), fallback=Currency.USD)


SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()
SYSTEM_DEFAULT_TIME_ZONE = normalize_time_zone(os.getenv("DEFAULT_TIME_ZONE"))
MAX_SAVINGS_GOALS_PER_PLAN = 10

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), unique=True, nullable=False),
    Column("time_zone", String(64), nullable=False),
    Column("home_currency", String(3), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

plans = Table(
    "plans",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("period_type", String(10), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("time_zone", String(64), nullable=False),
    Column("period_anchor", Date),
    Column("total_budget_limit_minor", BigInteger, nullable=False, server_default="0"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

budget_goals = Table(
    "budget_goals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("plan_id", Integer, ForeignKey("plans.id"), nullable=False),
    Column("category", String(255), nullable=False),
    Column("limit_minor", BigInteger, nullable=False),
    UniqueConstraint("plan_id", "category", name="uq_budget_goals_plan_category"),
)

savings_goals = Table(
    "savings_goals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("plan_id", Integer, ForeignKey("plans.id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("target_minor", BigInteger, nullable=False),
)

# occurred_at holds naive UTC.
transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("type", String(10), nullable=False),
    Column("amount_minor", BigInteger, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("fx_usd_krw", Float),
    Column("category", String(255), nullable=False),
    Column("savings_goal_id", Integer, ForeignKey("savings_goals.id", ondelete="SET NULL")),
    Column("occurred_at", DateTime, nullable=False),
    Column("note", String(500)),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)


class UserPayload(BaseModel):
    email: str
    time_zone: str | None = None
    home_currency: str | None = None


class UserResponse(BaseModel):
    id: int
    email: str
    time_zone: str
    home_currency: Currency
    created_at: datetime | None = None


class BudgetGoalPayload(BaseModel):
    category: str
    limit_minor: int

    @classmethod
    def validate_payload(cls, payload: "BudgetGoalPayload") -> "BudgetGoalPayload":
        payload.category = canonical_category_key(payload.category)
        if not is_expense_category(payload.category):
            raise ValueError(f"Unknown expense category: {payload.category}")
        if payload.limit_minor < 0:
            raise ValueError("Budget limit cannot be negative.")
        return payload


class SavingsGoalPayload(BaseModel):
    id: int | None = None
    name: str
    target_minor: int

    @classmethod
    def validate_payload(cls, payload: "SavingsGoalPayload") -> "SavingsGoalPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Savings goal name required.")
        if payload.target_minor < 0:
            raise ValueError("Savings target cannot be negative.")
        return payload


class PlanPayload(BaseModel):
    period_type: str
    currency: str | None = None
    period_anchor: date | None = None
    total_budget_limit_minor: int = 0
    budget_goals: list[BudgetGoalPayload] = []
    savings_goals: list[SavingsGoalPayload] = []

    @classmethod
    def validate_payload(cls, payload: "PlanPayload") -> "PlanPayload":
        payload.period_type = normalize_period_type(payload.period_type).value
        if payload.total_budget_limit_minor < 0:
            raise ValueError("Total budget limit cannot be negative.")
        validate_goal_payloads(payload.budget_goals, payload.savings_goals)
        return payload


class BudgetGoalResponse(BaseModel):
    id: int
    category: str
    limit_minor: int


class SavingsGoalResponse(BaseModel):
    id: int
    name: str
    target_minor: int


class PlanResponse(BaseModel):
    id: int
    user_id: int
    period_type: PeriodType
    currency: Currency
    time_zone: str
    period_anchor: date | None = None
    total_budget_limit_minor: int
    budget_goals: list[BudgetGoalResponse]
    savings_goals: list[SavingsGoalResponse]
    created_at: datetime | None = None


class SwitchCurrencyPayload(BaseModel):
    currency: str
    goals_mode: GoalsMode = GoalsMode.COPY_AS_IS
    fx_usd_krw: float | None = None


class TransactionPayload(BaseModel):
    type: str
    amount_minor: int | None = None
    amount_text: str | None = None
    currency: str | None = None
    fx_usd_krw: float | None = None
    category: str | None = None
    savings_goal_id: int | None = None
    occurred_at: datetime | None = None
    note: str | None = None

    @classmethod
    def validate_payload(
        cls, payload: "TransactionPayload", home_currency: Currency
    ) -> "TransactionPayload":
        txn_type = normalize_transaction_type(payload.type)
        payload.type = txn_type.value
        currency = normalize_currency(payload.currency or home_currency)
        payload.currency = currency.value
        if payload.amount_minor is None:
            payload.amount_minor = parse_input_to_minor(payload.amount_text, currency)
        if payload.amount_minor <= 0:
            raise ValueError("Amount must be greater than zero.")
        if payload.fx_usd_krw is not None and payload.fx_usd_krw <= 0:
            raise ValueError("fx_usd_krw must be greater than zero.")

        category = canonical_category_key(payload.category)
        if txn_type is TransactionType.EXPENSE and not is_expense_category(category):
            raise ValueError(f"Unknown expense category: {category}")
        if txn_type is TransactionType.INCOME and not is_income_category(category):
            raise ValueError(f"Unknown income category: {category}")
        if txn_type is TransactionType.SAVING:
            category = SAVINGS_CATEGORY
        else:
            payload.savings_goal_id = None
        payload.category = category
        payload.note = payload.note.strip() if payload.note else None
        return payload


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    type: TransactionType
    amount_minor: int
    amount_display: str
    currency: Currency
    fx_usd_krw: float | None = None
    category: str
    savings_goal_id: int | None = None
    occurred_at: datetime
    note: str | None = None


class WindowResponse(BaseModel):
    period_type: PeriodType
    label_key: str
    start_utc: datetime
    end_utc: datetime
    start_local: date
    end_local: date
    anchor: date | None = None


class ProgressResponse(BaseModel):
    plan_id: int
    percent: int
    spent_minor: int
    saved_minor: int
    budget_score: float
    savings_score: float
    per_category: dict[str, int]
    per_goal: dict[str, int]
    category_ratios: dict[str, float]
    goal_ratios: dict[str, float]
    window: WindowResponse


def validate_goal_payloads(
    budget_payloads: list[BudgetGoalPayload],
    savings_payloads: list[SavingsGoalPayload],
) -> None:
    seen: set[str] = set()
    for goal in budget_payloads:
        BudgetGoalPayload.validate_payload(goal)
        if goal.category in seen:
            raise ValueError(f"Duplicate budget goal for {goal.category}.")
        seen.add(goal.category)
    if len(savings_payloads) > MAX_SAVINGS_GOALS_PER_PLAN:
        raise ValueError(f"A plan can have at most {MAX_SAVINGS_GOALS_PER_PLAN} savings goals.")
    seen_names: set[str] = set()
    for goal in savings_payloads:
        SavingsGoalPayload.validate_payload(goal)
        name_key = canonical_category_key(goal.name)
        if name_key in seen_names:
            raise ValueError(f"Duplicate savings goal named {goal.name}.")
        seen_names.add(name_key)


def get_user_id(x_user_id: str | None = Header(None)) -> int:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user identity.") from exc
    with engine.begin() as conn:
        result = conn.execute(select(users.c.id).where(users.c.id == user_id))
        if not result.first():
            raise HTTPException(status_code=404, detail="User not found.")
    return user_id


def resolve_now(now: datetime | None) -> datetime:
    return to_utc(now) if now is not None else datetime.now(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    return to_utc(value).replace(tzinfo=None)


def fetch_user_row(conn, user_id: int):
    row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="User not found.")
    return row


def fetch_plan_row(conn, plan_id: int, user_id: int):
    row = conn.execute(
        select(plans).where(plans.c.id == plan_id, plans.c.user_id == user_id)
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Plan not found.")
    return row


def fetch_current_plan_row(conn, user_id: int):
    row = conn.execute(
        select(plans)
        .where(plans.c.user_id == user_id)
        .order_by(plans.c.id.desc())
        .limit(1)
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="No plan found for user.")
    return row


def fetch_goal_rows(conn, plan_id: int):
    budget_rows = conn.execute(
        select(budget_goals).where(budget_goals.c.plan_id == plan_id).order_by(budget_goals.c.id)
    ).mappings().all()
    savings_rows = conn.execute(
        select(savings_goals).where(savings_goals.c.plan_id == plan_id).order_by(savings_goals.c.id)
    ).mappings().all()
    return budget_rows, savings_rows


def build_plan(plan_row, budget_rows, savings_rows) -> Plan:
    return Plan(
        id=str(plan_row["id"]),
        period_type=normalize_period_type(plan_row["period_type"], fallback=PeriodType.MONTHLY),
        currency=normalize_currency(plan_row["currency"], fallback=SYSTEM_DEFAULT_CURRENCY),
        time_zone=plan_row["time_zone"],
        period_anchor=plan_row["period_anchor"],
        total_budget_limit_minor=int(plan_row["total_budget_limit_minor"] or 0),
        budget_goals=tuple(
            BudgetGoal(id=str(row["id"]), category=row["category"], limit_minor=row["limit_minor"])
            for row in budget_rows
        ),
        savings_goals=tuple(
            SavingsGoal(id=str(row["id"]), name=row["name"], target_minor=row["target_minor"])
            for row in savings_rows
        ),
    )


def load_plan(conn, plan_row) -> Plan:
    budget_rows, savings_rows = fetch_goal_rows(conn, plan_row["id"])
    return build_plan(plan_row, budget_rows, savings_rows)


def plan_response(conn, plan_row) -> PlanResponse:
    budget_rows, savings_rows = fetch_goal_rows(conn, plan_row["id"])
    return PlanResponse(
        id=plan_row["id"],
        user_id=plan_row["user_id"],
        period_type=plan_row["period_type"],
        currency=plan_row["currency"],
        time_zone=plan_row["time_zone"],
        period_anchor=plan_row["period_anchor"],
        total_budget_limit_minor=plan_row["total_budget_limit_minor"],
        budget_goals=[BudgetGoalResponse(**row) for row in budget_rows],
        savings_goals=[SavingsGoalResponse(**row) for row in savings_rows],
        created_at=plan_row["created_at"],
    )


def insert_plan(
    conn,
    user_id: int,
    period_type: PeriodType,
    currency: Currency,
    time_zone: str,
    period_anchor: date | None,
    total_budget_limit_minor: int,
    budget_items: list[tuple[str, int]],
    savings_items: list[tuple[int | None, str, int]],
):
    if period_type is PeriodType.BIWEEKLY and period_anchor is None:
        period_anchor = DEFAULT_BIWEEKLY_ANCHOR
    if period_type is not PeriodType.BIWEEKLY:
        period_anchor = None
    plan_row = conn.execute(
        insert(plans)
        .values(
            user_id=user_id,
            period_type=period_type.value,
            currency=currency.value,
            time_zone=time_zone,
            period_anchor=period_anchor,
            total_budget_limit_minor=total_budget_limit_minor,
        )
        .returning(*plans.c)
    ).mappings().first()
    if not plan_row:
        raise HTTPException(status_code=500, detail="Failed to create plan.")
    replace_goals(conn, plan_row["id"], budget_items, savings_items)
    return plan_row


def replace_goals(
    conn,
    plan_id: int,
    budget_items: list[tuple[str, int]] | None,
    savings_items: list[tuple[int | None, str, int]] | None,
) -> None:
    if budget_items is not None:
        conn.execute(delete(budget_goals).where(budget_goals.c.plan_id == plan_id))
        for category, limit_minor in budget_items:
            conn.execute(
                insert(budget_goals).values(plan_id=plan_id, category=category, limit_minor=limit_minor)
            )
    if savings_items is not None:
        upsert_savings_goals(conn, plan_id, savings_items)


def upsert_savings_goals(
    conn,
    plan_id: int,
    savings_items: list[tuple[int | None, str, int]],
) -> None:
    # Goals keep their ids across edits so linked savings stay attached;
    # only goals missing from the new list are unlinked and deleted.
    existing_rows = conn.execute(
        select(savings_goals.c.id, savings_goals.c.name).where(savings_goals.c.plan_id == plan_id)
    ).mappings().all()
    ids_by_name = {canonical_category_key(row["name"]): row["id"] for row in existing_rows}
    unclaimed = {row["id"] for row in existing_rows}

    for goal_id, name, target_minor in savings_items:
        if goal_id is not None and goal_id not in unclaimed:
            raise HTTPException(status_code=400, detail=f"Unknown savings goal: {goal_id}")
        if goal_id is None:
            matched_id = ids_by_name.get(canonical_category_key(name))
            goal_id = matched_id if matched_id in unclaimed else None
        if goal_id is None:
            conn.execute(
                insert(savings_goals).values(plan_id=plan_id, name=name, target_minor=target_minor)
            )
            continue
        unclaimed.discard(goal_id)
        conn.execute(
            savings_goals.update()
            .where(savings_goals.c.id == goal_id)
            .values(name=name, target_minor=target_minor)
        )

    if unclaimed:
        conn.execute(
            transactions.update()
            .where(transactions.c.savings_goal_id.in_(unclaimed))
            .values(savings_goal_id=None)
        )
        conn.execute(delete(savings_goals).where(savings_goals.c.id.in_(unclaimed)))
        logger.info("Removed %d savings goals from plan %s", len(unclaimed), plan_id)


def fetch_window_transactions(conn, user_id: int, window: PeriodWindow) -> list[Transaction]:
    # Local-midnight bounds in UTC select exactly the rows whose local date
    # falls inside the window.
    rows = conn.execute(
        select(transactions)
        .where(
            transactions.c.user_id == user_id,
            transactions.c.occurred_at >= to_naive_utc(window.start_utc),
            transactions.c.occurred_at < to_naive_utc(window.end_utc),
        )
        .order_by(transactions.c.occurred_at.desc())
    ).mappings().all()
    return [TransactionRecord.model_validate(dict(row)).to_transaction() for row in rows]


def window_response(window: PeriodWindow) -> WindowResponse:
    return WindowResponse(
        period_type=window.period_type,
        label_key=period_label_key(window.period_type),
        start_utc=window.start_utc,
        end_utc=window.end_utc,
        start_local=window.start_date,
        end_local=window.end_date,
        anchor=window.anchor,
    )


def transaction_response(row) -> TransactionResponse:
    return TransactionResponse(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        amount_minor=row["amount_minor"],
        amount_display=format_money(row["amount_minor"], row["currency"]),
        currency=row["currency"],
        fx_usd_krw=row["fx_usd_krw"],
        category=row["category"],
        savings_goal_id=row["savings_goal_id"],
        occurred_at=to_utc(row["occurred_at"]),
        note=row["note"],
    )


def plan_window(plan: Plan, now: datetime) -> PeriodWindow:
    try:
        return compute_window(plan.period_type, now, plan.time_zone, plan.period_anchor)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/users", response_model=UserResponse)
def create_user(payload: UserPayload) -> UserResponse:
    email = payload.email.strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email required.")
    try:
        home_currency = normalize_currency(payload.home_currency or SYSTEM_DEFAULT_CURRENCY)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    time_zone = normalize_time_zone(payload.time_zone or SYSTEM_DEFAULT_TIME_ZONE)

    stmt = (
        insert(users)
        .values(email=email, time_zone=time_zone, home_currency=home_currency.value)
        .returning(*users.c)
    )
    try:
        with engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already exists.") from exc

    if not row:
        raise HTTPException(status_code=500, detail="Failed to create user.")
    return UserResponse(**row)


@app.post("/plans", response_model=PlanResponse)
def create_plan(
    payload: PlanPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PlanResponse:
    user_id = get_user_id(x_user_id)
    try:
        payload = PlanPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        user_row = fetch_user_row(conn, user_id)
        try:
            currency = normalize_currency(payload.currency or user_row["home_currency"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        plan_row = insert_plan(
            conn,
            user_id,
            PeriodType(payload.period_type),
            currency,
            user_row["time_zone"],
            payload.period_anchor,
            payload.total_budget_limit_minor,
            [(goal.category, goal.limit_minor) for goal in payload.budget_goals],
            [(None, goal.name, goal.target_minor) for goal in payload.savings_goals],
        )
        logger.info(
            "Created %s plan %s for user %s in %s",
            plan_row["period_type"],
            plan_row["id"],
            user_id,
            plan_row["currency"],
        )
        return plan_response(conn, plan_row)


@app.get("/plans/current", response_model=PlanResponse)
def get_current_plan(
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PlanResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        return plan_response(conn, fetch_current_plan_row(conn, user_id))


@app.put("/plans/{plan_id}/budget-goals", response_model=PlanResponse)
def update_budget_goals(
    plan_id: int,
    payload: list[BudgetGoalPayload],
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PlanResponse:
    user_id = get_user_id(x_user_id)
    try:
        validate_goal_payloads(payload, [])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        plan_row = fetch_plan_row(conn, plan_id, user_id)
        replace_goals(conn, plan_id, [(goal.category, goal.limit_minor) for goal in payload], None)
        return plan_response(conn, plan_row)


@app.put("/plans/{plan_id}/savings-goals", response_model=PlanResponse)
def update_savings_goals(
    plan_id: int,
    payload: list[SavingsGoalPayload],
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PlanResponse:
    user_id = get_user_id(x_user_id)
    try:
        validate_goal_payloads([], payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        plan_row = fetch_plan_row(conn, plan_id, user_id)
        replace_goals(
            conn, plan_id, None, [(goal.id, goal.name, goal.target_minor) for goal in payload]
        )
        return plan_response(conn, plan_row)


@app.post("/plans/{plan_id}/switch-currency", response_model=PlanResponse)
def switch_plan_currency(
    plan_id: int,
    payload: SwitchCurrencyPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> PlanResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        plan_row = fetch_plan_row(conn, plan_id, user_id)
        plan = load_plan(conn, plan_row)
        try:
            target = normalize_currency(payload.currency)
            carried = convert_goals(plan, target, payload.goals_mode, payload.fx_usd_krw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        new_row = insert_plan(
            conn,
            user_id,
            plan.period_type,
            target,
            plan.time_zone,
            plan_row["period_anchor"],
            carried.total_budget_limit_minor,
            [(goal.category, goal.limit_minor) for goal in carried.budget_goals],
            [(None, goal.name, goal.target_minor) for goal in carried.savings_goals],
        )
        logger.info(
            "Switched plan %s to %s as plan %s (%s)",
            plan_id,
            target.value,
            new_row["id"],
            payload.goals_mode.value,
        )
        return plan_response(conn, new_row)


@app.post("/transactions", response_model=TransactionResponse)
def create_transaction(
    payload: TransactionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> TransactionResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        user_row = fetch_user_row(conn, user_id)
        try:
            payload = TransactionPayload.validate_payload(
                payload, normalize_currency(user_row["home_currency"], fallback=SYSTEM_DEFAULT_CURRENCY)
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        if payload.savings_goal_id is not None:
            owned_goal = conn.execute(
                select(savings_goals.c.id)
                .select_from(savings_goals.join(plans, savings_goals.c.plan_id == plans.c.id))
                .where(savings_goals.c.id == payload.savings_goal_id, plans.c.user_id == user_id)
            ).first()
            if not owned_goal:
                raise HTTPException(status_code=400, detail="Unknown savings goal.")

        occurred_at = payload.occurred_at or datetime.now(timezone.utc)
        row = conn.execute(
            insert(transactions)
            .values(
                user_id=user_id,
                type=payload.type,
                amount_minor=payload.amount_minor,
                currency=payload.currency,
                fx_usd_krw=payload.fx_usd_krw,
                category=payload.category,
                savings_goal_id=payload.savings_goal_id,
                occurred_at=to_naive_utc(occurred_at),
                note=payload.note,
            )
            .returning(*transactions.c)
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=500, detail="Failed to create transaction.")
    return transaction_response(row)


@app.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    now: datetime | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> list[TransactionResponse]:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        plan = load_plan(conn, fetch_current_plan_row(conn, user_id))
        window = plan_window(plan, resolve_now(now))
        rows = conn.execute(
            select(transactions)
            .where(
                transactions.c.user_id == user_id,
                transactions.c.occurred_at >= to_naive_utc(window.start_utc),
                transactions.c.occurred_at < to_naive_utc(window.end_utc),
            )
            .order_by(transactions.c.occurred_at.desc(), transactions.c.id.desc())
        ).mappings().all()
    return [transaction_response(row) for row in rows]


@app.get("/plans/{plan_id}/window", response_model=WindowResponse)
def get_plan_window(
    plan_id: int,
    now: datetime | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> WindowResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        plan = load_plan(conn, fetch_plan_row(conn, plan_id, user_id))
    return window_response(plan_window(plan, resolve_now(now)))


@app.get("/plans/{plan_id}/progress", response_model=ProgressResponse)
def get_plan_progress(
    plan_id: int,
    now: datetime | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> ProgressResponse:
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        plan = load_plan(conn, fetch_plan_row(conn, plan_id, user_id))
        window = plan_window(plan, resolve_now(now))
        txn_items = fetch_window_transactions(conn, user_id, window)

    result = score_transactions(plan, txn_items, window)
    return ProgressResponse(
        plan_id=plan_id,
        percent=result.percent,
        spent_minor=result.spent_minor,
        saved_minor=result.saved_minor,
        budget_score=result.budget_score,
        savings_score=result.savings_score,
        per_category=result.per_category,
        per_goal=result.per_goal,
        category_ratios=result.category_ratios,
        goal_ratios=result.goal_ratios,
        window=window_response(window),
    )


@app.get("/plans/{plan_id}/dashboard", response_model=Dashboard)
def get_plan_dashboard(
    plan_id: int,
    now: datetime | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
) -> Dashboard:
    user_id = get_user_id(x_user_id)
    resolved_now = resolve_now(now)
    with engine.begin() as conn:
        plan = load_plan(conn, fetch_plan_row(conn, plan_id, user_id))
        window = plan_window(plan, resolved_now)
        txn_items = fetch_window_transactions(conn, user_id, window)
    return build_dashboard(plan, txn_items, resolved_now)
