from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

WEEKLY_DAYS = 7
BIWEEKLY_DAYS = 14
MAX_PERIOD_HISTORY = 52
DEFAULT_TIME_ZONE = "America/New_York"
# Only stability matters for this value: every biweekly plan created without
# an explicit anchor lines up on the same fortnight grid.
DEFAULT_BIWEEKLY_ANCHOR = date(2025, 1, 6)


class PeriodType(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


PERIOD_LABEL_KEYS = {
    PeriodType.WEEKLY: "this_week",
    PeriodType.BIWEEKLY: "this_2_weeks",
    PeriodType.MONTHLY: "this_month",
}


class MissingAnchorError(ValueError):
    """Raised when a biweekly window is requested without an anchor."""


@dataclass(frozen=True)
class PeriodWindow:
    period_type: PeriodType
    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime
    anchor: Optional[date] = None

    @property
    def start_date(self) -> date:
        return self.start_local.date()

    @property
    def end_date(self) -> date:
        return self.end_local.date()

    @property
    def time_zone(self) -> str:
        return str(self.start_local.tzinfo)

    def local_date_of(self, instant: datetime) -> date:
        return to_utc(instant).astimezone(self.start_local.tzinfo).date()

    def contains(self, instant: datetime) -> bool:
        return self.start_utc <= to_utc(instant) < self.end_utc

    def contains_date(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


def compute_window(
    period_type: PeriodType | str,
    now: datetime,
    time_zone: str | None,
    anchor: date | datetime | None = None,
) -> PeriodWindow:
    """Return the period containing ``now``, as seen in ``time_zone``.

    All day arithmetic happens on local calendar dates; instants are only
    produced at the end by converting local midnights back to UTC. The start
    is inclusive and the end exclusive, so a boundary instant belongs to the
    later window.
    """
    normalized_type = normalize_period_type(period_type)
    zone = resolve_zone(time_zone)
    today = to_utc(now).astimezone(zone).date()

    if normalized_type is PeriodType.MONTHLY:
        start_day = today.replace(day=1)
        end_day = shift_month(start_day, 1)
        anchor_day = None
    elif normalized_type is PeriodType.WEEKLY:
        start_day = week_start(today)
        end_day = start_day + timedelta(days=WEEKLY_DAYS)
        anchor_day = None
    else:
        if anchor is None:
            raise MissingAnchorError("BIWEEKLY periods require an anchor date.")
        anchor_day = week_start(_anchor_local_date(anchor, zone))
        blocks = (today - anchor_day).days // BIWEEKLY_DAYS
        start_day = anchor_day + timedelta(days=BIWEEKLY_DAYS * blocks)
        end_day = start_day + timedelta(days=BIWEEKLY_DAYS)

    return _build_window(normalized_type, start_day, end_day, zone, anchor_day)


def next_period_start(
    period_type: PeriodType | str,
    time_zone: str | None,
    start_utc: datetime,
) -> datetime:
    normalized_type = normalize_period_type(period_type)
    zone = resolve_zone(time_zone)
    start_day = to_utc(start_utc).astimezone(zone).date()
    if normalized_type is PeriodType.MONTHLY:
        next_day = shift_month(start_day.replace(day=1), 1)
    elif normalized_type is PeriodType.WEEKLY:
        next_day = start_day + timedelta(days=WEEKLY_DAYS)
    else:
        next_day = start_day + timedelta(days=BIWEEKLY_DAYS)
    return local_midnight(next_day, zone).astimezone(timezone.utc)


def ensure_period_end(
    start_utc: datetime,
    end_utc: datetime | None,
    period_type: PeriodType | str,
    time_zone: str | None,
) -> datetime:
    """Plans stored before period ends were persisted carry no end; derive one."""
    if end_utc is not None:
        return to_utc(end_utc)
    return next_period_start(period_type, time_zone, start_utc)


def period_start_list(
    period_type: PeriodType | str,
    time_zone: str | None,
    start_utc: datetime,
    count: int,
) -> List[datetime]:
    """Starts of the current period and the ``count - 1`` before it, newest first."""
    normalized_type = normalize_period_type(period_type)
    zone = resolve_zone(time_zone)
    periods = min(MAX_PERIOD_HISTORY, max(1, int(count)))
    base_day = to_utc(start_utc).astimezone(zone).date()

    starts: List[datetime] = []
    for offset in range(periods):
        if normalized_type is PeriodType.MONTHLY:
            day = shift_month(base_day.replace(day=1), -offset)
        elif normalized_type is PeriodType.WEEKLY:
            day = base_day - timedelta(days=WEEKLY_DAYS * offset)
        else:
            day = base_day - timedelta(days=BIWEEKLY_DAYS * offset)
        starts.append(local_midnight(day, zone).astimezone(timezone.utc))
    return starts


def period_label_key(period_type: PeriodType | str) -> str:
    return PERIOD_LABEL_KEYS[normalize_period_type(period_type)]


def normalize_period_type(
    value: PeriodType | str | None,
    fallback: PeriodType | None = None,
) -> PeriodType:
    if isinstance(value, PeriodType):
        return value
    normalized = "".join(ch for ch in (value or "").strip().upper() if ch.isalpha())
    try:
        return PeriodType(normalized)
    except ValueError as exc:
        if fallback is not None:
            return fallback
        raise ValueError("Only WEEKLY, BIWEEKLY, or MONTHLY periods are supported.") from exc


def resolve_zone(time_zone: str | None) -> ZoneInfo:
    name = (time_zone or "").strip()
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone %r; falling back to %s", name, DEFAULT_TIME_ZONE)
    return ZoneInfo(DEFAULT_TIME_ZONE)


def normalize_time_zone(time_zone: str | None) -> str:
    return resolve_zone(time_zone).key


def to_utc(instant: datetime) -> datetime:
    """Naive datetimes are read as UTC, which is how the store hands them back."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_midnight(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone)


def week_start(day: date) -> date:
    # Monday is weekday 0, so Sunday rolls back six days.
    return day - timedelta(days=day.weekday())


def shift_month(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def _anchor_local_date(anchor: date | datetime, zone: ZoneInfo) -> date:
    if isinstance(anchor, datetime):
        return to_utc(anchor).astimezone(zone).date()
    return anchor


def _build_window(
    period_type: PeriodType,
    start_day: date,
    end_day: date,
    zone: ZoneInfo,
    anchor_day: date | None,
) -> PeriodWindow:
    start_local = local_midnight(start_day, zone)
    end_local = local_midnight(end_day, zone)
    start_utc = start_local.astimezone(timezone.utc)
    end_utc = end_local.astimezone(timezone.utc)
    if end_utc <= start_utc:
        raise ValueError(
            f"Invalid {period_type.value} window in {zone.key}: "
            f"end {end_utc.isoformat()} is not after start {start_utc.isoformat()}"
        )
    return PeriodWindow(
        period_type=period_type,
        start_utc=start_utc,
        end_utc=end_utc,
        start_local=start_local,
        end_local=end_local,
        anchor=anchor_day,
    )
