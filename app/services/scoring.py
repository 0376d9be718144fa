"""Deadline status classification, compliance score and deadline generation."""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Iterable

from app.models.deadline import DeadlineStatus
from app.services.jurisdictions import read_field

DUE_SOON_DAYS = 30
CRITICAL_RULE_KEYS = ("str_license", "insurance", "fire_inspection")
CRITICAL_RULE_PENALTY = 20
OVERDUE_PENALTY = 10
MAX_OVERDUE_PENALTY = 40

_DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class PropertyDeadline:
    rule_key: str
    due_date: date
    status: DeadlineStatus


def as_datetime(value: date | datetime | str, now: datetime) -> datetime:
    """Dates (and ISO date strings) are read as midnight in `now`'s timezone."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None and now.tzinfo is not None:
            return value.replace(tzinfo=now.tzinfo)
        if value.tzinfo is not None and now.tzinfo is None:
            return value.astimezone().replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min, tzinfo=now.tzinfo)


def days_until(due: date | datetime | str, now: datetime) -> int:
    """Whole days from `now` to `due`, rounded up (a few hours ahead counts as 1, a few hours past as 0)."""
    delta = as_datetime(due, now) - now
    return math.ceil(delta.total_seconds() / _DAY_SECONDS)


def calculate_deadline_status(due_date: date | datetime | str, now: datetime | None = None) -> DeadlineStatus:
    if now is None:
        now = datetime.now(timezone.utc)
    due = as_datetime(due_date, now)
    diff_days = days_until(due, now)
    # Ceiling puts anything less than a day past at 0; past is past.
    if diff_days < 0 or due < now:
        return DeadlineStatus.overdue
    if diff_days <= DUE_SOON_DAYS:
        return DeadlineStatus.due_soon
    return DeadlineStatus.ok


def calculate_compliance_score(deadlines: Iterable[Any]) -> int:
    """0-100. Missing critical items count the same as due-soon/overdue ones.

    A critical item that is overdue is penalised twice (critical key and overdue count).
    """
    deadlines = list(deadlines)
    score = 100

    by_key: dict[str, Any] = {}
    for d in deadlines:
        by_key.setdefault(read_field(d, "rule_key"), d)

    for key in CRITICAL_RULE_KEYS:
        deadline = by_key.get(key)
        if deadline is None or _status(deadline) in (DeadlineStatus.due_soon, DeadlineStatus.overdue):
            score -= CRITICAL_RULE_PENALTY

    overdue_count = sum(1 for d in deadlines if _status(d) == DeadlineStatus.overdue)
    score -= min(overdue_count * OVERDUE_PENALTY, MAX_OVERDUE_PENALTY)

    return max(score, 0)


def _status(deadline: Any) -> DeadlineStatus | None:
    value = read_field(deadline, "status")
    if value is None:
        return None
    try:
        return DeadlineStatus(value)
    except ValueError:
        return None


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


_FREQUENCY_MONTHS = {"P1Y": 12, "P6M": 6, "P3M": 3}


def next_due_for_frequency(frequency_iso: str | None, today: date) -> date:
    """Unknown or missing frequency means the deadline is today."""
    months = _FREQUENCY_MONTHS.get((frequency_iso or "").upper())
    if months is None:
        return today
    return add_months(today, months)


def generate_deadlines(rules: Iterable[Any], now: datetime | None = None) -> list[PropertyDeadline]:
    """One deadline per municipal deadline rule (`key`, `frequency_iso`), due one period from today."""
    if now is None:
        now = datetime.now(timezone.utc)
    today = now.date()
    deadlines = []
    for rule in rules:
        due = next_due_for_frequency(read_field(rule, "frequency_iso"), today)
        deadlines.append(PropertyDeadline(
            rule_key=read_field(rule, "key"),
            due_date=due,
            status=calculate_deadline_status(due, now),
        ))
    return deadlines


def deadlines_needing_attention(deadlines: Iterable[Any]) -> list[Any]:
    return [d for d in deadlines if _status(d) in (DeadlineStatus.due_soon, DeadlineStatus.overdue)]


def refresh_statuses(deadlines: Iterable[Any], now: datetime) -> list[PropertyDeadline]:
    """Re-classify stored deadlines against `now` (statuses drift as days pass)."""
    return [
        PropertyDeadline(
            rule_key=read_field(d, "rule_key"),
            due_date=read_field(d, "due_date"),
            status=calculate_deadline_status(read_field(d, "due_date"), now),
        )
        for d in deadlines
    ]

