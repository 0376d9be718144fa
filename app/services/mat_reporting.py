"""Municipal Accommodation Tax (MAT) reporting schedules and next-due-date calculation."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.services.jurisdictions import normalize_municipality


class MATPropertyType(str, enum.Enum):
    hotel = "hotel"
    str = "str"


class AppliesTo(str, enum.Enum):
    hotel = "hotel"
    str = "str"
    both = "both"


class ReportingFrequency(str, enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"


@dataclass(frozen=True)
class MATReportingConfig:
    applies_to: AppliesTo
    reporting_frequency: ReportingFrequency
    due_description: str
    requires_zero_return: bool
    bylaw_reference: str
    # None when the by-law gives the due date only in prose
    due_offset_days: int | None = None


@dataclass(frozen=True)
class MATDueDate:
    due_date: datetime | None
    description: str
    requires_zero_return: bool


TORONTO_CH_758 = "Toronto Municipal Code Chapter 758"
NEWMARKET_MAT = "Municipal Accommodation Tax By-law 2024-68"
VAUGHAN_MAT = "Vaughan MAT By-law 183-2019"

MAT_REPORTING_RULES: dict[str, tuple[MATReportingConfig, ...]] = {
    "toronto": (
        MATReportingConfig(AppliesTo.hotel, ReportingFrequency.monthly,
                           "Within 15 days after month-end", True, TORONTO_CH_758, due_offset_days=15),
        MATReportingConfig(AppliesTo.str, ReportingFrequency.quarterly,
                           "Within 30 days after quarter-end", True, TORONTO_CH_758, due_offset_days=30),
    ),
    "mississauga": (
        MATReportingConfig(AppliesTo.both, ReportingFrequency.monthly,
                           "On or before last day of following month", True,
                           "Municipal Accommodation Tax Policy 04-02-06 (By-law 0023-2018)"),
    ),
    "brampton": (
        MATReportingConfig(AppliesTo.both, ReportingFrequency.quarterly,
                           "As per official MAT schedule (configurable)", True, "MAT By-law 106-2023"),
    ),
    "vaughan": (
        MATReportingConfig(AppliesTo.hotel, ReportingFrequency.monthly,
                           "As per MAT by-law schedule", True, VAUGHAN_MAT),
        MATReportingConfig(AppliesTo.str, ReportingFrequency.quarterly,
                           "As per MAT by-law schedule", True, VAUGHAN_MAT),
    ),
    "newmarket": (
        MATReportingConfig(AppliesTo.hotel, ReportingFrequency.monthly,
                           "Within 15 days after month-end", True, NEWMARKET_MAT, due_offset_days=15),
        MATReportingConfig(AppliesTo.str, ReportingFrequency.quarterly,
                           "Within 15 days after quarter-end", True, NEWMARKET_MAT, due_offset_days=15),
    ),
    "hamilton": (
        MATReportingConfig(AppliesTo.both, ReportingFrequency.monthly,
                           "As per by-law-defined due date (configurable)", True, "Hamilton MAT By-law No. 22-209"),
    ),
}


def get_mat_reporting_rules(municipality: str | None, property_type: MATPropertyType | str) -> MATReportingConfig | None:
    """Specific rule for the property type beats the municipality's generic ('both') rule."""
    rules = MAT_REPORTING_RULES.get(normalize_municipality(municipality), ())
    try:
        wanted = MATPropertyType(property_type).value
    except ValueError:
        return None
    for rule in rules:
        if rule.applies_to.value == wanted:
            return rule
    for rule in rules:
        if rule.applies_to == AppliesTo.both:
            return rule
    return None


def _first_of_next_month(now: datetime) -> datetime:
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=now.tzinfo)
    return datetime(now.year, now.month + 1, 1, tzinfo=now.tzinfo)


def next_quarter_start(now: datetime) -> datetime:
    """First day of the quarter after the one containing `now` (a quarter's first day maps to the next one)."""
    quarter = (now.month - 1) // 3
    month = (quarter + 1) * 3 + 1
    if month > 12:
        return datetime(now.year + 1, 1, 1, tzinfo=now.tzinfo)
    return datetime(now.year, month, 1, tzinfo=now.tzinfo)


def calculate_next_mat_due_date(
    municipality: str | None,
    property_type: MATPropertyType | str,
    now: datetime | None = None,
) -> MATDueDate | None:
    """Next MAT filing deadline, or None when the municipality has no MAT rule for this type.

    Monthly: the offset is a day-of-month in the month after `now`.
    Quarterly: the offset is a number of days added to the next quarter's start.
    """
    rule = get_mat_reporting_rules(municipality, property_type)
    if rule is None:
        return None
    if now is None:
        now = datetime.now().astimezone()

    due_date: datetime | None = None
    if rule.due_offset_days:
        if rule.reporting_frequency == ReportingFrequency.monthly:
            due_date = _first_of_next_month(now) + timedelta(days=rule.due_offset_days - 1)
        elif rule.reporting_frequency == ReportingFrequency.quarterly:
            due_date = next_quarter_start(now) + timedelta(days=rule.due_offset_days)

    return MATDueDate(
        due_date=due_date,
        description=rule.due_description,
        requires_zero_return=rule.requires_zero_return,
    )
