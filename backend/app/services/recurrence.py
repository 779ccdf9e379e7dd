"""Recurrence rules for recurring invoice templates.

Pure date and eligibility helpers: nothing here touches the database.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime

from backend.app.core.time import as_date

CADENCE_MONTHS = {
    "mensuel": 1,
    "trimestriel": 3,
    "annuel": 12,
}


def _add_months(value: date, months: int) -> tuple[int, int]:
    month_index = value.month - 1 + months
    return value.year + month_index // 12, month_index % 12 + 1


def compute_next_occurrence(last_date: date | datetime, cadence: str, anchor_day: int) -> date:
    """Advance ``last_date`` by one cadence step and land on ``anchor_day``.

    The anchor is clamped to the length of the target month, so an anchor of 31
    falls on April 30 or on February 28/29.
    """
    if cadence not in CADENCE_MONTHS:
        raise ValueError(f"Unsupported recurrence cadence: {cadence!r}")
    if not 1 <= anchor_day <= 31:
        raise ValueError("anchor_day must be between 1 and 31")

    year, month = _add_months(as_date(last_date), CADENCE_MONTHS[cadence])
    days_in_month = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, days_in_month))


def limit_reached(template) -> bool:
    max_occurrences = template.max_occurrences
    return bool(max_occurrences) and (template.occurrences_count or 0) >= max_occurrences


def past_end_date(template, now: date | datetime) -> bool:
    return template.end_date is not None and as_date(now) > template.end_date


def is_eligible_to_generate(template, now: date | datetime) -> bool:
    """Return True when the template may still produce an invoice at ``now``.

    A template with neither ``max_occurrences`` nor ``end_date`` runs
    indefinitely.
    """
    if template.is_recurring not in CADENCE_MONTHS:
        return False
    if limit_reached(template):
        return False
    if past_end_date(template, now):
        return False
    return True


def should_continue(
    new_occurrence_count: int,
    next_date: date,
    max_occurrences: int | None,
    end_date: date | None,
) -> bool:
    """Decide whether a template stays active after producing an occurrence."""
    within_limit = not max_occurrences or new_occurrence_count < max_occurrences
    within_dates = end_date is None or next_date <= end_date
    return within_limit and within_dates


@dataclass
class RecurringStatus:
    status: str
    progress: int
    remaining: int | None


def get_recurring_status(template, now: date | datetime) -> RecurringStatus:
    if template.is_recurring not in CADENCE_MONTHS:
        return RecurringStatus(status="inactive", progress=0, remaining=0)

    occurrences = template.occurrences_count or 0
    max_occurrences = template.max_occurrences

    if not max_occurrences:
        status = "expired" if past_end_date(template, now) else "active"
        return RecurringStatus(status=status, progress=0, remaining=None)

    remaining = max_occurrences - occurrences
    progress = round(occurrences / max_occurrences * 100)

    if remaining <= 0:
        return RecurringStatus(status="completed", progress=100, remaining=0)
    if past_end_date(template, now):
        return RecurringStatus(status="expired", progress=progress, remaining=remaining)
    return RecurringStatus(status="active", progress=progress, remaining=remaining)
