"""Date generation for recurring content schedules."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional

from .constants import RECURRING_DEFAULT_COUNT, RECURRING_MAX_COUNT


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


FREQUENCY_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by calendar months, clamping the day to the month length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def nth_occurrence(start: date, frequency: Frequency, n: int) -> date:
    if frequency is Frequency.MONTHLY:
        return add_months(start, n)
    return start + timedelta(days=FREQUENCY_DAYS[frequency] * n)


def generate_recurring_dates(
    frequency: Frequency | str,
    start: date,
    end: Optional[date] = None,
    count: int = RECURRING_DEFAULT_COUNT,
) -> List[date]:
    """Return up to ``count`` dates, one period apart, following ``start``.

    Generation stops at ``count`` dates or at the first date past ``end``,
    whichever comes first.

    Raises:
        ValueError: For an unknown frequency or a count outside 1..52.
    """
    frequency = Frequency(frequency)
    if not 1 <= count <= RECURRING_MAX_COUNT:
        raise ValueError(f"count must be between 1 and {RECURRING_MAX_COUNT}, got {count}")

    dates = []
    for n in range(1, count + 1):
        occurrence = nth_occurrence(start, frequency, n)
        if end is not None and occurrence > end:
            break
        dates.append(occurrence)
    return dates


def render_title(template: str, n: int) -> str:
    """Substitute the 1-based occurrence number for ``{n}`` in ``template``."""
    return template.replace("{n}", str(n))
