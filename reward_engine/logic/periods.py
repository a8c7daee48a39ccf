from calendar import monthrange
from datetime import datetime
from typing import Tuple

from reward_engine.types import PeriodType


def _anchored(year: int, month: int, anchor_day: int) -> datetime:
    # Day 31 in February becomes the 28th/29th
    _, last_day = monthrange(year, month)
    return datetime(year, month, min(max(anchor_day, 1), last_day))


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def period_window(
    period: PeriodType, ref_date: datetime, anchor_day: int = 1
) -> Tuple[datetime, datetime]:
    """
    Calculates the half-open [start, end) window of the period containing ref_date.

    - CALENDAR: 1st of the month to 1st of the next month
    - STATEMENT: statement day (anchor) to the next statement day, so a
      period may span two calendar months
    """
    ref_date = ref_date.replace(tzinfo=None)
    year = ref_date.year
    month = ref_date.month

    if period == PeriodType.STATEMENT:
        start = _anchored(year, month, anchor_day)
        if ref_date < start:
            year, month = _shift_month(year, month, -1)
            start = _anchored(year, month, anchor_day)
        next_year, next_month = _shift_month(year, month, 1)
        end = _anchored(next_year, next_month, anchor_day)
        return start, end

    start = datetime(year, month, 1)
    next_year, next_month = _shift_month(year, month, 1)
    end = datetime(next_year, next_month, 1)
    return start, end
