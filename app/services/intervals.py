# app/services/intervals.py
"""
Calendar-date interval helpers shared by the ledgers and the reports.

All ranges are inclusive on both ends and measured in whole days, so two
ranges that touch on a single date overlap by one day.
"""
import calendar
import math
from datetime import date, datetime
from typing import Iterator, Optional, Tuple

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from app.services.errors import InvalidInput


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and b_start <= a_end


def span_days(start: date, end: date) -> int:
    return (end - start).days + 1


def intersection_days(a_start: date, a_end: date, b_start: date, b_end: date) -> int:
    """
    Number of days both ranges cover; 0 when they are disjoint.
    """
    days = (min(a_end, b_end) - max(a_start, b_start)).days + 1
    return max(0, days)


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; percentages round .5 up.
    return int(math.floor(value + 0.5))


def parse_calendar_date(value: object, field_name: str) -> date:
    """
    Normalize a date, datetime or ISO-8601 string to a calendar date.

    Any time-of-day component is dropped; no timezone conversion happens.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(
            f"Invalid {field_name} format. Use YYYY-MM-DD format",
            hint="Please use YYYY-MM-DD format (e.g., 2025-01-15)",
        )
    try:
        return dateparser.isoparse(value.strip()).date()
    except (ValueError, OverflowError) as exc:
        raise InvalidInput(
            f"Invalid {field_name} format. Use YYYY-MM-DD format",
            hint="Please use YYYY-MM-DD format (e.g., 2025-01-15)",
        ) from exc


def parse_optional_date(value: object, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_calendar_date(value, field_name)


def add_months(value: date, months: int) -> date:
    return value + relativedelta(months=months)


def month_bounds(value: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(value.year, value.month)[1]
    return date(value.year, value.month, 1), date(value.year, value.month, last_day)


def month_buckets(start: date, end: date) -> Iterator[Tuple[date, date, date]]:
    """
    Yield (step, first_day, last_day) for each calendar month visited when
    stepping from `start` one month at a time while the step is <= `end`.

    The buckets always span the full calendar month, even when `start`
    falls mid-month.
    """
    step_index = 0
    current = start
    while current <= end:
        first_day, last_day = month_bounds(current)
        yield current, first_day, last_day
        step_index += 1
        # Step from the origin so a 31st does not drift to the 28th/30th.
        current = add_months(start, step_index)
