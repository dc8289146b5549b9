"""Date parsing utilities for history filters."""

from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Accepts absolute dates ("2024-01-15", "Jan 15 2024") and a few relative
    forms: "today", "yesterday", "N days ago", and "this/last week|month|year",
    which resolve to the first day of that period.

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)

    words = text.split()
    if len(words) == 3 and words[1:] == ["days", "ago"] and words[0].isdigit():
        return today - timedelta(days=int(words[0]))

    if len(words) == 2 and words[0] in ("this", "last"):
        start = period_start(words[1], today)
        if start is not None:
            if words[0] == "this":
                return start
            step = {"week": relativedelta(weeks=1), "month": relativedelta(months=1),
                    "year": relativedelta(years=1)}[words[1]]
            return start - step

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def period_start(period: str, today: date) -> date | None:
    """First day of the week (Monday), month or year containing today."""
    if period == "week":
        return today - timedelta(days=today.weekday())
    if period == "month":
        return today.replace(day=1)
    if period == "year":
        return today.replace(month=1, day=1)
    return None
