"""
Date utility functions for week-based timecard requests.

This module parses the YYYY-MM-DD dates the server expects and computes
the Monday-first week a date belongs to.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from .models import DAYS_PER_WEEK

DATE_FORMAT = '%Y-%m-%d'


class DateParseError(ValueError):
    """Exception raised when date parsing fails."""
    pass


def parse_date(text: str) -> date:
    """
    Parse a YYYY-MM-DD date string.

    Args:
        text: Date string

    Returns:
        Parsed date

    Raises:
        DateParseError: If the text is empty or not a valid date

    Examples:
        >>> parse_date("2025-01-08")
        datetime.date(2025, 1, 8)
    """
    if not text or not text.strip():
        raise DateParseError("Date cannot be empty")

    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError:
        raise DateParseError(f"Invalid date: '{text}'. Expected format: YYYY-MM-DD")


def week_start(day: date) -> date:
    """
    Return the Monday of the week containing a date.

    Examples:
        >>> week_start(date(2025, 1, 8))
        datetime.date(2025, 1, 6)
    """
    return day - timedelta(days=day.weekday())


def format_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def today_string(today: Optional[date] = None) -> str:
    """Return today's date as YYYY-MM-DD."""
    return format_date(today or date.today())


def default_week_start(today: Optional[date] = None) -> str:
    """Return the Monday of the current week as YYYY-MM-DD."""
    return format_date(week_start(today or date.today()))


def week_dates(start: str) -> List[date]:
    """
    Return the seven dates of the week starting on a date.

    Raises:
        DateParseError: If start is not a valid date
    """
    first = parse_date(start)
    return [first + timedelta(days=offset) for offset in range(DAYS_PER_WEEK)]


def day_headers(start: str) -> List[str]:
    """
    Build column headers like 'Mon 01/06' for the week starting on a date.

    Examples:
        >>> day_headers("2025-01-06")[:2]
        ['Mon 01/06', 'Tue 01/07']
    """
    return [d.strftime('%a %m/%d') for d in week_dates(start)]
