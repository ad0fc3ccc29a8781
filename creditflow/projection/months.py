"""
Month token arithmetic.

A month token is a zero-padded "YYYY-MM" string. Because of the padding,
plain string comparison orders tokens chronologically, and every min/max
and range walk in the projection relies on that.
"""

import calendar
import re
from datetime import date
from typing import Optional

from creditflow.models.finance import MONTH_TOKEN_PATTERN


_MONTH_TOKEN_RE = re.compile(MONTH_TOKEN_PATTERN)

MONTH_ABBREVIATIONS = {
    "pt-BR": ["jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"],
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
}
DEFAULT_LOCALE = "pt-BR"


def parse_month(token: str) -> tuple[int, int]:
    """Split a month token into (year, month). Raises ValueError if malformed."""
    if not isinstance(token, str) or not _MONTH_TOKEN_RE.match(token):
        raise ValueError(f"Invalid month token: {token!r} (expected YYYY-MM)")
    year, month = token.split("-")
    return int(year), int(month)


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def is_month_token(value: object) -> bool:
    return isinstance(value, str) and bool(_MONTH_TOKEN_RE.match(value))


def add_months(token: str, n: int) -> str:
    """
    Return the token `n` months after `token`.

    Negative `n` walks backwards; years roll over in both directions.
    """
    year, month = parse_month(token)
    year_offset, month_index = divmod(month - 1 + n, 12)
    return format_month(year + year_offset, month_index + 1)


def month_range(first: str, last: str) -> list[str]:
    """Every month token from `first` to `last`, inclusive, one step at a time."""
    months = []
    current = first
    while current <= last:
        months.append(current)
        current = add_months(current, 1)
    return months


def month_of(day: date) -> str:
    return format_month(day.year, day.month)


def current_month(today: Optional[date] = None) -> str:
    return month_of(today or date.today())


def format_display_label(token: str, locale: str = DEFAULT_LOCALE) -> str:
    """
    Abbreviated month and 2-digit year, e.g. "jan/24".

    Display only; never used as a key or for ordering.
    """
    year, month = parse_month(token)
    names = MONTH_ABBREVIATIONS.get(locale, MONTH_ABBREVIATIONS[DEFAULT_LOCALE])
    return f"{names[month - 1]}/{year % 100:02d}"


def due_date_for(token: str, due_day: int) -> date:
    """
    The date a card's invoice for `token` is due.

    A due day past the end of the month falls on the month's last day.
    """
    year, month = parse_month(token)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(due_day, 1), last_day))
