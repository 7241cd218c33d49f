# date_normalizer.py
"""
Date normalization for query conditions.

The translator emits dates in several idioms: canonical YYYY-MM-DD, partial
months, SQL CURRENT_DATE arithmetic and SQLite-style 'now' modifiers.
normalize() turns any of them into a YYYY-MM-DD string and never raises.
"""
import calendar
import logging
import re
from datetime import date, datetime, timedelta

import settings

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2})"
    # optional time of day; only the date part is kept
    r"(?:[T ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")
_YEAR = re.compile(r"^(\d{4})$")
_CURRENT_DATE = re.compile(
    r"^CURRENT_DATE(?:\s*(?P<sign>[+-])\s*INTERVAL\s*'?\s*(?P<n>\d+)\s*(?P<unit>DAY|MONTH)S?\s*'?)?$",
    re.IGNORECASE,
)
_NOW_MODIFIER = re.compile(
    r"(?P<shift>[+-]\s*\d+)\s*(?P<unit>day|month)s?|(?P<start>start\s+of\s+month)",
    re.IGNORECASE,
)


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _from_iso(year: int, month: int, day: int, today: date, correct_year: bool) -> date | None:
    if year < 1 or not 1 <= month <= 12 or day < 1:
        return None
    # clamp impossible days such as 2024-02-30 to the end of the month
    day = min(day, _last_day(year, month))
    parsed = date(year, month, day)

    if correct_year and year != today.year:
        try:
            guess = date(today.year, month, day)
        except ValueError:
            return parsed
        if today <= guess <= _add_months(today, 6):
            logger.info("Rewriting year of %s to %s", parsed.isoformat(), guess.isoformat())
            return guess
    return parsed


def _apply_now_modifiers(text: str, today: date) -> date:
    result = today
    for match in _NOW_MODIFIER.finditer(text):
        if match.group("start"):
            result = result.replace(day=1)
            continue
        amount = int(match.group("shift").replace(" ", ""))
        if match.group("unit").lower() == "month":
            result = _add_months(result, amount)
        else:
            result = result + timedelta(days=amount)
    return result


def normalize(
    text,
    today: date | None = None,
    end_of_period: bool = False,
    correct_year: bool | None = None,
) -> str:
    """
    Return `text` as a canonical YYYY-MM-DD date.

    Args:
        text: date expression emitted by the translator
        today: reference date for relative expressions (defaults to date.today())
        end_of_period: resolve partial dates (YYYY-MM, YYYY) to the last day
            of the period instead of the first
        correct_year: override settings.DATE_YEAR_CORRECTION
    """
    today = today or date.today()
    if correct_year is None:
        correct_year = settings.DATE_YEAR_CORRECTION

    if isinstance(text, datetime):
        return text.date().isoformat()
    if isinstance(text, date):
        return text.isoformat()

    raw = str(text or "").strip().strip("'\"").strip()

    match = _ISO_DATE.match(raw)
    if match:
        parsed = _from_iso(*(int(g) for g in match.groups()), today=today, correct_year=correct_year)
        if parsed:
            return parsed.isoformat()

    match = _YEAR_MONTH.match(raw)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            day = _last_day(year, month) if end_of_period else 1
            return date(year, month, day).isoformat()

    match = _YEAR.match(raw)
    if match:
        year = int(match.group(1))
        return (date(year, 12, 31) if end_of_period else date(year, 1, 1)).isoformat()

    match = _CURRENT_DATE.match(raw)
    if match:
        if not match.group("sign"):
            return today.isoformat()
        amount = int(match.group("n"))
        if match.group("sign") == "-":
            amount = -amount
        if match.group("unit").upper() == "MONTH":
            return _add_months(today, amount).isoformat()
        return (today + timedelta(days=amount)).isoformat()

    if re.search(r"\bnow\b", raw, re.IGNORECASE):
        return _apply_now_modifiers(raw, today).isoformat()

    logger.warning("Unrecognized date expression %r, falling back to today", text)
    return today.isoformat()


def normalize_range(start, end, today: date | None = None) -> tuple:
    """Normalize a BETWEEN range so that start <= end."""
    lower = normalize(start, today=today)
    upper = normalize(end, today=today, end_of_period=True)
    if lower > upper:
        logger.debug("Swapping reversed date range %s..%s", lower, upper)
        lower, upper = upper, lower
    return lower, upper
