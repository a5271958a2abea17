"""Date parsing shared by the syntax extractor and the filter engine.

Everything here is deterministic given `today`: the same text and the same
reference day always resolve to the same calendar date or window.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import dateparser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

DateWindow = Tuple[date, date]

# Keywords understood as due-date filter values (besides dates and offsets)
DUE_DATE_KEYWORDS = frozenset(
    [
        "today", "tomorrow", "yesterday", "overdue", "future",
        "week", "this-week", "last-week", "next-week",
        "month", "this-month", "last-month", "next-month",
        "year", "this-year", "last-year", "next-year",
        "any", "all", "none", "no date",
    ]
)

_ISO_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")
_RELATIVE_RE = re.compile(r"^([+-]?)(\d+)\s*([dwmy])$")
_IN_UNITS_RE = re.compile(r"^in\s+(\d+)\s+(day|week|month|year)s?$")
_AGO_RE = re.compile(r"^(\d+)\s+(day|week|month|year)s?\s+ago$")
_NAMED_PERIOD_RE = re.compile(r"^(next|this|last)\s+(week|month|year)$")
_ANCHOR_RE = re.compile(r"^(?:(last|next|this)-)?(week|month|year)-(start|end)$")
_WEEKDAY_RE = re.compile(
    r"^(?:(next|this|last)\s+)?(mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)(?:day|nesday|rsday|urday)?$"
)

_WEEKDAY_INDEX = {
    "mon": 0, "tue": 1, "tues": 1, "wed": 2, "thu": 3, "thur": 3, "thurs": 3,
    "fri": 4, "sat": 5, "sun": 6,
}

_UNIT_DELTAS = {
    "d": lambda n: relativedelta(days=n),
    "w": lambda n: relativedelta(weeks=n),
    "m": lambda n: relativedelta(months=n),
    "y": lambda n: relativedelta(years=n),
}


def start_of_week(day: date, week_start: int = 0) -> date:
    """First day of the week containing `day` (week_start: 0 = Monday)."""
    return day - timedelta(days=(day.weekday() - week_start) % 7)


def period_window(period: str, offset: int, today: date, week_start: int = 0) -> DateWindow:
    """Inclusive (start, end) of the week/month/year `offset` periods from today's."""
    if period == "week":
        start = start_of_week(today, week_start) + timedelta(weeks=offset)
        return start, start + timedelta(days=6)
    if period == "month":
        start = today.replace(day=1) + relativedelta(months=offset)
        return start, start + relativedelta(months=1) - timedelta(days=1)
    if period == "year":
        start = date(today.year + offset, 1, 1)
        return start, date(today.year + offset, 12, 31)
    raise ValueError(f"Unknown period: {period}")


_OFFSETS = {"last": -1, "this": 0, "next": 1, None: 0}


def keyword_window(keyword: str, today: date, week_start: int = 0) -> Optional[DateWindow]:
    """Window for period keywords such as 'week', 'last-month' or 'next-year'."""
    m = re.match(r"^(?:(last|this|next)-)?(week|month|year)$", keyword)
    if not m:
        return None
    return period_window(m.group(2), _OFFSETS[m.group(1)], today, week_start)


def resolve_anchor(text: str, today: date, week_start: int = 0) -> Optional[date]:
    """Resolve symbolic anchors such as 'week-start' or 'next-month-end'."""
    m = _ANCHOR_RE.match(text)
    if not m:
        return None
    start, end = period_window(m.group(2), _OFFSETS[m.group(1)], today, week_start)
    return start if m.group(3) == "start" else end


def parse_relative_offset(text: str, today: date) -> Optional[date]:
    """Resolve '+3d', '-2w', '1m', '+1y' against today."""
    m = _RELATIVE_RE.match(text)
    if not m:
        return None
    n = int(m.group(2))
    if m.group(1) == "-":
        n = -n
    return today + _UNIT_DELTAS[m.group(3)](n)


def is_relative_offset(text: str) -> bool:
    return bool(_RELATIVE_RE.match((text or "").strip().lower()))


def _parse_weekday(m: re.Match, today: date, week_start: int) -> date:
    modifier = m.group(1)
    target = _WEEKDAY_INDEX[m.group(2)]
    if modifier == "next":
        base = start_of_week(today, week_start) + timedelta(weeks=1)
        return base + timedelta(days=(target - base.weekday()) % 7)
    if modifier == "last":
        back = (today.weekday() - target) % 7 or 7
        return today - timedelta(days=back)
    return today + timedelta(days=(target - today.weekday()) % 7)


def parse_date(text: str, today: Optional[date] = None, week_start: int = 0) -> Optional[date]:
    """Parse an absolute or natural-language date.

    Recognized, in order: ISO dates, today/tomorrow/yesterday, anchors
    (week-start, month-end, ...), relative offsets (+3d), 'in N units',
    'N units ago', 'next/this/last week|month|year' (start of that period),
    weekday names, and finally anything dateparser understands.

    Args:
        text: Text to parse
        today: Reference day (defaults to date.today())
        week_start: First day of the week, 0 = Monday

    Returns:
        The resolved date, or None if the text is not a date
    """
    today = today or date.today()
    value = (text or "").strip().lower().strip("\"'")
    if not value:
        return None

    try:
        m = _ISO_RE.match(value)
        if m:
            try:
                return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                return None

        if value == "today":
            return today
        if value == "tomorrow":
            return today + timedelta(days=1)
        if value == "yesterday":
            return today - timedelta(days=1)

        anchored = resolve_anchor(value, today, week_start)
        if anchored:
            return anchored

        relative = parse_relative_offset(value, today)
        if relative:
            return relative

        m = _IN_UNITS_RE.match(value)
        if m:
            return today + _UNIT_DELTAS[m.group(2)[0]](int(m.group(1)))

        m = _AGO_RE.match(value)
        if m:
            return today - _UNIT_DELTAS[m.group(2)[0]](int(m.group(1)))

        m = _NAMED_PERIOD_RE.match(value)
        if m:
            return period_window(m.group(2), _OFFSETS[m.group(1)], today, week_start)[0]

        m = _WEEKDAY_RE.match(value)
        if m:
            return _parse_weekday(m, today, week_start)
    except (OverflowError, ValueError):
        logger.debug(f"Date out of range: {value!r}")
        return None

    return _parse_with_dateparser(value, today)


def _parse_with_dateparser(value: str, today: date) -> Optional[date]:
    # Bare numbers and single letters are never dates on their own
    if len(value) < 3 or value.isdigit():
        return None
    try:
        parsed = dateparser.parse(
            value,
            settings={
                "RELATIVE_BASE": datetime.combine(today, time()),
                "PREFER_DATES_FROM": "future",
                "RETURN_AS_TIMEZONE_AWARE": False,
            },
        )
    except (OverflowError, ValueError) as e:
        logger.debug(f"dateparser rejected {value!r}: {type(e).__name__}")
        return None
    return parsed.date() if parsed else None


def normalize_due_value(value: str, today: Optional[date] = None, week_start: int = 0) -> str:
    """Normalize a due-date filter value.

    Keywords and relative offsets stay symbolic so they resolve at filter
    time; anything else that parses becomes an ISO date. A leading '!' is kept.
    """
    raw = (value or "").strip()
    negated = raw.startswith("!")
    body = raw[1:].strip() if negated else raw
    lowered = re.sub(r"\s+", " ", body.lower())
    if lowered in ("nodate", "no-date"):
        lowered = "no date"
    lowered = re.sub(r"^(next|last|this)[ _](week|month|year)$", r"\1-\2", lowered)
    if lowered in DUE_DATE_KEYWORDS or is_relative_offset(lowered):
        normalized = lowered.replace(" ", "") if lowered != "no date" else lowered
    else:
        parsed = parse_date(lowered, today, week_start)
        normalized = parsed.isoformat() if parsed else lowered
    return f"!{normalized}" if negated else normalized
