"""
clinic_agent/core/date_parser.py
================================

Recognises Korean date phrases in a user message and turns them into an
inclusive ``{startDate, endDate}`` range (``YYYY-MM-DD``).

Patterns are tried in order and the first one that yields a valid calendar
range wins:

=====================================  ===================================
Phrase                                 Range
=====================================  ===================================
``26년 1월 1일부터 26년 1월 31일``     the two dates (two-digit years +2000)
``2026년 1월 1일부터 2026년 1월 31일`` the two dates
``2026-01-01 ~ 2026-01-31``            the two dates (``~`` or ``부터``)
``최근 3개월``                         today minus 3 months … today
``지난 2주``                           today minus 14 days … today
``26년 1월`` / ``2026년 1월``          first … last day of that month
``올해``                               1 January … today
``이번 달``                            first of this month … today
=====================================  ===================================
"""

import calendar
import re
from datetime import date
from typing import Callable, List, Optional, Tuple, TypedDict

from dateutil.relativedelta import relativedelta


class DateRangeDict(TypedDict):
    startDate: str
    endDate: str


def _year(text: str) -> int:
    year = int(text)
    return 2000 + year if year < 100 else year


def _range(start: date, end: date) -> DateRangeDict:
    return {"startDate": start.isoformat(), "endDate": end.isoformat()}


def _between(match: re.Match, today: date) -> DateRangeDict:
    g = match.groups()
    start = date(_year(g[0]), int(g[1]), int(g[2]))
    end = date(_year(g[3]), int(g[4]), int(g[5]))
    return _range(start, end)


def _recent_months(match: re.Match, today: date) -> DateRangeDict:
    return _range(today - relativedelta(months=int(match.group(1))), today)


def _past_weeks(match: re.Match, today: date) -> DateRangeDict:
    return _range(today - relativedelta(weeks=int(match.group(1))), today)


def _month(match: re.Match, today: date) -> DateRangeDict:
    year, month = _year(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, month)[1]
    return _range(date(year, month, 1), date(year, month, last_day))


def _this_year(match: re.Match, today: date) -> DateRangeDict:
    return _range(date(today.year, 1, 1), today)


def _this_month(match: re.Match, today: date) -> DateRangeDict:
    return _range(today.replace(day=1), today)


_PATTERNS: List[Tuple[re.Pattern, Callable[[re.Match, date], DateRangeDict]]] = [
    (
        re.compile(
            r"(?<!\d)(\d{2})년\s*(\d{1,2})월\s*(\d{1,2})일\s*부터\s*"
            r"(\d{2})년\s*(\d{1,2})월\s*(\d{1,2})일"
        ),
        _between,
    ),
    (
        re.compile(
            r"(\d{4})년\s*(\d{1,2})월\s*(\d{1,2})일\s*부터\s*"
            r"(\d{4})년\s*(\d{1,2})월\s*(\d{1,2})일"
        ),
        _between,
    ),
    (re.compile(r"(\d{4})-(\d{2})-(\d{2})\s*(?:~|부터)\s*(\d{4})-(\d{2})-(\d{2})"), _between),
    (re.compile(r"최근\s*(\d+)\s*개월"), _recent_months),
    (re.compile(r"지난\s*(\d+)\s*주"), _past_weeks),
    (re.compile(r"(?<!\d)(\d{2}|\d{4})년\s*(\d{1,2})월"), _month),
    (re.compile(r"올해"), _this_year),
    (re.compile(r"이번\s*달"), _this_month),
]


def parse_date_range(message: str, today: Optional[date] = None) -> Optional[DateRangeDict]:
    """Return the first date range phrase found in ``message``, or ``None``.

    Parameters
    ----------
    message:
        Free text from the user.
    today:
        Reference date for relative phrases.  Defaults to ``date.today()``.

    Example
    -------
    >>> parse_date_range("26년 1월 1일부터 26년 1월 31일 매출")
    {'startDate': '2026-01-01', 'endDate': '2026-01-31'}
    """
    if not message:
        return None
    today = today or date.today()

    for pattern, build in _PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        try:
            return build(match, today)
        except ValueError:
            # e.g. "26년 13월": not a real date, try the remaining patterns
            continue
    return None
