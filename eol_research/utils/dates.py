"""
Date normalization for the EOL Research engine.
Turns the many date spellings found on vendor and reseller pages into calendar dates.
"""
import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from eol_research.config import config


MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_MONTH = (
    r"(?P<month>Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)(?![a-z])"
)

# Order matters only as a tie-breaker for matches of equal span
_PATTERNS = [
    ("month_day_year", re.compile(
        rf"\b{_MONTH}\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?,?\s+(?P<year>\d{{4}})(?!\d)",
        re.IGNORECASE,
    )),
    ("day_month_year", re.compile(
        rf"(?<!\d)(?P<day>\d{{1,2}})(?:st|nd|rd|th)?[-\s]+(?:of\s+)?{_MONTH}\.?,?[-\s]+(?P<year>\d{{4}}|\d{{2}})(?!\d)",
        re.IGNORECASE,
    )),
    ("iso", re.compile(
        r"(?<!\d)(?P<year>\d{4})[-/.](?P<month>\d{1,2})[-/.](?P<day>\d{1,2})(?!\d)",
    )),
    ("numeric", re.compile(
        r"(?<!\d)(?P<first>\d{1,2})[/.\-](?P<second>\d{1,2})[/.\-](?P<year>\d{4})(?!\d)",
    )),
    ("quarter", re.compile(
        r"\bQ(?P<quarter>[1-4])\s*(?:FY\s*)?'?(?P<year>\d{4}|\d{2})(?!\d)",
        re.IGNORECASE,
    )),
    ("fiscal_quarter", re.compile(
        r"\bFY\s*'?(?P<year>\d{4}|\d{2})\s*Q(?P<quarter>[1-4])\b",
        re.IGNORECASE,
    )),
    ("month_year", re.compile(
        rf"\b{_MONTH}\.?,?[\s\-]+(?P<year>\d{{4}})(?!\d)",
        re.IGNORECASE,
    )),
]


@dataclass(frozen=True)
class DateWindow:
    """Inclusive range of plausible years for a lifecycle date."""
    min_year: int
    max_year: int
    
    @classmethod
    def fixed(cls) -> "DateWindow":
        return cls(config.DATE_MIN_YEAR, config.DATE_MAX_YEAR)
    
    @classmethod
    def relative(cls, today: date, years_back: int, years_forward: int = 20) -> "DateWindow":
        """Window anchored on today, used for low-context text such as snippets."""
        return cls(today.year - years_back, today.year + years_forward)
    
    def contains(self, value: date) -> bool:
        return self.min_year <= value.year <= self.max_year


@dataclass(frozen=True)
class DateToken:
    """A date found in text, with its character span."""
    start: int
    end: int
    raw: str
    value: date


def expand_year(year_text: str) -> int:
    """Expand two-digit years: above 50 means 19xx, otherwise 20xx."""
    year = int(year_text)
    if len(year_text) == 2:
        year += 1900 if year > 50 else 2000
    return year


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def add_years(value: date, years: int) -> date:
    """Shift a date by whole years; Feb 29 falls back to Feb 28."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


class DateNormalizer:
    """
    Recognizes and normalizes date tokens.
    
    Supported spellings:
    - Month name first: "January 31, 2015", "Jan 31 2015"
    - Day first with month name: "31-Jan-2015", "31 January 2015"
    - ISO: "2015-01-31"
    - Numeric: "01/31/2015", "31.01.2015" (month-first unless day_first,
      or unless the first number cannot be a month)
    - Fiscal quarter: "Q1 2015", "Q3 FY16", "FY2015 Q2" (last day of the quarter)
    - Month and year: "October 2016" (last day of the month)
    
    Dates outside the plausibility window are discarded.
    """
    
    def __init__(self, window: Optional[DateWindow] = None, day_first: bool = False):
        self.window = window or DateWindow.fixed()
        self.day_first = day_first
    
    def find_dates(self, text: str) -> List[DateToken]:
        """Return all non-overlapping date tokens in text, in order of appearance."""
        if not text:
            return []
        
        candidates = []
        for priority, (kind, pattern) in enumerate(_PATTERNS):
            for match in pattern.finditer(text):
                value = self._to_date(kind, match)
                if value is None or not self.window.contains(value):
                    continue
                candidates.append((match.start(), -(match.end() - match.start()), priority, match, value))
        
        # Earliest start wins, then the longest span
        candidates.sort(key=lambda c: (c[0], c[1], c[2]))
        tokens: List[DateToken] = []
        last_end = -1
        for start, _, _, match, value in candidates:
            if start < last_end:
                continue
            tokens.append(DateToken(start, match.end(), match.group(0), value))
            last_end = match.end()
        return tokens
    
    def parse(self, raw: Optional[str]) -> Optional[date]:
        """Parse a single date string; returns None when nothing plausible is found."""
        if not raw:
            return None
        tokens = self.find_dates(str(raw).strip())
        return tokens[0].value if tokens else None
    
    def _to_date(self, kind: str, match: re.Match) -> Optional[date]:
        groups = match.groupdict()
        try:
            year = expand_year(groups["year"])
            
            if kind in ("quarter", "fiscal_quarter"):
                return last_day_of_month(year, int(groups["quarter"]) * 3)
            
            if kind == "month_year":
                return last_day_of_month(year, MONTHS[groups["month"].lower()])
            
            if kind in ("month_day_year", "day_month_year"):
                return date(year, MONTHS[groups["month"].lower()], int(groups["day"]))
            
            if kind == "iso":
                return date(year, int(groups["month"]), int(groups["day"]))
            
            first, second = int(groups["first"]), int(groups["second"])
            if self.day_first or (first > 12 and second <= 12):
                return date(year, second, first)
            return date(year, first, second)
        except (ValueError, KeyError):
            return None


def normalize_date(raw: Optional[str], day_first: bool = False) -> Optional[str]:
    """
    Normalize a date string to ISO-8601 (YYYY-MM-DD).
    
    Returns None for empty, unparseable or implausible input.
    """
    value = DateNormalizer(day_first=day_first).parse(raw)
    return value.isoformat() if value else None
