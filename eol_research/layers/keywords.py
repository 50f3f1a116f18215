"""
Milestone keyword catalogue for the EOL Research engine.
Maps the many ways vendors name a lifecycle milestone onto one field.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from eol_research.models import MilestoneField


# Words are matched with flexible separators, so "End of Sale" also covers
# "End-of-Sale" and "End-Of-Sale"; a trailing "Date" is always optional.
MILESTONE_KEYWORDS: Dict[MilestoneField, List[str]] = {
    MilestoneField.END_OF_SALE: [
        "End of Sale",
        "End of Sales",
        "Last Date to Order",
        "Last Day to Order",
        "Last Order Date",
        "End of Availability",
        "EoS Date",
    ],
    MilestoneField.END_OF_SW_MAINTENANCE: [
        "End of SW Maintenance Releases",
        "End of SW Maintenance Release",
        "End of SW Maintenance",
        "End of Software Maintenance Releases",
        "End of Software Maintenance",
        "End of Maintenance Releases",
    ],
    MilestoneField.END_OF_SW_VULNERABILITY: [
        "End of Vulnerability/Security Support",
        "End of Security/Vulnerability Support",
        "End of Security Vulnerability Support",
        "End of Vulnerability Support",
        "End of Security Support",
        "End of Security Updates",
    ],
    MilestoneField.LAST_DAY_OF_SUPPORT: [
        "Last Date of Support",
        "Last Day of Support",
        "End of Support",
        "End of Service Life",
        "End of Service",
        "End of Life",
        "LDoS",
        "EoL Date",
    ],
    MilestoneField.DATE_INTRODUCED: [
        "Date Introduced",
        "Introduction Date",
        "General Availability",
        "First Customer Ship",
        "Release Date",
        "Launch Date",
    ],
}

# Publication date of the EOL notice itself; never a milestone
ANNOUNCEMENT_KEYWORDS: List[str] = [
    "End of Sale and End of Life Announcement",
    "End of Life Announcement",
    "End of Sale Announcement",
    "EOL Announcement",
    "Announcement Date",
    "Announcement",
    "Date Announced",
]

# Milestones we do not track; matched only so their wording is not mistaken for a tracked one
UNTRACKED_KEYWORDS: List[str] = [
    "End of Service Contract Renewal",
    "End of New Service Attachment",
    "End of Routine Failure Analysis",
    "End of Service Attachment",
]

# EOL vocabulary used to decide whether a search hit is worth processing
EOL_RELEVANCE_TERMS = [
    "end-of-life", "end of life", "eol",
    "end-of-sale", "end of sale", "eos",
    "end-of-support", "end of support",
    "last date", "ldos", "obsolete", "discontinued", "retirement",
]


MILESTONE = "milestone"
ANNOUNCEMENT = "announcement"
UNTRACKED = "untracked"


@dataclass(frozen=True)
class KeywordHit:
    """A keyword found in text."""
    field: Optional[MilestoneField]  # None for announcement and untracked keywords
    start: int
    end: int
    text: str
    kind: str = MILESTONE

    @property
    def is_announcement(self) -> bool:
        return self.kind == ANNOUNCEMENT

    @property
    def is_untracked(self) -> bool:
        return self.kind == UNTRACKED


def _phrase_pattern(phrase: str) -> str:
    words = [re.escape(w) for w in re.split(r"[\s\-]+", phrase) if w]
    return r"[\s\-]*".join(words) if len(words) == 1 else r"[\s\-]+".join(words)


def _compile(phrases: List[str]) -> re.Pattern:
    ordered = sorted(phrases, key=len, reverse=True)
    alternation = "|".join(_phrase_pattern(p) for p in ordered)
    return re.compile(
        rf"(?<![A-Za-z])(?:{alternation})(?:[\s\-]+Dates?)?(?![A-Za-z])",
        re.IGNORECASE,
    )


_KEYWORD_PATTERNS: List[Tuple[str, Optional[MilestoneField], re.Pattern]] = [
    (ANNOUNCEMENT, None, _compile(ANNOUNCEMENT_KEYWORDS)),
    (UNTRACKED, None, _compile(UNTRACKED_KEYWORDS)),
] + [
    (MILESTONE, field, _compile(phrases)) for field, phrases in MILESTONE_KEYWORDS.items()
]

_RELEVANCE_PATTERN = re.compile(
    r"(?<![a-z])(?:" + "|".join(re.escape(t) for t in EOL_RELEVANCE_TERMS) + r")(?![a-z])",
    re.IGNORECASE,
)


def find_keyword_hits(text: str) -> List[KeywordHit]:
    """
    Find milestone and announcement keywords in text.

    Overlapping matches are resolved in favour of the earliest, then the
    longest, so "End-of-Life Announcement Date" is one announcement hit
    rather than an end-of-life hit.
    """
    if not text:
        return []

    matches = []
    for priority, (kind, field, pattern) in enumerate(_KEYWORD_PATTERNS):
        for match in pattern.finditer(text):
            matches.append((match.start(), -(match.end() - match.start()), priority, kind, field, match))

    matches.sort(key=lambda m: (m[0], m[1], m[2]))
    hits: List[KeywordHit] = []
    last_end = -1
    for start, _, _, kind, field, match in matches:
        if start < last_end:
            continue
        hits.append(KeywordHit(field, start, match.end(), match.group(0), kind))
        last_end = match.end()
    return hits


def mentions_eol(text: str) -> bool:
    """True when text uses any end-of-life vocabulary."""
    return bool(text) and _RELEVANCE_PATTERN.search(text) is not None
