"""
Date Extraction Layer for the EOL Research engine.
Runs an ordered list of extraction strategies over page text and merges their
findings, first value per milestone wins.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Set

from eol_research.errors import ParseError
from eol_research.layers.keywords import KeywordHit, find_keyword_hits
from eol_research.models import MilestoneField
from eol_research.models.lifecycle import (
    TABLE_CELL_SEPARATOR,
    TABLE_MARKER_PREFIX,
    TABLE_SECTION_HEADER,
)
from eol_research.utils.dates import DateNormalizer, DateToken
from eol_research.utils.logger import LayerLogger
from eol_research.utils.variants import compile_variant_pattern


# Proximity windows, in characters
PRODUCT_WINDOW = 500
KEYWORD_WINDOW = 100

# Lines inspected on each side of a product mention by the list strategy
LIST_LINE_WINDOW = 3

# Characters after a keyword searched for the announcement date
ANNOUNCEMENT_WINDOW = 100

_STRUCTURED_SEPARATOR = re.compile(
    r"[ \t]*(?:\(\s*[A-Za-z/ ]{1,12}\s*\)[ \t]*)?(?::[ \t]*HW\b[ \t]*)?[:|\-–—][ \t]*"
)


@dataclass(frozen=True)
class MilestoneCandidate:
    """A date a strategy believes belongs to a milestone (None field = announcement)."""
    field: Optional[MilestoneField]
    value: date


@dataclass
class PageExtraction:
    """Merged extraction result for one page or snippet."""
    product_mentioned: bool = False
    milestones: Dict[MilestoneField, date] = field(default_factory=dict)
    supplied_by: Dict[MilestoneField, str] = field(default_factory=dict)
    announcement_dates: Set[date] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.milestones


def _following_date(
    hit: KeywordHit,
    tokens: Sequence[DateToken],
    limit: int,
    next_hit_start: Optional[int] = None,
) -> Optional[DateToken]:
    """First date starting after hit, within limit characters and before the next keyword."""
    for token in tokens:
        if token.start < hit.end:
            continue
        if token.start - hit.end > limit:
            return None
        if next_hit_start is not None and token.start >= next_hit_start:
            return None
        return token
    return None


def _preceding_date(
    hit: KeywordHit,
    tokens: Sequence[DateToken],
    limit: int,
    previous_hit_end: Optional[int] = None,
) -> Optional[DateToken]:
    """Closest date ending before hit, within limit characters and after the previous keyword."""
    best = None
    for token in tokens:
        if token.end > hit.start:
            break
        if hit.start - token.end <= limit and (previous_hit_end is None or token.start >= previous_hit_end):
            best = token
    return best


class ExtractionStrategy(ABC):
    """One way of finding milestone dates in text."""

    name = "strategy"

    @abstractmethod
    def extract(
        self,
        text: str,
        variants: List[str],
        normalizer: DateNormalizer,
    ) -> List[MilestoneCandidate]:
        """Return candidates in priority order; earlier candidates win per field."""


class TableRowStrategy(ExtractionStrategy):
    """
    Reads the labelled table section.

    Rows naming the product have their dates assigned by, in order, a keyword
    in the same cell, the column header, a keyword in the preceding cell, or,
    with no context at all, position (first = end of sale, last = last day of
    support; more than two dates use the last two). Rows that name a milestone
    instead of a product are read as "milestone | ... | date".
    """

    name = "table"

    def extract(self, text, variants, normalizer):
        section = text.split(TABLE_SECTION_HEADER, 1)
        if len(section) < 2:
            return []

        pattern = compile_variant_pattern(variants)
        candidates: List[MilestoneCandidate] = []
        for rows in self._split_tables(section[1]):
            column_hits = self._header_hits(rows, normalizer)
            for cells in rows:
                row_text = TABLE_CELL_SEPARATOR.join(cells)
                if pattern and pattern.search(row_text):
                    candidates.extend(self._product_row(cells, column_hits, normalizer))
                else:
                    candidates.extend(self._milestone_row(cells, normalizer))
        return candidates

    @staticmethod
    def _split_tables(section: str) -> List[List[List[str]]]:
        tables: List[List[List[str]]] = []
        for line in section.splitlines():
            line = line.strip()
            if not line:
                continue
            if line.startswith(TABLE_MARKER_PREFIX) or not tables:
                tables.append([])
                if line.startswith(TABLE_MARKER_PREFIX):
                    continue
            tables[-1].append([cell.strip() for cell in line.split(TABLE_CELL_SEPARATOR.strip())])
        return tables

    @staticmethod
    def _header_hits(rows, normalizer) -> Dict[int, KeywordHit]:
        """Column index -> keyword for the date-free row naming the most columns."""
        best: Dict[int, KeywordHit] = {}
        for cells in rows:
            if any(normalizer.find_dates(cell) for cell in cells):
                continue
            mapping = {}
            for index, cell in enumerate(cells):
                hits = find_keyword_hits(cell)
                if hits:
                    mapping[index] = hits[0]
            if len(mapping) > len(best):
                best = mapping
        return best

    def _product_row(self, cells, column_hits, normalizer) -> List[MilestoneCandidate]:
        candidates = []
        row_dates: List[date] = []
        had_context = False

        for index, cell in enumerate(cells):
            tokens = normalizer.find_dates(cell)
            if not tokens:
                continue
            cell_hits = find_keyword_hits(cell)
            for token in tokens:
                row_dates.append(token.value)
                hit = self._context_for(token, index, cell_hits, cells, column_hits)
                if hit is None:
                    continue
                had_context = True
                if not hit.is_untracked:
                    candidates.append(MilestoneCandidate(hit.field, token.value))

        if had_context or len(row_dates) < 2:
            return candidates

        first, second = row_dates[-2], row_dates[-1]
        if first > second:
            first, second = second, first
        return [
            MilestoneCandidate(MilestoneField.END_OF_SALE, first),
            MilestoneCandidate(MilestoneField.LAST_DAY_OF_SUPPORT, second),
        ]

    @staticmethod
    def _context_for(token, index, cell_hits, cells, column_hits) -> Optional[KeywordHit]:
        """The keyword that labels a date cell, or None when the cell has no context."""
        before = [hit for hit in cell_hits if hit.end <= token.start]
        if before:
            return before[-1]
        if cell_hits:
            return cell_hits[0]
        if index in column_hits:
            return column_hits[index]
        if index > 0:
            previous = find_keyword_hits(cells[index - 1])
            if previous:
                return previous[-1]
        return None

    @staticmethod
    def _milestone_row(cells, normalizer) -> List[MilestoneCandidate]:
        """A row labelled by its first cell, e.g. "End-of-Sale Date: HW | ... | January 31, 2015"."""
        hits = find_keyword_hits(cells[0]) if cells else []
        if not hits or hits[0].is_untracked:
            return []
        for cell in cells[1:]:
            tokens = normalizer.find_dates(cell)
            if tokens:
                return [MilestoneCandidate(hits[0].field, tokens[0].value)]
        tokens = [t for t in normalizer.find_dates(cells[0]) if t.start >= hits[0].end]
        return [MilestoneCandidate(hits[0].field, tokens[0].value)] if tokens else []


class ProximityStrategy(ExtractionStrategy):
    """
    Keywords near a product mention.

    For each keyword within PRODUCT_WINDOW characters of a product variant,
    takes the first date following the keyword within KEYWORD_WINDOW (and
    before the next keyword), otherwise the closest preceding one.
    """

    name = "proximity"

    def extract(self, text, variants, normalizer):
        pattern = compile_variant_pattern(variants)
        if pattern is None:
            return []
        hits = find_keyword_hits(text)
        if not hits:
            return []
        tokens = normalizer.find_dates(text)
        if not tokens:
            return []

        candidates = []
        seen_hits = set()
        for mention in pattern.finditer(text):
            low, high = mention.start() - PRODUCT_WINDOW, mention.end() + PRODUCT_WINDOW
            for i, hit in enumerate(hits):
                if hit.end < low or hit.start > high or i in seen_hits or hit.is_untracked:
                    continue
                seen_hits.add(i)
                next_start = hits[i + 1].start if i + 1 < len(hits) else None
                previous_end = hits[i - 1].end if i > 0 else None
                token = _following_date(hit, tokens, KEYWORD_WINDOW, next_start)
                if token is None:
                    token = _preceding_date(hit, tokens, KEYWORD_WINDOW, previous_end)
                if token is not None:
                    candidates.append(MilestoneCandidate(hit.field, token.value))
        return candidates


class StructuredStrategy(ExtractionStrategy):
    """Literal "<keyword> : <date>" (or "|", "-") anywhere on the page."""

    name = "structured"

    def extract(self, text, variants, normalizer):
        tokens_by_start = {token.start: token for token in normalizer.find_dates(text)}
        if not tokens_by_start:
            return []

        candidates = []
        for hit in find_keyword_hits(text):
            if hit.is_untracked:
                continue
            separator = _STRUCTURED_SEPARATOR.match(text, hit.end)
            if not separator:
                continue
            token = tokens_by_start.get(separator.end())
            if token is not None:
                candidates.append(MilestoneCandidate(hit.field, token.value))
        return candidates


class ListScanStrategy(ExtractionStrategy):
    """
    Line-by-line scan.

    When a line mentions the product, the LIST_LINE_WINDOW lines around it
    (closest first) are checked for keywords with a date on the same line,
    or on the next line when the keyword line has none.
    """

    name = "list"

    def extract(self, text, variants, normalizer):
        pattern = compile_variant_pattern(variants)
        if pattern is None:
            return []
        lines = text.splitlines()
        candidates = []
        visited = set()

        for i, line in enumerate(lines):
            if not pattern.search(line):
                continue
            neighbours = sorted(
                range(max(0, i - LIST_LINE_WINDOW), min(len(lines), i + LIST_LINE_WINDOW + 1)),
                key=lambda j: (abs(j - i), j),
            )
            for j in neighbours:
                if j in visited:
                    continue
                visited.add(j)
                candidates.extend(self._scan_line(lines, j, normalizer))
        return candidates

    @staticmethod
    def _scan_line(lines, j, normalizer) -> List[MilestoneCandidate]:
        line = lines[j]
        hits = find_keyword_hits(line)
        if not hits:
            return []
        tokens = normalizer.find_dates(line)

        candidates = []
        for k, hit in enumerate(hits):
            if hit.is_untracked:
                continue
            next_start = hits[k + 1].start if k + 1 < len(hits) else None
            token = _following_date(hit, tokens, len(line), next_start)
            if token is None and len(hits) == 1:
                token = _preceding_date(hit, tokens, len(line))
            if token is None and len(hits) == 1 and not tokens and j + 1 < len(lines):
                following = lines[j + 1]
                if not find_keyword_hits(following):
                    next_tokens = normalizer.find_dates(following)
                    token = next_tokens[0] if next_tokens else None
            if token is not None:
                candidates.append(MilestoneCandidate(hit.field, token.value))
        return candidates


def default_strategies() -> List[ExtractionStrategy]:
    """The strategies in priority order."""
    return [
        TableRowStrategy(),
        ProximityStrategy(),
        StructuredStrategy(),
        ListScanStrategy(),
    ]


def detect_announcement_dates(text: str, normalizer: DateNormalizer) -> Set[date]:
    """Dates that directly follow an announcement keyword."""
    hits = find_keyword_hits(text)
    if not any(hit.is_announcement for hit in hits):
        return set()
    tokens = normalizer.find_dates(text)
    found = set()
    for i, hit in enumerate(hits):
        if not hit.is_announcement:
            continue
        next_start = hits[i + 1].start if i + 1 < len(hits) else None
        token = _following_date(hit, tokens, ANNOUNCEMENT_WINDOW, next_start)
        if token is not None:
            found.add(token.value)
    return found


class ExtractionPipeline:
    """
    Date Extraction Pipeline - applies the strategies to one page.

    Pages that mention none of the product variants yield an empty result.
    Every strategy runs; a strategy that raises is logged and skipped. Dates
    identified as the EOL announcement date are never accepted as end of sale.
    """

    def __init__(self, strategies: Optional[List[ExtractionStrategy]] = None):
        self.strategies = strategies if strategies is not None else default_strategies()
        self.logger = LayerLogger("extraction")

    def extract(
        self,
        text: str,
        variants: List[str],
        normalizer: Optional[DateNormalizer] = None,
        source: str = "",
    ) -> PageExtraction:
        normalizer = normalizer or DateNormalizer()
        pattern = compile_variant_pattern(variants)
        if not text or pattern is None or not pattern.search(text):
            return PageExtraction()

        result = PageExtraction(product_mentioned=True)
        result.announcement_dates = detect_announcement_dates(text, normalizer)

        per_strategy = []
        for strategy in self.strategies:
            try:
                candidates = strategy.extract(text, variants, normalizer)
            except Exception as e:
                error = ParseError(strategy.name, e)
                self.logger.log_error(str(error), error_type="parse_error", url=source, strategy=strategy.name)
                continue
            for candidate in candidates:
                if candidate.field is None:
                    result.announcement_dates.add(candidate.value)
            per_strategy.append((strategy.name, candidates))

        for name, candidates in per_strategy:
            for candidate in candidates:
                if candidate.field is None or candidate.field in result.milestones:
                    continue
                if (
                    candidate.field == MilestoneField.END_OF_SALE
                    and candidate.value in result.announcement_dates
                ):
                    continue
                result.milestones[candidate.field] = candidate.value
                result.supplied_by[candidate.field] = name

        self.logger.log_extraction(
            source=source,
            fields_present=[f.value for f in result.milestones],
            fields_missing=[f.value for f in MilestoneField if f not in result.milestones],
            strategies={f.value: s for f, s in result.supplied_by.items()},
        )
        return result
