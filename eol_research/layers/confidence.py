"""
Confidence Scorer for the EOL Research engine.
A deterministic 0-100 score from the best source tier and how each milestone was obtained.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from eol_research.models import (
    CORE_MILESTONES,
    DataSourceRecord,
    MilestoneSet,
    Provenance,
    SourceTier,
)


VENDOR_BASE = 50
THIRD_PARTY_BASE = 30

EXTRACTED_POINTS = 10
ESTIMATED_POINTS = 5
DEFAULTED_POINTS = 10  # Vendor convention, not a guess

# Passive retrieval is never fully certain
RETRIEVAL_CAP = 95

# Vendor page lists the product without any EOL notice
CURRENT_PRODUCT_CONFIDENCE = 90

_POINTS = {
    Provenance.EXTRACTED: EXTRACTED_POINTS,
    Provenance.ESTIMATED: ESTIMATED_POINTS,
    Provenance.DEFAULTED: DEFAULTED_POINTS,
}


@dataclass(frozen=True)
class ConfidenceScore:
    lifecycle: int
    overall: int


def best_tier(sources: Iterable[DataSourceRecord]) -> Optional[SourceTier]:
    """VENDOR if any vendor source was used, else THIRD_PARTY if any, else None."""
    tiers = {source.tier for source in sources}
    if SourceTier.VENDOR in tiers:
        return SourceTier.VENDOR
    if SourceTier.THIRD_PARTY in tiers:
        return SourceTier.THIRD_PARTY
    return None


class ConfidenceScorer:
    """
    Single additive formula:

        base (50 vendor / 30 third party / 0 none)
        + per core milestone: 10 extracted, 5 estimated, 10 defaulted
        clamped to 0..100; the overall score is further capped at 95.
    """

    def score(self, milestones: MilestoneSet, tier: Optional[SourceTier]) -> ConfidenceScore:
        if tier == SourceTier.VENDOR:
            total = VENDOR_BASE
        elif tier == SourceTier.THIRD_PARTY:
            total = THIRD_PARTY_BASE
        else:
            total = 0

        for milestone in CORE_MILESTONES:
            value = milestones.get(milestone)
            if value is not None:
                total += _POINTS[value.provenance]

        lifecycle = max(0, min(total, 100))
        return ConfidenceScore(lifecycle=lifecycle, overall=min(lifecycle, RETRIEVAL_CAP))

    @staticmethod
    def current_product() -> ConfidenceScore:
        return ConfidenceScore(CURRENT_PRODUCT_CONFIDENCE, CURRENT_PRODUCT_CONFIDENCE)

    @staticmethod
    def nothing_found() -> ConfidenceScore:
        return ConfidenceScore(0, 0)
