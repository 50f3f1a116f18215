"""Models package initialization."""
from eol_research.models.product import ProductQuery
from eol_research.models.lifecycle import (
    BatchProgress,
    CachedPage,
    CORE_MILESTONES,
    DataSourceRecord,
    EstimationProfile,
    MilestoneField,
    MilestoneSet,
    MilestoneValue,
    PageText,
    Provenance,
    ResearchResult,
    ResearchStatus,
    SearchHit,
    SourceTier,
)

__all__ = [
    "ProductQuery",
    "BatchProgress",
    "CachedPage",
    "CORE_MILESTONES",
    "DataSourceRecord",
    "EstimationProfile",
    "MilestoneField",
    "MilestoneSet",
    "MilestoneValue",
    "PageText",
    "Provenance",
    "ResearchResult",
    "ResearchStatus",
    "SearchHit",
    "SourceTier",
]
