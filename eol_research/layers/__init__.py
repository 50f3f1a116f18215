"""Layers package initialization."""
from eol_research.layers.domain_trust import DomainTrustLayer, ManufacturerResolution
from eol_research.layers.query_builder import QueryPlan, SearchQueryBuilder
from eol_research.layers.extraction import ExtractionPipeline, ExtractionStrategy, PageExtraction
from eol_research.layers.reconciliation import MilestoneAccumulator, ReconciliationLayer, select_profile
from eol_research.layers.confidence import ConfidenceScore, ConfidenceScorer
from eol_research.layers.research import ResearchOrchestrator, ResearchState

__all__ = [
    "DomainTrustLayer",
    "ManufacturerResolution",
    "QueryPlan",
    "SearchQueryBuilder",
    "ExtractionPipeline",
    "ExtractionStrategy",
    "PageExtraction",
    "MilestoneAccumulator",
    "ReconciliationLayer",
    "select_profile",
    "ConfidenceScore",
    "ConfidenceScorer",
    "ResearchOrchestrator",
    "ResearchState",
]
