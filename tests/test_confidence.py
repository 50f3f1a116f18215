"""
Unit tests for the Confidence Scorer.

Tests verify:
1. Base scores per source tier
2. Per-milestone points by provenance
3. Adding an extracted milestone never lowers the score
4. The overall score is capped below certainty
"""
from datetime import date
from unittest.mock import patch

import pytest

from eol_research.layers.confidence import ConfidenceScore, ConfidenceScorer, best_tier
from eol_research.models import (
    CORE_MILESTONES,
    DataSourceRecord,
    MilestoneField,
    MilestoneSet,
    MilestoneValue,
    Provenance,
    SourceTier,
)


def milestones(**provenances):
    values = {
        MilestoneField(name): MilestoneValue(value=date(2020, 1, 1), provenance=provenance)
        for name, provenance in provenances.items()
    }
    return MilestoneSet.from_values(values)


ALL_EXTRACTED = milestones(
    end_of_sale_date=Provenance.EXTRACTED,
    end_of_sw_maintenance_date=Provenance.EXTRACTED,
    end_of_sw_vulnerability_date=Provenance.EXTRACTED,
    last_day_of_support_date=Provenance.EXTRACTED,
)


@pytest.fixture
def scorer():
    return ConfidenceScorer()


# =============================================================================
# Formula
# =============================================================================

class TestScore:
    """Tests for ConfidenceScorer.score."""

    def test_vendor_all_extracted(self, scorer):
        assert scorer.score(ALL_EXTRACTED, SourceTier.VENDOR) == ConfidenceScore(90, 90)

    def test_third_party_mixed(self, scorer):
        """30 base + 2 x 10 extracted + 2 x 5 estimated."""
        result = scorer.score(
            milestones(
                end_of_sale_date=Provenance.EXTRACTED,
                last_day_of_support_date=Provenance.EXTRACTED,
                end_of_sw_maintenance_date=Provenance.ESTIMATED,
                end_of_sw_vulnerability_date=Provenance.ESTIMATED,
            ),
            SourceTier.THIRD_PARTY,
        )
        assert result == ConfidenceScore(60, 60)

    def test_defaulted_counts_as_extracted(self, scorer):
        result = scorer.score(
            milestones(
                end_of_sale_date=Provenance.EXTRACTED,
                last_day_of_support_date=Provenance.EXTRACTED,
                end_of_sw_maintenance_date=Provenance.DEFAULTED,
                end_of_sw_vulnerability_date=Provenance.DEFAULTED,
            ),
            SourceTier.VENDOR,
        )
        assert result.lifecycle == 90

    def test_date_introduced_not_scored(self, scorer):
        result = scorer.score(milestones(date_introduced=Provenance.EXTRACTED), SourceTier.VENDOR)
        assert result.lifecycle == 50

    def test_nothing(self, scorer):
        assert scorer.score(MilestoneSet(), None) == ConfidenceScore(0, 0)
        assert scorer.nothing_found() == ConfidenceScore(0, 0)

    def test_current_product(self, scorer):
        assert scorer.current_product() == ConfidenceScore(90, 90)

    def test_overall_capped(self, scorer):
        """Lifecycle is clamped to 100 and overall to 95."""
        with patch("eol_research.layers.confidence.VENDOR_BASE", 80):
            result = scorer.score(ALL_EXTRACTED, SourceTier.VENDOR)
        assert result == ConfidenceScore(100, 95)

    @pytest.mark.parametrize("tier", [SourceTier.VENDOR, SourceTier.THIRD_PARTY, None])
    def test_monotonic_in_extracted_fields(self, scorer, tier):
        """Each additional extracted milestone raises or keeps the score."""
        previous = -1
        for count in range(len(CORE_MILESTONES) + 1):
            provenances = {m.value: Provenance.EXTRACTED for m in CORE_MILESTONES[:count]}
            provenances.update({m.value: Provenance.ESTIMATED for m in CORE_MILESTONES[count:]})
            current = scorer.score(milestones(**provenances), tier).lifecycle
            assert current >= previous
            previous = current


# =============================================================================
# Tier selection
# =============================================================================

class TestBestTier:
    """Tests for best_tier."""

    def test_vendor_wins(self):
        sources = [
            DataSourceRecord(url="https://reseller.example.com", tier=SourceTier.THIRD_PARTY),
            DataSourceRecord(url="https://www.cisco.com", tier=SourceTier.VENDOR),
        ]
        assert best_tier(sources) == SourceTier.VENDOR

    def test_third_party(self):
        sources = [DataSourceRecord(url="https://reseller.example.com", tier=SourceTier.THIRD_PARTY)]
        assert best_tier(sources) == SourceTier.THIRD_PARTY

    def test_none(self):
        assert best_tier([]) is None
