"""
Merge, Estimation & Consistency Layer for the EOL Research engine.
Combines page extractions in trust order, fills missing milestones according to an
estimation profile, and sanity-checks end-of-sale to last-day-of-support spacing.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from eol_research.errors import NoResultError
from eol_research.models import (
    CORE_MILESTONES,
    DataSourceRecord,
    EstimationProfile,
    MilestoneField,
    MilestoneSet,
    MilestoneValue,
    Provenance,
    SourceTier,
)
from eol_research.utils.dates import add_years
from eol_research.utils.logger import LayerLogger


# Standard profile: years after end of sale
STANDARD_OFFSETS: Dict[MilestoneField, int] = {
    MilestoneField.END_OF_SW_MAINTENANCE: 2,
    MilestoneField.END_OF_SW_VULNERABILITY: 3,
    MilestoneField.LAST_DAY_OF_SUPPORT: 5,
}

# Both profiles: years between end of sale and last day of support
SUPPORT_SPAN_YEARS = 5

# Milestones end of sale is derived from when it was not found, in order of preference
ESTIMATION_BASES = (
    MilestoneField.LAST_DAY_OF_SUPPORT,
    MilestoneField.END_OF_SW_MAINTENANCE,
    MilestoneField.END_OF_SW_VULNERABILITY,
)

# Manufacturers whose software milestones coincide with the last day of support
VENDOR_SPECIFIC_MANUFACTURERS = {"Meraki"}
VENDOR_SPECIFIC_DOMAINS = ("meraki.com",)

SPACING_MIN_YEARS = 4.75
SPACING_MAX_YEARS = 5.25

_TIER_ORDER = {SourceTier.VENDOR: 0, SourceTier.THIRD_PARTY: 1}


@dataclass
class _PageContribution:
    url: str
    tier: SourceTier
    milestones: Dict[MilestoneField, date]


@dataclass
class MergedMilestones:
    """Merged extracted dates and which page supplied each."""
    values: Dict[MilestoneField, date] = field(default_factory=dict)
    origin: Dict[MilestoneField, Tuple[str, SourceTier]] = field(default_factory=dict)

    def sources(self) -> List[DataSourceRecord]:
        """One record per contributing URL, in the order they supplied their first field."""
        fields: Dict[str, List[MilestoneField]] = {}
        tiers: Dict[str, SourceTier] = {}
        for milestone, (url, tier) in self.origin.items():
            fields.setdefault(url, []).append(milestone)
            tiers[url] = tier
        return [
            DataSourceRecord(url=url, tier=tiers[url], fields_contributed=supplied)
            for url, supplied in fields.items()
        ]


class MilestoneAccumulator:
    """
    Collects per-page extractions for one product.

    Pages may arrive in any order; merged() visits vendor pages before
    third-party pages and, within a tier, in the order they were added.
    For each field the first value seen wins.
    """

    def __init__(self):
        self._pages: List[_PageContribution] = []

    def add(self, url: str, tier: SourceTier, milestones: Dict[MilestoneField, date]) -> None:
        if tier not in _TIER_ORDER or not milestones:
            return
        if any(page.url == url for page in self._pages):
            return
        self._pages.append(_PageContribution(url, tier, dict(milestones)))

    def merged(self) -> MergedMilestones:
        result = MergedMilestones()
        ordered = sorted(
            enumerate(self._pages),
            key=lambda item: (_TIER_ORDER[item[1].tier], item[0]),
        )
        for _, page in ordered:
            for milestone, value in page.milestones.items():
                if milestone not in result.values:
                    result.values[milestone] = value
                    result.origin[milestone] = (page.url, page.tier)
        return result

    def has(self, *milestones: MilestoneField) -> bool:
        merged = self.merged().values
        return all(m in merged for m in milestones)

    def has_any(self, *milestones: MilestoneField) -> bool:
        merged = self.merged().values
        return any(m in merged for m in milestones)

    def is_empty(self) -> bool:
        return not self._pages


def select_profile(manufacturer: Optional[str], vendor_urls: Iterable[str] = ()) -> EstimationProfile:
    """Vendor-specific profile for its manufacturer family or when its own pages were used."""
    if manufacturer in VENDOR_SPECIFIC_MANUFACTURERS:
        return EstimationProfile.VENDOR_SPECIFIC
    for url in vendor_urls:
        if any(domain in url.lower() for domain in VENDOR_SPECIFIC_DOMAINS):
            return EstimationProfile.VENDOR_SPECIFIC
    return EstimationProfile.STANDARD


class ReconciliationLayer:
    """
    Fills gaps and checks consistency once all pages have been visited.

    Profiles:
    - STANDARD: end of sale <-> last day of support are 5 years apart; software
      maintenance and vulnerability support are end of sale +2y and +3y. Without an
      end of sale it is worked back from the last day of support, then software
      maintenance, then software vulnerability support
    - VENDOR_SPECIFIC: same 5 year span, but both software milestones default
      to the last day of support (provenance DEFAULTED). A lone software milestone
      stands in for the last day of support

    Only empty fields are filled; every filled field is marked estimated.
    """

    def __init__(self):
        self.logger = LayerLogger("reconciliation")

    def estimate(
        self,
        extracted: Dict[MilestoneField, date],
        profile: EstimationProfile = EstimationProfile.STANDARD,
        product_id: str = "",
    ) -> MilestoneSet:
        """
        Build the final milestone set from extracted dates.

        Raises:
            NoResultError: no end-of-life milestone was extracted for the product
        """
        if not any(milestone in extracted for milestone in CORE_MILESTONES):
            raise NoResultError(product_id)

        values: Dict[MilestoneField, MilestoneValue] = {
            milestone: MilestoneValue(value=value, provenance=Provenance.EXTRACTED)
            for milestone, value in extracted.items()
        }

        eos = values.get(MilestoneField.END_OF_SALE)
        ldos = values.get(MilestoneField.LAST_DAY_OF_SUPPORT)

        if profile == EstimationProfile.VENDOR_SPECIFIC:
            if eos is None and ldos is None:
                # Software milestones fall on the last day of support
                for milestone in (MilestoneField.END_OF_SW_MAINTENANCE, MilestoneField.END_OF_SW_VULNERABILITY):
                    if milestone in values:
                        ldos = values[MilestoneField.LAST_DAY_OF_SUPPORT] = MilestoneValue(
                            value=values[milestone].value,
                            provenance=Provenance.ESTIMATED,
                        )
                        break
            if eos is None and ldos is not None:
                eos = values[MilestoneField.END_OF_SALE] = MilestoneValue(
                    value=add_years(ldos.value, -SUPPORT_SPAN_YEARS),
                    provenance=Provenance.ESTIMATED,
                )
            if ldos is None and eos is not None:
                ldos = values[MilestoneField.LAST_DAY_OF_SUPPORT] = MilestoneValue(
                    value=add_years(eos.value, SUPPORT_SPAN_YEARS),
                    provenance=Provenance.ESTIMATED,
                )
            if ldos is not None:
                for milestone in (MilestoneField.END_OF_SW_MAINTENANCE, MilestoneField.END_OF_SW_VULNERABILITY):
                    values.setdefault(milestone, MilestoneValue(value=ldos.value, provenance=Provenance.DEFAULTED))
        else:
            if eos is None:
                # Work back to end of sale from the first known later milestone
                for milestone in ESTIMATION_BASES:
                    if milestone in values:
                        eos = values[MilestoneField.END_OF_SALE] = MilestoneValue(
                            value=add_years(values[milestone].value, -STANDARD_OFFSETS[milestone]),
                            provenance=Provenance.ESTIMATED,
                        )
                        break
            for milestone, years in STANDARD_OFFSETS.items():
                values.setdefault(milestone, MilestoneValue(
                    value=add_years(eos.value, years),
                    provenance=Provenance.ESTIMATED,
                ))

        milestones = MilestoneSet.from_values(values)

        self.logger.log_decision(
            decision="milestones_estimated",
            reason=profile.value,
            product_id=product_id,
            extracted=[m.value for m in extracted],
            estimated=[m.value for m, v in values.items() if v.estimated],
        )
        return milestones

    @staticmethod
    def check_spacing(milestones: MilestoneSet) -> Optional[bool]:
        """
        True when end of sale and last day of support are 4.75-5.25 years apart.

        None when either date is missing. Informational only.
        """
        eos = milestones.get(MilestoneField.END_OF_SALE)
        ldos = milestones.get(MilestoneField.LAST_DAY_OF_SUPPORT)
        if eos is None or ldos is None:
            return None
        years = (ldos.value - eos.value).days / 365.25
        return SPACING_MIN_YEARS <= years <= SPACING_MAX_YEARS
