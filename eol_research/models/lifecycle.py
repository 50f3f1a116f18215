"""
Lifecycle data models for the EOL Research engine.
These models carry milestone dates, their provenance, and the final research result
from the extraction pipeline through reconciliation and scoring.
"""
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MilestoneField(str, Enum):
    """Lifecycle milestone tracked for every product."""
    DATE_INTRODUCED = "date_introduced"
    END_OF_SALE = "end_of_sale_date"
    END_OF_SW_MAINTENANCE = "end_of_sw_maintenance_date"
    END_OF_SW_VULNERABILITY = "end_of_sw_vulnerability_date"
    LAST_DAY_OF_SUPPORT = "last_day_of_support_date"


# The four milestones that are estimated and scored (date introduced is informational)
CORE_MILESTONES = (
    MilestoneField.END_OF_SALE,
    MilestoneField.END_OF_SW_MAINTENANCE,
    MilestoneField.END_OF_SW_VULNERABILITY,
    MilestoneField.LAST_DAY_OF_SUPPORT,
)


class Provenance(str, Enum):
    """How a milestone value came to be in the result."""
    EXTRACTED = "extracted"  # Observed in page or snippet text
    ESTIMATED = "estimated"  # Offset from another known milestone
    DEFAULTED = "defaulted"  # Copied from last day of support (vendor convention)


class SourceTier(str, Enum):
    """Trust tier of a URL relative to the product's manufacturer."""
    VENDOR = "vendor"
    THIRD_PARTY = "thirdParty"
    DISALLOWED = "disallowed"


class EstimationProfile(str, Enum):
    """Rule set used to fill missing milestones."""
    STANDARD = "standard"
    VENDOR_SPECIFIC = "vendor_specific"


class ResearchStatus(str, Enum):
    """Terminal status of one product's research."""
    FOUND = "found"
    CURRENT_NO_EOL = "currentNoEol"
    NOT_FOUND = "notFound"
    ERROR = "error"


class MilestoneValue(BaseModel):
    """A milestone date together with how it was obtained."""
    model_config = ConfigDict(frozen=True)
    
    value: date
    provenance: Provenance = Provenance.EXTRACTED
    
    @property
    def estimated(self) -> bool:
        return self.provenance != Provenance.EXTRACTED
    
    def to_dict(self) -> dict:
        return {
            "date": self.value.isoformat(),
            "estimated": self.estimated,
            "provenance": self.provenance.value,
        }


class MilestoneSet(BaseModel):
    """The five milestone slots of a product; any subset may be empty."""
    model_config = ConfigDict(frozen=True)
    
    date_introduced: Optional[MilestoneValue] = None
    end_of_sale_date: Optional[MilestoneValue] = None
    end_of_sw_maintenance_date: Optional[MilestoneValue] = None
    end_of_sw_vulnerability_date: Optional[MilestoneValue] = None
    last_day_of_support_date: Optional[MilestoneValue] = None
    
    @classmethod
    def from_values(cls, values: Dict[MilestoneField, MilestoneValue]) -> "MilestoneSet":
        return cls(**{field.value: value for field, value in values.items()})
    
    def get(self, field: MilestoneField) -> Optional[MilestoneValue]:
        return getattr(self, field.value)
    
    def is_empty(self) -> bool:
        return not self.get_present_fields()
    
    def get_present_fields(self) -> List[MilestoneField]:
        """Return list of populated milestone fields, in declaration order."""
        return [field for field in MilestoneField if self.get(field) is not None]
    
    def get_extracted_fields(self) -> List[MilestoneField]:
        return [
            field for field in self.get_present_fields()
            if self.get(field).provenance == Provenance.EXTRACTED
        ]
    
    def to_dict(self) -> dict:
        return {
            field.value: (self.get(field).to_dict() if self.get(field) else None)
            for field in MilestoneField
        }


class SearchHit(BaseModel):
    """One organic result returned by the search API."""
    model_config = ConfigDict(frozen=True)
    
    url: str
    title: str = ""
    snippet: str = ""


# Marks the start of the table section appended to fetched page text.
# Each table inside it starts with a "[TABLE n]" line and has one row per line,
# cells separated by TABLE_CELL_SEPARATOR.
TABLE_SECTION_HEADER = "=== TABLES ==="
TABLE_MARKER_PREFIX = "[TABLE "
TABLE_CELL_SEPARATOR = " | "


class PageText(BaseModel):
    """Plain text of a page (or a search snippet) ready for extraction."""
    model_config = ConfigDict(frozen=True)
    
    url: str
    text: str
    
    @property
    def body(self) -> str:
        """Text before the table section."""
        return self.text.split(TABLE_SECTION_HEADER, 1)[0]
    
    @property
    def table_section(self) -> str:
        """Text of the labelled table section, empty when the page has none."""
        parts = self.text.split(TABLE_SECTION_HEADER, 1)
        return parts[1] if len(parts) == 2 else ""


class CachedPage(BaseModel):
    """A fetched page held by the page cache."""
    model_config = ConfigDict(frozen=True)
    
    url: str
    content: PageText
    fetched_at: float


class DataSourceRecord(BaseModel):
    """A page that contributed to a research result."""
    model_config = ConfigDict(frozen=True)
    
    url: str
    tier: SourceTier
    fields_contributed: List[MilestoneField] = Field(default_factory=list)


class ResearchResult(BaseModel):
    """
    Final outcome of researching one product.
    
    Produced exactly once per ProductQuery and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)
    
    product_id: str
    manufacturer: Optional[str] = None
    milestones: MilestoneSet = Field(default_factory=MilestoneSet)
    is_current_product: bool = False
    lifecycle_confidence: int = Field(default=0, ge=0, le=100)
    overall_confidence: int = Field(default=0, ge=0, le=100)
    sources: List[DataSourceRecord] = Field(default_factory=list)
    status: ResearchStatus = ResearchStatus.NOT_FOUND
    spacing_validated: Optional[bool] = None
    estimation_profile: EstimationProfile = EstimationProfile.STANDARD
    message: Optional[str] = None
    
    @property
    def data_sources(self) -> Dict[str, int]:
        """Count of contributing sources per origin."""
        return {
            "vendor_site": sum(1 for s in self.sources if s.tier == SourceTier.VENDOR),
            "third_party": sum(1 for s in self.sources if s.tier == SourceTier.THIRD_PARTY),
        }
    
    def get_present_fields(self) -> List[str]:
        """Return list of populated milestone field names."""
        return [field.value for field in self.milestones.get_present_fields()]
    
    def to_dict(self) -> dict:
        """Flatten the result for API responses and progress streams."""
        return {
            "product_id": self.product_id,
            "manufacturer": self.manufacturer,
            "milestones": self.milestones.to_dict(),
            "is_current_product": self.is_current_product,
            "lifecycle_confidence": self.lifecycle_confidence,
            "overall_confidence": self.overall_confidence,
            "sources": [
                {
                    "url": s.url,
                    "tier": s.tier.value,
                    "fields_contributed": [f.value for f in s.fields_contributed],
                }
                for s in self.sources
            ],
            "data_sources": self.data_sources,
            "status": self.status.value,
            "spacing_validated": self.spacing_validated,
            "estimation_profile": self.estimation_profile.value,
            "message": self.message,
        }


class BatchProgress(BaseModel):
    """Incremental progress event emitted while a batch is researched."""
    model_config = ConfigDict(frozen=True)
    
    processed: int
    total: int
    current_product_id: Optional[str] = None
    success: int = 0
    failed: int = 0
    dates_found_so_far: int = 0
    cancelled: bool = False
