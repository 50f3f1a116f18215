"""
Search Query Builder for the EOL Research engine.
Produces the ordered list of search queries for one product, manufacturer site first.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from eol_research.config import config
from eol_research.layers.domain_trust import ManufacturerResolution, search_domains_for
from eol_research.models import ProductQuery
from eol_research.utils.logger import LayerLogger
from eol_research.utils.variants import strip_refurbished_suffix, strip_variant_suffix


VENDOR_KEYWORDS = ["End-of-Life", "End-of-Sale", "EOL", "End of Support"]

THIRD_PARTY_TEMPLATES = [
    '"{id}" "End-of-Sale" "End-of-Life"',
    '"{id}" "EOL" "announcement"',
    '"{id}" "Last Date of Support"',
    '"{id}" "End of Service Life"',
    '"{id}" lifecycle dates',
]

# Queries per product when no manufacturer is identified
GENERIC_QUERY_COUNT = 3

# site: queries per product in the vendor pass
VENDOR_QUERY_LIMIT = 5


@dataclass
class QueryPlan:
    """Queries for one product split by the pass that runs them."""
    search_id: str
    vendor_queries: List[str] = field(default_factory=list)
    third_party_queries: List[str] = field(default_factory=list)
    
    def all_queries(self) -> List[str]:
        return self.vendor_queries + self.third_party_queries


class SearchQueryBuilder:
    """
    Builds manufacturer-first search queries.
    
    With an identified manufacturer, the vendor pass gets site: queries for
    each authorized domain (product id as given, then with its ordering suffix
    stripped). Without one, only generic keyword queries are emitted, plus a
    single site: query when the manufacturer was guessed from the description.
    The total is capped at max_queries.
    """
    
    def __init__(self, max_queries: Optional[int] = None):
        self.max_queries = max_queries or config.MAX_QUERIES_PER_PRODUCT
        self.logger = LayerLogger("query_builder")
    
    def build(self, query: ProductQuery, resolution: ManufacturerResolution) -> QueryPlan:
        search_id = strip_refurbished_suffix(query.product_id)
        base_id = strip_variant_suffix(search_id)
        ids = [search_id] if base_id == search_id or not base_id else [search_id, base_id]
        
        plan = QueryPlan(search_id=search_id)
        
        if resolution.identified:
            domains = search_domains_for(resolution.manufacturer)
            # Strongest keyword for every id form first, then the remaining keywords
            for product_id in ids:
                for domain in domains:
                    plan.vendor_queries.append(f'"{product_id}" site:{domain} "{VENDOR_KEYWORDS[0]}"')
            for keyword in VENDOR_KEYWORDS[1:]:
                for domain in domains:
                    plan.vendor_queries.append(f'"{search_id}" site:{domain} "{keyword}"')
            plan.third_party_queries = [t.format(id=search_id) for t in THIRD_PARTY_TEMPLATES]
        else:
            plan.third_party_queries = [
                t.format(id=search_id) for t in THIRD_PARTY_TEMPLATES[:GENERIC_QUERY_COUNT]
            ]
            guessed_domains = search_domains_for(resolution.manufacturer)
            if guessed_domains:
                plan.vendor_queries = [f'"{search_id}" site:{guessed_domains[0]} "End-of-Life"']
        
        self._apply_cap(plan)
        
        self.logger.log_action(
            "build_queries",
            "completed",
            product_id=query.product_id,
            manufacturer=resolution.manufacturer,
            vendor_queries=len(plan.vendor_queries),
            third_party_queries=len(plan.third_party_queries),
        )
        return plan
    
    def _apply_cap(self, plan: QueryPlan) -> None:
        """
        Trim the plan to max_queries.
        
        Vendor queries are kept first, but at least two third-party queries
        survive so the fallback pass is never empty.
        """
        reserved = min(len(plan.third_party_queries), 2)
        vendor_budget = max(self.max_queries - reserved, 0)
        plan.vendor_queries = plan.vendor_queries[:min(vendor_budget, VENDOR_QUERY_LIMIT)]
        remaining = self.max_queries - len(plan.vendor_queries)
        plan.third_party_queries = plan.third_party_queries[:max(remaining, 0)]
