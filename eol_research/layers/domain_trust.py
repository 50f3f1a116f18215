"""
Domain Trust Layer for the EOL Research engine.
Decides whether a URL is the manufacturer's own site, a third party, or not usable at all,
and resolves which manufacturer a product belongs to.
"""
import ipaddress
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from eol_research.models import ProductQuery, SourceTier
from eol_research.utils.logger import LayerLogger


# Canonical manufacturer name -> authorized domains (subdomains included)
MANUFACTURER_DOMAINS: Dict[str, List[str]] = {
    "Cisco": ["cisco.com"],
    "Meraki": ["meraki.com", "documentation.meraki.com"],
    "Dell": ["dell.com", "delltechnologies.com"],
    "HP": ["hp.com"],
    "HPE": ["hpe.com"],
    "Aruba": ["arubanetworks.com"],
    "Juniper": ["juniper.net"],
    "Fortinet": ["fortinet.com"],
    "Palo Alto": ["paloaltonetworks.com"],
    "Arista": ["arista.com"],
    "VMware": ["vmware.com"],
    "NetApp": ["netapp.com"],
    "Microsoft": ["microsoft.com"],
    "Lenovo": ["lenovo.com"],
    "IBM": ["ibm.com"],
    "Siemens": ["siemens.com"],
    "Schneider Electric": ["se.com", "schneider-electric.com"],
}

# Vendor-owned storage hosts, trusted for PDF documents only
PDF_CDN_DOMAINS: Dict[str, List[str]] = {
    "Fortinet": ["fortinetweb.s3.amazonaws.com"],
    "Palo Alto": ["paloaltonetworks.s3.amazonaws.com"],
}

# Brands that publish each other's lifecycle notices
SIBLING_BRANDS: List[Tuple[str, ...]] = [
    ("Cisco", "Meraki"),
    ("HP", "HPE", "Aruba"),
]

# Spellings seen in inventories -> canonical manufacturer name
MANUFACTURER_ALIASES: Dict[str, str] = {
    "cisco systems": "Cisco",
    "cisco meraki": "Meraki",
    "hewlett packard": "HP",
    "hewlett-packard": "HP",
    "hewlett packard enterprise": "HPE",
    "aruba networks": "Aruba",
    "juniper networks": "Juniper",
    "palo alto networks": "Palo Alto",
    "paloalto": "Palo Alto",
    "arista networks": "Arista",
    "dell emc": "Dell",
    "dell technologies": "Dell",
    "schneider": "Schneider Electric",
    "apc": "Schneider Electric",
}

# Product-id prefixes that identify the manufacturer regardless of the hint
PRODUCT_ID_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^(MR|MS|MX|MV|MT|MG)\d+", re.IGNORECASE), "Meraki"),
    (re.compile(r"^(WS-|N9K-|ASA|AIR-|C9[2-9]00|ISR|ASR|UCS|FPR|MDS)", re.IGNORECASE), "Cisco"),
    (re.compile(r"^(EX\d+|SRX|QFX)", re.IGNORECASE), "Juniper"),
    (re.compile(r"^(FG-|FWF-|FAP-|FSW-)", re.IGNORECASE), "Fortinet"),
    (re.compile(r"^(PA-\d+)", re.IGNORECASE), "Palo Alto"),
    (re.compile(r"^DCS-\d+", re.IGNORECASE), "Arista"),
]

# Manufacturers whose numeric dates are written day-first (31.01.2015)
DAY_FIRST_MANUFACTURERS = {"Siemens", "Schneider Electric"}

# Marketplaces and user-generated content never count as a lifecycle source
DISALLOWED_DOMAINS = [
    "ebay.com",
    "amazon.com",
    "aliexpress.com",
    "alibaba.com",
    "reddit.com",
    "quora.com",
    "pinterest.com",
    "facebook.com",
    "youtube.com",
    "twitter.com",
    "x.com",
]

# Third-party sites reliable enough to fetch in full
AGGREGATOR_ALLOW_LIST = [
    "router-switch.com",
    "it-supplier.co.uk",
    "parkplacetechnologies.com",
]

ALLOWED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class ManufacturerResolution:
    """Which manufacturer a product belongs to and how sure we are."""
    manufacturer: Optional[str]
    guessed: bool = False
    source: str = "none"  # hint, product_id, description, none
    
    @property
    def identified(self) -> bool:
        return self.manufacturer is not None and not self.guessed


def host_matches(host: str, domain: str) -> bool:
    """True when host is domain itself or one of its subdomains."""
    return host == domain or host.endswith("." + domain)


def canonical_manufacturer(name: Optional[str]) -> Optional[str]:
    """Map a free-text manufacturer name onto the catalogue, or None."""
    if not name:
        return None
    key = name.strip().lower()
    if key in MANUFACTURER_ALIASES:
        return MANUFACTURER_ALIASES[key]
    for canonical in MANUFACTURER_DOMAINS:
        if canonical.lower() == key:
            return canonical
    return None


def family_of(manufacturer: str) -> Tuple[str, ...]:
    """The manufacturer plus any sibling brands."""
    for family in SIBLING_BRANDS:
        if manufacturer in family:
            return family
    return (manufacturer,)


def domains_for(manufacturer: Optional[str]) -> List[str]:
    """Authorized domains for a manufacturer and its sibling brands, own domains first."""
    if not manufacturer or manufacturer not in MANUFACTURER_DOMAINS:
        return []
    domains: List[str] = []
    for member in (manufacturer,) + tuple(m for m in family_of(manufacturer) if m != manufacturer):
        for domain in MANUFACTURER_DOMAINS.get(member, []):
            if domain not in domains:
                domains.append(domain)
    return domains


def search_domains_for(manufacturer: Optional[str]) -> List[str]:
    """Domains worth a site: query (subdomains of an already listed domain are dropped)."""
    domains = domains_for(manufacturer)
    return [
        d for d in domains
        if not any(d != other and host_matches(d, other) for other in domains)
    ]


def is_aggregator(url: str) -> bool:
    host = _host_of(url)
    return bool(host) and any(host_matches(host, d) for d in AGGREGATOR_ALLOW_LIST)


def _host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


class DomainTrustLayer:
    """
    Domain Trust Layer - classifies URLs and resolves manufacturers.
    
    classify() is a pure function of its inputs; the logger is only used
    for the manufacturer resolution decision.
    """
    
    def __init__(self):
        self.logger = LayerLogger("domain_trust")
    
    def classify(self, url: str, manufacturer: Optional[str] = None) -> SourceTier:
        """
        Classify a URL relative to a manufacturer.
        
        - Malformed URLs, non-http(s) schemes, local hosts, IP literals and
          disallowed hosts are DISALLOWED
        - Hosts in the manufacturer's (or sibling brands') domains are VENDOR;
          vendor PDF CDNs count only for .pdf paths
        - With no known manufacturer, any authorized vendor domain is VENDOR
        - Everything else is THIRD_PARTY
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return SourceTier.DISALLOWED
        
        host = (parsed.hostname or "").lower()
        if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host or "." not in host:
            return SourceTier.DISALLOWED
        if host == "localhost" or host.endswith(".localhost") or self._is_ip_literal(host):
            return SourceTier.DISALLOWED
        if any(host_matches(host, d) for d in DISALLOWED_DOMAINS):
            return SourceTier.DISALLOWED
        
        is_pdf = parsed.path.lower().endswith(".pdf")
        canonical = canonical_manufacturer(manufacturer)
        
        if canonical:
            members = family_of(canonical)
        else:
            members = tuple(MANUFACTURER_DOMAINS)
        
        for member in members:
            if any(host_matches(host, d) for d in MANUFACTURER_DOMAINS.get(member, [])):
                return SourceTier.VENDOR
            if is_pdf and any(host_matches(host, d) for d in PDF_CDN_DOMAINS.get(member, [])):
                return SourceTier.VENDOR
        
        return SourceTier.THIRD_PARTY
    
    def should_fetch(self, url: str, tier: SourceTier) -> bool:
        """Vendor pages and allow-listed aggregators are fetched; other third parties are snippet-only."""
        if tier == SourceTier.VENDOR:
            return True
        return tier == SourceTier.THIRD_PARTY and is_aggregator(url)
    
    def resolve_manufacturer(self, query: ProductQuery) -> ManufacturerResolution:
        """
        Work out the manufacturer of a product.
        
        A product-id prefix pattern wins over the hint (a Meraki MR33 filed
        under Cisco is researched as Meraki); a vendor name mentioned only in
        the category or description is treated as a guess.
        """
        by_prefix = self.manufacturer_from_product_id(query.product_id)
        by_hint = canonical_manufacturer(query.manufacturer)
        
        if by_prefix:
            resolution = ManufacturerResolution(by_prefix, source="product_id")
        elif by_hint:
            resolution = ManufacturerResolution(by_hint, source="hint")
        else:
            guess = self._manufacturer_from_text(query.hint_text())
            if guess:
                resolution = ManufacturerResolution(guess, guessed=True, source="description")
            else:
                resolution = ManufacturerResolution(None)
        
        self.logger.log_decision(
            decision="manufacturer_resolved",
            reason=resolution.source,
            product_id=query.product_id,
            manufacturer=resolution.manufacturer,
            hint=query.manufacturer,
            guessed=resolution.guessed,
        )
        return resolution
    
    @staticmethod
    def manufacturer_from_product_id(product_id: str) -> Optional[str]:
        for pattern, manufacturer in PRODUCT_ID_PATTERNS:
            if pattern.match(product_id):
                return manufacturer
        return None
    
    @staticmethod
    def is_day_first(manufacturer: Optional[str]) -> bool:
        return manufacturer in DAY_FIRST_MANUFACTURERS
    
    @staticmethod
    def _manufacturer_from_text(text: str) -> Optional[str]:
        if not text:
            return None
        lowered = text.lower()
        names = list(MANUFACTURER_ALIASES) + [m.lower() for m in MANUFACTURER_DOMAINS]
        # Longest names first so "cisco meraki" beats "cisco"
        for name in sorted(names, key=len, reverse=True):
            if re.search(rf"\b{re.escape(name)}\b", lowered):
                return canonical_manufacturer(name)
        return None
    
    @staticmethod
    def _is_ip_literal(host: str) -> bool:
        try:
            ipaddress.ip_address(host.strip("[]"))
            return True
        except ValueError:
            return False
