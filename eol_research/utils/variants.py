"""
Product identifier variant generation.
Vendor pages spell the same part number in several ways (MR33, MR-33, MR33-HW, Meraki MR33),
so matching is done against a list of alternate spellings.
"""
import re
from typing import List, Optional


# Letter prefix directly followed by digits, optionally hyphenated: MR33, MR-33, EX4300
_PREFIX_NUMBER = re.compile(r"^(?P<prefix>[A-Za-z]{1,5})-?(?P<number>\d.*)$")

HARDWARE_SUFFIX = "-HW"
REFURBISHED_SUFFIX = "-RF"
VARIANT_SUFFIX = re.compile(r"-(K9|L|S|E|P|X|HW|SW)$", re.IGNORECASE)

# Series prefixes that vendors often write out as a product line name
SERIES_PREFIXES = {
    "WS-": "Catalyst ",
    "N9K-": "Nexus ",
    "AIR-": "Aironet ",
}


def strip_refurbished_suffix(product_id: str) -> str:
    """Remove a trailing refurbished marker (e.g. MR33-RF -> MR33)."""
    if product_id.upper().endswith(REFURBISHED_SUFFIX):
        return product_id[: -len(REFURBISHED_SUFFIX)]
    return product_id


def strip_variant_suffix(product_id: str) -> str:
    """Remove an ordering suffix such as -K9 or -HW to get the base model."""
    return VARIANT_SUFFIX.sub("", product_id)


def generate_variants(product_id: str, manufacturer: Optional[str] = None) -> List[str]:
    """
    Expand a product identifier into alternate spellings.
    
    Produces, in order:
    - the identifier as given and without a refurbished suffix
    - hardware suffix toggled (MR33 <-> MR33-HW)
    - hyphen inserted/removed between letter prefix and number (MR33 <-> MR-33)
    - dashes removed and dashes as spaces
    - series prefixes expanded or dropped (WS-C3850 -> Catalyst C3850, C3850)
    - manufacturer-name prefixed forms (Meraki MR33)
    - upper and lower case forms
    
    The result is deduplicated and keeps the original first.
    """
    product_id = product_id.strip()
    if not product_id:
        return []
    
    base = strip_refurbished_suffix(product_id)
    forms = [product_id, base]
    
    if base.upper().endswith(HARDWARE_SUFFIX):
        forms.append(base[: -len(HARDWARE_SUFFIX)])
    else:
        forms.append(base + HARDWARE_SUFFIX)
    
    for form in list(forms):
        match = _PREFIX_NUMBER.match(form)
        if not match:
            continue
        prefix, number = match.group("prefix"), match.group("number")
        forms.append(f"{prefix}{number}")
        forms.append(f"{prefix}-{number}")
    
    if "-" in base:
        forms.append(base.replace("-", ""))
        forms.append(base.replace("-", " "))
    
    upper_base = base.upper()
    for series, name in SERIES_PREFIXES.items():
        if upper_base.startswith(series):
            remainder = base[len(series):]
            forms.append(name + remainder)
            forms.append(remainder)
    
    if manufacturer:
        forms.append(f"{manufacturer} {base}")
    
    forms.extend([base.upper(), base.lower()])
    
    variants: List[str] = []
    seen = set()
    for form in forms:
        form = form.strip()
        if form and form not in seen:
            seen.add(form)
            variants.append(form)
    return variants


def compile_variant_pattern(variants: List[str]) -> Optional[re.Pattern]:
    """
    Build one case-insensitive pattern matching any variant as a whole token.
    
    Longer variants are tried first so that MR33-HW is preferred over MR33.
    """
    if not variants:
        return None
    ordered = sorted(set(variants), key=len, reverse=True)
    alternation = "|".join(re.escape(v).replace(r"\ ", r"\s+") for v in ordered)
    return re.compile(rf"(?<![A-Za-z0-9])(?:{alternation})(?![A-Za-z0-9])", re.IGNORECASE)
