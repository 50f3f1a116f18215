"""
Unit tests for product identifier variants.

Tests verify:
1. Hyphen and hardware-suffix spellings are generated
2. Refurbished and ordering suffixes are stripped
3. Series prefixes are expanded
4. The compiled pattern matches whole tokens only
"""
from eol_research.utils.variants import (
    compile_variant_pattern,
    generate_variants,
    strip_refurbished_suffix,
    strip_variant_suffix,
)


# =============================================================================
# Variant generation
# =============================================================================

class TestGenerateVariants:
    """Tests for generate_variants."""

    def test_original_first(self):
        """The identifier as given is always the first variant."""
        assert generate_variants("MR33")[0] == "MR33"

    def test_hyphen_and_hardware_forms(self):
        """MR33 expands to MR-33, MR33-HW and MR-33-HW."""
        variants = generate_variants("MR33")
        assert "MR-33" in variants
        assert "MR33-HW" in variants
        assert "MR-33-HW" in variants

    def test_hardware_suffix_removed(self):
        """MR33-HW also matches plain MR33."""
        variants = generate_variants("MR33-HW", "Meraki")
        assert "MR33" in variants
        assert "Meraki MR33-HW" in variants

    def test_refurbished_suffix_stripped(self):
        """A refurbished part is matched as the base model."""
        variants = generate_variants("MR33-RF")
        assert "MR33" in variants
        assert "MR-33" in variants

    def test_series_prefix_expanded(self):
        """WS- parts are also written as Catalyst models."""
        variants = generate_variants("WS-C3850-48P-RF")
        assert "WS-C3850-48P" in variants
        assert "Catalyst C3850-48P" in variants
        assert "C3850-48P" in variants
        assert "WSC385048P" in variants

    def test_no_duplicates(self):
        """Each spelling appears once."""
        variants = generate_variants("MR33", "Meraki")
        assert len(variants) == len(set(variants))

    def test_blank(self):
        """A blank identifier has no variants."""
        assert generate_variants("   ") == []


# =============================================================================
# Suffix helpers
# =============================================================================

class TestSuffixes:
    """Tests for suffix stripping."""

    def test_strip_refurbished(self):
        """Only a trailing -RF is removed."""
        assert strip_refurbished_suffix("MR33-RF") == "MR33"
        assert strip_refurbished_suffix("RF-100") == "RF-100"

    def test_strip_variant(self):
        """Ordering suffixes such as -L and -E are removed."""
        assert strip_variant_suffix("WS-C2960X-48FPD-L") == "WS-C2960X-48FPD"
        assert strip_variant_suffix("C9300-24T-E") == "C9300-24T"
        assert strip_variant_suffix("C9300-48P") == "C9300-48P"


# =============================================================================
# Pattern matching
# =============================================================================

class TestVariantPattern:
    """Tests for compile_variant_pattern."""

    def test_matches_alternate_spelling(self):
        """The pattern finds MR-33 in running text."""
        pattern = compile_variant_pattern(generate_variants("MR33"))
        assert pattern.search("The Meraki MR-33 access point")

    def test_whole_token_only(self):
        """MR33 does not match inside MR330."""
        pattern = compile_variant_pattern(generate_variants("MR33"))
        assert pattern.search("The MR330 access point") is None

    def test_case_insensitive(self):
        """Lower-case mentions match."""
        pattern = compile_variant_pattern(generate_variants("MR33"))
        assert pattern.search("replace your mr33 today")

    def test_spaces_match_any_whitespace(self):
        """A space in a variant matches line breaks too."""
        pattern = compile_variant_pattern(["Catalyst C3850"])
        assert pattern.search("Catalyst\nC3850")

    def test_empty(self):
        """No variants, no pattern."""
        assert compile_variant_pattern([]) is None
