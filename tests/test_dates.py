"""
Unit tests for date normalization.

Tests verify:
1. Every supported spelling normalizes to the same calendar date
2. Quarter and month-only dates resolve to the last day of the period
3. Numeric ambiguity follows the day-first setting
4. Implausible and impossible dates are rejected
5. Tokens are reported in order of appearance without overlap
"""
from datetime import date

import pytest

from eol_research.utils.dates import (
    DateNormalizer,
    DateWindow,
    add_years,
    expand_year,
    normalize_date,
)


# =============================================================================
# Spellings
# =============================================================================

class TestSpellings:
    """Tests for the supported date spellings."""

    @pytest.mark.parametrize("raw", [
        "January 31, 2015",
        "Jan 31 2015",
        "31-Jan-2015",
        "31 January 2015",
        "2015-01-31",
        "01/31/2015",
        "31.01.2015",
    ])
    def test_same_day_many_spellings(self, raw):
        """All spellings of one day normalize to the same ISO date."""
        assert normalize_date(raw) == "2015-01-31"

    def test_quarter_is_last_day_of_quarter(self):
        """Q1 2015 resolves to March 31, 2015."""
        assert normalize_date("Q1 2015") == "2015-03-31"

    def test_fiscal_quarter_with_two_digit_year(self):
        """Q3 FY16 resolves to the end of September 2016."""
        assert normalize_date("Q3 FY16") == "2016-09-30"

    def test_fiscal_year_first(self):
        """FY2015 Q2 resolves to June 30, 2015."""
        assert normalize_date("FY2015 Q2") == "2015-06-30"

    def test_month_year_is_last_day_of_month(self):
        """October 2016 resolves to October 31, 2016."""
        assert normalize_date("October 2016") == "2016-10-31"

    def test_month_year_february_leap(self):
        """Month-only February uses the leap day when there is one."""
        assert normalize_date("Feb 2020") == "2020-02-29"

    def test_abbreviated_september(self):
        """Sept is accepted as a month abbreviation."""
        assert normalize_date("Sept 30, 2021") == "2021-09-30"

    def test_two_digit_year_day_month(self):
        """Two-digit years in day-month-year form land in the 2000s."""
        assert normalize_date("31-Jan-15") == "2015-01-31"


# =============================================================================
# Ambiguity and rejection
# =============================================================================

class TestAmbiguity:
    """Tests for numeric ambiguity and invalid input."""

    def test_month_first_by_default(self):
        """05.04.2020 is May 4 unless day-first is requested."""
        assert normalize_date("05.04.2020") == "2020-05-04"

    def test_day_first(self):
        """Day-first manufacturers read 05.04.2020 as April 5."""
        assert normalize_date("05.04.2020", day_first=True) == "2020-04-05"

    def test_impossible_day_rejected(self):
        """February 30 is not a date."""
        assert normalize_date("February 30, 2020") is None

    def test_outside_window_rejected(self):
        """Years outside the plausibility window are discarded."""
        assert normalize_date("January 31, 1985") is None
        assert normalize_date("January 31, 2085") is None

    def test_relative_window(self):
        """A window anchored on today bounds snippet dates."""
        window = DateWindow.relative(date(2026, 1, 15), years_back=20)
        normalizer = DateNormalizer(window=window)
        assert normalizer.parse("March 1, 2001") is None
        assert normalizer.parse("March 1, 2010") == date(2010, 3, 1)

    @pytest.mark.parametrize("raw", [None, "", "TBD", "not announced"])
    def test_no_date(self, raw):
        """Text without a date yields None."""
        assert normalize_date(raw) is None

    def test_month_word_inside_other_word(self):
        """Month abbreviations inside words are not dates."""
        assert DateNormalizer().find_dates("Decision 2020 for the Market 2021") == []


# =============================================================================
# Token scanning
# =============================================================================

class TestFindDates:
    """Tests for scanning text for date tokens."""

    def test_tokens_in_order(self):
        """Dates are reported in order of appearance with spans."""
        text = "End of Sale: March 1, 2020. Last Date of Support: 2025-02-28"
        tokens = DateNormalizer().find_dates(text)

        assert [t.value for t in tokens] == [date(2020, 3, 1), date(2025, 2, 28)]
        assert text[tokens[0].start:tokens[0].end] == "March 1, 2020"

    def test_longest_match_wins(self):
        """A full date is not also reported as a month-year token."""
        tokens = DateNormalizer().find_dates("October 30, 2019")
        assert len(tokens) == 1
        assert tokens[0].value == date(2019, 10, 30)


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for year arithmetic helpers."""

    def test_expand_year(self):
        """Two-digit years above 50 belong to the 1900s."""
        assert expand_year("99") == 1999
        assert expand_year("16") == 2016
        assert expand_year("2016") == 2016

    def test_add_years(self):
        """Whole-year shifts keep month and day."""
        assert add_years(date(2018, 6, 1), 5) == date(2023, 6, 1)

    def test_add_years_leap_day(self):
        """Feb 29 falls back to Feb 28 in a non-leap year."""
        assert add_years(date(2016, 2, 29), 1) == date(2017, 2, 28)
        assert add_years(date(2021, 2, 28), -5) == date(2016, 2, 28)
