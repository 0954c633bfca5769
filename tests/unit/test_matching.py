"""
Unit tests for owner-name matching strategies
"""

import pytest

from core.exceptions import ValidationError
from ingestion.matching import (
    ExactNameMatcher,
    SubstringRatioMatcher,
    extract_neq,
    get_matcher,
    is_corporate_name,
    normalize_name,
)
from models.base import MatchType


def test_normalize_name():
    assert normalize_name("  GESTION  Inobel, INC. ") == "gestion inobel inc"


class TestStrategies:

    def test_exact_match_ignores_case_and_punctuation(self):
        result = ExactNameMatcher().match("Gestion Inobel Inc.", "GESTION INOBEL INC")
        assert result.match_type == MatchType.EXACT
        assert result.confidence == 1.0

    def test_exact_matcher_rejects_containment(self):
        assert ExactNameMatcher().match("Immeubles Rosemont", "Immeubles Rosemont Inc") is None

    def test_substring_over_threshold_is_fuzzy(self):
        result = SubstringRatioMatcher(0.8).match("Immeubles Rosemont", "IMMEUBLES ROSEMONT INC.")
        assert result.match_type == MatchType.FUZZY
        assert result.confidence == pytest.approx(18 / 22, abs=1e-4)

    def test_substring_under_threshold_is_rejected(self):
        # 14 / 18 characters
        assert SubstringRatioMatcher(0.8).match("Gestion Inobel", "Gestion Inobel Inc") is None
        assert SubstringRatioMatcher(0.75).match("Gestion Inobel", "Gestion Inobel Inc") is not None

    def test_unrelated_names(self):
        assert SubstringRatioMatcher().match("Immeubles Rosemont", "Jean Tremblay") is None

    def test_invalid_threshold(self):
        with pytest.raises(ValidationError):
            SubstringRatioMatcher(0)


def test_get_matcher():
    assert isinstance(get_matcher("exact"), ExactNameMatcher)
    matcher = get_matcher("substring_ratio", 0.9)
    assert isinstance(matcher, SubstringRatioMatcher)
    assert matcher.threshold == 0.9
    with pytest.raises(ValidationError):
        get_matcher("soundex")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Gestion ABC inc.", True),
        ("9123-4567 Québec Ltée", True),
        ("Placements Rivard S.E.N.C.", True),
        ("Vincent Tremblay", False),
        (None, False),
    ],
)
def test_is_corporate_name(name, expected):
    assert is_corporate_name(name) is expected


def test_extract_neq():
    assert extract_neq("ABC INC (NEQ 1172105943)") == "1172105943"
    assert extract_neq("ABC INC 117 210 5943") == "1172105943"
    assert extract_neq("ABC INC") is None
