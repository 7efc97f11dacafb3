"""
Unit Tests for Normalizer

Class-name canonicalization and combination-label keys.
"""

import pytest

from scoremaster.models import CombinationDefinition
from scoremaster.normalize import UNCLASSIFIED, UNKNOWN_COMBINATION, normalize_class_name, normalize_combination_label


class TestNormalizeClassName:
    """Tests for normalize_class_name."""

    @pytest.mark.parametrize("raw, expected", [
        ("高一(3)班", "3班"),
        ("高一（3）班级", "3班"),
        (" 3 班", "3班"),
        ("（12）班级", "12班"),
        ("三年级2班", "2班"),
        ("【5】", "5班"),
        (3, "3班"),
    ])
    def test_normalize_class_name_when_variants_then_canonical(self, raw, expected):
        """Spelling variants of the same class collapse to one key."""
        assert normalize_class_name(raw) == expected

    def test_normalize_class_name_when_only_grade_then_keeps_grade(self):
        """The grade prefix is kept when stripping it would leave nothing."""
        assert normalize_class_name("高一") == "高一班"

    @pytest.mark.parametrize("raw", [None, "", "   ", float("nan"), "班", "()班级"])
    def test_normalize_class_name_when_blank_then_unclassified(self, raw):
        """Blank or empty-after-cleanup values are unclassified."""
        assert normalize_class_name(raw) == UNCLASSIFIED

    def test_normalize_class_name_when_already_canonical_then_unchanged(self):
        """Canonicalization is idempotent."""
        once = normalize_class_name("高二(7)班")
        assert normalize_class_name(once) == once


class TestNormalizeCombinationLabel:
    """Tests for normalize_combination_label."""

    @pytest.mark.parametrize("raw", ["物化生", "化+物+生", "物、化、生", "生 化 物", "物，化，生", "物＋化/生"])
    def test_normalize_combination_label_when_delimiters_then_matches_definition(self, raw):
        """Order and delimiters do not matter."""
        assert normalize_combination_label(raw) == CombinationDefinition("物化生").key

    def test_normalize_combination_label_when_different_set_then_no_match(self):
        assert normalize_combination_label("物化地") != CombinationDefinition("物化生").key

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_normalize_combination_label_when_blank_then_unknown(self, raw):
        """Blank labels become a sentinel that never matches a definition."""
        assert normalize_combination_label(raw) == UNKNOWN_COMBINATION
