"""
Unit Tests for Combination Classifier

Explicit label matching and score-presence inference of elective combinations.
"""

import pytest

from scoremaster.combinations import assign_combinations, load_combinations, populated, subject_codes
from scoremaster.models import CombinationDefinition, SubjectClassification


@pytest.fixture
def definitions():
    return load_combinations()


@pytest.fixture
def elective_classification():
    subjects = ("语文", "物理", "化学", "生物", "地理", "政治")
    rebasing = ("化学", "生物", "地理", "政治")
    return SubjectClassification(
        subjects=subjects,
        rebasing_subjects=rebasing,
        other_subjects=("语文", "物理"),
    )


def _labels(records):
    return [r["combinations"] for r in records]


class TestLoadCombinations:

    def test_load_combinations_when_default_then_four_definitions(self, definitions):
        assert [d.label for d in definitions] == ["物化生", "物化地", "物化政", "政史地"]

    def test_load_combinations_when_duplicates_and_blanks_then_cleaned(self):
        assert [d.label for d in load_combinations(["物化生", "物化生", "", " 政史地 "])] == ["物化生", "政史地"]

    def test_combination_definition_when_empty_label_then_raises(self):
        with pytest.raises(ValueError):
            CombinationDefinition("")

    def test_combination_definition_when_created_then_codes_unordered(self):
        assert CombinationDefinition("物化生").codes == frozenset("生化物")


class TestSubjectCodes:

    def test_subject_codes_when_mixed_scripts_then_mapped(self):
        """Known subjects map to single-letter codes; others are left out."""
        codes = subject_codes(["物理", "化学", "生物", "语文", "History", "地理(选考)"])
        assert codes == {"物理": "物", "化学": "化", "生物": "生", "History": "史", "地理(选考)": "地"}


class TestAssignCombinations:
    """Tests for assign_combinations."""

    def test_assign_combinations_when_explicit_label_then_matched(self, definitions, elective_classification):
        """The label field wins regardless of order and delimiters."""
        records = [
            {"id": "1", "选科": "物+化+生", "物理": 0},
            {"id": "2", "选科": "生化物", "物理": 0},
            {"id": "3", "选科": "政、史、地", "物理": 0},
        ]
        out = assign_combinations(records, elective_classification, definitions)
        assert _labels(out) == [("物化生",), ("物化生",), ("政史地",)]

    def test_assign_combinations_when_label_unknown_then_inferred_from_scores(self, definitions, elective_classification):
        """A label that matches nothing falls back to score inference."""
        records = [{"id": "1", "选科": "物化", "物理": 80, "化学": 70, "生物": 60, "地理": 0, "政治": 0}]
        out = assign_combinations(records, elective_classification, definitions)
        assert _labels(out) == [("物化生",)]

    def test_assign_combinations_when_scores_cover_two_then_member_of_both(self, definitions, elective_classification):
        """Membership is a set: every fully scored combination is added."""
        records = [{"id": "1", "物理": 80, "化学": 70, "生物": 60, "地理": 50, "政治": 0}]
        out = assign_combinations(records, elective_classification, definitions)
        assert _labels(out) == [("物化生", "物化地")]

    def test_assign_combinations_when_subject_absent_from_schema_then_never_inferred(self, definitions, elective_classification):
        """政史地 needs 历史, which is not a subject here."""
        records = [{"id": "1", "物理": 0, "化学": 0, "生物": 0, "地理": 90, "政治": 90}]
        out = assign_combinations(records, elective_classification, definitions)
        assert _labels(out) == [()]

    @pytest.mark.parametrize("value", [0, -5, None, "缺考"])
    def test_assign_combinations_when_score_not_positive_then_excluded(self, definitions, elective_classification, value):
        records = [{"id": "1", "物理": 80, "化学": 70, "生物": value}]
        out = assign_combinations(records, elective_classification, definitions)
        assert "物化生" not in out[0]["combinations"]

    def test_assign_combinations_when_numeric_strings_then_counted(self, definitions, elective_classification):
        records = [{"id": "1", "物理": "80", "化学": "70", "生物": "60"}]
        out = assign_combinations(records, elective_classification, definitions)
        assert out[0]["combinations"] == ("物化生",)

    def test_assign_combinations_when_label_blank_then_inferred(self, definitions, elective_classification):
        records = [{"id": "1", "选科": "", "物理": 80, "化学": 70, "生物": 60}]
        out = assign_combinations(records, elective_classification, definitions)
        assert out[0]["combinations"] == ("物化生",)

    def test_assign_combinations_when_called_then_input_not_mutated(self, definitions, elective_classification):
        records = [{"id": "1", "物理": 80, "化学": 70, "生物": 60}]
        assign_combinations(records, elective_classification, definitions)
        assert "combinations" not in records[0]


class TestPopulated:

    def test_populated_when_some_used_then_only_those_in_definition_order(self, definitions):
        records = [{"combinations": ("政史地",)}, {"combinations": ("物化生", "物化地")}, {"combinations": ()}]
        assert [d.label for d in populated(records, definitions)] == ["物化生", "物化地", "政史地"]
