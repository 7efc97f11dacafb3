"""
Unit Tests for Ranker

Competition ranking over cohort, class and combination scopes.
"""

import pytest

from scoremaster.models import CombinationDefinition, SubjectClassification
from scoremaster.ranking import apply_ranks, rank_metrics, rank_scope


def _totals(*pairs):
    """(class, total) pairs -> scored records with raw == assigned."""
    return [
        {"id": str(i), "class": c, "raw_total": t, "assigned_total": t, "combinations": ()}
        for i, (c, t) in enumerate(pairs)
    ]


@pytest.fixture
def empty_classification():
    return SubjectClassification(subjects=(), rebasing_subjects=(), other_subjects=())


class TestRankScope:
    """Tests for rank_scope."""

    def test_rank_scope_when_tie_then_skips_next_rank(self):
        """Standard competition ranking: 90, 90, 80 -> 1, 1, 3."""
        members = [{"s": 90}, {"s": 90}, {"s": 80}]
        assert rank_scope(members, "s") == [1, 1, 3]

    def test_rank_scope_when_tie_in_middle_then_1224(self):
        members = [{"s": 80}, {"s": 90}, {"s": 100}, {"s": 90}]
        assert rank_scope(members, "s") == [4, 2, 1, 2]

    def test_rank_scope_when_missing_then_counts_as_zero(self):
        members = [{"s": None}, {"s": 5}, {}, {"s": "x"}]
        assert rank_scope(members, "s") == [2, 1, 2, 2]

    def test_rank_scope_when_callable_metric_then_used(self):
        members = [{"a": 1, "b": 1}, {"a": 0, "b": 5}]
        assert rank_scope(members, lambda r: r["a"] + r["b"]) == [2, 1]

    def test_rank_scope_when_floats_then_exact_comparison(self):
        members = [{"s": 0.1 + 0.2}, {"s": 0.3}]
        assert rank_scope(members, "s") == [1, 2]

    def test_rank_scope_when_empty_then_empty(self):
        assert rank_scope([], "s") == []


class TestApplyRanks:
    """Tests for apply_ranks."""

    def test_apply_ranks_when_classes_then_class_ranks_independent(self, empty_classification):
        """A student low in the cohort can still top their class."""
        records = _totals(("1班", 100), ("1班", 90), ("2班", 80), ("2班", 95))
        out = apply_ranks(records, empty_classification, ())
        assert [r["cohort_rank_raw"] for r in out] == [1, 3, 4, 2]
        assert [r["class_rank_raw"] for r in out] == [1, 2, 2, 1]
        assert [r["cohort_rank_assigned"] for r in out] == [1, 3, 4, 2]

    def test_apply_ranks_when_called_then_input_order_kept(self, empty_classification):
        records = _totals(("1班", 10), ("1班", 30), ("1班", 20))
        out = apply_ranks(records, empty_classification, ())
        assert [r["id"] for r in out] == ["0", "1", "2"]
        assert all(isinstance(r["cohort_rank_raw"], int) for r in out)

    def test_apply_ranks_when_subjects_then_subject_and_assigned_ranks(self):
        classification = SubjectClassification(subjects=("语文", "化学"), rebasing_subjects=("化学",), other_subjects=("语文",))
        records = [
            {"class": "1班", "raw_total": 150, "assigned_total": 140, "语文": 100, "化学": 50, "assigned_化学": 40},
            {"class": "1班", "raw_total": 190, "assigned_total": 200, "语文": 90, "化学": 100, "assigned_化学": 100},
        ]
        out = apply_ranks(records, classification, ())
        assert [r["cohort_rank_语文"] for r in out] == [1, 2]
        assert [r["cohort_rank_化学"] for r in out] == [2, 1]
        assert [r["class_rank_assigned_化学"] for r in out] == [2, 1]

    def test_apply_ranks_when_combination_then_only_members_ranked(self, empty_classification):
        """Combination ranks are computed among members and absent for others."""
        records = _totals(("1班", 100), ("1班", 90), ("2班", 95))
        records[1]["combinations"] = ("物化生",)
        records[2]["combinations"] = ("物化生",)
        out = apply_ranks(records, empty_classification, (CombinationDefinition("物化生"),))
        assert "cohort_rank_combo_物化生_raw" not in out[0]
        assert out[1]["cohort_rank_combo_物化生_raw"] == 2
        assert out[2]["cohort_rank_combo_物化生_raw"] == 1
        assert out[1]["class_rank_combo_物化生_assigned"] == 1
        assert out[2]["class_rank_combo_物化生_assigned"] == 1

    def test_apply_ranks_when_two_combinations_then_independent_rank_sets(self, empty_classification):
        records = _totals(("1班", 100), ("1班", 90))
        records[0]["combinations"] = ("物化生",)
        records[1]["combinations"] = ("物化生", "物化地")
        defs = (CombinationDefinition("物化生"), CombinationDefinition("物化地"))
        out = apply_ranks(records, empty_classification, defs)
        assert out[1]["cohort_rank_combo_物化生_raw"] == 2
        assert out[1]["cohort_rank_combo_物化地_raw"] == 1

    def test_apply_ranks_when_empty_then_empty(self, empty_classification):
        assert apply_ranks([], empty_classification, ()) == []


class TestRankMetrics:

    def test_rank_metrics_when_rebasing_then_assigned_metric_added(self):
        c = SubjectClassification(subjects=("语文", "化学"), rebasing_subjects=("化学",), other_subjects=("语文",))
        assert [m for m, _ in rank_metrics(c)] == ["raw", "assigned", "语文", "化学", "assigned_化学"]
