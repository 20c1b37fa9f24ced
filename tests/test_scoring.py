"""Tests for RICE/WSJF scores and idea ordering."""
from datetime import datetime
from types import SimpleNamespace
from uuid import UUID

import pytest

from prodflow_core.scoring import idea_score, rice_score, round_half_up, sort_ideas, wsjf_score


def make_idea(n, reach=None, impact=None, confidence=None, effort=None, created_at=None):
    return SimpleNamespace(
        id=UUID(int=n),
        reach_score=reach,
        impact_score=impact,
        confidence_score=confidence,
        effort_score=effort,
        created_at=created_at or datetime(2026, 1, 1),
    )


class TestRounding:
    def test_half_rounds_up(self):
        """Test that .x5 rounds away from zero rather than to even."""
        assert round_half_up(2.25) == 2.3
        assert round_half_up(0.35) == 0.4
        assert round_half_up(4.5) == 4.5

    def test_rounds_to_one_decimal(self):
        assert round_half_up(1 / 3) == 0.3
        assert round_half_up(5 / 3) == 1.7


class TestRice:
    def test_rice_formula(self):
        assert rice_score(5, 3, 4, 2) == 30.0
        assert rice_score(3, 2, 3, 4) == 4.5
        assert rice_score(1, 1, 1, 3) == 0.3

    def test_zero_or_missing_effort_scores_zero(self):
        assert rice_score(5, 5, 5, 0) == 0.0
        assert rice_score(5, 5, 5, None) == 0.0


class TestWsjf:
    def test_default_time_criticality(self):
        """Test that time criticality defaults to 3."""
        assert wsjf_score(4, 2) == 3.5
        assert wsjf_score(2, 3) == 1.7

    def test_explicit_time_criticality(self):
        assert wsjf_score(4, 2, time_criticality=5) == 4.5

    def test_zero_effort_scores_zero(self):
        assert wsjf_score(5, 0) == 0.0


class TestIdeaScore:
    def test_rice_needs_all_inputs(self):
        assert idea_score(make_idea(1, 5, 3, 4, None), "rice") is None
        assert idea_score(make_idea(1, 5, 3, 4, 2), "rice") == 30.0

    def test_wsjf_needs_impact_and_effort(self):
        assert idea_score(make_idea(1, impact=4), "wsjf") is None
        assert idea_score(make_idea(1, impact=4, effort=2), "wsjf") == 3.5

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            idea_score(make_idea(1), "moscow")


class TestSortIdeas:
    def test_highest_score_first_and_unscored_last(self):
        low = make_idea(1, 1, 1, 1, 5)
        high = make_idea(2, 5, 5, 5, 1)
        unscored = make_idea(3)

        assert sort_ideas([unscored, low, high], "rice") == [high, low, unscored]

    def test_ties_keep_creation_order_then_id(self):
        """Test that equal scores are ordered oldest first, then by id."""
        older = make_idea(9, 2, 2, 2, 2, created_at=datetime(2026, 1, 1))
        newer = make_idea(1, 2, 2, 2, 2, created_at=datetime(2026, 2, 1))
        same_time_b = make_idea(5, 2, 2, 2, 2, created_at=datetime(2026, 3, 1))
        same_time_a = make_idea(4, 2, 2, 2, 2, created_at=datetime(2026, 3, 1))

        ordered = sort_ideas([same_time_b, newer, same_time_a, older], "rice")

        assert ordered == [older, newer, same_time_a, same_time_b]

    def test_wsjf_ordering_differs_from_rice(self):
        wide_reach = make_idea(1, reach=5, impact=1, confidence=5, effort=2)
        high_impact = make_idea(2, reach=1, impact=5, confidence=1, effort=2)

        assert sort_ideas([high_impact, wide_reach], "rice")[0] is wide_reach
        assert sort_ideas([wide_reach, high_impact], "wsjf")[0] is high_impact
