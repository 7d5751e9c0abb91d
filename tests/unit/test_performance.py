"""
Tests for Performance Statistics

Validates consistency (CV based, 0-100) and recent form (percent above or
below the lifetime mean) over event score histories.
"""

import pytest

from src.base import EventScore
from src.rankings.performance import calc_consistency, calc_recent_form, js_round


def history(*points):
    """Dated events one month apart, oldest first"""
    return [EventScore(f"2024-{i + 1:02d}-01", f"大会{i}", p) for i, p in enumerate(points)]


class TestJsRound:
    """Tests for js_round()"""

    def test_half_rounds_up(self):
        """Halves round toward +infinity"""
        assert js_round(2.5) == 3
        assert js_round(-2.5) == -2
        assert js_round(-28.57) == -29


class TestConsistency:
    """Tests for calc_consistency()"""

    def test_identical_points(self):
        """No variation is perfectly consistent"""
        assert calc_consistency(history(50, 50, 50)) == 100

    def test_moderate_variation(self):
        """CV 0.1 with the 0.3 zero point scores 67"""
        assert calc_consistency(history(90, 110)) == 67

    def test_high_variation_clamps_to_zero(self):
        """CV above the zero point is clamped to 0"""
        assert calc_consistency(history(10, 30)) == 0

    def test_too_few_events(self):
        """Fewer than two dated events score 0"""
        assert calc_consistency(history(80)) == 0
        assert calc_consistency([]) == 0

    def test_undated_events_ignored(self):
        """Undated events do not count toward the minimum"""
        events = [EventScore("", "不明", 100), EventScore("2024-01-01", "A", 50)]
        assert calc_consistency(events) == 0

    def test_zero_mean(self):
        """A zero mean scores 0 instead of dividing by zero"""
        assert calc_consistency(history(0, 0)) == 0

    @pytest.mark.parametrize("points", [
        (1, 100), (50, 51, 52), (5, 0, 5, 0), (100, 90, 80, 70, 60), (0.5, 0.6),
    ])
    def test_bounded(self, points):
        """Scores always lie within 0..100"""
        assert 0 <= calc_consistency(history(*points)) <= 100


class TestRecentForm:
    """Tests for calc_recent_form()"""

    def test_improving(self):
        """Recent scores above the lifetime mean are positive"""
        assert calc_recent_form(history(50, 50, 100, 100, 100)) == 25

    def test_declining(self):
        """Recent scores below the lifetime mean are negative"""
        assert calc_recent_form(history(100, 100, 50, 50, 50)) == -29

    def test_order_independent(self):
        """Events are ordered by date, not by list position"""
        events = history(50, 50, 100, 100, 100)
        assert calc_recent_form(list(reversed(events))) == 25

    def test_flat(self):
        """Equal scores have zero form"""
        assert calc_recent_form(history(70, 70, 70, 70)) == 0

    def test_too_few_events(self):
        """Fewer than two dated events have zero form"""
        assert calc_recent_form(history(70)) == 0

    def test_zero_mean(self):
        """A zero mean gives zero form"""
        assert calc_recent_form(history(0, 0, 0)) == 0
