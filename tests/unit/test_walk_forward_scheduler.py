"""Unit tests for walk-forward window scheduling."""

import pandas as pd
import pytest

from config.walk_forward import WalkForwardConfig
from data.time_index import TimeIndex
from training.errors import InsufficientHistory
from training.validation.walk_forward import WalkForwardScheduler, Window


@pytest.fixture
def daily_index():
    return TimeIndex(pd.bdate_range("2024-01-01", periods=100))


class TestWindow:
    """Test suite for Window invariants."""

    def test_valid_window(self):
        window = Window(window_id=0, is_start=0, is_end=59, oos_start=60, oos_end=69)

        assert window.is_length == 60
        assert window.oos_length == 10
        assert list(window.oos_range) == list(range(60, 70))

    def test_is_end_overlapping_oos_rejected(self):
        with pytest.raises(ValueError, match="leakage"):
            Window(window_id=0, is_start=0, is_end=60, oos_start=60, oos_end=69)

    def test_reversed_ranges_rejected(self):
        with pytest.raises(ValueError):
            Window(window_id=0, is_start=10, is_end=5, oos_start=20, oos_end=25)
        with pytest.raises(ValueError):
            Window(window_id=0, is_start=0, is_end=5, oos_start=20, oos_end=15)

    def test_describe_uses_dates(self, daily_index):
        window = Window(window_id=3, is_start=0, is_end=59, oos_start=60, oos_end=69)
        text = window.describe(daily_index)

        assert "Window 3" in text
        assert str(daily_index[60]) in text


class TestWalkForwardScheduler:
    """Test suite for WalkForwardScheduler."""

    def test_hundred_dates_sixty_ten_ten(self, daily_index):
        """100 dates, is=60, oos=10, step=10 gives exactly 4 windows."""
        scheduler = WalkForwardScheduler(is_length=60, oos_length=10, step=10)
        windows = scheduler.schedule(daily_index).to_list()

        assert len(windows) == 4
        assert windows[0].oos_start == 60
        assert windows[0].is_start == 0
        assert windows[0].is_end == 59
        assert windows[-1].oos_end == 99
        assert [w.window_id for w in windows] == [0, 1, 2, 3]

    @pytest.mark.parametrize("is_length", [5, 20])
    @pytest.mark.parametrize("oos_length", [1, 7])
    @pytest.mark.parametrize("step", [1, 5, 10])
    def test_window_ordering_holds(self, is_length, oos_length, step):
        n = 60
        windows = WalkForwardScheduler(is_length, oos_length, step).schedule(n).to_list()

        assert windows
        for w in windows:
            assert w.is_start <= w.is_end < w.oos_start <= w.oos_end
            assert w.oos_end <= n - 1
            assert w.is_length == is_length

    def test_consecutive_oos_starts_advance_by_step(self):
        windows = WalkForwardScheduler(is_length=10, oos_length=5, step=2).schedule(30).to_list()

        starts = [w.oos_start for w in windows]
        assert all(b - a == 2 for a, b in zip(starts, starts[1:]))

    def test_trailing_partial_window_dropped(self):
        windows = WalkForwardScheduler(is_length=60, oos_length=10, step=10).schedule(105).to_list()

        assert len(windows) == 4
        assert windows[-1].oos_end == 99

    def test_expanding_policy_truncates_early_windows(self, daily_index):
        scheduler = WalkForwardScheduler(
            is_length=60, oos_length=10, step=10, min_is_length=30, policy="expanding"
        )
        windows = scheduler.schedule(daily_index).to_list()

        assert windows[0].oos_start == 30
        assert [w.is_length for w in windows] == [30, 40, 50, 60, 60, 60, 60]
        assert windows[4].is_start == 10

    def test_strict_policy_ignores_min_is_length(self, daily_index):
        scheduler = WalkForwardScheduler(is_length=60, oos_length=10, step=10, min_is_length=30)
        windows = scheduler.schedule(daily_index).to_list()

        assert len(windows) == 4
        assert windows[0].oos_start == 60

    def test_anchored_keeps_is_start_at_zero(self):
        windows = WalkForwardScheduler(is_length=30, oos_length=10, step=10, anchored=True).schedule(70).to_list()

        assert len(windows) == 4
        assert all(w.is_start == 0 for w in windows)
        assert [w.is_end for w in windows] == [29, 39, 49, 59]

    def test_gap_separates_is_end_and_oos_start(self):
        windows = WalkForwardScheduler(is_length=20, oos_length=10, step=10, gap=3).schedule(60).to_list()

        assert len(windows) == 3
        assert windows[0].oos_start == 23
        assert windows[0].is_end == 19
        assert all(w.oos_start - w.is_end == 4 for w in windows)

    def test_insufficient_history_raised_eagerly(self):
        scheduler = WalkForwardScheduler(is_length=60, oos_length=10, step=10)

        with pytest.raises(InsufficientHistory):
            scheduler.schedule(50)

    def test_insufficient_history_is_value_error(self):
        with pytest.raises(ValueError):
            WalkForwardScheduler(is_length=60, oos_length=10, step=10).schedule(69)

    def test_schedule_is_restartable(self, daily_index):
        schedule = WalkForwardScheduler(is_length=60, oos_length=10, step=10).schedule(daily_index)

        assert list(schedule) == list(schedule)
        assert len(schedule) == 4

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            WalkForwardScheduler(is_length=0, oos_length=10, step=10)
        with pytest.raises(ValueError):
            WalkForwardScheduler(is_length=10, oos_length=10, step=10, min_is_length=20)
        with pytest.raises(ValueError):
            WalkForwardScheduler(is_length=10, oos_length=10, step=10, gap=-1)

    def test_from_config(self, daily_index):
        config = WalkForwardConfig(is_length=60, oos_length=10, step=10, gap=0, anchored=False)
        scheduler = WalkForwardScheduler.from_config(config)

        assert scheduler.min_is_length == 60
        assert len(scheduler.schedule(daily_index)) == 4
