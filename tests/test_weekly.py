"""
Unit tests for weekly.py using the SQLite-backed store.
"""

from datetime import date, datetime, timedelta

import pytest

from helpers import NOW, key_hour_week, make_route, make_sample
from history import CachedHistory, HistorySource
from schemas import Trend
from weekly import WeeklyRollupAggregator, week_bounds


class StaticHistory:
    def __init__(self, samples):
        self.samples = samples
        self.windows = []

    def get_history(self, route, window_days):
        self.windows.append(window_days)
        return list(self.samples)


@pytest.fixture()
def cached_aggregator(store):
    history = HistorySource([CachedHistory(store, lambda: NOW)], store=store)
    return WeeklyRollupAggregator(history, store, clock=lambda: NOW)


# ---------------------------------------------------------------------------
# week_bounds
# ---------------------------------------------------------------------------

def test_week_bounds_current_week():
    start, end = week_bounds(0, NOW)
    assert start == datetime(2024, 6, 10)
    assert end == datetime(2024, 6, 16, 23, 59, 59, 999000)


def test_week_bounds_previous_week():
    start, end = week_bounds(-1, NOW)
    assert start == datetime(2024, 6, 3)
    assert end.date() == date(2024, 6, 9)


def test_week_bounds_on_a_monday_and_sunday():
    assert week_bounds(0, datetime(2024, 6, 10, 0, 5))[0] == datetime(2024, 6, 10)
    assert week_bounds(0, datetime(2024, 6, 16, 23, 0))[0] == datetime(2024, 6, 10)


# ---------------------------------------------------------------------------
# rollup
# ---------------------------------------------------------------------------

def test_rollup_statistics(store, cached_aggregator):
    store.save_samples(key_hour_week(datetime(2024, 6, 3)))

    rollup = cached_aggregator.rollup(make_route(), week_offset=-1)

    assert rollup.total_samples == 63
    assert rollup.peak_density == pytest.approx(0.85)
    assert rollup.low_density == pytest.approx(0.2)
    assert rollup.peak_hours == ["07:00", "08:00", "09:00"]
    assert rollup.trend == Trend.STABLE
    expected_speed = (6 * 15000 / 3330 + 3 * 15000 / 2160) / 9 * 3.6
    assert rollup.average_speed_kmh == pytest.approx(expected_speed)
    assert [d.samples for d in rollup.daily_breakdown] == [9] * 7
    assert rollup.daily_breakdown[0].date == date(2024, 6, 3)


def test_rollup_is_idempotent(store, cached_aggregator):
    store.save_samples(key_hour_week(datetime(2024, 6, 3)))
    route = make_route()

    cached_aggregator.rollup(route, week_offset=-1)
    first = store.get_weekly_rollups(route.route_id)
    cached_aggregator.rollup(route, week_offset=-1)
    second = store.get_weekly_rollups(route.route_id)

    assert len(second) == 1
    assert first == second


def test_rollup_overwrites_when_data_changes(store, cached_aggregator):
    route = make_route()
    store.save_samples([make_sample(datetime(2024, 6, 4, 8), 0.5)])
    cached_aggregator.rollup(route, week_offset=-1)

    store.save_samples([make_sample(datetime(2024, 6, 5, 8), 0.9)])
    cached_aggregator.rollup(route, week_offset=-1)

    rows = store.get_weekly_rollups(route.route_id)
    assert len(rows) == 1
    assert rows[0]["total_samples"] == 2
    assert rows[0]["peak_density"] == pytest.approx(0.9)


def test_empty_week_is_skipped(store):
    history = StaticHistory([make_sample(datetime(2024, 5, 20, 8), 0.5)])
    aggregator = WeeklyRollupAggregator(history, store, clock=lambda: NOW)

    assert aggregator.rollup(make_route(), week_offset=-1) is None
    assert store.get_weekly_rollups(1) == []


def test_history_window_covers_target_week(store):
    history = StaticHistory([])
    aggregator = WeeklyRollupAggregator(history, store, clock=lambda: NOW)

    aggregator.compute(make_route(), week_offset=0)
    aggregator.compute(make_route(), week_offset=-6)

    assert history.windows[0] == 30
    assert history.windows[1] == (NOW - week_bounds(-6, NOW)[0]).days + 1


def test_daily_breakdown_zero_fills(store):
    samples = [
        make_sample(datetime(2024, 6, 4, 8), 0.6),
        make_sample(datetime(2024, 6, 4, 18), 0.8),
        make_sample(datetime(2024, 6, 8, 12), 0.2),
    ]
    aggregator = WeeklyRollupAggregator(StaticHistory(samples), store, clock=lambda: NOW)

    rollup = aggregator.compute(make_route(), week_offset=-1)

    breakdown = {d.date: d for d in rollup.daily_breakdown}
    assert len(breakdown) == 7
    assert breakdown[date(2024, 6, 4)].average_density == pytest.approx(0.7)
    assert breakdown[date(2024, 6, 4)].peak_density == pytest.approx(0.8)
    assert breakdown[date(2024, 6, 3)].samples == 0
    assert breakdown[date(2024, 6, 3)].average_density == 0.0
    assert rollup.weekend_avg == pytest.approx(0.2)


def test_weekly_trend_threshold_is_wider(store):
    # second half is 0.08 denser: increasing for summaries, stable here
    samples = [make_sample(datetime(2024, 6, 3) + timedelta(hours=6 * i), 0.3) for i in range(4)]
    samples += [make_sample(datetime(2024, 6, 5) + timedelta(hours=6 * i), 0.38) for i in range(4)]
    aggregator = WeeklyRollupAggregator(StaticHistory(samples), store, clock=lambda: NOW)

    assert aggregator.compute(make_route(), week_offset=-1).trend == Trend.STABLE


def test_samples_without_distance_are_left_out_of_speed(store):
    samples = [
        make_sample(datetime(2024, 6, 4, 8), 0.0, distance=18000.0),  # 36 km/h
        make_sample(datetime(2024, 6, 4, 9), 0.0, distance=0.0),
    ]
    aggregator = WeeklyRollupAggregator(StaticHistory(samples), store, clock=lambda: NOW)

    assert aggregator.compute(make_route(), week_offset=-1).average_speed_kmh == pytest.approx(36.0)


def test_rollup_all_collects_results_and_errors(store):
    class PartlyBroken(StaticHistory):
        def get_history(self, route, window_days):
            if route.route_id == 3:
                raise RuntimeError("store timeout")
            if route.route_id == 2:
                return []
            return super().get_history(route, window_days)

    history = PartlyBroken([make_sample(datetime(2024, 6, 4, 8), 0.5)])
    aggregator = WeeklyRollupAggregator(history, store, clock=lambda: NOW)

    result = aggregator.rollup_all([make_route(1), make_route(2), make_route(3)], week_offset=-1)

    assert result["routes_processed"] == 1
    assert result["analytics"][0]["route_id"] == 1
    assert len(result["errors"]) == 1
    assert "Route 3" in result["errors"][0]
