"""
Traffic history acquisition with a fail-soft fallback chain.

HistorySource tries an ordered list of strategies and returns the first
non-empty result:

1. CachedHistory     - samples already stored in the primary store
2. ProviderSweep     - live routing durations re-stamped over the window and
                       scaled by a time-of-day / day-of-week pattern
3. SyntheticHistory  - pattern-consistent generated samples

Each strategy exposes ``fetch(route, window_days) -> (samples, ok)``.
Results of non-cache strategies are written back to the cache; a failed
write-back is logged and never fails the read.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from exceptions import ProviderError
from ml.feature_engineering import day_of_week, is_weekend_day
from schemas import RouteProfile, TrafficSample

logger = logging.getLogger(__name__)

FetchResult = Tuple[List[TrafficSample], bool]


# ============================================================================
# TIME PATTERNS
# ============================================================================

RUSH_HOUR_MULTIPLIER = 1.5
LATE_NIGHT_MULTIPLIER = 0.3
WEEKEND_MULTIPLIER = 0.7


def adjust_for_time_pattern(density: float, hour: int, dow: int) -> float:
    """
    Scale a live density reading to approximate the given hour and weekday.

    Rush hours (07-09, 16-19) x1.5, late night (23-05) x0.3; on weekends the
    multiplier is 0.7 whatever the hour.
    """
    multiplier = 1.0
    if 7 <= hour <= 9 or 16 <= hour <= 19:
        multiplier = RUSH_HOUR_MULTIPLIER
    elif hour >= 23 or hour <= 5:
        multiplier = LATE_NIGHT_MULTIPLIER

    if is_weekend_day(dow):
        multiplier = WEEKEND_MULTIPLIER

    return min(density * multiplier, 1.0)


# hour -> (low, high) base density
SYNTHETIC_HOUR_TEMPLATE = {
    6: (0.1, 0.3),
    7: (0.7, 0.95),
    8: (0.7, 0.95),
    9: (0.7, 0.95),
    12: (0.5, 0.7),
    15: (0.5, 0.7),
    17: (0.7, 0.95),
    18: (0.7, 0.95),
    19: (0.7, 0.95),
    22: (0.1, 0.3),
}
SYNTHETIC_WEEKEND_DAMPING = 0.6
SYNTHETIC_JITTER = 0.05
SYNTHETIC_FREE_FLOW_SEC = 1800.0
SYNTHETIC_DISTANCE_M = 15000.0


# ============================================================================
# STRATEGIES
# ============================================================================

class CachedHistory:
    name = "cache"
    persist_results = False

    def __init__(self, store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    def fetch(self, route: RouteProfile, window_days: int) -> FetchResult:
        now = self.clock()
        try:
            samples = self.store.get_samples(route.route_id, now - timedelta(days=window_days), now)
        except Exception as e:
            logger.warning(f"Cache read failed for route {route.route_id}: {e}")
            return [], False
        return samples, bool(samples)


class ProviderSweep:
    name = "provider"
    persist_results = True

    def __init__(self, client, clock: Callable[[], datetime] = datetime.now, step_hours: int = 2):
        self.client = client
        self.clock = clock
        self.step_hours = step_hours

    def fetch(self, route: RouteProfile, window_days: int) -> FetchResult:
        if self.client is None:
            return [], False

        now = self.clock()
        samples = []
        try:
            for day in range(window_days):
                base_day = now - timedelta(days=day)
                for hour in range(0, 24, self.step_hours):
                    stamp = base_day.replace(hour=hour, minute=0, second=0, microsecond=0)
                    if stamp > now:
                        continue
                    live = self.client.fetch_route_traffic(route)
                    density = adjust_for_time_pattern(live.density, hour, day_of_week(stamp))
                    samples.append(replace(live, route_id=route.route_id, timestamp=stamp).with_density(density))
        except ProviderError as e:
            logger.warning(f"Routing provider failed for route {route.name} ({e.status}): {e}")
            return [], False

        return samples, bool(samples)


class SyntheticHistory:
    name = "synthetic"
    persist_results = True

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[np.random.Generator] = None,
        template=None,
    ):
        self.clock = clock
        self.rng = rng if rng is not None else np.random.default_rng()
        self.template = template or SYNTHETIC_HOUR_TEMPLATE

    def density_for(self, hour: int, dow: int) -> float:
        low, high = self.template[hour]
        base = self.rng.uniform(low, high)
        if is_weekend_day(dow):
            base *= SYNTHETIC_WEEKEND_DAMPING
        jitter = self.rng.uniform(-SYNTHETIC_JITTER, SYNTHETIC_JITTER)
        return float(min(1.0, max(0.0, base + jitter)))

    def day_samples(self, route: RouteProfile, day: date, until: Optional[datetime] = None) -> List[TrafficSample]:
        """One sample per template hour on ``day``, skipping hours after ``until``."""
        samples = []
        for hour in sorted(self.template):
            stamp = datetime.combine(day, time(hour=hour))
            if until is not None and stamp > until:
                continue
            density = self.density_for(hour, day_of_week(stamp))
            samples.append(TrafficSample(
                route_id=route.route_id,
                timestamp=stamp,
                free_flow_duration_sec=SYNTHETIC_FREE_FLOW_SEC,
                observed_duration_sec=SYNTHETIC_FREE_FLOW_SEC * (1 + density),
                distance_meters=SYNTHETIC_DISTANCE_M,
            ))
        return samples

    def fetch(self, route: RouteProfile, window_days: int) -> FetchResult:
        now = self.clock()
        samples = []
        for day in range(window_days - 1, -1, -1):
            samples.extend(self.day_samples(route, (now - timedelta(days=day)).date(), until=now))
        return samples, bool(samples)


# ============================================================================
# SOURCE
# ============================================================================

class HistorySource:
    def __init__(self, strategies: Sequence, store=None):
        self.strategies = list(strategies)
        self.store = store

    def get_history(self, route: RouteProfile, window_days: int) -> List[TrafficSample]:
        for strategy in self.strategies:
            samples, ok = strategy.fetch(route, window_days)
            if not ok or not samples:
                continue

            samples = [s for s in samples if s.is_ok]
            if strategy.persist_results:
                self._write_back(route, samples)
            logger.info(f"Route {route.name}: {len(samples)} samples from {strategy.name}")
            return samples

        logger.warning(f"Route {route.name}: no traffic history from any source")
        return []

    def _write_back(self, route: RouteProfile, samples: List[TrafficSample]):
        if self.store is None:
            return
        try:
            self.store.save_samples(samples)
        except Exception as e:
            logger.error(f"Could not cache {len(samples)} samples for route {route.name}: {e}")


def build_history_source(store, provider_client=None, clock=datetime.now, rng=None) -> HistorySource:
    return HistorySource(
        [
            CachedHistory(store, clock),
            ProviderSweep(provider_client, clock),
            SyntheticHistory(clock, rng),
        ],
        store=store,
    )
