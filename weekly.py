"""
Weekly Rollup Module.

Aggregates one Monday-to-Sunday week of traffic for a route and upserts it
keyed by (route_id, week_start), so re-running a week overwrites the row.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Tuple

import pandas as pd

from analytics import WEEKLY_TREND_THRESHOLD, summarize_frame
from ml.feature_engineering import samples_to_frame
from schemas import DailyBreakdown, RouteProfile, WeeklyRollup

logger = logging.getLogger(__name__)

MIN_HISTORY_DAYS = 30


def week_bounds(week_offset: int = 0, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00 and Sunday 23:59:59.999 of the current week shifted by week_offset weeks."""
    now = now or datetime.now()
    monday = now.date() - timedelta(days=now.weekday()) + timedelta(weeks=week_offset)
    week_start = datetime.combine(monday, time.min)
    week_end = week_start + timedelta(days=7) - timedelta(milliseconds=1)
    return week_start, week_end


def average_speed_kmh(df: pd.DataFrame) -> float:
    valid = df[(df["distance_meters"] > 0) & (df["observed_duration_sec"] > 0)]
    if valid.empty:
        return 0.0
    return float((valid["distance_meters"] / valid["observed_duration_sec"] * 3.6).mean())


def daily_breakdown(df: pd.DataFrame, week_start: datetime) -> List[DailyBreakdown]:
    days = []
    for offset in range(7):
        day = (week_start + timedelta(days=offset)).date()
        densities = df.loc[df["date"] == day, "density"]
        days.append(DailyBreakdown(
            date=day,
            samples=int(len(densities)),
            average_density=float(densities.mean()) if len(densities) else 0.0,
            peak_density=float(densities.max()) if len(densities) else 0.0,
        ))
    return days


class WeeklyRollupAggregator:
    def __init__(self, history, store, clock: Callable[[], datetime] = datetime.now):
        self.history = history
        self.store = store
        self.clock = clock

    def compute(self, route: RouteProfile, week_offset: int = 0) -> Optional[WeeklyRollup]:
        """Build the rollup without persisting it; None when the week has no samples."""
        now = self.clock()
        week_start, week_end = week_bounds(week_offset, now)
        window_days = max(MIN_HISTORY_DAYS, (now - week_start).days + 1)

        samples = self.history.get_history(route, window_days)
        in_week = [s for s in samples if week_start <= s.timestamp <= week_end]
        df = samples_to_frame(in_week)
        if df.empty:
            logger.info(f"No samples for route {route.name} in week of {week_start.date()}")
            return None

        summary = summarize_frame(df, WEEKLY_TREND_THRESHOLD)
        return WeeklyRollup(
            route_id=route.route_id,
            route_name=route.name,
            week_start=week_start,
            week_end=week_end,
            total_samples=int(len(df)),
            average_density=summary.average_density,
            peak_density=float(df["density"].max()),
            low_density=float(df["density"].min()),
            average_speed_kmh=average_speed_kmh(df),
            peak_hours=summary.peak_hours,
            low_hours=summary.low_hours,
            weekday_avg=summary.weekday_avg,
            weekend_avg=summary.weekend_avg,
            trend=summary.trend,
            daily_breakdown=daily_breakdown(df, week_start),
        )

    def rollup(self, route: RouteProfile, week_offset: int = 0) -> Optional[WeeklyRollup]:
        result = self.compute(route, week_offset)
        if result is not None:
            self.store.upsert_weekly_rollup(result)
        return result

    def rollup_all(self, routes: List[RouteProfile], week_offset: int = 0) -> dict:
        """
        Roll up every route sequentially. Routes without data for the week are
        skipped; a failing route is recorded in ``errors`` and the rest continue.
        """
        analytics = []
        errors = []
        for route in routes:
            try:
                result = self.rollup(route, week_offset)
            except Exception as e:
                logger.error(f"Weekly rollup failed for route {route.name}: {e}")
                errors.append(f"Route {route.route_id}: {e}")
                continue
            if result is not None:
                analytics.append(result)

        week_start, week_end = week_bounds(week_offset, self.clock())
        return {
            "routes_processed": len(analytics),
            "week_start": week_start.isoformat(),
            "week_end": week_end.isoformat(),
            "analytics": [a.to_dict() for a in analytics],
            "errors": errors,
        }
