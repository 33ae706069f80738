"""
Primary store access.

TrafficStore is the only place that reads or writes the relational store:
route profiles, cached traffic samples, booking timestamps, weekly rollups
and the paged reads the migration job needs.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select, text

from models import Booking, Route, TrafficHistory, WeeklyTrafficRollup
from schemas import RouteProfile, SampleStatus, TrafficSample, WeeklyRollup

logger = logging.getLogger(__name__)


def _route_from_row(r: Route) -> RouteProfile:
    origin_coords = None
    if r.origin_lat is not None and r.origin_lng is not None:
        origin_coords = (r.origin_lat, r.origin_lng)
    destination_coords = None
    if r.destination_lat is not None and r.destination_lng is not None:
        destination_coords = (r.destination_lat, r.destination_lng)
    return RouteProfile(
        route_id=r.route_id,
        name=r.route_name,
        origin=r.origin_name,
        destination=r.destination_name,
        waypoints=list(r.waypoints or []),
        origin_coords=origin_coords,
        destination_coords=destination_coords,
        status=r.status or "active",
    )


def _sample_from_row(r: TrafficHistory) -> TrafficSample:
    try:
        status = SampleStatus(r.status)
    except ValueError:
        status = SampleStatus.UNKNOWN
    return TrafficSample(
        route_id=r.route_id,
        timestamp=r.recorded_at,
        free_flow_duration_sec=r.free_flow_duration,
        observed_duration_sec=r.observed_duration,
        distance_meters=r.distance,
        status=status,
    )


class TrafficStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def list_routes(self, active_only: bool = True) -> List[RouteProfile]:
        db = self.session_factory()
        try:
            stmt = select(Route).order_by(Route.route_id)
            if active_only:
                stmt = stmt.where(Route.status == "active")
            return [_route_from_row(r) for r in db.execute(stmt).scalars()]
        finally:
            db.close()

    def get_route(self, route_id: int) -> Optional[RouteProfile]:
        db = self.session_factory()
        try:
            row = db.get(Route, route_id)
            return _route_from_row(row) if row else None
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Traffic samples
    # ------------------------------------------------------------------

    def get_samples(
        self,
        route_id: int,
        start: datetime,
        end: Optional[datetime] = None,
        ok_only: bool = True,
    ) -> List[TrafficSample]:
        """Samples for a route with start <= recorded_at <= end, oldest first."""
        db = self.session_factory()
        try:
            stmt = (
                select(TrafficHistory)
                .where(TrafficHistory.route_id == route_id)
                .where(TrafficHistory.recorded_at >= start)
                .order_by(TrafficHistory.recorded_at)
            )
            if end is not None:
                stmt = stmt.where(TrafficHistory.recorded_at <= end)
            if ok_only:
                stmt = stmt.where(TrafficHistory.status == SampleStatus.OK.value)
            return [_sample_from_row(r) for r in db.execute(stmt).scalars()]
        finally:
            db.close()

    def save_samples(self, samples: Iterable[TrafficSample]) -> int:
        """Append samples to the cache. Non-OK samples are never stored."""
        rows = [
            TrafficHistory(
                route_id=s.route_id,
                recorded_at=s.timestamp,
                traffic_density=s.density,
                free_flow_duration=s.free_flow_duration_sec,
                observed_duration=s.observed_duration_sec,
                distance=s.distance_meters,
                status=s.status.value,
            )
            for s in samples
            if s.is_ok
        ]
        if not rows:
            return 0

        db = self.session_factory()
        try:
            db.add_all(rows)
            db.commit()
            return len(rows)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def count_samples_between(self, route_id: int, start: datetime, end: datetime) -> int:
        db = self.session_factory()
        try:
            stmt = (
                select(func.count(TrafficHistory.id))
                .where(TrafficHistory.route_id == route_id)
                .where(TrafficHistory.recorded_at >= start)
                .where(TrafficHistory.recorded_at < end)
            )
            return int(db.execute(stmt).scalar() or 0)
        finally:
            db.close()

    def latest_sample_time(self) -> Optional[datetime]:
        db = self.session_factory()
        try:
            return db.execute(select(func.max(TrafficHistory.recorded_at))).scalar()
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def booking_timestamps(self, since: datetime, route_id: Optional[int] = None) -> List[datetime]:
        db = self.session_factory()
        try:
            stmt = (
                select(Booking.created_at)
                .where(Booking.created_at >= since)
                .order_by(Booking.created_at)
            )
            if route_id is not None:
                stmt = stmt.where(Booking.route_id == route_id)
            return list(db.execute(stmt).scalars())
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Weekly rollups
    # ------------------------------------------------------------------

    def upsert_weekly_rollup(self, rollup: WeeklyRollup):
        """Insert or overwrite the rollup keyed by (route_id, week_start)."""
        values = {
            "week_end": rollup.week_end,
            "total_samples": rollup.total_samples,
            "average_density": rollup.average_density,
            "peak_density": rollup.peak_density,
            "low_density": rollup.low_density,
            "average_speed_kmh": rollup.average_speed_kmh,
            "peak_hours": list(rollup.peak_hours),
            "low_hours": list(rollup.low_hours),
            "weekday_avg": rollup.weekday_avg,
            "weekend_avg": rollup.weekend_avg,
            "trend": rollup.trend.value,
            "daily_breakdown": [d.to_dict() for d in rollup.daily_breakdown],
        }

        db = self.session_factory()
        try:
            existing = db.execute(
                select(WeeklyTrafficRollup)
                .where(WeeklyTrafficRollup.route_id == rollup.route_id)
                .where(WeeklyTrafficRollup.week_start == rollup.week_start)
            ).scalar_one_or_none()

            if existing is None:
                db.add(WeeklyTrafficRollup(
                    route_id=rollup.route_id, week_start=rollup.week_start, **values
                ))
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_weekly_rollups(self, route_id: int) -> List[dict]:
        db = self.session_factory()
        try:
            rows = db.execute(
                select(WeeklyTrafficRollup)
                .where(WeeklyTrafficRollup.route_id == route_id)
                .order_by(WeeklyTrafficRollup.week_start)
            ).scalars()
            return [
                {
                    "route_id": r.route_id,
                    "week_start": r.week_start,
                    "week_end": r.week_end,
                    "total_samples": r.total_samples,
                    "average_density": r.average_density,
                    "peak_density": r.peak_density,
                    "low_density": r.low_density,
                    "average_speed_kmh": r.average_speed_kmh,
                    "peak_hours": r.peak_hours,
                    "low_hours": r.low_hours,
                    "weekday_avg": r.weekday_avg,
                    "weekend_avg": r.weekend_avg,
                    "trend": r.trend,
                    "daily_breakdown": r.daily_breakdown,
                }
                for r in rows
            ]
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Migration source
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        db = self.session_factory()
        try:
            db.execute(text("SELECT 1"))
            return True
        finally:
            db.close()

    def count_traffic_rows(self) -> int:
        db = self.session_factory()
        try:
            return int(db.execute(select(func.count(TrafficHistory.id))).scalar() or 0)
        finally:
            db.close()

    def fetch_traffic_rows(self, offset: int, limit: int) -> List[dict]:
        """One page of raw traffic rows ordered by creation time (then id)."""
        db = self.session_factory()
        try:
            rows = db.execute(
                select(TrafficHistory)
                .order_by(TrafficHistory.created_at, TrafficHistory.id)
                .offset(offset)
                .limit(limit)
            ).scalars()
            return [
                {
                    "route_id": r.route_id,
                    "timestamp": r.recorded_at,
                    "traffic_density": r.traffic_density,
                    "duration": r.free_flow_duration,
                    "duration_in_traffic": r.observed_duration,
                    "distance": r.distance,
                    "status": r.status,
                    "created_at": r.created_at,
                }
                for r in rows
            ]
        finally:
            db.close()
