from sqlalchemy import (
    JSON, Column, DateTime, Float, Integer, String, UniqueConstraint, func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Route(Base):
    """Route profile reference data (owned by the primary store, read-only here)."""
    __tablename__ = "routes"
    route_id = Column(Integer, primary_key=True)
    route_name = Column(String, nullable=False)
    origin_name = Column(String, nullable=False)
    destination_name = Column(String, nullable=False)
    origin_lat = Column(Float, nullable=True)
    origin_lng = Column(Float, nullable=True)
    destination_lat = Column(Float, nullable=True)
    destination_lng = Column(Float, nullable=True)
    waypoints = Column(JSON, nullable=True)  # [{"lat": .., "lng": ..}, ...]
    status = Column(String, default="active")
    created_at = Column(DateTime, server_default=func.now())


class TrafficHistory(Base):
    __tablename__ = "traffic_history"
    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(Integer, nullable=False, index=True)
    recorded_at = Column(DateTime, nullable=False, index=True)
    traffic_density = Column(Float, nullable=False)
    free_flow_duration = Column(Float, nullable=False)   # seconds
    observed_duration = Column(Float, nullable=False)    # seconds, in traffic
    distance = Column(Float, nullable=False)             # meters
    status = Column(String(16), nullable=False, default="OK")
    created_at = Column(DateTime, server_default=func.now(), index=True)


class Booking(Base):
    __tablename__ = "bookings"
    booking_id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, index=True)


class WeeklyTrafficRollup(Base):
    __tablename__ = "weekly_traffic_rollups"
    __table_args__ = (
        UniqueConstraint("route_id", "week_start", name="uq_rollup_route_week"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    route_id = Column(Integer, nullable=False)
    week_start = Column(DateTime, nullable=False)
    week_end = Column(DateTime, nullable=False)
    total_samples = Column(Integer, nullable=False)
    average_density = Column(Float)
    peak_density = Column(Float)
    low_density = Column(Float)
    average_speed_kmh = Column(Float)
    peak_hours = Column(JSON)
    low_hours = Column(JSON)
    weekday_avg = Column(Float)
    weekend_avg = Column(Float)
    trend = Column(String(16))
    daily_breakdown = Column(JSON)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
