"""
Shared fixtures for pipeline unit tests.
Uses SQLite in-memory for store tests to avoid requiring a real database.

The root conftest.py adds the project root to sys.path so bare imports work;
sample builders and fakes live in helpers.py.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from helpers import NOW, FakeProvider, FakeQuestDB, make_route
from models import Base, Booking, Route
from store import TrafficStore


@pytest.fixture(autouse=True)
def no_external_config(monkeypatch):
    """Ensure keys are unset so nothing is wired to a real service."""
    for name in ("DATABASE_URL", "TOMTOM_API_KEY", "GEMINI_API_KEY", "QUESTDB_HTTP"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def clock():
    return lambda: NOW


@pytest.fixture()
def sqlite_engine():
    """In-memory SQLite engine shared across sessions, with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(sqlite_engine):
    return sessionmaker(bind=sqlite_engine, autoflush=False, future=True)


@pytest.fixture()
def store(session_factory):
    return TrafficStore(session_factory)


@pytest.fixture()
def add_route(session_factory):
    """Insert a route row and return its RouteProfile."""
    def _add(route_id=1, name="Malinta - Novaliches", coords=True, status="active"):
        db = session_factory()
        try:
            db.add(Route(
                route_id=route_id,
                route_name=name,
                origin_name="Malinta",
                destination_name="Novaliches",
                origin_lat=14.69 if coords else None,
                origin_lng=120.96 if coords else None,
                destination_lat=14.73 if coords else None,
                destination_lng=121.04 if coords else None,
                waypoints=[],
                status=status,
            ))
            db.commit()
        finally:
            db.close()
        return make_route(route_id, name, coords)
    return _add


@pytest.fixture()
def add_bookings(session_factory):
    def _add(timestamps, route_id=1):
        db = session_factory()
        try:
            db.add_all([Booking(route_id=route_id, created_at=ts) for ts in timestamps])
            db.commit()
        finally:
            db.close()
    return _add


@pytest.fixture()
def route():
    return make_route()


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def fake_questdb():
    return FakeQuestDB()
