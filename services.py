"""
AnalyticsPipeline: the operations the HTTP layer and the scheduler call.

Every collaborator is built once in build_pipeline() and injected; nothing
below reads the environment or a module-level client.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from analytics import summarize
from bookings import DEFAULT_FREQUENCY_DAYS, BookingCounter, BookingWarehouse
from cache import ResponseCache, connect_redis
from collection import DailyTrafficCollector
from config import Settings
from db import get_engine, make_session_factory
from exceptions import ConfigurationError, PipelineError, RouteNotFoundError
from history import SyntheticHistory, build_history_source
from migration import MigrationPipeline
from ml.forecast import forecast_bookings
from ml.prediction import predict_traffic
from narrative import GeminiNarrativeGenerator, NarrativeAnnotator, RateLimitGate
from questdb import QuestDBClient
from schemas import MigrationResult, MigrationStatus
from store import TrafficStore
from tomtom import TomTomRoutingClient
from weekly import WeeklyRollupAggregator

logger = logging.getLogger(__name__)


class AnalyticsPipeline:
    def __init__(
        self,
        store: TrafficStore,
        history,
        annotator: NarrativeAnnotator,
        bookings: BookingCounter,
        weekly: WeeklyRollupAggregator,
        migration: MigrationPipeline,
        collector: Optional[DailyTrafficCollector] = None,
        warehouse: Optional[BookingWarehouse] = None,
        questdb: Optional[QuestDBClient] = None,
        cache: Optional[ResponseCache] = None,
        history_window_days: int = 7,
        cache_ttl_seconds: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.history = history
        self.annotator = annotator
        self.bookings = bookings
        self.weekly = weekly
        self.migration = migration
        self.collector = collector
        self.warehouse = warehouse
        self.questdb = questdb
        self.cache = cache
        self.history_window_days = history_window_days
        self.cache_ttl_seconds = cache_ttl_seconds
        self.clock = clock

    # ------------------------------------------------------------------
    # Route analytics
    # ------------------------------------------------------------------

    def generate_route_analytics(self, route_id: int) -> dict:
        """
        Summary, 7-day predictions and narrative for one route.

        Raises:
            RouteNotFoundError: when the route does not exist.
        """
        route = self.store.get_route(route_id)
        if route is None:
            raise RouteNotFoundError(route_id)

        samples = self.history.get_history(route, self.history_window_days)
        summary = summarize(samples)
        predictions = predict_traffic(samples, now=self.clock())
        insights = self.annotator.annotate(route.name, summary, samples, predictions)

        return {
            "route_id": route.route_id,
            "route_name": route.name,
            "historical_data": [s.to_dict() for s in samples],
            "predictions": [p.to_dict() for p in predictions],
            "summary": summary.to_dict(),
            "insights": insights,
        }

    def refresh_all_routes(self) -> dict:
        """Regenerate analytics for every active route, one at a time."""
        routes = self.store.list_routes()
        updated = 0
        errors = []
        for route in routes:
            try:
                self.generate_route_analytics(route.route_id)
                updated += 1
            except (PipelineError, SQLAlchemyError) as e:
                logger.error(f"Refresh failed for route {route.name}: {e}")
                errors.append(f"Route {route.route_id}: {e}")

        logger.info(f"Refreshed {updated}/{len(routes)} routes")
        return {"routes_updated": updated, "total_routes": len(routes), "errors": errors}

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def get_booking_frequency(self, days: int = DEFAULT_FREQUENCY_DAYS) -> dict:
        cache_key = f"booking_frequency:{days}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        history = self.bookings.daily_counts(days)
        forecast = forecast_bookings(history, today=self.clock().date())
        result = {
            "days": days,
            "history": [h.to_dict() for h in history],
            "forecast": [f.to_dict() for f in forecast],
        }

        if self.cache is not None:
            self.cache.set(cache_key, result, self.cache_ttl_seconds)
        return result

    def persist_booking_frequency(self, days: int = DEFAULT_FREQUENCY_DAYS) -> dict:
        if self.warehouse is None or self.questdb is None or not self.questdb.is_configured:
            raise ConfigurationError("QuestDB is not configured; set QUESTDB_HTTP")

        history = self.bookings.daily_counts(days)
        forecast = forecast_bookings(history, today=self.clock().date())
        return {
            "days": days,
            "daily_counts_saved": self.warehouse.persist_daily_counts(history),
            "forecasts_saved": self.warehouse.persist_forecast(forecast),
        }

    # ------------------------------------------------------------------
    # Weekly rollup / collection
    # ------------------------------------------------------------------

    def run_weekly_rollup(self, week_offset: int = 0) -> dict:
        return self.weekly.rollup_all(self.store.list_routes(), week_offset)

    def collect_daily_traffic(self) -> dict:
        if self.collector is None:
            raise ConfigurationError("Daily traffic collection is not configured")
        return self.collector.collect()

    def collection_status(self) -> dict:
        if self.collector is None:
            raise ConfigurationError("Daily traffic collection is not configured")
        return self.collector.collection_status()

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def check_migration_readiness(self) -> MigrationStatus:
        return self.migration.check_readiness()

    def run_migration(self, status: Optional[MigrationStatus] = None) -> MigrationResult:
        """Run the migration; a fresh readiness probe is made unless ``status`` is given."""
        return self.migration.migrate(status)

    def questdb_status(self) -> dict:
        if self.questdb is None:
            return {"is_configured": False, "is_available": False, "url": None, "error": "QUESTDB_HTTP is not set"}
        return self.questdb.status()


def build_pipeline(settings: Settings) -> AnalyticsPipeline:
    """Wire every collaborator from settings."""
    engine = get_engine(
        settings.database_url,
        connect_timeout=settings.db_connect_timeout,
        pool_timeout=settings.db_pool_timeout,
        statement_timeout=settings.db_statement_timeout,
    )
    store = TrafficStore(make_session_factory(engine))

    provider = None
    if settings.tomtom_api_key:
        provider = TomTomRoutingClient(settings.tomtom_api_key, timeout=settings.provider_timeout)
    else:
        logger.warning("TOMTOM_API_KEY not set, routing provider disabled")

    generator = None
    if settings.gemini_api_key:
        generator = GeminiNarrativeGenerator(
            settings.gemini_api_key, settings.gemini_model, timeout=settings.narrative_timeout
        )
    else:
        logger.warning("GEMINI_API_KEY not set, narratives use templates only")

    questdb = QuestDBClient(
        settings.questdb_url,
        timeout=settings.questdb_timeout,
        readiness_timeout=settings.readiness_timeout,
    )
    cache = ResponseCache(connect_redis(
        settings.redis_host, settings.redis_port, settings.redis_password, timeout=settings.redis_timeout
    ))

    history = build_history_source(store, provider)
    return AnalyticsPipeline(
        store=store,
        history=history,
        annotator=NarrativeAnnotator(generator, RateLimitGate(settings.narrative_min_interval)),
        bookings=BookingCounter(store),
        weekly=WeeklyRollupAggregator(history, store),
        migration=MigrationPipeline(store, questdb, batch_size=settings.migration_batch_size),
        collector=DailyTrafficCollector(store, provider, SyntheticHistory()),
        warehouse=BookingWarehouse(questdb),
        questdb=questdb,
        cache=cache,
        history_window_days=settings.history_window_days,
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )
