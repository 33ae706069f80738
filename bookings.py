"""
Booking volume: daily counts from the primary store and their persistence
(with the forecast) to QuestDB.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Sequence

import pandas as pd

from ml.feature_engineering import day_of_week
from questdb import sql_string
from schemas import BookingDailyCount, BookingForecast

logger = logging.getLogger(__name__)

DEFAULT_FREQUENCY_DAYS = 14


class BookingCounter:
    def __init__(self, store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    def daily_counts(self, days: int = DEFAULT_FREQUENCY_DAYS, route_id: Optional[int] = None) -> List[BookingDailyCount]:
        """
        Booking counts for the trailing ``days`` calendar days ending today,
        oldest first, with zero rows for days without bookings.
        """
        if days <= 0:
            return []

        today = self.clock().date()
        start = today - timedelta(days=days - 1)
        timestamps = self.store.booking_timestamps(datetime.combine(start, time.min), route_id)

        calendar = pd.date_range(start=start, end=today, freq="D")
        if timestamps:
            stamps = pd.to_datetime(pd.Series(timestamps)).dt.normalize()
            counts = stamps.value_counts().reindex(calendar, fill_value=0)
        else:
            counts = pd.Series(0, index=calendar)

        return [
            BookingDailyCount(date=day.date(), count=int(count), day_of_week=day_of_week(day))
            for day, count in counts.sort_index().items()
        ]


# ============================================================================
# QUESTDB PERSISTENCE
# ============================================================================

DAILY_COUNTS_DDL = """
CREATE TABLE IF NOT EXISTS booking_daily_counts (
    day TIMESTAMP,
    route_id INT,
    total_bookings LONG,
    created_at TIMESTAMP
) TIMESTAMP(day) PARTITION BY DAY
"""

FORECASTS_DDL = """
CREATE TABLE IF NOT EXISTS booking_forecasts (
    forecast_date TIMESTAMP,
    target_day TIMESTAMP,
    route_id INT,
    predicted_count LONG,
    confidence DOUBLE
) TIMESTAMP(forecast_date) PARTITION BY DAY
"""


def _day_literal(value: date) -> str:
    return f"to_timestamp({sql_string(value.isoformat())}, 'yyyy-MM-dd')"


class BookingWarehouse:
    """Appends booking counts and forecasts to the time-series store."""

    def __init__(self, questdb, route_id: int = 0):
        self.questdb = questdb
        self.route_id = route_id

    def persist_daily_counts(self, counts: Sequence[BookingDailyCount]) -> int:
        self.questdb.execute(DAILY_COUNTS_DDL)
        for c in counts:
            self.questdb.execute(
                "INSERT INTO booking_daily_counts (day, route_id, total_bookings, created_at) "
                f"VALUES ({_day_literal(c.date)}, {self.route_id}, {int(c.count)}, now())"
            )
        logger.info(f"Persisted {len(counts)} daily booking counts")
        return len(counts)

    def persist_forecast(self, forecast: Sequence[BookingForecast]) -> int:
        self.questdb.execute(FORECASTS_DDL)
        for f in forecast:
            self.questdb.execute(
                "INSERT INTO booking_forecasts (forecast_date, target_day, route_id, predicted_count, confidence) "
                f"VALUES (now(), {_day_literal(f.date)}, {self.route_id}, {int(f.predicted_count)}, {float(f.confidence)})"
            )
        logger.info(f"Persisted {len(forecast)} booking forecast rows")
        return len(forecast)
