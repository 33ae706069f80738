from datetime import date, datetime

from bookings import BookingCounter, BookingWarehouse
from helpers import NOW, FakeQuestDB
from schemas import BookingForecast


def test_daily_counts_are_dense_and_oldest_first(store, add_bookings):
    add_bookings([
        datetime(2024, 6, 1, 9),        # outside the window
        datetime(2024, 6, 6, 8),
        datetime(2024, 6, 6, 17, 45),
        datetime(2024, 6, 10, 12),
        datetime(2024, 6, 12, 7),
        datetime(2024, 6, 12, 8),
        datetime(2024, 6, 12, 9),
    ])

    counts = BookingCounter(store, clock=lambda: NOW).daily_counts(7)

    assert [c.date for c in counts][0] == date(2024, 6, 6)
    assert [c.date for c in counts][-1] == date(2024, 6, 12)
    assert [c.count for c in counts] == [2, 0, 0, 0, 1, 0, 3]
    assert counts[0].day_of_week == 4   # Thursday
    assert counts[3].day_of_week == 0   # Sunday


def test_no_bookings_gives_zero_rows(store):
    counts = BookingCounter(store, clock=lambda: NOW).daily_counts(14)
    assert len(counts) == 14
    assert all(c.count == 0 for c in counts)


def test_route_filter(store, add_bookings):
    add_bookings([datetime(2024, 6, 12, 7)], route_id=1)
    add_bookings([datetime(2024, 6, 12, 8)], route_id=2)

    counter = BookingCounter(store, clock=lambda: NOW)
    assert counter.daily_counts(1, route_id=2)[0].count == 1
    assert counter.daily_counts(1)[0].count == 2


def test_non_positive_window(store):
    assert BookingCounter(store, clock=lambda: NOW).daily_counts(0) == []


def test_persist_daily_counts(store, add_bookings):
    add_bookings([datetime(2024, 6, 12, 7)])
    counts = BookingCounter(store, clock=lambda: NOW).daily_counts(3)
    questdb = FakeQuestDB()

    saved = BookingWarehouse(questdb).persist_daily_counts(counts)

    assert saved == 3
    assert questdb.queries[0].strip().startswith("CREATE TABLE IF NOT EXISTS booking_daily_counts")
    assert len(questdb.queries) == 4
    assert "to_timestamp('2024-06-12', 'yyyy-MM-dd'), 0, 1, now()" in questdb.queries[-1]


def test_persist_forecast():
    forecast = [BookingForecast(date=date(2024, 6, 13), predicted_count=4, confidence=0.5, day_of_week=4)]
    questdb = FakeQuestDB()

    BookingWarehouse(questdb).persist_forecast(forecast)

    assert "booking_forecasts" in questdb.queries[0]
    assert "to_timestamp('2024-06-13', 'yyyy-MM-dd'), 0, 4, 0.5" in questdb.queries[1]
