"""
Forecast Module - booking volume.

Seasonal (day-of-week) averages plus a linear trend fitted over the whole
history. Confidence is a coarse tier on how many observations back each
weekday; it is not a statistical interval.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from ml.feature_engineering import day_of_week
from schemas import BookingDailyCount, BookingForecast


FORECAST_HORIZON_DAYS = 7

# observations for the weekday -> confidence
CONFIDENCE_TIERS = {0: 0.1, 1: 0.3, 2: 0.5}
MAX_TIER_CONFIDENCE = 0.7


def seasonal_averages(history: Sequence[BookingDailyCount]) -> Dict[int, float]:
    by_weekday: Dict[int, List[int]] = {}
    for day in history:
        by_weekday.setdefault(day.day_of_week, []).append(day.count)
    return {dow: float(np.mean(counts)) for dow, counts in by_weekday.items()}


def trend_slope(history: Sequence[BookingDailyCount]) -> float:
    """
    Ordinary least squares slope of count over day index:
    slope = (n*Sxy - Sx*Sy) / (n*Sxx - Sx^2)
    """
    n = len(history)
    if n < 2:
        return 0.0

    x = np.arange(n, dtype=float)
    y = np.array([day.count for day in history], dtype=float)

    denominator = n * (x * x).sum() - x.sum() ** 2
    if denominator == 0:
        return 0.0
    return float((n * (x * y).sum() - x.sum() * y.sum()) / denominator)


def forecast_confidence(history: Sequence[BookingDailyCount], dow: int) -> float:
    observations = sum(1 for day in history if day.day_of_week == dow)
    return CONFIDENCE_TIERS.get(observations, MAX_TIER_CONFIDENCE)


def forecast_bookings(
    history: Sequence[BookingDailyCount],
    today: Optional[date] = None,
    horizon_days: int = FORECAST_HORIZON_DAYS,
) -> List[BookingForecast]:
    """
    Forecast the next ``horizon_days`` days after ``today``.

    ``history`` must already be dense (zero-filled, one row per day, oldest
    first); gaps are not filled here.
    """
    today = today or date.today()
    seasonal = seasonal_averages(history)
    slope = trend_slope(history)

    forecast = []
    for days_ahead in range(1, horizon_days + 1):
        target = today + timedelta(days=days_ahead)
        dow = day_of_week(target)
        predicted = seasonal.get(dow, 0.0) + slope * days_ahead
        forecast.append(BookingForecast(
            date=target,
            # half-up rounding
            predicted_count=int(np.floor(max(0.0, predicted) + 0.5)),
            confidence=forecast_confidence(history, dow),
            day_of_week=dow,
        ))
    return forecast
