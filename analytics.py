"""
Traffic summary statistics and trend classification for a route.
"""

import logging
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from ml.feature_engineering import samples_to_frame
from schemas import TrafficSample, TrafficSummary, Trend, hour_label

logger = logging.getLogger(__name__)

# Route summaries and weekly rollups use different thresholds
SUMMARY_TREND_THRESHOLD = 0.05
WEEKLY_TREND_THRESHOLD = 0.1

TOP_HOURS = 3


def classify_trend(series: Sequence[float], threshold: float) -> Trend:
    """
    Compare the mean of the second half of a chronologically ordered series
    with the mean of the first half.

    The split is at len // 2, so for odd lengths the middle point belongs to
    the second half.
    """
    if len(series) < 2:
        return Trend.STABLE

    values = np.asarray(series, dtype=float)
    mid = len(values) // 2
    diff = values[mid:].mean() - values[:mid].mean()

    if abs(diff) < threshold:
        return Trend.STABLE
    return Trend.INCREASING if diff > 0 else Trend.DECREASING


def hourly_averages(df: pd.DataFrame) -> pd.Series:
    """Mean density per hour of day, indexed by hour."""
    if df.empty:
        return pd.Series(dtype=float)
    return df.groupby("hour_of_day")["density"].mean()


def rank_hours(hourly: pd.Series, n: int = TOP_HOURS):
    """
    Return (peak_hours, low_hours) as "HH:00" labels.

    Ties are broken by hour ascending. Averages are rounded before ranking
    so floating point noise from summation order cannot reorder ties.
    """
    ranked = [(round(float(avg), 9), int(hour)) for hour, avg in hourly.items()]
    peak = sorted(ranked, key=lambda item: (-item[0], item[1]))[:n]
    low = sorted(ranked, key=lambda item: (item[0], item[1]))[:n]
    return [hour_label(h) for _, h in peak], [hour_label(h) for _, h in low]


def weekday_weekend_split(df: pd.DataFrame):
    """Average density on weekdays (Mon-Fri) and weekends; 0 for an empty group."""
    weekday = df.loc[~df["is_weekend"], "density"]
    weekend = df.loc[df["is_weekend"], "density"]
    weekday_avg = float(weekday.mean()) if len(weekday) else 0.0
    weekend_avg = float(weekend.mean()) if len(weekend) else 0.0
    return weekday_avg, weekend_avg


def summarize_frame(df: pd.DataFrame, trend_threshold: float = SUMMARY_TREND_THRESHOLD) -> TrafficSummary:
    if df.empty:
        return TrafficSummary()

    peak_hours, low_hours = rank_hours(hourly_averages(df))
    weekday_avg, weekend_avg = weekday_weekend_split(df)

    return TrafficSummary(
        average_density=float(df["density"].mean()),
        peak_hours=peak_hours,
        low_hours=low_hours,
        weekday_avg=weekday_avg,
        weekend_avg=weekend_avg,
        # samples_to_frame sorts chronologically
        trend=classify_trend(df["density"].tolist(), trend_threshold),
    )


def summarize(samples: Iterable[TrafficSample]) -> TrafficSummary:
    """
    Aggregate statistics for a route's samples.

    Empty input is a normal case for new routes and yields an all-zero
    summary with a stable trend.
    """
    return summarize_frame(samples_to_frame(samples), SUMMARY_TREND_THRESHOLD)


def recent_samples(samples: List[TrafficSample], n: int = 10) -> List[TrafficSample]:
    return sorted(samples, key=lambda s: s.timestamp)[-n:]
