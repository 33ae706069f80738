"""
Feature Engineering Module.

Turns traffic samples into a pandas DataFrame with the temporal features
every analytics component groups by.
"""

from typing import Iterable

import pandas as pd

from schemas import TrafficSample


FRAME_COLUMNS = [
    "timestamp",
    "density",
    "distance_meters",
    "observed_duration_sec",
    "hour_of_day",
    "day_of_week",
    "is_weekend",
    "date",
]


def day_of_week(value) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday (Postgres DOW)."""
    return (value.weekday() + 1) % 7


def is_weekend_day(dow: int) -> bool:
    return dow in (0, 6)


def samples_to_frame(samples: Iterable[TrafficSample]) -> pd.DataFrame:
    """
    Build a chronologically sorted frame from OK samples.

    Features:
    - hour_of_day: local hour of the sample timestamp
    - day_of_week: 0 = Sunday, matching EXTRACT(DOW ...)
    - is_weekend: Saturday or Sunday
    - date: calendar date of the sample
    """
    records = [
        {
            "timestamp": s.timestamp,
            "density": s.density,
            "distance_meters": s.distance_meters,
            "observed_duration_sec": s.observed_duration_sec,
        }
        for s in samples
        if s.is_ok
    ]
    if not records:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    df = pd.DataFrame.from_records(records)
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    df = df.sort_values("timestamp", kind="mergesort").reset_index(drop=True)

    df["hour_of_day"] = df["timestamp"].dt.hour
    df["day_of_week"] = (df["timestamp"].dt.dayofweek + 1) % 7
    df["is_weekend"] = df["day_of_week"].isin([0, 6])
    df["date"] = df["timestamp"].dt.date
    return df
