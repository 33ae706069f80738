"""
Prediction Module.

Short-horizon density predictions from same-weekday, same-hour history.
No model is trained: each (date, hour) bucket is the mean of matching
historical samples, with a confidence that grows with the bucket size.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ml.feature_engineering import day_of_week, samples_to_frame
from schemas import TrafficPrediction, TrafficSample


# ============================================================================
# CONSTANTS
# ============================================================================

PREDICTION_HORIZON_DAYS = 7
KEY_HOURS = (7, 9, 12, 17, 19, 22)  # morning rush, work hours, evening rush, night

DEFAULT_DENSITY = 0.5
DEFAULT_CONFIDENCE = 0.3
BASE_CONFIDENCE = 0.5
CONFIDENCE_PER_MATCH = 0.1
MAX_CONFIDENCE = 0.9


def bucket_confidence(matches: int) -> float:
    if matches <= 0:
        return DEFAULT_CONFIDENCE
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + CONFIDENCE_PER_MATCH * matches)


def predict_traffic(
    samples: Iterable[TrafficSample],
    now: Optional[datetime] = None,
    horizon_days: int = PREDICTION_HORIZON_DAYS,
    key_hours=KEY_HOURS,
) -> List[TrafficPrediction]:
    """
    Predict density for each of the next ``horizon_days`` days at each key hour.

    Always returns horizon_days * len(key_hours) entries ordered by date
    then hour. Buckets without history get density 0.5 at confidence 0.3.
    """
    now = now or datetime.now()
    df = samples_to_frame(samples)

    buckets = {}
    if not df.empty:
        grouped = df.groupby(["day_of_week", "hour_of_day"])["density"]
        for (dow, hour), series in grouped:
            buckets[(int(dow), int(hour))] = (float(series.mean()), int(series.count()))

    predictions = []
    for day in range(1, horizon_days + 1):
        target = (now + timedelta(days=day)).date()
        dow = day_of_week(target)
        for hour in key_hours:
            mean, count = buckets.get((dow, hour), (DEFAULT_DENSITY, 0))
            predictions.append(TrafficPrediction(
                date=target,
                hour=hour,
                predicted_density=mean,
                confidence=bucket_confidence(count),
            ))

    return predictions
