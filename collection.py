"""
Daily traffic collection.

Once a day every active route without a sample for today gets live readings
for now, +2h, +4h and +6h. A route for which the provider returns nothing
gets one synthetic day instead.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List

from exceptions import ProviderError
from history import SyntheticHistory
from schemas import RouteProfile, TrafficSample

logger = logging.getLogger(__name__)

SLOT_OFFSETS_HOURS = (0, 2, 4, 6)
ROUTE_PAUSE_SECONDS = 1.0


def _day_bounds(now: datetime):
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class DailyTrafficCollector:
    def __init__(
        self,
        store,
        provider=None,
        synthetic: SyntheticHistory = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep=time.sleep,
        pause_seconds: float = ROUTE_PAUSE_SECONDS,
    ):
        self.store = store
        self.provider = provider
        self.synthetic = synthetic or SyntheticHistory(clock)
        self.clock = clock
        self.sleep = sleep
        self.pause_seconds = pause_seconds

    def has_data_for_today(self, route_id: int) -> bool:
        start, end = _day_bounds(self.clock())
        return self.store.count_samples_between(route_id, start, end) > 0

    def collect_route(self, route: RouteProfile) -> List[TrafficSample]:
        now = self.clock()
        samples = []
        if self.provider is not None:
            for offset in SLOT_OFFSETS_HOURS:
                depart_at = now + timedelta(hours=offset)
                try:
                    sample = self.provider.fetch_route_traffic(route, depart_at=depart_at)
                except ProviderError as e:
                    logger.warning(f"Slot +{offset}h failed for route {route.name}: {e}")
                    continue
                samples.append(sample)

        if not samples:
            logger.warning(f"No provider data for route {route.name}, generating a synthetic day")
            samples = self.synthetic.day_samples(route, now.date(), until=now)
        return samples

    def collect(self) -> dict:
        now = self.clock()
        routes = self.store.list_routes()
        logger.info(f"Starting daily traffic collection for {len(routes)} routes")

        results = {
            "routes_processed": 0,
            "routes_updated": 0,
            "routes_failed": 0,
            "total_samples": 0,
            "collection_date": now.date().isoformat(),
            "errors": [],
        }

        for index, route in enumerate(routes):
            try:
                if self.has_data_for_today(route.route_id):
                    logger.info(f"Route {route.name} already has data for today, skipping")
                    results["routes_processed"] += 1
                    continue

                saved = self.store.save_samples(self.collect_route(route))
                if saved:
                    results["routes_updated"] += 1
                    results["total_samples"] += saved
                else:
                    results["routes_failed"] += 1
                    results["errors"].append(f"No traffic data collected for route {route.name}")
                results["routes_processed"] += 1
            except Exception as e:
                results["routes_failed"] += 1
                message = f"Failed to collect data for route {route.name}: {e}"
                logger.error(message)
                results["errors"].append(message)

            if self.pause_seconds and index < len(routes) - 1:
                self.sleep(self.pause_seconds)

        results["success"] = results["routes_failed"] == 0
        logger.info(
            f"Daily collection done: {results['routes_updated']} routes updated, "
            f"{results['routes_failed']} failed"
        )
        return results

    def collection_status(self) -> dict:
        start, end = _day_bounds(self.clock())
        routes = self.store.list_routes()

        routes_with_data = 0
        today_samples = 0
        for route in routes:
            count = self.store.count_samples_between(route.route_id, start, end)
            if count:
                routes_with_data += 1
                today_samples += count

        latest = self.store.latest_sample_time()
        return {
            "last_collection_date": latest.date().isoformat() if latest else None,
            "routes_with_today_data": routes_with_data,
            "total_routes": len(routes),
            "today_samples": today_samples,
        }
