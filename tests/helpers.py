"""
Sample builders and fakes for the external collaborators (routing
provider, Gemini, QuestDB) shared by the test modules.
"""

from datetime import datetime, timedelta

import requests

from exceptions import DestinationError, NarrativeError, ProviderError
from schemas import RouteProfile, SampleStatus, TrafficSample

# Wednesday afternoon
NOW = datetime(2024, 6, 12, 15, 30)

RUSH_HOURS = (7, 8, 9, 17, 18, 19)


def make_route(route_id=1, name="Malinta - Novaliches", coords=True):
    return RouteProfile(
        route_id=route_id,
        name=name,
        origin="Malinta",
        destination="Novaliches",
        origin_coords=(14.69, 120.96) if coords else None,
        destination_coords=(14.73, 121.04) if coords else None,
    )


def make_sample(timestamp, density, route_id=1, free_flow=1800.0, distance=15000.0,
                status=SampleStatus.OK):
    return TrafficSample(
        route_id=route_id,
        timestamp=timestamp,
        free_flow_duration_sec=free_flow,
        observed_duration_sec=free_flow * (1 + density),
        distance_meters=distance,
        status=status,
    )


def key_hour_week(start, rush=0.85, other=0.2, hours=(6, 7, 8, 9, 12, 15, 17, 18, 19), days=7):
    """days x len(hours) samples; rush hours at ``rush``, the rest at ``other``."""
    samples = []
    for day in range(days):
        for hour in hours:
            ts = (start + timedelta(days=day)).replace(hour=hour, minute=0, second=0, microsecond=0)
            samples.append(make_sample(ts, rush if hour in RUSH_HOURS else other))
    return samples


class FakeProvider:
    """Routing provider returning a fixed density, or failing on demand."""

    def __init__(self, density=0.4, fail_with=None, fail_after=None):
        self.density = density
        self.fail_with = fail_with
        self.fail_after = fail_after
        self.calls = []

    def fetch_route_traffic(self, route, depart_at=None):
        self.calls.append(depart_at)
        if self.fail_with is not None and (self.fail_after is None or len(self.calls) > self.fail_after):
            raise ProviderError("provider down", status=self.fail_with)
        return make_sample(depart_at or NOW, self.density, route_id=route.route_id)


class FakeGenerator:
    def __init__(self, reply="Traffic is moderate. Leave early. Extra sentence here.", fail=False):
        self.reply = reply
        self.fail = fail
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.fail:
            raise NarrativeError("rate limit exceeded (429)")
        return self.reply


class FakeQuestDB:
    """Records statements; fails any statement whose text contains ``fail_marker``."""

    def __init__(self, url="http://questdb:9000", reachable=True, fail_marker=None,
                 fail_exc=DestinationError):
        self.url = url
        self.reachable = reachable
        self.fail_marker = fail_marker
        self.fail_exc = fail_exc
        self.queries = []

    @property
    def is_configured(self):
        return bool(self.url)

    def ping(self):
        if not self.reachable:
            raise requests.ConnectionError("connection refused")
        return True

    def execute(self, query, max_retries=3):
        if self.fail_marker is not None and self.fail_marker in query:
            raise self.fail_exc(f"write failed for {self.fail_marker}")
        self.queries.append(query)
        return {"ddl": "OK"}

    def status(self):
        return {"is_configured": self.is_configured, "is_available": self.reachable,
                "url": self.url, "error": None}
