"""
TomTom Routing API client.

Returns the free-flow duration, the traffic-affected duration and the route
length for origin -> [waypoints] -> destination. Only live conditions are
available, so historical timestamps are reconstructed by the caller.
"""

import logging
from datetime import datetime
from typing import Optional

import requests

from exceptions import ProviderError
from schemas import RouteProfile, SampleStatus, TrafficSample

logger = logging.getLogger(__name__)

ROUTING_URL = "https://api.tomtom.com/routing/1/calculateRoute/{locations}/json"

_STATUS_BY_HTTP = {
    400: SampleStatus.INVALID,
    403: SampleStatus.DENIED,
    429: SampleStatus.OVER_LIMIT,
}


def _waypoint_coords(route: RouteProfile, wp) -> tuple:
    try:
        return float(wp["lat"]), float(wp["lng"])
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(
            f"Route {route.route_id} has a waypoint without lat/lng: {wp!r}",
            status=SampleStatus.INVALID,
        ) from e


def build_locations(route: RouteProfile) -> str:
    """Colon-separated "lat,lon" path; TomTom needs coordinates, not names."""
    if not route.origin_coords or not route.destination_coords:
        raise ProviderError(
            f"Route {route.route_id} has no coordinates for routing",
            status=SampleStatus.INVALID,
        )
    points = [route.origin_coords]
    points += [_waypoint_coords(route, wp) for wp in route.waypoints or []]
    points.append(route.destination_coords)
    return ":".join(f"{lat},{lon}" for lat, lon in points)


class TomTomRoutingClient:
    def __init__(self, api_key: str, timeout: float = 10.0, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_route_traffic(
        self,
        route: RouteProfile,
        depart_at: Optional[datetime] = None,
    ) -> TrafficSample:
        """
        Request current (or future) travel time for a route.

        Raises:
            ProviderError: on network errors, timeouts, non-200 replies or
                when no route is returned.
        """
        url = ROUTING_URL.format(locations=build_locations(route))
        params = {
            "key": self.api_key,
            "traffic": "true",
            "computeTravelTimeFor": "all",
            "departAt": depart_at.strftime("%Y-%m-%dT%H:%M:%S") if depart_at else "now",
        }

        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderError(f"TomTom routing timeout: {e}", status=SampleStatus.UNKNOWN) from e
        except requests.RequestException as e:
            raise ProviderError(f"TomTom routing request failed: {e}", status=SampleStatus.UNKNOWN) from e

        if r.status_code != 200:
            status = _STATUS_BY_HTTP.get(r.status_code, SampleStatus.UNKNOWN)
            raise ProviderError(f"TomTom routing returned HTTP {r.status_code}", status=status)

        try:
            payload = r.json()
        except ValueError as e:
            raise ProviderError(f"TomTom routing returned invalid JSON: {e}", status=SampleStatus.UNKNOWN) from e
        if not isinstance(payload, dict):
            raise ProviderError(
                f"TomTom routing returned {type(payload).__name__}, expected an object",
                status=SampleStatus.UNKNOWN,
            )
        routes = payload.get("routes") or []
        if not routes:
            raise ProviderError("TomTom routing returned no routes", status=SampleStatus.ZERO_RESULTS)

        try:
            summary = routes[0]["summary"]
            free_flow = summary.get("noTrafficTravelTimeInSeconds") or summary.get("travelTimeInSeconds")
            # No traffic-affected time means free flow (density 0)
            observed = summary.get("travelTimeInSeconds") or free_flow
            free_flow_sec = float(free_flow)
            observed_sec = float(observed)
            distance = float(summary["lengthInMeters"])
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise ProviderError(f"TomTom routing summary is incomplete: {e}", status=SampleStatus.UNKNOWN) from e
        if free_flow_sec <= 0:
            raise ProviderError("TomTom routing summary is incomplete", status=SampleStatus.UNKNOWN)

        return TrafficSample(
            route_id=route.route_id,
            timestamp=depart_at or datetime.now(),
            free_flow_duration_sec=free_flow_sec,
            observed_duration_sec=observed_sec,
            distance_meters=distance,
            status=SampleStatus.OK,
        )
