"""Road-distance estimation with a deterministic great-circle fallback."""
from __future__ import annotations

import logging
import math
from typing import NamedTuple

import httpx

from freightpay.config import Settings
from freightpay.utils.errors import EstimationFailure
from freightpay.utils.geo import haversine_km

logger = logging.getLogger(__name__)

ROAD_FACTOR = 1.3


class Coordinate(NamedTuple):
    lat: float
    lng: float


class RoutingProviderError(Exception):
    """The routing provider did not return a usable route."""


def fallback_distance_km(pickup: Coordinate, delivery: Coordinate) -> float:
    """Great-circle distance scaled by the road factor."""

    values = (pickup.lat, pickup.lng, delivery.lat, delivery.lng)
    if not all(math.isfinite(v) for v in values):
        raise EstimationFailure("Coordinates must be finite numbers.")
    return haversine_km(pickup.lat, pickup.lng, delivery.lat, delivery.lng) * ROAD_FACTOR


class RoutingClient:
    """Mapbox Directions API client returning driving distance in kilometres."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.mapbox.com",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def driving_distance_km(self, pickup: Coordinate, delivery: Coordinate) -> float:
        url = (
            f"{self.base_url}/directions/v5/mapbox/driving/"
            f"{pickup.lng},{pickup.lat};{delivery.lng},{delivery.lat}"
        )
        params = {"access_token": self.access_token, "geometries": "geojson"}

        if self._client is not None:
            response = self._client.get(url, params=params, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, params=params)

        if not response.is_success:
            raise RoutingProviderError(f"Routing provider returned {response.status_code}")

        try:
            distance_m = float(response.json()["routes"][0]["distance"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise RoutingProviderError("Malformed routing response") from exc
        if not math.isfinite(distance_m) or distance_m < 0:
            raise RoutingProviderError(f"Invalid route distance: {distance_m!r}")
        return distance_m / 1000.0


class DistanceEstimator:
    """Estimate road distance, falling back to haversine x 1.3 on any provider failure."""

    def __init__(self, routing: RoutingClient | None = None) -> None:
        self.routing = routing

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client | None = None) -> "DistanceEstimator":
        if not settings.MAPBOX_ACCESS_TOKEN:
            return cls(None)
        return cls(
            RoutingClient(
                settings.MAPBOX_ACCESS_TOKEN,
                base_url=settings.ROUTING_BASE_URL,
                timeout=settings.ROUTING_TIMEOUT_SECONDS,
                client=client,
            )
        )

    def estimate(self, pickup: Coordinate, delivery: Coordinate) -> float:
        if self.routing is None:
            logger.warning("Routing provider not configured, using straight-line distance")
            return fallback_distance_km(pickup, delivery)

        try:
            return self.routing.driving_distance_km(pickup, delivery)
        except (httpx.HTTPError, RoutingProviderError) as exc:
            logger.warning(
                "Routing provider failed, using straight-line distance",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return fallback_distance_km(pickup, delivery)


__all__ = [
    "Coordinate",
    "DistanceEstimator",
    "ROAD_FACTOR",
    "RoutingClient",
    "RoutingProviderError",
    "fallback_distance_km",
]
