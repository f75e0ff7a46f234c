import httpx
import pytest
import respx

from freightpay.config import Settings
from freightpay.services.distance import (
    ROAD_FACTOR,
    Coordinate,
    DistanceEstimator,
    RoutingClient,
    RoutingProviderError,
    fallback_distance_km,
)
from freightpay.utils.errors import EstimationFailure
from freightpay.utils.geo import haversine_km

SANDTON = Coordinate(-26.1076, 28.0567)
PRETORIA = Coordinate(-25.7479, 28.2293)
DIRECTIONS_URL = (
    "https://api.mapbox.com/directions/v5/mapbox/driving/28.0567,-26.1076;28.2293,-25.7479"
)


@pytest.fixture
def http_client():
    with httpx.Client() as client:
        yield client


@pytest.fixture
def estimator(http_client) -> DistanceEstimator:
    return DistanceEstimator(RoutingClient("test-token", client=http_client, timeout=1.0))


def test_provider_distance_is_converted_to_km(estimator):
    with respx.mock:
        route = respx.get(url__startswith=DIRECTIONS_URL).mock(
            return_value=httpx.Response(200, json={"routes": [{"distance": 57_340.0}]})
        )

        distance = estimator.estimate(SANDTON, PRETORIA)

    assert route.called
    request = route.calls.last.request
    assert request.url.params["access_token"] == "test-token"
    assert request.url.params["geometries"] == "geojson"
    assert distance == pytest.approx(57.34)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream error"),
        httpx.Response(200, json={"routes": []}),
        httpx.Response(200, json={"message": "Not Authorized"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"routes": [{"distance": -5}]}),
    ],
)
def test_provider_failures_fall_back_to_haversine(estimator, response):
    with respx.mock:
        respx.get(url__startswith=DIRECTIONS_URL).mock(return_value=response)

        distance = estimator.estimate(SANDTON, PRETORIA)

    assert distance == pytest.approx(fallback_distance_km(SANDTON, PRETORIA))


def test_transport_errors_fall_back_to_haversine(estimator):
    with respx.mock:
        respx.get(url__startswith=DIRECTIONS_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        distance = estimator.estimate(SANDTON, PRETORIA)

    assert distance == pytest.approx(haversine_km(*SANDTON, *PRETORIA) * ROAD_FACTOR)


def test_routing_client_raises_on_malformed_payload(http_client):
    client = RoutingClient("token", client=http_client)
    with respx.mock:
        respx.get(url__startswith=DIRECTIONS_URL).mock(return_value=httpx.Response(200, json={"routes": [{}]}))

        with pytest.raises(RoutingProviderError):
            client.driving_distance_km(SANDTON, PRETORIA)


def test_missing_token_uses_fallback_without_network():
    estimator = DistanceEstimator.from_settings(Settings(MAPBOX_ACCESS_TOKEN="  "))

    assert estimator.routing is None
    with respx.mock(assert_all_called=False) as router:
        distance = estimator.estimate(SANDTON, PRETORIA)

    assert not router.calls
    assert distance > 0


def test_fallback_is_zero_for_identical_points_and_positive_otherwise():
    assert fallback_distance_km(SANDTON, SANDTON) == pytest.approx(0.0)
    assert fallback_distance_km(SANDTON, PRETORIA) > 0
    # Sandton to Pretoria is roughly 43 km in a straight line.
    assert 50 < fallback_distance_km(SANDTON, PRETORIA) < 60


def test_fallback_rejects_non_finite_coordinates():
    with pytest.raises(EstimationFailure):
        fallback_distance_km(Coordinate(float("inf"), 0.0), PRETORIA)
