from datetime import datetime
from decimal import Decimal

import pytest

from freightpay.dependencies import get_pricing_engine
from freightpay.main import app
from freightpay.services.pricing import PricingEngine
from freightpay.services.rate_table import RateTable, seed_default_rate_tiers
from freightpay.models import RateTier


class FixedDistance:
    def estimate(self, pickup, delivery) -> float:
        return 50.0


@pytest.fixture
def seeded_tiers(db_session):
    seed_default_rate_tiers(db_session)


@pytest.fixture
def off_peak_engine(db_session, seeded_tiers):
    def _engine() -> PricingEngine:
        return PricingEngine(
            RateTable.from_db(db_session),
            FixedDistance(),
            clock=lambda: datetime(2025, 12, 9, 11, 0),
        )

    app.dependency_overrides[get_pricing_engine] = _engine


@pytest.mark.anyio
async def test_quote_endpoint(client, off_peak_engine):
    response = await client.post(
        "/pricing/quote",
        json={
            "pickup_lat": -26.1076,
            "pickup_lng": 28.0567,
            "delivery_lat": -25.7479,
            "delivery_lng": 28.2293,
            "load_category": "General",
            "weight_kg": 100,
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["total_price"]) == Decimal("670.00")
    assert Decimal(body["platform_fee"]) == Decimal("100.50")
    assert Decimal(body["driver_earnings"]) == Decimal("569.50")
    assert body["load_category"] == "General"


@pytest.mark.anyio
async def test_quote_without_matching_tier(client, off_peak_engine):
    response = await client.post(
        "/pricing/quote",
        json={
            "pickup_lat": -26.1,
            "pickup_lng": 28.0,
            "delivery_lat": -25.7,
            "delivery_lng": 28.2,
            "load_category": "General",
            "weight_kg": 50000,
        },
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "NO_RATE_TIER"


@pytest.mark.anyio
async def test_quote_rejects_out_of_range_coordinates(client, off_peak_engine):
    response = await client.post(
        "/pricing/quote",
        json={
            "pickup_lat": 95,
            "pickup_lng": 28.0,
            "delivery_lat": -25.7,
            "delivery_lng": 28.2,
            "load_category": "General",
            "weight_kg": 10,
        },
    )

    assert response.status_code == 422


@pytest.mark.anyio
async def test_quote_load_persists_price(client, db_session, make_load, off_peak_engine):
    load = make_load(cargo_type="Furniture", weight_kg=100)

    response = await client.post(f"/pricing/loads/{load.id}/quote")

    assert response.status_code == 200, response.text
    # Furniture: 200 + 50 km x 10 + 100 kg x 1.5 = 850
    assert Decimal(response.json()["total_price"]) == Decimal("850.00")
    db_session.refresh(load)
    assert load.calculated_price == Decimal("850.00")
    assert load.driver_earnings == Decimal("722.50")

    missing = await client.post("/pricing/loads/missing/quote")
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_tiers_endpoint_lists_seeded_tiers(client, seeded_tiers, db_session):
    response = await client.get("/pricing/tiers")

    assert response.status_code == 200
    tiers = response.json()
    assert len(tiers) == 8
    vehicles = next(t for t in tiers if t["load_category"] == "Vehicles")
    assert vehicles["min_weight_kg"] == 1000
    assert vehicles["max_weight_kg"] == 10000
    assert Decimal(vehicles["base_fare"]) == Decimal("500.00")


def test_seeding_is_idempotent(db_session):
    assert seed_default_rate_tiers(db_session) == 8
    assert seed_default_rate_tiers(db_session) == 0
    assert db_session.query(RateTier).count() == 8
