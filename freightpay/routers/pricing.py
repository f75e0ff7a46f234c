"""Freight pricing endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from freightpay.db import get_db
from freightpay.dependencies import get_pricing_engine
from freightpay.models.load import Load
from freightpay.models.rate_tier import RateTier
from freightpay.schemas.pricing import PriceCalculationRequest, PriceEstimate, RateTierRead
from freightpay.services.distance import Coordinate
from freightpay.services.pricing import PricingEngine, apply_estimate_to_load
from freightpay.utils.errors import LoadNotFound

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=PriceEstimate)
def quote_price(
    payload: PriceCalculationRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> PriceEstimate:
    return engine.quote(
        payload.load_category,
        payload.weight_kg,
        Coordinate(payload.pickup_lat, payload.pickup_lng),
        Coordinate(payload.delivery_lat, payload.delivery_lng),
    )


@router.post("/loads/{load_id}/quote", response_model=PriceEstimate)
def quote_load(
    load_id: str,
    db: Session = Depends(get_db),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> PriceEstimate:
    """Quote a stored load from its own coordinates and record the price on it."""

    load = db.get(Load, load_id)
    if load is None:
        raise LoadNotFound(details={"load_id": load_id})
    estimate = engine.quote(
        load.cargo_type,
        load.weight_kg,
        Coordinate(float(load.pickup_latitude), float(load.pickup_longitude)),
        Coordinate(float(load.dropoff_latitude), float(load.dropoff_longitude)),
    )
    apply_estimate_to_load(db, load.id, estimate)
    return estimate


@router.get("/tiers", response_model=list[RateTierRead])
def list_rate_tiers(db: Session = Depends(get_db)) -> list[RateTier]:
    stmt = select(RateTier).order_by(RateTier.load_category, RateTier.min_weight_kg)
    return list(db.scalars(stmt).all())


__all__ = ["router"]
