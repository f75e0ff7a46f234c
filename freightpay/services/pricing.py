"""Freight price quoting."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from freightpay.models.load import Load
from freightpay.schemas.pricing import PriceEstimate
from freightpay.services.distance import Coordinate, DistanceEstimator
from freightpay.services.rate_table import RateTable
from freightpay.utils.errors import LoadNotFound, NoRateTier
from freightpay.utils.time import to_local, utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
PLATFORM_FEE_RATE = Decimal("0.15")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SurgeWindow:
    """Weekday window ``[start_hour, end_hour)`` charged at ``multiplier``."""

    start_hour: int
    end_hour: int
    multiplier: Decimal

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


@dataclass(frozen=True)
class SurgeRule:
    """Time-of-day surge schedule evaluated against local wall-clock time."""

    windows: tuple[SurgeWindow, ...] = (
        SurgeWindow(7, 9, Decimal("1.3")),
        SurgeWindow(16, 19, Decimal("1.5")),
    )
    # datetime.weekday(): Saturday=5, Sunday=6
    weekend_days: frozenset[int] = field(default_factory=lambda: frozenset({5, 6}))
    weekend_multiplier: Decimal = Decimal("1.0")

    def multiplier_at(self, local_time: datetime) -> Decimal:
        if local_time.weekday() in self.weekend_days:
            return self.weekend_multiplier
        for window in self.windows:
            if window.contains(local_time.hour):
                return window.multiplier
        return Decimal("1.0")


class PricingEngine:
    """Compute freight quotes from rate tiers, distance and time of day."""

    def __init__(
        self,
        rate_table: RateTable,
        estimator: DistanceEstimator,
        *,
        surge_rule: SurgeRule | None = None,
        timezone: str = "Africa/Johannesburg",
        default_category: str = "General",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.rate_table = rate_table
        self.estimator = estimator
        self.surge_rule = surge_rule or SurgeRule()
        self.timezone = timezone
        self.default_category = default_category
        self.clock = clock

    def _select_tier(self, category: str, weight_kg: int):
        tier = self.rate_table.select(category, weight_kg)
        if tier is not None:
            return tier
        if category != self.default_category:
            tier = self.rate_table.select(self.default_category, weight_kg)
            if tier is not None:
                logger.info(
                    "Falling back to default rate tier",
                    extra={"load_category": category, "default_category": self.default_category},
                )
                return tier
        raise NoRateTier(details={"load_category": category, "weight_kg": weight_kg})

    def quote(
        self,
        category: str,
        weight_kg: int,
        pickup: Coordinate,
        delivery: Coordinate,
        now: datetime | None = None,
    ) -> PriceEstimate:
        tier = self._select_tier(category, weight_kg)
        distance_km = self.estimator.estimate(pickup, delivery)

        base_fare = Decimal(tier.base_fare)
        distance_cost = Decimal(str(distance_km)) * Decimal(tier.price_per_km)
        weight_cost = Decimal(weight_kg) * Decimal(tier.price_per_kg)

        local_time = to_local(now if now is not None else self.clock(), self.timezone)
        multiplier = self.surge_rule.multiplier_at(local_time)

        pre_surge = base_fare + distance_cost + weight_cost
        surge_charge = pre_surge * (multiplier - 1) if multiplier > 1 else Decimal("0")
        subtotal = _money(pre_surge + surge_charge)
        platform_fee = _money(subtotal * PLATFORM_FEE_RATE)
        driver_earnings = subtotal - platform_fee
        assert platform_fee + driver_earnings == subtotal

        estimate = PriceEstimate(
            base_fare=_money(base_fare),
            distance_cost=_money(distance_cost),
            weight_cost=_money(weight_cost),
            surge_charge=_money(surge_charge),
            subtotal=subtotal,
            platform_fee=platform_fee,
            total_price=subtotal,
            driver_earnings=driver_earnings,
            distance_km=round(distance_km, 2),
            weight_kg=weight_kg,
            load_category=tier.load_category,
            surge_multiplier=multiplier,
        )
        logger.info(
            "Price quoted",
            extra={
                "load_category": estimate.load_category,
                "weight_kg": weight_kg,
                "distance_km": estimate.distance_km,
                "surge_multiplier": str(multiplier),
                "total_price": str(estimate.total_price),
            },
        )
        return estimate


def apply_estimate_to_load(db: Session, load_id: str, estimate: PriceEstimate) -> Load:
    """Persist a quote onto the load's pricing projection."""

    load = db.get(Load, load_id)
    if load is None:
        raise LoadNotFound(details={"load_id": load_id})
    load.distance_km = estimate.distance_km
    load.calculated_price = estimate.total_price
    load.driver_earnings = estimate.driver_earnings
    load.final_price = estimate.total_price
    db.commit()
    db.refresh(load)
    return load


__all__ = [
    "PLATFORM_FEE_RATE",
    "PricingEngine",
    "SurgeRule",
    "SurgeWindow",
    "apply_estimate_to_load",
]
