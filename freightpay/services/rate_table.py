"""Rate tier lookup and default tier seeding."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from freightpay.models.rate_tier import RateTier

logger = logging.getLogger(__name__)


class TierLike(Protocol):
    load_category: str
    base_fare: Decimal
    price_per_km: Decimal
    price_per_kg: Decimal
    min_weight_kg: int
    max_weight_kg: int | None


class LoadCategory:
    ELECTRONICS = "Electronics"
    FURNITURE = "Furniture"
    FOOD = "Food"
    CONSTRUCTION = "Construction"
    VEHICLES = "Vehicles"
    CHEMICALS = "Chemicals"
    GENERAL = "General"
    FRAGILE = "Fragile"

    ALL = (ELECTRONICS, FURNITURE, FOOD, CONSTRUCTION, VEHICLES, CHEMICALS, GENERAL, FRAGILE)


# (category, base fare, per km, per kg, min kg, max kg)
DEFAULT_TIERS: tuple[tuple[str, str, str, str, int, int | None], ...] = (
    (LoadCategory.ELECTRONICS, "150.00", "8.50", "2.00", 0, 500),
    (LoadCategory.FURNITURE, "200.00", "10.00", "1.50", 0, 2000),
    (LoadCategory.FOOD, "100.00", "7.00", "2.50", 0, 1000),
    (LoadCategory.CONSTRUCTION, "250.00", "12.00", "1.00", 0, 5000),
    (LoadCategory.VEHICLES, "500.00", "15.00", "0.50", 1000, 10000),
    (LoadCategory.CHEMICALS, "300.00", "14.00", "3.00", 0, 2000),
    (LoadCategory.GENERAL, "120.00", "8.00", "1.50", 0, 10000),
    (LoadCategory.FRAGILE, "180.00", "9.50", "2.20", 0, 800),
)


def band_contains(tier: TierLike, weight_kg: int) -> bool:
    """Return whether ``weight_kg`` falls inside the tier's ``[min, max)`` band."""

    if weight_kg < tier.min_weight_kg:
        return False
    return tier.max_weight_kg is None or weight_kg < tier.max_weight_kg


class RateTable:
    """Immutable view over the configured rate tiers."""

    def __init__(self, tiers: Iterable[TierLike]) -> None:
        self._tiers: tuple[TierLike, ...] = tuple(sorted(tiers, key=lambda t: t.min_weight_kg))

    @classmethod
    def from_db(cls, db: Session) -> "RateTable":
        return cls(db.scalars(select(RateTier)).all())

    @property
    def tiers(self) -> Sequence[TierLike]:
        return self._tiers

    def select(self, category: str, weight_kg: int) -> TierLike | None:
        """Return the first tier (ascending min weight) of ``category`` containing ``weight_kg``."""

        for tier in self._tiers:
            if tier.load_category == category and band_contains(tier, weight_kg):
                return tier
        return None


def seed_default_rate_tiers(db: Session) -> int:
    """Install the default tiers when the table is empty; return how many were added."""

    existing = db.scalar(select(func.count()).select_from(RateTier)) or 0
    if existing:
        logger.info("Rate tiers already seeded", extra={"count": existing})
        return 0

    tiers = [
        RateTier(
            load_category=category,
            base_fare=Decimal(base),
            price_per_km=Decimal(per_km),
            price_per_kg=Decimal(per_kg),
            min_weight_kg=min_kg,
            max_weight_kg=max_kg,
            surge_multiplier=Decimal("1.00"),
        )
        for category, base, per_km, per_kg, min_kg, max_kg in DEFAULT_TIERS
    ]
    db.add_all(tiers)
    db.commit()
    logger.info("Seeded rate tiers", extra={"count": len(tiers)})
    return len(tiers)


__all__ = [
    "DEFAULT_TIERS",
    "LoadCategory",
    "RateTable",
    "TierLike",
    "band_contains",
    "seed_default_rate_tiers",
]
