"""Pricing schemas."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PriceCalculationRequest(BaseModel):
    pickup_lat: float = Field(ge=-90, le=90)
    pickup_lng: float = Field(ge=-180, le=180)
    delivery_lat: float = Field(ge=-90, le=90)
    delivery_lng: float = Field(ge=-180, le=180)
    load_category: str = Field(min_length=1, max_length=100)
    weight_kg: int = Field(ge=0)


class PriceEstimate(BaseModel):
    """Result of a price calculation; monetary values are rounded to cents."""

    base_fare: Decimal
    distance_cost: Decimal
    weight_cost: Decimal
    surge_charge: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    total_price: Decimal
    driver_earnings: Decimal

    distance_km: float
    weight_kg: int
    load_category: str
    surge_multiplier: Decimal

    model_config = ConfigDict(frozen=True)

    def breakdown_text(self) -> str:
        """Return a receipt-style breakdown for display to the customer."""

        per_km = self.distance_cost / Decimal(str(self.distance_km)) if self.distance_km > 0 else Decimal("0")
        per_kg = self.weight_cost / self.weight_kg if self.weight_kg > 0 else Decimal("0")
        lines = [
            f"Base Fare: R{self.base_fare:.2f}",
            f"Distance ({self.distance_km:.1f} km x R{per_km:.2f}/km): R{self.distance_cost:.2f}",
            f"Weight ({self.weight_kg} kg x R{per_kg:.2f}/kg): R{self.weight_cost:.2f}",
        ]
        if self.surge_charge > 0:
            lines.append(f"Surge ({self.surge_multiplier:.2f}x): R{self.surge_charge:.2f}")
        lines.extend(
            [
                f"Subtotal: R{self.subtotal:.2f}",
                f"Platform Fee (15%): R{self.platform_fee:.2f}",
                f"TOTAL: R{self.total_price:.2f}",
                f"Driver Earns: R{self.driver_earnings:.2f}",
            ]
        )
        return "\n".join(lines)


class RateTierRead(BaseModel):
    id: str
    load_category: str
    base_fare: Decimal
    price_per_km: Decimal
    price_per_kg: Decimal
    min_weight_kg: int
    max_weight_kg: int | None
    surge_multiplier: Decimal

    model_config = ConfigDict(from_attributes=True)
