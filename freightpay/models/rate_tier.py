"""Rate tier model."""
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class RateTier(Base):
    """Pricing parameters for one cargo category and weight band.

    The band is ``[min_weight_kg, max_weight_kg)``; a NULL upper bound means the
    band is unbounded.
    """

    __tablename__ = "rate_tiers"
    __table_args__ = (
        CheckConstraint("min_weight_kg >= 0", name="ck_rate_tier_min_weight_non_negative"),
        CheckConstraint(
            "max_weight_kg IS NULL OR max_weight_kg > min_weight_kg",
            name="ck_rate_tier_weight_band",
        ),
        Index("ix_rate_tiers_category_min_weight", "load_category", "min_weight_kg"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    load_category: Mapped[str] = mapped_column(String(100), nullable=False)
    base_fare: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_per_km: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_per_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_weight_kg: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_weight_kg: Mapped[int | None] = mapped_column(Integer, nullable=True)
    surge_multiplier: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=Decimal("1.00"))
