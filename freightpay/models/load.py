"""Load model."""
from decimal import Decimal

from sqlalchemy import Float, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Load(Base):
    """A freight job posted by a customer and optionally assigned to a driver."""

    __tablename__ = "loads"
    __table_args__ = (
        Index("ix_loads_customer_id", "customer_id"),
        Index("ix_loads_assigned_driver_id", "assigned_driver_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    cargo_type: Mapped[str] = mapped_column(String(60), nullable=False, default="General")
    weight_kg: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(60), nullable=False, default="Available")

    pickup_location: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    dropoff_location: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    pickup_latitude: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False, default=Decimal("0"))
    pickup_longitude: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False, default=Decimal("0"))
    dropoff_latitude: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False, default=Decimal("0"))
    dropoff_longitude: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False, default=Decimal("0"))

    customer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    assigned_driver_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Pricing projection, written by callers that choose to persist a quote.
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    calculated_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    driver_earnings: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
