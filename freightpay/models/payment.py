"""Payment model definitions."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum as SqlEnum, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id


class PaymentStatus(str, enum.Enum):
    """Possible statuses for an escrow payment."""

    PENDING = "PENDING"
    HELD = "HELD"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({PaymentStatus.RELEASED, PaymentStatus.REFUNDED, PaymentStatus.FAILED})


class Payment(Base):
    """Funds captured from a customer and held until delivery is confirmed."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_non_negative_amount"),
        CheckConstraint("ABS(platform_fee + driver_payout - amount) < 0.005", name="ck_payment_fee_split"),
        Index("ix_payments_status", "status"),
        Index("ix_payments_customer_created", "customer_id", "created_at"),
        Index("ix_payments_driver_status", "driver_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    load_id: Mapped[str] = mapped_column(ForeignKey("loads.id"), nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    driver_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    driver_payout: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        SqlEnum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.PENDING
    )
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False, default="Card")

    transaction_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    last4: Mapped[str | None] = mapped_column(String(4), nullable=True)
    card_brand: Mapped[str | None] = mapped_column(String(50), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    driver_payout_transaction_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    refund_transaction_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Settlement lock guarding HELD -> RELEASED/REFUNDED while the gateway is called.
    lock_owner: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lock_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    load = relationship("Load")
