"""Schemas for payment entities."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from freightpay.models.payment import PaymentStatus


class PaymentCreate(BaseModel):
    load_id: str
    customer_id: str
    amount: Decimal = Field(ge=Decimal("0"), max_digits=10, decimal_places=2)


class PaymentRead(BaseModel):
    id: str
    load_id: str
    customer_id: str
    driver_id: str | None
    amount: Decimal
    platform_fee: Decimal
    driver_payout: Decimal
    status: PaymentStatus
    payment_method: str
    transaction_id: str | None
    last4: str | None
    card_brand: str | None
    created_at: datetime
    paid_at: datetime | None
    released_at: datetime | None
    refunded_at: datetime | None
    driver_payout_transaction_id: str | None
    refund_transaction_id: str | None
    refund_reason: str | None
    failure_reason: str | None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class CardPaymentDetails(BaseModel):
    card_number: str = Field(min_length=1, max_length=19)
    cardholder_name: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: str = Field(default="", max_length=4)


class ReleasePayload(BaseModel):
    driver_id: str = Field(min_length=1)


class RefundPayload(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class DriverEarnings(BaseModel):
    driver_id: str
    total_earned: Decimal
    payment_count: int
    payments: list[PaymentRead]
