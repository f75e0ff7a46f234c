"""Pydantic schemas exposed by the API."""
from .payfast import CheckoutForm, GatewayNotification, PaymentRequest
from .payment import (
    CardPaymentDetails,
    DriverEarnings,
    PaymentCreate,
    PaymentRead,
    RefundPayload,
    ReleasePayload,
)
from .pricing import PriceCalculationRequest, PriceEstimate, RateTierRead

__all__ = [
    "CardPaymentDetails",
    "CheckoutForm",
    "DriverEarnings",
    "GatewayNotification",
    "PaymentCreate",
    "PaymentRead",
    "PaymentRequest",
    "PriceCalculationRequest",
    "PriceEstimate",
    "RateTierRead",
    "RefundPayload",
    "ReleasePayload",
]
