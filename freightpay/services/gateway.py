"""Payment gateway collaborator used for card capture, driver payouts and refunds."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from freightpay.schemas.payment import CardPaymentDetails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    transaction_id: str | None = None
    message: str = ""


class PaymentGateway(Protocol):
    """Money-moving operations the escrow ledger depends on."""

    def capture(self, amount: Decimal, card: CardPaymentDetails) -> GatewayResult: ...

    def payout(self, amount: Decimal, driver_id: str) -> GatewayResult: ...

    def refund(self, amount: Decimal, transaction_id: str | None) -> GatewayResult: ...


def detect_card_brand(card_number: str) -> str:
    digits = card_number.replace(" ", "")
    if digits.startswith("4"):
        return "Visa"
    if digits.startswith("5"):
        return "Mastercard"
    if digits.startswith("3"):
        return "Amex"
    return "Unknown"


def card_last4(card_number: str) -> str:
    digits = card_number.replace(" ", "")
    return digits[-4:]


def _reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


class SimulatedGateway:
    """Gateway that approves every operation and issues synthetic references."""

    def capture(self, amount: Decimal, card: CardPaymentDetails) -> GatewayResult:
        reference = _reference("TXN")
        logger.info(
            "Simulated card capture",
            extra={"amount": str(amount), "card_brand": detect_card_brand(card.card_number)},
        )
        return GatewayResult(success=True, transaction_id=reference, message="Payment processed successfully")

    def payout(self, amount: Decimal, driver_id: str) -> GatewayResult:
        reference = _reference("PAYOUT")
        logger.info("Simulated driver payout", extra={"amount": str(amount), "driver_id": driver_id})
        return GatewayResult(success=True, transaction_id=reference, message="Payout processed")

    def refund(self, amount: Decimal, transaction_id: str | None) -> GatewayResult:
        reference = _reference("REFUND")
        logger.info("Simulated refund", extra={"amount": str(amount)})
        return GatewayResult(success=True, transaction_id=reference, message="Refund processed")


__all__ = [
    "GatewayResult",
    "PaymentGateway",
    "SimulatedGateway",
    "card_last4",
    "detect_card_brand",
]
