"""Apply authenticated PayFast ITNs to the escrow ledger."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from freightpay.models.payment import Payment, PaymentStatus
from freightpay.schemas.payfast import GatewayNotification
from freightpay.services.escrow import EscrowLedger
from freightpay.services.notifier import UserNotification
from freightpay.utils.errors import InvalidTransition

logger = logging.getLogger(__name__)

HELD_OR_LATER = frozenset({PaymentStatus.HELD, PaymentStatus.RELEASED, PaymentStatus.REFUNDED})


@dataclass(frozen=True)
class ProcessingOutcome:
    payment_id: str
    status: PaymentStatus
    transitioned: bool
    detail: str = ""


class NotificationProcessor:
    """Idempotent state changes driven by gateway notifications.

    Notifications are delivered at least once and may arrive out of order, so a
    notification whose target state is already reached, or that would overwrite a
    held or terminal payment, is acknowledged without side effects.
    """

    def __init__(self, ledger: EscrowLedger) -> None:
        self.ledger = ledger

    def apply(self, notification: GatewayNotification) -> ProcessingOutcome:
        payment = self.ledger.get(notification.m_payment_id)

        if notification.is_complete:
            return self._complete(payment, notification)
        if notification.is_failed or notification.is_cancelled:
            return self._fail(payment, notification)

        logger.info(
            "ITN status ignored",
            extra={"payment_id": payment.id, "payment_status": notification.payment_status},
        )
        return ProcessingOutcome(payment.id, payment.status, False, "status ignored")

    def _complete(self, payment: Payment, notification: GatewayNotification) -> ProcessingOutcome:
        if payment.status in HELD_OR_LATER:
            logger.info("Duplicate COMPLETE ITN", extra={"payment_id": payment.id, "status": payment.status.value})
            return ProcessingOutcome(payment.id, payment.status, False, "already held")
        if payment.status.is_terminal:
            logger.warning("COMPLETE ITN for failed payment ignored", extra={"payment_id": payment.id})
            return ProcessingOutcome(payment.id, payment.status, False, "payment already failed")

        try:
            payment = self.ledger.mark_held(payment.id, notification.pf_payment_id, actor="payfast")
        except InvalidTransition:
            return self._lost_race(payment.id)

        self.ledger.dispatch(self._held_notifications(payment, notification))
        return ProcessingOutcome(payment.id, payment.status, True, "held")

    def _fail(self, payment: Payment, notification: GatewayNotification) -> ProcessingOutcome:
        if payment.status == PaymentStatus.FAILED:
            logger.info("Duplicate failure ITN", extra={"payment_id": payment.id})
            return ProcessingOutcome(payment.id, payment.status, False, "already failed")
        if payment.status == PaymentStatus.HELD or payment.status.is_terminal:
            logger.warning(
                "Failure ITN for settled payment ignored",
                extra={
                    "payment_id": payment.id,
                    "status": payment.status.value,
                    "payment_status": notification.payment_status,
                },
            )
            return ProcessingOutcome(payment.id, payment.status, False, "payment already settled")

        try:
            payment = self.ledger.mark_failed(
                payment.id, f"Payment {notification.payment_status}", actor="payfast"
            )
        except InvalidTransition:
            return self._lost_race(payment.id)
        return ProcessingOutcome(payment.id, payment.status, True, "failed")

    def _lost_race(self, payment_id: str) -> ProcessingOutcome:
        payment = self.ledger.get(payment_id)
        self.ledger.db.refresh(payment)
        logger.info(
            "ITN lost race with concurrent delivery",
            extra={"payment_id": payment_id, "status": payment.status.value},
        )
        return ProcessingOutcome(payment.id, payment.status, False, "concurrent update")

    def _held_notifications(
        self, payment: Payment, notification: GatewayNotification
    ) -> list[UserNotification]:
        notifications = [
            UserNotification(
                user_id=payment.customer_id,
                title="Payment Successful",
                message=(
                    f"Your payment of R{notification.amount_gross} has been received and is being held "
                    "securely. Funds will be released to the driver after delivery confirmation."
                ),
                related_entity_id=payment.load_id,
            )
        ]
        load = payment.load
        if load is not None and load.assigned_driver_id:
            notifications.append(
                UserNotification(
                    user_id=load.assigned_driver_id,
                    title="Load Payment Confirmed",
                    message=(
                        f"Payment of R{notification.amount_gross} has been confirmed for {load.title}. "
                        f"You'll receive R{payment.driver_payout:.2f} upon delivery completion."
                    ),
                    related_entity_id=payment.load_id,
                )
            )
        return notifications


__all__ = ["NotificationProcessor", "ProcessingOutcome"]
