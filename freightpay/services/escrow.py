"""Escrow ledger for freight payments.

Funds move ``PENDING -> HELD -> RELEASED | REFUNDED`` or ``PENDING -> FAILED``.
Every transition is committed together with its audit row.

Pending exits re-check the status inside the UPDATE itself so two concurrent
writers cannot both win. Transitions that call the gateway (card capture, release,
refund) first claim a settlement lock on the payment row, commit the claim, talk
to the gateway without holding any database lock, and finally write the new state
guarded by the claim token.

A claim is never taken over automatically, even after ``lock_expires_at``: the
gateway call it guarded may still be in flight or may have moved money. An expired
claim blocks further settlement until ``clear_stale_claim`` is called. Gateway
movements that end up with no matching state change are recorded on the payment
``notes`` and in the audit log.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from freightpay.models.load import Load
from freightpay.models.payment import Payment, PaymentStatus
from freightpay.schemas.payment import CardPaymentDetails
from freightpay.services.gateway import GatewayResult, PaymentGateway, card_last4, detect_card_brand
from freightpay.services.notifier import LoggingNotifier, UserNotification, deliver
from freightpay.utils.audit import log_audit
from freightpay.utils.errors import (
    InvalidAmount,
    InvalidTransition,
    LoadNotFound,
    PaymentBusy,
    PaymentNotFound,
    PayoutFailed,
    RefundFailed,
)
from freightpay.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)

PLATFORM_FEE_RATE = Decimal("0.15")
CENT = Decimal("0.01")

Dispatch = Callable[[list[UserNotification]], None]


def _to_decimal(value: Any) -> Decimal:
    """Return ``value`` as a money amount rounded half-up to cents."""

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidAmount(details={"amount": repr(value)}) from exc
    if not amount.is_finite():
        raise InvalidAmount(details={"amount": str(value)})
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def split_amount(amount: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(platform_fee, driver_payout)`` for ``amount``."""

    platform_fee = (amount * PLATFORM_FEE_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    driver_payout = amount - platform_fee
    assert platform_fee + driver_payout == amount
    return platform_fee, driver_payout


def _log_delivery(notifications: list[UserNotification]) -> None:
    deliver(LoggingNotifier(), notifications)


class EscrowLedger:
    """Payment lifecycle operations bound to one database session."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        *,
        dispatch: Dispatch | None = None,
        clock: Callable[[], datetime] = utcnow,
        lock_ttl_seconds: int = 120,
        actor: str = "system",
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.dispatch = dispatch or _log_delivery
        self.clock = clock
        self.lock_ttl = timedelta(seconds=lock_ttl_seconds)
        self.actor = actor

    # -- queries ---------------------------------------------------------

    def get(self, payment_id: str) -> Payment:
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFound(details={"payment_id": payment_id})
        return payment

    def payment_for_load(self, load_id: str) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.load_id == load_id)
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def customer_payments(self, customer_id: str) -> Sequence[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.customer_id == customer_id)
            .order_by(Payment.created_at.desc())
        )
        return self.db.scalars(stmt).all()

    def driver_earnings(self, driver_id: str) -> Sequence[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.driver_id == driver_id, Payment.status == PaymentStatus.RELEASED)
            .order_by(Payment.released_at.desc())
        )
        return self.db.scalars(stmt).all()

    # -- creation --------------------------------------------------------

    def initiate(self, load_id: str, customer_id: str, amount: Any) -> Payment:
        load = self.db.get(Load, load_id)
        if load is None:
            raise LoadNotFound(details={"load_id": load_id})

        value = _to_decimal(amount)
        if value < 0:
            raise InvalidAmount("Payment amount must not be negative.", details={"amount": str(value)})
        platform_fee, driver_payout = split_amount(value)

        payment = Payment(
            load_id=load.id,
            customer_id=customer_id,
            amount=value,
            platform_fee=platform_fee,
            driver_payout=driver_payout,
            status=PaymentStatus.PENDING,
            payment_method="Card",
            created_at=self.clock(),
        )
        self.db.add(payment)
        self.db.flush()
        log_audit(
            self.db,
            actor=self.actor,
            action="PAYMENT_INITIATED",
            entity="Payment",
            entity_id=payment.id,
            data={
                "load_id": load.id,
                "customer_id": customer_id,
                "amount": str(value),
                "platform_fee": str(platform_fee),
                "driver_payout": str(driver_payout),
            },
        )
        self.db.commit()
        self.db.refresh(payment)
        logger.info(
            "Payment initiated",
            extra={"payment_id": payment.id, "load_id": load.id, "amount": str(value)},
        )
        return payment

    # -- pending exits ---------------------------------------------------

    def mark_held(
        self,
        payment_id: str,
        gateway_txn_id: str,
        *,
        last4: str | None = None,
        card_brand: str | None = None,
        actor: str | None = None,
        claim: str | None = None,
    ) -> Payment:
        values: dict[str, Any] = {"transaction_id": gateway_txn_id or None}
        if last4 is not None:
            values["last4"] = last4
        if card_brand is not None:
            values["card_brand"] = card_brand
        payment = self._leave_pending(
            payment_id,
            PaymentStatus.HELD,
            values,
            timestamp_field="paid_at",
            action="PAYMENT_HELD",
            actor=actor,
            claim=claim,
            audit_data={"transaction_id": gateway_txn_id, "card_brand": card_brand},
        )
        logger.info("Payment held in escrow", extra={"payment_id": payment.id, "amount": str(payment.amount)})
        return payment

    def mark_failed(
        self, payment_id: str, reason: str, *, actor: str | None = None, claim: str | None = None
    ) -> Payment:
        payment = self._leave_pending(
            payment_id,
            PaymentStatus.FAILED,
            {"failure_reason": reason[:500]},
            timestamp_field=None,
            action="PAYMENT_FAILED",
            actor=actor,
            claim=claim,
            audit_data={"reason": reason},
        )
        logger.warning("Payment failed", extra={"payment_id": payment.id, "reason": reason})
        return payment

    def capture_card(self, payment_id: str, card: CardPaymentDetails) -> Payment:
        """Charge a card directly through the gateway and settle the pending payment.

        The capture runs under a settlement claim, so a second capture of the same
        payment fails with ``PaymentBusy`` before reaching the gateway. If an ITN
        settles the payment while the card is being charged, the duplicate charge
        is refunded and recorded before ``InvalidTransition`` is raised.
        """

        payment, token = self._claim(payment_id, PaymentStatus.PENDING, PaymentStatus.HELD)
        try:
            result = self.gateway.capture(payment.amount, card)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Card capture raised", extra={"payment_id": payment_id})
            result = GatewayResult(success=False, message=str(exc) or type(exc).__name__)

        if not result.success:
            return self.mark_failed(payment_id, result.message or "Card declined", actor="gateway", claim=token)

        try:
            payment = self.mark_held(
                payment_id,
                result.transaction_id or "",
                last4=card_last4(card.card_number),
                card_brand=detect_card_brand(card.card_number),
                actor="gateway",
                claim=token,
            )
        except InvalidTransition:
            self._reverse_capture(payment, result)
            raise

        self.dispatch(
            [
                UserNotification(
                    user_id=payment.customer_id,
                    title="Payment Successful",
                    message=(
                        f"Your payment of R{payment.amount:.2f} is being held securely. "
                        "Funds will be released to the driver after successful delivery."
                    ),
                    related_entity_id=payment.load_id,
                )
            ]
        )
        return payment

    # -- held exits ------------------------------------------------------

    def release(self, payment_id: str, driver_id: str) -> Payment:
        payment, token = self._claim(payment_id, PaymentStatus.HELD, PaymentStatus.RELEASED)
        try:
            result = self.gateway.payout(payment.driver_payout, driver_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Driver payout raised", extra={"payment_id": payment_id})
            result = GatewayResult(success=False, message=str(exc) or type(exc).__name__)

        if not result.success:
            self._drop_claim(payment, token)
            logger.error(
                "Driver payout failed",
                extra={"payment_id": payment_id, "driver_id": driver_id, "reason": result.message},
            )
            raise PayoutFailed(details={"payment_id": payment_id, "reason": result.message})

        payment = self._settle(
            payment,
            token,
            PaymentStatus.RELEASED,
            {
                "driver_id": driver_id,
                "driver_payout_transaction_id": result.transaction_id,
            },
            timestamp_field="released_at",
            action="PAYMENT_RELEASED",
            audit_data={
                "driver_id": driver_id,
                "driver_payout": str(payment.driver_payout),
                "driver_payout_transaction_id": result.transaction_id,
            },
            orphan_action="PAYOUT_UNRECONCILED",
            orphan_reference=result.transaction_id,
        )
        logger.info(
            "Payment released to driver",
            extra={"payment_id": payment.id, "driver_id": driver_id, "amount": str(payment.driver_payout)},
        )
        self.dispatch(
            [
                UserNotification(
                    user_id=driver_id,
                    title="Payment Received",
                    message=(
                        f"You've received R{payment.driver_payout:.2f} for completing the delivery. "
                        "Funds have been transferred to your account."
                    ),
                    related_entity_id=payment.load_id,
                ),
                UserNotification(
                    user_id=payment.customer_id,
                    title="Payment Released",
                    message=(
                        f"Payment of R{payment.amount:.2f} has been released to the driver "
                        "after successful delivery."
                    ),
                    related_entity_id=payment.load_id,
                ),
            ]
        )
        return payment

    def refund(self, payment_id: str, reason: str) -> Payment:
        payment, token = self._claim(payment_id, PaymentStatus.HELD, PaymentStatus.REFUNDED)
        try:
            result = self.gateway.refund(payment.amount, payment.transaction_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Refund raised", extra={"payment_id": payment_id})
            result = GatewayResult(success=False, message=str(exc) or type(exc).__name__)

        if not result.success:
            self._drop_claim(payment, token)
            logger.error("Refund failed", extra={"payment_id": payment_id, "reason": result.message})
            raise RefundFailed(details={"payment_id": payment_id, "reason": result.message})

        payment = self._settle(
            payment,
            token,
            PaymentStatus.REFUNDED,
            {"refund_reason": reason[:500], "refund_transaction_id": result.transaction_id},
            timestamp_field="refunded_at",
            action="PAYMENT_REFUNDED",
            audit_data={
                "reason": reason,
                "amount": str(payment.amount),
                "refund_transaction_id": result.transaction_id,
            },
            orphan_action="REFUND_UNRECONCILED",
            orphan_reference=result.transaction_id,
        )
        logger.info(
            "Payment refunded",
            extra={"payment_id": payment.id, "amount": str(payment.amount), "reason": reason},
        )
        self.dispatch(
            [
                UserNotification(
                    user_id=payment.customer_id,
                    title="Refund Processed",
                    message=f"Your payment of R{payment.amount:.2f} has been refunded. Reason: {reason}",
                    related_entity_id=payment.load_id,
                )
            ]
        )
        return payment

    def clear_stale_claim(self, payment_id: str, *, actor: str | None = None) -> Payment:
        """Drop an expired settlement claim once the gateway side has been reconciled."""

        payment = self._locked(payment_id)
        stale_owner = payment.lock_owner
        if stale_owner is None:
            self.db.commit()
            return payment

        now = as_utc(self.clock())
        expires_at = payment.lock_expires_at
        if expires_at is not None and as_utc(expires_at) > now:
            logger.warning("Refusing to clear a live settlement claim", extra={"payment_id": payment_id})
            raise PaymentBusy(details={"payment_id": payment_id})

        self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.lock_owner == stale_owner)
            .values(lock_owner=None, lock_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        log_audit(
            self.db,
            actor=actor or self.actor,
            action="SETTLEMENT_CLAIM_CLEARED",
            entity="Payment",
            entity_id=payment_id,
            data={
                "status": payment.status.value,
                "expired_at": as_utc(expires_at).isoformat() if expires_at is not None else None,
            },
        )
        self.db.commit()
        self.db.refresh(payment)
        logger.warning("Stale settlement claim cleared", extra={"payment_id": payment_id})
        return payment

    # -- internals -------------------------------------------------------

    def _stamp(self, payment: Payment) -> datetime:
        """Current time, never earlier than any timestamp already on ``payment``."""

        now = as_utc(self.clock())
        previous = [payment.created_at, payment.paid_at]
        for value in previous:
            if value is not None and as_utc(value) > now:
                now = as_utc(value)
        return now

    def _reject(self, payment: Payment, target: PaymentStatus) -> None:
        logger.error(
            "Invalid payment transition",
            extra={"payment_id": payment.id, "status": payment.status.value, "target": target.value},
        )
        raise InvalidTransition(
            details={"payment_id": payment.id, "status": payment.status.value, "target": target.value}
        )

    def _locked(self, payment_id: str) -> Payment:
        stmt = select(Payment).where(Payment.id == payment_id).with_for_update().execution_options(
            populate_existing=True
        )
        payment = self.db.scalars(stmt).first()
        if payment is None:
            raise PaymentNotFound(details={"payment_id": payment_id})
        return payment

    def _leave_pending(
        self,
        payment_id: str,
        target: PaymentStatus,
        values: dict[str, Any],
        *,
        timestamp_field: str | None,
        action: str,
        actor: str | None,
        claim: str | None,
        audit_data: dict[str, Any],
    ) -> Payment:
        payment = self._locked(payment_id)
        if payment.status != PaymentStatus.PENDING:
            self._reject(payment, target)

        now = self._stamp(payment)
        changes = dict(values, status=target, updated_at=now, lock_owner=None, lock_expires_at=None)
        if timestamp_field is not None:
            changes[timestamp_field] = now
        conditions = [Payment.id == payment_id, Payment.status == PaymentStatus.PENDING]
        if claim is not None:
            conditions.append(Payment.lock_owner == claim)
        result = self.db.execute(
            update(Payment)
            .where(*conditions)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.refresh(payment)
            self._reject(payment, target)

        log_audit(
            self.db,
            actor=actor or self.actor,
            action=action,
            entity="Payment",
            entity_id=payment_id,
            data={"from": PaymentStatus.PENDING.value, "to": target.value, **audit_data},
        )
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def _claim(self, payment_id: str, source: PaymentStatus, target: PaymentStatus) -> tuple[Payment, str]:
        payment = self._locked(payment_id)
        if payment.status != source:
            self._reject(payment, target)

        now = as_utc(self.clock())
        token = uuid.uuid4().hex
        result = self.db.execute(
            update(Payment)
            .where(
                Payment.id == payment_id,
                Payment.status == source,
                Payment.lock_owner.is_(None),
            )
            .values(lock_owner=token, lock_expires_at=now + self.lock_ttl)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.refresh(payment)
            if payment.status != source:
                self._reject(payment, target)
            self._busy(payment, now)

        self.db.commit()
        self.db.refresh(payment)
        logger.info("Settlement lock acquired", extra={"payment_id": payment_id, "target": target.value})
        return payment, token

    def _busy(self, payment: Payment, now: datetime) -> None:
        expires_at = payment.lock_expires_at
        if expires_at is not None and as_utc(expires_at) > now:
            logger.warning("Payment settlement already in progress", extra={"payment_id": payment.id})
            raise PaymentBusy(details={"payment_id": payment.id})
        logger.error(
            "Expired settlement claim blocks payment",
            extra={"payment_id": payment.id, "status": payment.status.value},
        )
        raise PaymentBusy(
            "A previous settlement attempt was never finalised; reconcile it with the gateway "
            "and clear the claim before retrying.",
            details={"payment_id": payment.id, "stale_claim": True},
        )

    def _record_unreconciled(self, payment: Payment, action: str, data: dict[str, Any], note: str) -> None:
        notes = f"{payment.notes}; {note}" if payment.notes else note
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id)
            .values(notes=notes[-500:])
            .execution_options(synchronize_session=False)
        )
        log_audit(
            self.db,
            actor=self.actor,
            action=action,
            entity="Payment",
            entity_id=payment.id,
            data={"status": payment.status.value, **data},
        )
        self.db.commit()
        self.db.refresh(payment)
        logger.error("Gateway movement without matching ledger state", extra={"payment_id": payment.id, "note": note})

    def _reverse_capture(self, payment: Payment, capture: GatewayResult) -> None:
        try:
            reversal = self.gateway.refund(payment.amount, capture.transaction_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Duplicate capture reversal raised", extra={"payment_id": payment.id})
            reversal = GatewayResult(success=False, message=str(exc) or type(exc).__name__)

        self.db.refresh(payment)
        if reversal.success:
            action = "CAPTURE_REVERSED"
            note = f"Duplicate capture {capture.transaction_id} reversed by {reversal.transaction_id}"
        else:
            action = "CAPTURE_UNRECONCILED"
            note = f"Duplicate capture {capture.transaction_id} could not be reversed: {reversal.message}"
        self._record_unreconciled(
            payment,
            action,
            {
                "capture_transaction_id": capture.transaction_id,
                "refund_transaction_id": reversal.transaction_id,
                "reason": reversal.message,
            },
            note,
        )

    def _drop_claim(self, payment: Payment, token: str) -> None:
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.lock_owner == token)
            .values(lock_owner=None, lock_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(payment)

    def _settle(
        self,
        payment: Payment,
        token: str,
        target: PaymentStatus,
        values: dict[str, Any],
        *,
        timestamp_field: str,
        action: str,
        audit_data: dict[str, Any],
        orphan_action: str,
        orphan_reference: str | None,
    ) -> Payment:
        now = self._stamp(payment)
        changes = dict(values, status=target, updated_at=now, lock_owner=None, lock_expires_at=None)
        changes[timestamp_field] = now
        result = self.db.execute(
            update(Payment)
            .where(
                Payment.id == payment.id,
                Payment.status == PaymentStatus.HELD,
                Payment.lock_owner == token,
            )
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # The claim was cleared by an operator while the gateway call was in flight.
            self.db.refresh(payment)
            self._record_unreconciled(
                payment,
                orphan_action,
                {"target": target.value, "gateway_reference": orphan_reference},
                f"{target.value} via {orphan_reference} not applied: settlement claim was cleared",
            )
            raise InvalidTransition(
                "Settlement claim was cleared before the payment could be finalised.",
                details={"payment_id": payment.id, "status": payment.status.value, "target": target.value},
            )

        log_audit(
            self.db,
            actor=self.actor,
            action=action,
            entity="Payment",
            entity_id=payment.id,
            data={"from": PaymentStatus.HELD.value, "to": target.value, **audit_data},
        )
        self.db.commit()
        self.db.refresh(payment)
        return payment


__all__ = ["EscrowLedger", "PLATFORM_FEE_RATE", "split_amount"]
