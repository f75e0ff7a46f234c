"""Escrow payment endpoints."""
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from freightpay.db import get_db
from freightpay.dependencies import get_escrow_ledger, get_payfast_config
from freightpay.models.payment import Payment
from freightpay.schemas.payfast import CheckoutForm
from freightpay.schemas.payment import (
    CardPaymentDetails,
    DriverEarnings,
    PaymentCreate,
    PaymentRead,
    RefundPayload,
    ReleasePayload,
)
from freightpay.services.escrow import EscrowLedger
from freightpay.services.payfast import PayFastConfig, checkout_for_payment
from freightpay.utils.errors import PaymentNotFound

router = APIRouter(prefix="/payments", tags=["payments"])
drivers_router = APIRouter(prefix="/drivers", tags=["payments"])


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def initiate_payment(payload: PaymentCreate, ledger: EscrowLedger = Depends(get_escrow_ledger)) -> Payment:
    return ledger.initiate(payload.load_id, payload.customer_id, payload.amount)


@router.get("", response_model=list[PaymentRead])
def list_customer_payments(
    customer_id: str = Query(..., min_length=1),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
) -> list[Payment]:
    return list(ledger.customer_payments(customer_id))


@router.get("/by-load/{load_id}", response_model=PaymentRead)
def get_payment_for_load(load_id: str, ledger: EscrowLedger = Depends(get_escrow_ledger)) -> Payment:
    payment = ledger.payment_for_load(load_id)
    if payment is None:
        raise PaymentNotFound(details={"load_id": load_id})
    return payment


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: str, ledger: EscrowLedger = Depends(get_escrow_ledger)) -> Payment:
    return ledger.get(payment_id)


@router.post("/{payment_id}/checkout", response_model=CheckoutForm)
def checkout_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    config: PayFastConfig = Depends(get_payfast_config),
) -> CheckoutForm:
    return checkout_for_payment(db, config, payment_id)


@router.post("/{payment_id}/capture", response_model=PaymentRead)
def capture_payment(
    payment_id: str,
    card: CardPaymentDetails,
    ledger: EscrowLedger = Depends(get_escrow_ledger),
) -> Payment:
    return ledger.capture_card(payment_id, card)


@router.post("/{payment_id}/release", response_model=PaymentRead)
def release_payment(
    payment_id: str,
    payload: ReleasePayload,
    ledger: EscrowLedger = Depends(get_escrow_ledger),
) -> Payment:
    return ledger.release(payment_id, payload.driver_id)


@router.post("/{payment_id}/refund", response_model=PaymentRead)
def refund_payment(
    payment_id: str,
    payload: RefundPayload,
    ledger: EscrowLedger = Depends(get_escrow_ledger),
) -> Payment:
    return ledger.refund(payment_id, payload.reason)


@router.post("/{payment_id}/settlement-claim/clear", response_model=PaymentRead)
def clear_settlement_claim(payment_id: str, ledger: EscrowLedger = Depends(get_escrow_ledger)) -> Payment:
    return ledger.clear_stale_claim(payment_id, actor="operator")


@drivers_router.get("/{driver_id}/earnings", response_model=DriverEarnings)
def driver_earnings(driver_id: str, ledger: EscrowLedger = Depends(get_escrow_ledger)) -> DriverEarnings:
    payments = ledger.driver_earnings(driver_id)
    total = sum((payment.driver_payout for payment in payments), Decimal("0.00"))
    return DriverEarnings(
        driver_id=driver_id,
        total_earned=total,
        payment_count=len(payments),
        payments=[PaymentRead.model_validate(payment) for payment in payments],
    )


__all__ = ["router", "drivers_router"]
