"""PayFast checkout requests and ITN authentication."""
from __future__ import annotations

import html
import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from freightpay.config import Settings
from freightpay.models.load import Load
from freightpay.models.payment import Payment, PaymentStatus
from freightpay.models.user import User
from freightpay.schemas.payfast import CheckoutForm, GatewayNotification, PaymentRequest
from freightpay.utils.errors import (
    AuthFailure,
    CustomerNotFound,
    InvalidTransition,
    LoadNotFound,
    PaymentNotFound,
)
from freightpay.utils.signature import generate_signature, verify_signature

logger = logging.getLogger(__name__)

VALID_MARKER = "VALID"
VALIDATION_FIELDS = ("m_payment_id", "pf_payment_id", "payment_status", "item_name", "amount_gross")


@dataclass(frozen=True)
class PayFastConfig:
    """Merchant credentials and endpoints, resolved once from settings."""

    merchant_id: str
    merchant_key: str
    passphrase: str | None
    process_url: str
    validate_url: str
    return_url: str
    cancel_url: str
    notify_url: str
    verify_with_gateway: bool = True
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayFastConfig":
        base_url = settings.PUBLIC_BASE_URL.rstrip("/")
        return cls(
            merchant_id=settings.PAYFAST_MERCHANT_ID,
            merchant_key=settings.PAYFAST_MERCHANT_KEY,
            passphrase=settings.payfast_passphrase,
            process_url=settings.payfast_process_url,
            validate_url=settings.payfast_validate_url,
            return_url=f"{base_url}/payfast/return",
            cancel_url=f"{base_url}/payfast/cancel",
            notify_url=f"{base_url}/payfast/notify",
            verify_with_gateway=settings.PAYFAST_VERIFY_WITH_GATEWAY,
            timeout_seconds=settings.PAYFAST_TIMEOUT_SECONDS,
        )


def build_payment_request(config: PayFastConfig, payment: Payment, load: Load, customer: User) -> PaymentRequest:
    """Return the signed checkout request for ``payment``."""

    distance_km = load.distance_km or 0.0
    request = PaymentRequest(
        merchant_id=config.merchant_id,
        merchant_key=config.merchant_key,
        return_url=f"{config.return_url}?m_payment_id={payment.id}",
        cancel_url=f"{config.cancel_url}?m_payment_id={payment.id}",
        notify_url=config.notify_url,
        name_first=customer.first_name,
        name_last=customer.last_name,
        email_address=customer.email or "",
        cell_number=customer.phone_number or "",
        m_payment_id=payment.id,
        amount=f"{payment.amount:.2f}",
        item_name=f"LoadHitch - {load.title}",
        item_description=f"{load.description} ({load.weight_kg}kg, {distance_km:.1f}km)",
        custom_str1=load.id,
        custom_str2=customer.id,
        custom_str3=load.assigned_driver_id or "",
        confirmation_address=customer.email or "",
    )
    signature = generate_signature(request.signing_fields(), config.passphrase)
    logger.info("PayFast payment request built", extra={"payment_id": payment.id, "amount": request.amount})
    return request.model_copy(update={"signature": signature})


def render_checkout_form(request: PaymentRequest, process_url: str) -> str:
    """Return an HTML page that posts ``request`` to the gateway on load."""

    inputs = "\n".join(
        f'    <input type="hidden" name="{html.escape(name)}" value="{html.escape(value)}">'
        for name, value in request.form_fields()
    )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head><title>Redirecting to PayFast</title></head>\n"
        '<body onload="document.forms[0].submit()">\n'
        f'  <form action="{html.escape(process_url)}" method="post">\n'
        f"{inputs}\n"
        '    <noscript><button type="submit">Continue to PayFast</button></noscript>\n'
        "  </form>\n"
        "</body>\n"
        "</html>\n"
    )


def build_checkout_form(config: PayFastConfig, payment: Payment, load: Load, customer: User) -> CheckoutForm:
    request = build_payment_request(config, payment, load, customer)
    return CheckoutForm(
        payment_id=payment.id,
        process_url=config.process_url,
        form_fields=request.form_fields(),
        html=render_checkout_form(request, config.process_url),
    )


def checkout_for_payment(db: Session, config: PayFastConfig, payment_id: str) -> CheckoutForm:
    """Build the checkout form for a pending payment."""

    payment = db.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFound(details={"payment_id": payment_id})
    if payment.status != PaymentStatus.PENDING:
        raise InvalidTransition(
            "Only pending payments can be checked out.",
            details={"payment_id": payment_id, "status": payment.status.value},
        )
    load = db.get(Load, payment.load_id)
    if load is None:
        raise LoadNotFound(details={"load_id": payment.load_id})
    customer = db.get(User, payment.customer_id)
    if customer is None:
        raise CustomerNotFound(details={"customer_id": payment.customer_id})
    return build_checkout_form(config, payment, load, customer)


class NotificationValidator:
    """Authenticate ITNs: signature, then amount, then a round-trip to the gateway."""

    def __init__(self, config: PayFastConfig, db: Session, http_client: httpx.Client | None = None) -> None:
        self.config = config
        self.db = db
        self.http_client = http_client

    def validate(self, notification: GatewayNotification, supplied_signature: str | None) -> Payment:
        payment_id = notification.m_payment_id

        if not verify_signature(notification.signing_fields(), supplied_signature, self.config.passphrase):
            logger.warning("ITN signature mismatch", extra={"payment_id": payment_id})
            raise AuthFailure()

        payment = self.db.get(Payment, payment_id) if payment_id else None
        if payment is None:
            logger.warning("ITN references unknown payment", extra={"payment_id": payment_id})
            raise AuthFailure()

        expected_amount = f"{payment.amount:.2f}"
        if notification.amount_gross != expected_amount:
            logger.warning(
                "ITN amount mismatch",
                extra={
                    "payment_id": payment_id,
                    "expected": expected_amount,
                    "received": notification.amount_gross,
                },
            )
            raise AuthFailure()

        if self.config.verify_with_gateway and not self._confirm_with_gateway(notification):
            raise AuthFailure()

        logger.info(
            "ITN validated",
            extra={"payment_id": payment_id, "payment_status": notification.payment_status},
        )
        return payment

    def _confirm_with_gateway(self, notification: GatewayNotification) -> bool:
        data = {name: getattr(notification, name) for name in VALIDATION_FIELDS}
        try:
            if self.http_client is not None:
                response = self.http_client.post(
                    self.config.validate_url, data=data, timeout=self.config.timeout_seconds
                )
            else:
                with httpx.Client(timeout=self.config.timeout_seconds) as client:
                    response = client.post(self.config.validate_url, data=data)
        except httpx.HTTPError as exc:
            logger.warning(
                "ITN gateway validation unreachable",
                extra={"payment_id": notification.m_payment_id, "error_type": type(exc).__name__},
            )
            return False

        tokens = response.text.split()
        confirmed = response.is_success and bool(tokens) and tokens[0] == VALID_MARKER
        if not confirmed:
            logger.warning(
                "ITN gateway validation rejected",
                extra={"payment_id": notification.m_payment_id, "status_code": response.status_code},
            )
        return confirmed


__all__ = [
    "PayFastConfig",
    "NotificationValidator",
    "build_checkout_form",
    "checkout_for_payment",
    "build_payment_request",
    "render_checkout_form",
]
