import os
from dataclasses import replace
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from freightpay.schemas.payfast import GatewayNotification
from freightpay.services.payfast import NotificationValidator
from freightpay.utils.errors import AuthFailure
from freightpay.utils.signature import generate_signature

PASSPHRASE = os.environ["PAYFAST_PASSPHRASE"]
VALIDATE_URL = "https://sandbox.payfast.co.za/eng/query/validate"


def _notification(payment, **overrides) -> GatewayNotification:
    fields = {
        "m_payment_id": payment.id,
        "pf_payment_id": "1089250",
        "payment_status": "COMPLETE",
        "item_name": "LoadHitch - Office furniture",
        "amount_gross": f"{payment.amount:.2f}",
        "amount_fee": "-15.41",
        "amount_net": "654.59",
        "custom_str1": payment.load_id,
        "custom_str2": payment.customer_id,
        "name_first": "Thandi",
        "name_last": "Nkosi",
        "email_address": "thandi@example.com",
        "merchant_id": "10000100",
    }
    fields.update(overrides)
    return GatewayNotification(**fields)


def _sign(notification: GatewayNotification, passphrase: str | None = PASSPHRASE) -> str:
    return generate_signature(notification.signing_fields(), passphrase)


@pytest.fixture
def payment(ledger, make_load):
    load = make_load()
    return ledger.initiate(load.id, load.customer_id, Decimal("670.00"))


@pytest.fixture
def validator(payfast_config, db_session) -> NotificationValidator:
    return NotificationValidator(payfast_config, db_session)


def test_valid_notification_returns_payment(validator, payment):
    notification = _notification(payment)

    assert validator.validate(notification, _sign(notification)).id == payment.id


def test_signature_comparison_is_case_insensitive(validator, payment):
    notification = _notification(payment)

    assert validator.validate(notification, _sign(notification).upper()).id == payment.id


@pytest.mark.parametrize("signature", [None, "", "0" * 32])
def test_bad_signature_is_rejected(validator, payment, signature):
    with pytest.raises(AuthFailure):
        validator.validate(_notification(payment), signature)


def test_signature_with_wrong_passphrase_is_rejected(validator, payment):
    notification = _notification(payment)

    with pytest.raises(AuthFailure):
        validator.validate(notification, _sign(notification, "not-the-passphrase"))


def test_field_altered_after_signing_is_rejected(validator, payment):
    signed = _notification(payment)
    signature = _sign(signed)
    tampered = signed.model_copy(update={"payment_status": "FAILED"})

    with pytest.raises(AuthFailure):
        validator.validate(tampered, signature)


def test_unknown_payment_is_rejected(validator, payment):
    notification = _notification(payment, m_payment_id="does-not-exist")

    with pytest.raises(AuthFailure):
        validator.validate(notification, _sign(notification))


@pytest.mark.parametrize("amount_gross", ["1.00", "670.0", "670", " 670.00"])
def test_amount_mismatch_is_rejected_even_when_consistently_signed(validator, payment, amount_gross):
    notification = _notification(payment, amount_gross=amount_gross)

    with pytest.raises(AuthFailure):
        validator.validate(notification, _sign(notification))


def test_failure_messages_do_not_reveal_the_failing_check(validator, payment):
    errors = []
    bad_amount = _notification(payment, amount_gross="1.00")
    for notification, signature in [
        (_notification(payment), "bad"),
        (bad_amount, _sign(bad_amount)),
    ]:
        with pytest.raises(AuthFailure) as exc_info:
            validator.validate(notification, signature)
        errors.append(exc_info.value.to_response())

    assert errors[0] == errors[1]
    assert errors[0] == {"error": {"code": "INVALID_NOTIFICATION", "message": "Invalid notification."}}


@pytest.fixture
def confirming_validator(payfast_config, db_session):
    config = replace(payfast_config, verify_with_gateway=True)
    with httpx.Client() as client:
        yield NotificationValidator(config, db_session, client)


def test_gateway_confirmation_posts_notification_fields(confirming_validator, payment):
    notification = _notification(payment)
    with respx.mock:
        route = respx.post(VALIDATE_URL).mock(return_value=httpx.Response(200, text="VALID"))

        confirming_validator.validate(notification, _sign(notification))

    sent = parse_qs(route.calls.last.request.content.decode())
    assert sent["m_payment_id"] == [payment.id]
    assert sent["pf_payment_id"] == ["1089250"]
    assert sent["payment_status"] == ["COMPLETE"]
    assert sent["amount_gross"] == ["670.00"]
    assert set(sent) == {"m_payment_id", "pf_payment_id", "payment_status", "item_name", "amount_gross"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="INVALID"),
        httpx.Response(200, text=""),
        httpx.Response(200, text="NOT VALID"),
        httpx.Response(500, text="VALID"),
    ],
)
def test_gateway_rejection_fails_authentication(confirming_validator, payment, response):
    notification = _notification(payment)
    with respx.mock:
        respx.post(VALIDATE_URL).mock(return_value=response)

        with pytest.raises(AuthFailure):
            confirming_validator.validate(notification, _sign(notification))


def test_gateway_transport_error_fails_authentication(confirming_validator, payment):
    notification = _notification(payment)
    with respx.mock:
        respx.post(VALIDATE_URL).mock(side_effect=httpx.ConnectError("unreachable"))

        with pytest.raises(AuthFailure):
            confirming_validator.validate(notification, _sign(notification))


def test_gateway_is_not_called_when_signature_fails(confirming_validator, payment):
    with respx.mock:
        route = respx.post(VALIDATE_URL).mock(return_value=httpx.Response(200, text="VALID"))

        with pytest.raises(AuthFailure):
            confirming_validator.validate(_notification(payment), "bad")

    assert not route.called
