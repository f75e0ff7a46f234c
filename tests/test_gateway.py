from decimal import Decimal
import logging
import re

import pytest

from freightpay.schemas.payment import CardPaymentDetails
from freightpay.services.gateway import SimulatedGateway, card_last4, detect_card_brand
from freightpay.services.notifier import LoggingNotifier, UserNotification, deliver


@pytest.mark.parametrize(
    ("number", "brand"),
    [("4111111111111111", "Visa"), ("5500 0000 0000 0004", "Mastercard"), ("340000000000009", "Amex"), ("6011000000000004", "Unknown")],
)
def test_detect_card_brand(number, brand):
    assert detect_card_brand(number) == brand


def test_card_last4_ignores_spaces():
    assert card_last4("4111 1111 1111 1234") == "1234"


def test_simulated_gateway_issues_prefixed_references():
    gateway = SimulatedGateway()

    capture = gateway.capture(Decimal("10.00"), CardPaymentDetails(card_number="4111111111111111"))
    payout = gateway.payout(Decimal("8.50"), "driver-1")
    refund = gateway.refund(Decimal("10.00"), capture.transaction_id)

    assert all(result.success for result in (capture, payout, refund))
    assert re.fullmatch(r"TXN-[0-9A-F]{12}", capture.transaction_id)
    assert re.fullmatch(r"PAYOUT-[0-9A-F]{12}", payout.transaction_id)
    assert re.fullmatch(r"REFUND-[0-9A-F]{12}", refund.transaction_id)


def test_deliver_continues_after_a_failing_send(caplog):
    delivered = []

    class FlakyNotifier:
        def send(self, notification):
            if notification.user_id == "broken":
                raise RuntimeError("push service down")
            delivered.append(notification.user_id)

    notifications = [
        UserNotification(user_id="broken", title="Payment Released", message="..."),
        UserNotification(user_id="customer-1", title="Payment Released", message="..."),
    ]

    with caplog.at_level(logging.ERROR, logger="freightpay.services.notifier"):
        deliver(FlakyNotifier(), notifications)

    assert delivered == ["customer-1"]
    assert "Notification delivery failed" in caplog.text


def test_logging_notifier_records_notification(caplog):
    with caplog.at_level(logging.INFO, logger="freightpay.services.notifier"):
        LoggingNotifier().send(UserNotification(user_id="u1", title="Refund Processed", message="R10.00"))

    assert "User notification" in caplog.text
