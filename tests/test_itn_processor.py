from decimal import Decimal

import pytest

from freightpay.models import PaymentStatus
from freightpay.schemas.payfast import GatewayNotification
from freightpay.services.escrow import EscrowLedger
from freightpay.services.itn import NotificationProcessor
from freightpay.utils.time import as_utc


def _notification(payment, status: str, pf_payment_id: str = "1089250") -> GatewayNotification:
    return GatewayNotification(
        m_payment_id=payment.id,
        pf_payment_id=pf_payment_id,
        payment_status=status,
        amount_gross=f"{payment.amount:.2f}",
    )


@pytest.fixture
def driver(make_user):
    return make_user("Sipho Dlamini")


@pytest.fixture
def payment(ledger, make_load, driver):
    load = make_load(driver=driver, title="Office furniture")
    return ledger.initiate(load.id, load.customer_id, Decimal("670.00"))


@pytest.fixture
def processor(ledger) -> NotificationProcessor:
    return NotificationProcessor(ledger)


def test_complete_holds_payment_and_notifies_customer_and_driver(processor, payment, driver, notifier):
    outcome = processor.apply(_notification(payment, "COMPLETE"))

    assert outcome.transitioned
    assert outcome.status == PaymentStatus.HELD
    held = processor.ledger.get(payment.id)
    assert held.transaction_id == "1089250"
    assert held.paid_at is not None
    assert [(n.user_id, n.title) for n in notifier.sent] == [
        (payment.customer_id, "Payment Successful"),
        (driver.id, "Load Payment Confirmed"),
    ]
    assert "R670.00" in notifier.sent[0].message
    assert "Office furniture" in notifier.sent[1].message
    assert "R569.50" in notifier.sent[1].message


def test_complete_without_assigned_driver_notifies_customer_only(processor, ledger, make_load, notifier):
    load = make_load()
    payment = ledger.initiate(load.id, load.customer_id, Decimal("100.00"))

    processor.apply(_notification(payment, "COMPLETE"))

    assert [n.user_id for n in notifier.sent] == [payment.customer_id]


def test_duplicate_complete_is_a_silent_no_op(processor, payment, notifier):
    processor.apply(_notification(payment, "COMPLETE"))
    first = processor.ledger.get(payment.id)
    paid_at, updated_at = as_utc(first.paid_at), as_utc(first.updated_at)
    notifier.sent.clear()

    outcome = processor.apply(_notification(payment, "COMPLETE", pf_payment_id="9999999"))

    assert not outcome.transitioned
    assert outcome.status == PaymentStatus.HELD
    again = processor.ledger.get(payment.id)
    assert as_utc(again.paid_at) == paid_at
    assert as_utc(again.updated_at) == updated_at
    assert again.transaction_id == "1089250"
    assert notifier.sent == []


def test_complete_after_release_is_a_no_op(processor, payment, driver, notifier, fake_gateway):
    processor.apply(_notification(payment, "COMPLETE"))
    processor.ledger.release(payment.id, driver.id)
    notifier.sent.clear()

    outcome = processor.apply(_notification(payment, "COMPLETE"))

    assert not outcome.transitioned
    assert outcome.status == PaymentStatus.RELEASED
    assert notifier.sent == []


@pytest.mark.parametrize("status", ["FAILED", "CANCELLED"])
def test_failure_statuses_fail_pending_payment(processor, payment, status, notifier):
    outcome = processor.apply(_notification(payment, status))

    assert outcome.transitioned
    failed = processor.ledger.get(payment.id)
    assert failed.status == PaymentStatus.FAILED
    assert failed.failure_reason == f"Payment {status}"
    assert notifier.sent == []


def test_duplicate_failure_is_a_no_op(processor, payment):
    processor.apply(_notification(payment, "FAILED"))

    outcome = processor.apply(_notification(payment, "CANCELLED"))

    assert not outcome.transitioned
    assert processor.ledger.get(payment.id).failure_reason == "Payment FAILED"


def test_failure_never_overwrites_held_payment(processor, payment):
    processor.apply(_notification(payment, "COMPLETE"))

    outcome = processor.apply(_notification(payment, "FAILED"))

    assert not outcome.transitioned
    assert processor.ledger.get(payment.id).status == PaymentStatus.HELD


def test_complete_never_revives_failed_payment(processor, payment, notifier):
    processor.apply(_notification(payment, "CANCELLED"))

    outcome = processor.apply(_notification(payment, "COMPLETE"))

    assert not outcome.transitioned
    assert processor.ledger.get(payment.id).status == PaymentStatus.FAILED
    assert notifier.sent == []


def test_other_statuses_are_ignored(processor, payment):
    outcome = processor.apply(_notification(payment, "PENDING"))

    assert not outcome.transitioned
    assert processor.ledger.get(payment.id).status == PaymentStatus.PENDING


def test_lost_race_is_resolved_by_rereading_state(db_session, fake_gateway, fixed_clock, payment, notifier):
    class RacingLedger(EscrowLedger):
        """Another delivery of the same ITN wins between the state check and the update."""

        def mark_held(self, payment_id, gateway_txn_id, **kwargs):
            EscrowLedger.mark_held(self, payment_id, "from-concurrent-delivery")
            return super().mark_held(payment_id, gateway_txn_id, **kwargs)

    racing = RacingLedger(db_session, fake_gateway, dispatch=notifier.sent.extend, clock=fixed_clock)

    outcome = NotificationProcessor(racing).apply(_notification(payment, "COMPLETE"))

    assert not outcome.transitioned
    assert outcome.status == PaymentStatus.HELD
    assert racing.get(payment.id).transaction_id == "from-concurrent-delivery"
    assert notifier.sent == []
