from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from errors import (
    Conflict,
    GatewayValidationError,
    InternalError,
    InvalidAmount,
    InvalidSignature,
    InvalidState,
    NotFound,
    NotificationError,
)
from models import db
from models.audit_log import AuditLog
from models.booking import Booking, BOOKING_APPROVED, BOOKING_PENDING
from models.payment import Payment, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from models.slot import Slot, SLOT_AVAILABLE, SLOT_BOOKED
from services.payments import build_receipt, to_major_units, to_minor_units


def _paid(service, gateway, payment_id, gateway_payment_id="pay_001"):
    payment = db.session.get(Payment, payment_id)
    sig = gateway.sign(payment.gateway_order_id, gateway_payment_id)
    return service.complete_payment(payment_id, payment.gateway_order_id, gateway_payment_id, sig)


# ---------- amounts ----------
@pytest.mark.parametrize("major, minor", [
    ("199.995", 20000),
    (199.995, 20000),
    (1500, 150000),
    ("0.005", 1),
    (Decimal("12.344"), 1234),
])
def test_amount_conversion_rounds_half_up(major, minor):
    assert to_minor_units(major) == minor


@pytest.mark.parametrize("bad", [0, -5, "0", "-0.01", "0.004", "abc", None, True, "NaN", "Infinity"])
def test_invalid_amounts_rejected(bad):
    with pytest.raises(InvalidAmount):
        to_minor_units(bad)


def test_major_units_round_trip_for_listing():
    assert to_major_units(20000) == Decimal("200.00")
    assert to_major_units(1) == Decimal("0.01")


def test_receipt_is_bounded():
    receipt = build_receipt(10 ** 45, max_length=40)
    assert len(receipt) == 40
    assert receipt.startswith("rcpt_")


# ---------- create ----------
def test_create_payment_records_pending_order_and_notifies_station(service, gateway, mailer, advertiser, booking, station):
    result = service.create_payment(booking.id, advertiser.id, 1500, "txn-42")

    payment = db.session.get(Payment, result["payment_id"])
    assert payment.status == PAYMENT_PENDING
    assert payment.amount_minor == 150000
    assert payment.gateway_order_id == result["order_id"]
    assert payment.transaction_tag == "txn-42"
    assert result == {
        "payment_id": payment.id,
        "order_id": payment.gateway_order_id,
        "amount": 150000,
        "currency": "INR",
    }

    sent_order = gateway.orders[0]
    assert sent_order["notes"]["bookingId"] == str(booking.id)
    assert sent_order["notes"]["transactionId"] == "txn-42"
    assert len(sent_order["receipt"]) <= 40

    assert mailer.sent == [{
        "to": station.contact_email,
        "station": station.name,
        "amount": Decimal("1500.00"),
        "payment_id": payment.id,
    }]


def test_invalid_amount_makes_no_gateway_call(service, gateway, advertiser, booking):
    with pytest.raises(InvalidAmount):
        service.create_payment(booking.id, advertiser.id, 0, "txn")
    with pytest.raises(InvalidAmount):
        service.create_payment(booking.id, advertiser.id, -10, "txn")

    assert len(gateway.orders) == 0
    assert Payment.query.count() == 0


def test_payment_for_approved_booking_is_invalid_state(service, gateway, advertiser, booking):
    booking.status = BOOKING_APPROVED
    db.session.commit()

    with pytest.raises(InvalidState):
        service.create_payment(booking.id, advertiser.id, 1500, "txn")

    assert len(gateway.orders) == 0
    assert Payment.query.count() == 0


def test_payment_for_missing_or_foreign_booking_is_not_found(service, advertiser, other_advertiser, booking):
    with pytest.raises(NotFound):
        service.create_payment(9999, advertiser.id, 10, "txn")
    with pytest.raises(NotFound):
        service.create_payment(booking.id, other_advertiser.id, 10, "txn")


def test_second_payment_for_same_booking_conflicts(service, gateway, advertiser, booking):
    service.create_payment(booking.id, advertiser.id, 1500, "txn-1")

    with pytest.raises(Conflict):
        service.create_payment(booking.id, advertiser.id, 1500, "txn-2")
    assert len(gateway.orders) == 1


def test_gateway_validation_error_leaves_no_payment(service, gateway, advertiser, booking, monkeypatch):
    def reject(*args, **kwargs):
        raise GatewayValidationError("Payment gateway validation error: bad currency", gateway_code="BAD_REQUEST_ERROR")

    monkeypatch.setattr(gateway, "create_order", reject)

    with pytest.raises(GatewayValidationError):
        service.create_payment(booking.id, advertiser.id, 1500, "txn")
    assert Payment.query.count() == 0


def test_notification_failure_is_reported_but_payment_kept(service, mailer, advertiser, booking):
    mailer.fail_with = "smtp down"

    with pytest.raises(NotificationError) as exc:
        service.create_payment(booking.id, advertiser.id, 1500, "txn")

    payment = Payment.query.filter_by(booking_id=booking.id).one()
    assert payment.status == PAYMENT_PENDING
    body = exc.value.to_dict()
    assert body["code"] == "NOTIFICATION_ERROR"
    assert body["payment_id"] == payment.id
    assert body["order_id"] == payment.gateway_order_id
    assert AuditLog.query.filter_by(action="PAYMENT_NOTIFY_FAIL").count() == 1


# ---------- complete ----------
def test_end_to_end_completion_books_slot_and_leaves_booking_pending(service, gateway, advertiser, booking, slot):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")

    first = _paid(service, gateway, created["payment_id"])
    second = _paid(service, gateway, created["payment_id"])

    payment = db.session.get(Payment, created["payment_id"])
    assert payment.status == PAYMENT_COMPLETED
    assert payment.gateway_payment_id == "pay_001"
    assert payment.completed_at is not None
    db.session.refresh(slot)
    db.session.refresh(booking)
    assert slot.status == SLOT_BOOKED
    assert booking.status == BOOKING_PENDING
    assert first == second == {
        "message": first["message"],
        "booking_id": booking.id,
        "slot_id": slot.id,
    }
    assert AuditLog.query.filter_by(action="PAYMENT_COMPLETED").count() == 1


def test_tampered_payment_id_fails_permanently(service, gateway, advertiser, booking, slot):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    order_id = created["order_id"]
    good_sig = gateway.sign(order_id, "pay_real")

    with pytest.raises(InvalidSignature):
        service.complete_payment(created["payment_id"], order_id, "pay_tampered", good_sig)

    payment = db.session.get(Payment, created["payment_id"])
    assert payment.status == PAYMENT_FAILED

    with pytest.raises(InvalidState):
        service.complete_payment(created["payment_id"], order_id, "pay_real", good_sig)

    db.session.refresh(slot)
    assert slot.status == SLOT_AVAILABLE
    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_FAILED


def test_order_id_mismatch_conflicts_without_failing_payment(service, gateway, advertiser, booking):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    sig = gateway.sign("order_other", "pay_1")

    with pytest.raises(Conflict):
        service.complete_payment(created["payment_id"], "order_other", "pay_1", sig)

    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_PENDING


def test_complete_unknown_payment_is_not_found(service):
    with pytest.raises(NotFound):
        service.complete_payment(424242, "order_x", "pay_x", "sig")


def test_concurrent_callback_winner_is_reported_as_success(service, gateway, advertiser, booking, slot, monkeypatch):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    order_id = created["order_id"]
    sig = gateway.sign(order_id, "pay_1")
    real_verify = gateway.verify
    raced = []

    def verify_while_other_callback_lands(order, pay, signature):
        # the duplicate callback commits between our load and our write
        if not raced:
            raced.append(True)
            service.complete_payment(created["payment_id"], order_id, "pay_1", sig)
        return real_verify(order, pay, signature)

    monkeypatch.setattr(gateway, "verify", verify_while_other_callback_lands)

    result = service.complete_payment(created["payment_id"], order_id, "pay_1", sig)

    assert result["slot_id"] == slot.id
    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_COMPLETED
    assert AuditLog.query.filter_by(action="PAYMENT_COMPLETED").count() == 1


def test_completion_write_is_guarded_by_pending_status(service, advertiser, booking, slot):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    db.session.execute(
        update(Payment).where(Payment.id == created["payment_id"]).values(status=PAYMENT_FAILED)
    )
    db.session.commit()

    payment = db.session.get(Payment, created["payment_id"])
    assert service._commit_completion(payment, booking, "pay_late", "sig") is False

    db.session.refresh(slot)
    assert slot.status == SLOT_AVAILABLE
    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_FAILED


def test_completion_refuses_slot_that_is_no_longer_available(service, gateway, advertiser, booking, slot):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    db.session.execute(update(Slot).where(Slot.id == slot.id).values(status=SLOT_BOOKED))
    db.session.commit()

    with pytest.raises(InternalError):
        _paid(service, gateway, created["payment_id"])

    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_PENDING
    assert AuditLog.query.filter_by(action="PAYMENT_RECONCILE_REQUIRED").count() == 1
    assert AuditLog.query.filter_by(action="PAYMENT_COMPLETED").count() == 0


def test_db_failure_after_verification_is_internal_error(service, gateway, advertiser, booking, slot, monkeypatch):
    created = service.create_payment(booking.id, advertiser.id, 1500, "txn")
    session_cls = type(db.session())
    real_commit = session_cls.commit
    calls = []

    def failing_commit(self):
        if not calls:
            calls.append(True)
            raise OperationalError("UPDATE payments", {}, Exception("database is locked"))
        return real_commit(self)

    monkeypatch.setattr(session_cls, "commit", failing_commit)

    with pytest.raises(InternalError):
        _paid(service, gateway, created["payment_id"])

    monkeypatch.undo()
    assert db.session.get(Payment, created["payment_id"]).status == PAYMENT_PENDING
    db.session.refresh(slot)
    assert slot.status == SLOT_AVAILABLE
    assert AuditLog.query.filter_by(action="PAYMENT_RECONCILE_REQUIRED").count() == 1


# ---------- list ----------
def test_list_payments_newest_first_in_major_units(service, advertiser, booking, station, rj, slot):
    later_slot = Slot(station_id=station.id, rj_id=rj.id, slot_time=slot.slot_time + timedelta(hours=1), price=Decimal("99.99"))
    db.session.add(later_slot)
    db.session.commit()
    second_booking = Booking(user_id=advertiser.id, station_id=station.id, rj_id=rj.id, slot_id=later_slot.id)
    db.session.add(second_booking)
    db.session.commit()

    first = service.create_payment(booking.id, advertiser.id, "1500", "txn-1")
    second = service.create_payment(second_booking.id, advertiser.id, "99.995", "txn-2")

    rows = service.list_payments_by_user(advertiser.id)

    assert [r["payment_id"] for r in rows] == [second["payment_id"], first["payment_id"]]
    assert rows[0]["amount"] == Decimal("100.00")
    assert rows[1]["amount"] == Decimal("1500.00")
    assert rows[0]["transaction_id"] == "txn-2"
    assert rows[0]["slot_id"] == later_slot.id
    assert service.list_payments_by_user(advertiser.id + 1000) == []
