"""
Payment orchestrator.

Ties one gateway order to one booking and, once the gateway's checkout
signature checks out, moves ``Payment -> COMPLETED`` and ``Slot -> BOOKED``
in a single transaction.

Payment status only ever moves PENDING -> COMPLETED or PENDING -> FAILED.
Every write that changes it is guarded by ``status = 'PENDING'`` in the
UPDATE itself, so two callbacks racing on the same payment cannot both win.
"""
import secrets
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import (
    Conflict,
    GatewayError,
    InternalError,
    InvalidAmount,
    InvalidSignature,
    InvalidState,
    NotFound,
    NotificationError,
    ValidationError,
)
from models import db
from models.booking import Booking, BOOKING_PENDING
from models.payment import Payment, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from models.slot import Slot, SLOT_AVAILABLE, SLOT_BOOKED
from utils.audit import log_event

COMPLETED_MESSAGE = "Payment verified. Slot booked. Awaiting admin approval for booking."


def to_minor_units(amount_major) -> int:
    """
    Convert a major-unit amount (rupees) to minor units (paise), half-up.

    >>> to_minor_units("199.995")
    20000
    """
    if isinstance(amount_major, bool):
        raise InvalidAmount("Invalid payment amount provided.")
    try:
        amount = Decimal(str(amount_major))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount("Invalid payment amount provided.")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount("Invalid payment amount provided.")

    minor = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minor <= 0:
        raise InvalidAmount("Amount must be positive.")
    return minor


def to_major_units(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / 100).quantize(Decimal("0.01"))


def build_receipt(booking_id, max_length: int = 40) -> str:
    return f"rcpt_{booking_id}_{secrets.token_hex(4)}"[:max_length]


class PaymentService:
    """
    Payment flows for one request.

    ``gateway`` creates orders and checks signatures (services.gateway),
    ``mailer`` notifies the station (services.notifications). Both are built
    once at app start and passed in here.
    """

    def __init__(self, gateway, mailer):
        self.gateway = gateway
        self.mailer = mailer

    # ---------- create ----------
    def create_payment(self, booking_id: int, user_id: int, amount_major, transaction_tag: str = None) -> dict:
        amount_minor = to_minor_units(amount_major)

        booking = db.session.get(Booking, booking_id)
        if not booking or booking.user_id != user_id:
            raise NotFound("Booking not found.")
        if booking.status != BOOKING_PENDING:
            raise InvalidState(f"Booking status ({booking.status}) does not allow payment.")
        if booking.payment is not None:
            raise Conflict("A payment already exists for this booking.")

        currency = current_app.config.get("PAYMENT_CURRENCY", "INR")
        receipt = build_receipt(booking.id, current_app.config.get("PAYMENT_RECEIPT_MAX_LENGTH", 40))
        notes = {
            "bookingId": str(booking.id),
            "userId": str(user_id),
            "transactionId": transaction_tag or "",
            "clientDateTime": datetime.utcnow().isoformat(),
        }

        try:
            order = self.gateway.create_order(amount_minor, currency, receipt, notes)
        except GatewayError as exc:
            current_app.logger.error("Error creating gateway order for booking %s: %s", booking.id, exc)
            raise

        payment = Payment(
            booking_id=booking.id,
            user_id=user_id,
            amount_minor=amount_minor,
            currency=order.currency,
            status=PAYMENT_PENDING,
            gateway_order_id=order.order_id,
            transaction_tag=transaction_tag,
        )
        db.session.add(payment)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            # the gateway order is left unused and expires on its own
            current_app.logger.error("Payment insert conflict for booking %s (order %s orphaned): %s",
                                     booking.id, order.order_id, exc)
            raise Conflict("Database constraint violation while recording payment.")
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.error("Payment insert failed for booking %s (order %s orphaned): %s",
                                     booking.id, order.order_id, exc)
            raise InternalError("Failed to record payment.")

        log_event(
            "PAYMENT_ORDER_CREATED",
            user_id=user_id,
            entity="payment",
            entity_id=payment.id,
            metadata={"booking_id": booking.id, "order_id": order.order_id, "amount": amount_minor},
        )

        result = {
            "payment_id": payment.id,
            "order_id": order.order_id,
            "amount": order.amount_minor,
            "currency": order.currency,
        }

        station = booking.station
        try:
            self.mailer.send_payment_notice(
                station.contact_email if station else None,
                station.name if station else "",
                to_major_units(payment.amount_minor),
                payment.id,
            )
        except NotificationError as exc:
            # payment stays; the caller still gets what it needs to open checkout
            current_app.logger.error("Payment %s created but station notice failed: %s", payment.id, exc)
            log_event("PAYMENT_NOTIFY_FAIL", user_id=user_id, entity="payment", entity_id=payment.id,
                      metadata={"error": exc.message})
            raise NotificationError(exc.message, **result)

        return result

    # ---------- complete ----------
    def complete_payment(self, payment_id: int, order_id: str, gateway_payment_id: str, signature: str) -> dict:
        if not payment_id or not order_id or not gateway_payment_id or not signature:
            raise ValidationError("Missing required payment details for verification.")

        payment = db.session.get(Payment, payment_id)
        if not payment:
            current_app.logger.error("Payment completion failed: payment %s not found", payment_id)
            raise NotFound("Payment record not found.")

        booking = payment.booking
        if not booking or not booking.slot_id or db.session.get(Slot, booking.slot_id) is None:
            current_app.logger.error("Payment completion failed: booking/slot link missing for payment %s", payment_id)
            raise InternalError("Associated booking or slot not found for this payment.")

        result = {"message": COMPLETED_MESSAGE, "booking_id": booking.id, "slot_id": booking.slot_id}

        if payment.status == PAYMENT_COMPLETED:
            current_app.logger.warning("Attempt to complete an already completed payment: %s", payment_id)
            return result
        if payment.status != PAYMENT_PENDING:
            raise InvalidState(f"Payment cannot be completed in its current state: {payment.status}")

        if payment.gateway_order_id != order_id:
            current_app.logger.error("Order id mismatch for payment %s. Expected %s, received %s",
                                     payment_id, payment.gateway_order_id, order_id)
            raise Conflict("Order ID mismatch.")

        # stored order id, supplied payment id
        if not self.gateway.verify(payment.gateway_order_id, gateway_payment_id, signature):
            self._mark_failed(payment)
            raise InvalidSignature("Invalid payment signature.")

        if not self._commit_completion(payment, booking, gateway_payment_id, signature):
            # lost the race: whoever won decides the answer
            db.session.refresh(payment)
            if payment.status == PAYMENT_COMPLETED:
                current_app.logger.warning("Payment %s completed by a concurrent callback", payment_id)
                return result
            raise InvalidState(f"Payment cannot be completed in its current state: {payment.status}")

        current_app.logger.info("Payment %s completed. Slot %s BOOKED. Booking %s awaits admin approval.",
                                payment.id, booking.slot_id, booking.id)
        log_event(
            "PAYMENT_COMPLETED",
            user_id=payment.user_id,
            entity="payment",
            entity_id=payment.id,
            metadata={"booking_id": booking.id, "slot_id": booking.slot_id, "gateway_payment_id": gateway_payment_id},
        )
        return result

    def _mark_failed(self, payment: Payment):
        current_app.logger.error("Invalid payment signature for payment %s", payment.id)
        db.session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
            .values(status=PAYMENT_FAILED)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        log_event("PAYMENT_SIGNATURE_INVALID", user_id=payment.user_id, entity="payment", entity_id=payment.id)

    def _commit_completion(self, payment: Payment, booking: Booking, gateway_payment_id: str, signature: str) -> bool:
        """
        Payment -> COMPLETED and Slot -> BOOKED, all or nothing.

        Returns False when the payment was no longer PENDING at write time.
        Raises InternalError when the database refuses the write; the
        gateway has already taken the money at that point.
        """
        payment_id, user_id, slot_id = payment.id, payment.user_id, booking.slot_id
        try:
            moved = db.session.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status == PAYMENT_PENDING)
                .values(
                    status=PAYMENT_COMPLETED,
                    gateway_payment_id=gateway_payment_id,
                    gateway_signature=signature,
                    completed_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if moved != 1:
                db.session.rollback()
                return False

            booked = db.session.execute(
                update(Slot)
                .where(Slot.id == slot_id, Slot.status == SLOT_AVAILABLE)
                .values(status=SLOT_BOOKED)
                .execution_options(synchronize_session=False)
            ).rowcount
            if booked != 1:
                raise SQLAlchemyError(f"slot {slot_id} missing or no longer AVAILABLE during completion")

            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.critical(
                "CRITICAL: DB update failed after successful payment verification for payment %s "
                "(gateway payment %s). Manual reconciliation required: %s",
                payment_id, gateway_payment_id, exc,
            )
            log_event(
                "PAYMENT_RECONCILE_REQUIRED",
                user_id=user_id,
                entity="payment",
                entity_id=payment_id,
                metadata={"gateway_payment_id": gateway_payment_id, "slot_id": slot_id, "error": str(exc)},
            )
            raise InternalError(
                "Payment verified, but failed to update booking/slot status. Please contact support."
            )

        db.session.expire(payment)
        return True

    # ---------- read ----------
    def list_payments_by_user(self, user_id: int):
        rows = (
            Payment.query
            .filter_by(user_id=user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )
        return [
            {
                "payment_id": p.id,
                "booking_id": p.booking_id,
                "slot_id": p.booking.slot_id if p.booking else None,
                "amount": to_major_units(p.amount_minor),
                "currency": p.currency,
                "status": p.status,
                "transaction_id": p.transaction_tag,
                "payment_date": p.created_at.isoformat(),
                "order_id": p.gateway_order_id,
            }
            for p in rows
        ]
