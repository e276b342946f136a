from datetime import datetime

from errors import InvalidState, NotFound
from models import db
from models.booking import Booking, BOOKING_APPROVED, BOOKING_PENDING, BOOKING_REJECTED
from models.payment import PAYMENT_COMPLETED
from utils.audit import log_event


def decide_booking(booking_id: int, admin_user_id: int, approve: bool, note: str = None) -> Booking:
    """
    Finalize a paid booking as APPROVED or REJECTED.

    Only a PENDING booking whose payment is COMPLETED qualifies. The slot is
    left BOOKED either way; releasing airtime is a manual admin act.
    """
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    if booking.status != BOOKING_PENDING:
        raise InvalidState(f"Booking already {booking.status}")

    payment = booking.payment
    if not payment or payment.status != PAYMENT_COMPLETED:
        raise InvalidState("Booking has no completed payment yet")

    booking.status = BOOKING_APPROVED if approve else BOOKING_REJECTED
    booking.decided_at = datetime.utcnow()
    booking.decided_by = admin_user_id
    booking.decision_note = (note or "").strip()[:255] or None
    db.session.commit()

    log_event(
        "BOOKING_APPROVE" if approve else "BOOKING_REJECT",
        user_id=admin_user_id,
        entity="booking",
        entity_id=booking.id,
        metadata={"note": booking.decision_note},
    )
    return booking
