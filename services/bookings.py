"""
Booking orchestrator.

A booking is an advertiser's claim on one slot. The claim is exclusive for
the life of the slot: the ``uq_booking_slot_once`` constraint on
``bookings.slot_id`` decides every race, so there is no "is it taken?" query
before the insert.
"""
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from errors import Conflict, InvalidState, NotFound, ValidationError
from models import db
from models.booking import Booking, BOOKING_PENDING, BOOKING_STATUSES
from models.radio_jockey import RadioJockey
from models.slot import Slot
from models.station import Station
from utils.audit import log_event


def create_booking(user_id: int, station_id: int, rj_id: int, slot_id: int) -> Booking:
    station = db.session.get(Station, station_id)
    if not station:
        raise NotFound("Station not found")
    rj = db.session.get(RadioJockey, rj_id)
    if not rj:
        raise NotFound("RJ not found")
    slot = db.session.get(Slot, slot_id)
    if not slot:
        raise NotFound("Slot not found")

    if slot.station_id != station.id or slot.rj_id != rj.id:
        raise NotFound("Slot not found for this station and RJ")

    if not current_app.config.get("BOOKING_ALLOW_PAST_SLOTS", False) and slot.slot_time <= datetime.utcnow():
        raise InvalidState("Cannot book a slot whose airtime has passed")

    booking = Booking(
        user_id=user_id,
        station_id=station.id,
        rj_id=rj.id,
        slot_id=slot.id,
        status=BOOKING_PENDING,
    )
    db.session.add(booking)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Unique constraint uq_booking_slot_once triggers here
        log_event("BOOKING_FAIL_ALREADY_BOOKED", user_id=user_id, entity="slot", entity_id=slot_id)
        raise Conflict("Slot already has a booking")

    log_event("BOOKING_CREATE", user_id=user_id, entity="booking", entity_id=booking.id, metadata={"slot_id": slot_id})
    return booking


def get_booking(booking_id: int, user_id: int = None) -> Booking:
    booking = db.session.get(Booking, booking_id)
    # someone else's booking looks the same as a missing one
    if not booking or (user_id is not None and booking.user_id != user_id):
        raise NotFound("Booking not found")
    return booking


def list_bookings_for_user(user_id: int):
    return (
        Booking.query
        .filter_by(user_id=user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )


def list_bookings(status: str = None, limit: int = 200):
    q = Booking.query
    if status:
        status = status.strip().upper()
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unknown booking status {status!r}")
        q = q.filter_by(status=status)
    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()


def booking_to_dict(b: Booking) -> dict:
    s = b.slot
    p = b.payment
    return {
        "id": b.id,
        "user_id": b.user_id,
        "station_id": b.station_id,
        "rj_id": b.rj_id,
        "slot_id": b.slot_id,
        "status": b.status,
        "created_at": b.created_at.isoformat(),
        "decided_at": b.decided_at.isoformat() if b.decided_at else None,
        "slot": {
            "slot_time": s.slot_time.isoformat() if s else None,
            "price": str(s.price) if s else None,
            "status": s.status if s else None,
        },
        "payment": {
            "payment_id": p.id,
            "status": p.status,
        } if p else None,
    }
