"""
Slot store: advertisement airtime a station sells.

Slots are created AVAILABLE and only ever flip to BOOKED inside the payment
commit (services.payments). Nothing here writes ``status``.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from errors import Conflict, InvalidState, NotFound, ValidationError
from models import db
from models.booking import Booking
from models.radio_jockey import RadioJockey
from models.slot import Slot, SLOT_AVAILABLE, SLOT_STATUSES
from models.station import Station
from utils.audit import log_event


def parse_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("price must be a number")
    if not price.is_finite() or price <= 0:
        raise ValidationError("price must be positive")
    return price.quantize(Decimal("0.01"))


def create_slot(station_id: int, rj_id: int, slot_time: datetime, price, user_id: int = None) -> Slot:
    price = parse_price(price)

    station = db.session.get(Station, station_id)
    if not station:
        raise NotFound("Station not found")
    rj = db.session.get(RadioJockey, rj_id)
    if not rj or rj.station_id != station.id:
        raise NotFound("RJ not found for this station")

    slot = Slot(station_id=station.id, rj_id=rj.id, slot_time=slot_time, price=price, status=SLOT_AVAILABLE)
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A slot already exists for this station, RJ and time")

    log_event("SLOT_CREATE", user_id=user_id, entity="slot", entity_id=slot.id)
    return slot


def get_slot(slot_id: int) -> Slot:
    slot = db.session.get(Slot, slot_id)
    if not slot:
        raise NotFound(f"Slot {slot_id} not found")
    return slot


def list_slots(status: str = None, station_id: int = None):
    q = Slot.query
    if status:
        status = status.strip().upper()
        if status not in SLOT_STATUSES:
            raise ValidationError(f"Unknown slot status {status!r}")
        q = q.filter(Slot.status == status)
    if station_id:
        q = q.filter(Slot.station_id == station_id)
    return q.order_by(Slot.slot_time.asc()).all()


def update_slot(slot_id: int, slot_time: datetime = None, price=None, user_id: int = None) -> Slot:
    slot = get_slot(slot_id)
    if slot.status != SLOT_AVAILABLE:
        raise InvalidState("Only an available slot can be edited")

    if slot_time is not None:
        slot.slot_time = slot_time
    if price is not None:
        slot.price = parse_price(price)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A slot already exists for this station, RJ and time")

    log_event("SLOT_UPDATE", user_id=user_id, entity="slot", entity_id=slot.id)
    return slot


def delete_slot(slot_id: int, user_id: int = None):
    slot = get_slot(slot_id)

    booking_count = Booking.query.filter_by(slot_id=slot.id).count()
    if booking_count > 0:
        raise Conflict(
            f"Cannot delete this slot. It has {booking_count} associated booking(s)."
        )

    db.session.delete(slot)
    try:
        db.session.commit()
    except IntegrityError:
        # a booking landed between the count and the delete
        db.session.rollback()
        raise Conflict(f"Slot {slot_id} has associated bookings")

    log_event("SLOT_DELETE", user_id=user_id, entity="slot", entity_id=slot_id)
