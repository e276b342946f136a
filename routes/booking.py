from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, g

from security.rbac import login_required, require_roles
from services import approvals, bookings, slots
from utils.roles import STATION_ADMIN

booking_bp = Blueprint("booking", __name__)

def _parse_iso(dt_str: str):
    # Expect ISO format like "2026-01-20T18:00:00"; offsets are stored as naive UTC
    dt = datetime.fromisoformat(dt_str)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def _int_field(data: dict, name: str):
    try:
        return int(data.get(name))
    except (TypeError, ValueError):
        return None

def _slot_json(s):
    return {
        "id": s.id,
        "station_id": s.station_id,
        "rj_id": s.rj_id,
        "slot_time": s.slot_time.isoformat(),
        "price": str(s.price),
        "status": s.status,
    }


# ---------- STATION ADMIN: manage slots ----------
@booking_bp.post("/slots")
@require_roles(STATION_ADMIN)
def create_slot():
    data = request.get_json(silent=True) or {}
    station_id = _int_field(data, "station_id")
    rj_id = _int_field(data, "rj_id")
    slot_time = data.get("slot_time")

    if not station_id or not rj_id or not slot_time or data.get("price") is None:
        return jsonify(error="station_id, rj_id, slot_time, price are required"), 400

    try:
        st = _parse_iso(slot_time)
    except (TypeError, ValueError):
        return jsonify(error="Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00"), 400

    slot = slots.create_slot(station_id, rj_id, st, data.get("price"), user_id=g.user.id)
    return jsonify(_slot_json(slot)), 201


@booking_bp.patch("/slots/<int:slot_id>")
@require_roles(STATION_ADMIN)
def update_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    st = None
    if data.get("slot_time"):
        try:
            st = _parse_iso(data["slot_time"])
        except (TypeError, ValueError):
            return jsonify(error="Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00"), 400

    slot = slots.update_slot(slot_id, slot_time=st, price=data.get("price"), user_id=g.user.id)
    return jsonify(_slot_json(slot)), 200


@booking_bp.delete("/slots/<int:slot_id>")
@require_roles(STATION_ADMIN)
def delete_slot(slot_id: int):
    slots.delete_slot(slot_id, user_id=g.user.id)
    return jsonify(message=f"Slot {slot_id} deleted"), 200


# ---------- PUBLIC: view slots ----------
@booking_bp.get("/slots")
def list_slots():
    # optional filters: status (AVAILABLE/BOOKED), station_id
    rows = slots.list_slots(
        status=request.args.get("status"),
        station_id=request.args.get("station_id", type=int),
    )
    return jsonify([_slot_json(s) for s in rows]), 200


@booking_bp.get("/slots/<int:slot_id>")
def get_slot(slot_id: int):
    return jsonify(_slot_json(slots.get_slot(slot_id))), 200


# ---------- ADVERTISERS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    station_id = _int_field(data, "station_id")
    rj_id = _int_field(data, "rj_id")
    slot_id = _int_field(data, "slot_id")
    if not station_id or not rj_id or not slot_id:
        return jsonify(error="station_id, rj_id, slot_id required"), 400

    booking = bookings.create_booking(g.user.id, station_id, rj_id, slot_id)
    return jsonify(id=booking.id, slot_id=booking.slot_id, status=booking.status), 201


# ---------- ADVERTISERS: view my bookings ----------
@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    rows = bookings.list_bookings_for_user(g.user.id)
    return jsonify([bookings.booking_to_dict(b) for b in rows]), 200


@booking_bp.get("/bookings/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = bookings.get_booking(booking_id, user_id=g.user.id)
    return jsonify(bookings.booking_to_dict(booking)), 200


# ---------- STATION ADMIN: list and decide bookings ----------
@booking_bp.get("/bookings")
@require_roles(STATION_ADMIN)
def list_all_bookings():
    rows = bookings.list_bookings(status=request.args.get("status"))
    return jsonify([bookings.booking_to_dict(b) for b in rows]), 200


@booking_bp.post("/bookings/<int:booking_id>/approve")
@require_roles(STATION_ADMIN)
def approve_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = approvals.decide_booking(booking_id, g.user.id, approve=True, note=data.get("note"))
    return jsonify(id=booking.id, status=booking.status), 200


@booking_bp.post("/bookings/<int:booking_id>/reject")
@require_roles(STATION_ADMIN)
def reject_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = approvals.decide_booking(booking_id, g.user.id, approve=False, note=data.get("note"))
    return jsonify(id=booking.id, status=booking.status), 200
