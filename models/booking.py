from datetime import datetime
from models.db import db

BOOKING_PENDING = "PENDING"
BOOKING_APPROVED = "APPROVED"
BOOKING_REJECTED = "REJECTED"
BOOKING_STATUSES = (BOOKING_PENDING, BOOKING_APPROVED, BOOKING_REJECTED)

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    rj_id = db.Column(db.Integer, db.ForeignKey("radio_jockeys.id"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=BOOKING_PENDING)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    decided_at = db.Column(db.DateTime, nullable=True)
    decided_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    decision_note = db.Column(db.String(255), nullable=True)

    slot = db.relationship("Slot")
    station = db.relationship("Station")
    payment = db.relationship("Payment", back_populates="booking", uselist=False)

    __table_args__ = (
        # Hard business-rule: only one booking can ever exist per slot (prevents double booking)
        db.UniqueConstraint("slot_id", name="uq_booking_slot_once"),
    )
