from datetime import datetime
from models.db import db

SLOT_AVAILABLE = "AVAILABLE"
SLOT_BOOKED = "BOOKED"
SLOT_STATUSES = (SLOT_AVAILABLE, SLOT_BOOKED)

class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    rj_id = db.Column(db.Integer, db.ForeignKey("radio_jockeys.id"), nullable=False, index=True)
    slot_time = db.Column(db.DateTime, nullable=False, index=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)  # major currency unit
    status = db.Column(db.String(20), nullable=False, default=SLOT_AVAILABLE)
    # AVAILABLE -> BOOKED once, only by a verified payment

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    station = db.relationship("Station")
    rj = db.relationship("RadioJockey")

    __table_args__ = (
        # Prevent duplicate airtime for the same station and RJ
        db.UniqueConstraint("station_id", "rj_id", "slot_time", name="uq_station_rj_slottime"),
    )
