from datetime import datetime
from models.db import db

PAYMENT_PENDING = "PENDING"
PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_FAILED = "FAILED"

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount_minor = db.Column(db.Integer, nullable=False)   # smallest unit (paise)
    currency = db.Column(db.String(10), nullable=False, default="INR")

    status = db.Column(db.String(20), nullable=False, default=PAYMENT_PENDING)  # PENDING, COMPLETED, FAILED
    gateway_order_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    gateway_payment_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    gateway_signature = db.Column(db.String(255), nullable=True)
    transaction_tag = db.Column(db.String(120), nullable=True)  # supplied by the client

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="payment")
