from datetime import datetime
from models.db import db

class Station(db.Model):
    __tablename__ = "stations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    contact_email = db.Column(db.String(255), nullable=True)  # receives payment notices
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    rjs = db.relationship("RadioJockey", back_populates="station", lazy=True)
