from datetime import datetime
from models.db import db

class RadioJockey(db.Model):
    __tablename__ = "radio_jockeys"

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    station = db.relationship("Station", back_populates="rjs")
