from sqlalchemy.exc import IntegrityError

from errors import NotFound, ValidationError
from models import db
from models.station import Station
from models.radio_jockey import RadioJockey
from utils.audit import log_event


def create_station(name: str, contact_email: str = None, owner_user_id: int = None) -> Station:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Station name required")

    station = Station(name=name, contact_email=(contact_email or "").strip() or None, owner_user_id=owner_user_id)
    db.session.add(station)
    db.session.commit()

    log_event("STATION_CREATE", user_id=owner_user_id, entity="station", entity_id=station.id)
    return station


def get_station(station_id: int) -> Station:
    station = db.session.get(Station, station_id)
    if not station:
        raise NotFound("Station not found")
    return station


def list_stations():
    return Station.query.order_by(Station.name.asc()).all()


def create_rj(station_id: int, name: str, user_id: int = None) -> RadioJockey:
    name = (name or "").strip()
    if not name:
        raise ValidationError("RJ name required")

    station = get_station(station_id)
    rj = RadioJockey(station_id=station.id, name=name)
    db.session.add(rj)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise NotFound("Station not found")

    log_event("RJ_CREATE", user_id=user_id, entity="rj", entity_id=rj.id, metadata={"station_id": station.id})
    return rj


def list_rjs(station_id: int):
    get_station(station_id)
    return RadioJockey.query.filter_by(station_id=station_id).order_by(RadioJockey.name.asc()).all()
