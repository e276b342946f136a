from flask import Blueprint, request, jsonify, g

from security.rbac import require_roles
from services import stations as station_service
from utils.roles import STATION_ADMIN

stations_bp = Blueprint("stations", __name__, url_prefix="/stations")


def _station_json(s):
    return {
        "id": s.id,
        "name": s.name,
        "contact_email": s.contact_email,
        "created_at": s.created_at.isoformat(),
    }


@stations_bp.post("")
@require_roles(STATION_ADMIN)
def create_station():
    data = request.get_json(silent=True) or {}
    station = station_service.create_station(
        data.get("name"),
        contact_email=data.get("contact_email"),
        owner_user_id=g.user.id,
    )
    return jsonify(_station_json(station)), 201


@stations_bp.get("")
def list_stations():
    return jsonify([_station_json(s) for s in station_service.list_stations()]), 200


@stations_bp.post("/<int:station_id>/rjs")
@require_roles(STATION_ADMIN)
def create_rj(station_id: int):
    data = request.get_json(silent=True) or {}
    rj = station_service.create_rj(station_id, data.get("name"), user_id=g.user.id)
    return jsonify(id=rj.id, station_id=rj.station_id, name=rj.name), 201


@stations_bp.get("/<int:station_id>/rjs")
def list_rjs(station_id: int):
    return jsonify([
        {"id": rj.id, "station_id": rj.station_id, "name": rj.name}
        for rj in station_service.list_rjs(station_id)
    ]), 200
