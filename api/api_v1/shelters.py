from __future__ import annotations

from typing import Iterable

from flask import Blueprint, current_app, jsonify

from api.api_v1.query_params import (
    float_in_range,
    get_shelter_cache,
    non_negative_int,
    required_text,
)
from api.schemas.api_responses import ok
from api.schemas.shelters import ShelterRecord
from api.services.occupancy import simulate_occupancy
from logging_utils import get_logger
from models.disaster_types import parse_disaster_type

logger = get_logger(__name__)

shelters_v1_bp = Blueprint("shelters_v1", __name__, url_prefix="/shelters")

DEFAULT_RADIUS_KM = 5.0
MAX_RADIUS_KM = 100.0


def _list_response(records: Iterable[ShelterRecord]):
    rows = list(records)
    if current_app.config.get("SIMULATE_OCCUPANCY", False):
        rows = simulate_occupancy(rows)
    return jsonify(ok([r.model_dump(mode="json") for r in rows]))


@shelters_v1_bp.get("/all")
def all_shelters():
    return _list_response(get_shelter_cache().get_all())


@shelters_v1_bp.get("/by-disaster")
def by_disaster():
    """Shelters supporting a disaster type.

    Query params:
    - type: None|Flooding|Earthquake|Landslide|Tsunami|AirRaid (case-insensitive)
    """

    flags = parse_disaster_type(required_text("type"))
    return _list_response(get_shelter_cache().by_disaster_type(int(flags)))


@shelters_v1_bp.get("/by-district")
def by_district():
    """Shelters whose address contains the given district name."""

    district = required_text("district")
    return _list_response(get_shelter_cache().search_by_address(district))


@shelters_v1_bp.get("/by-capacity")
def by_capacity():
    """Shelters with capacity >= minCapacity, largest first."""

    min_capacity = non_negative_int("minCapacity", default=0)
    return _list_response(get_shelter_cache().by_min_capacity(min_capacity))


@shelters_v1_bp.get("/search")
def search():
    name = required_text("name")
    return _list_response(get_shelter_cache().search_by_name(name))


@shelters_v1_bp.get("/accessible")
def accessible():
    return _list_response(get_shelter_cache().accessible())


@shelters_v1_bp.get("/statistics")
def statistics():
    stats = get_shelter_cache().statistics()
    return jsonify(ok(stats.model_dump(mode="json")))


@shelters_v1_bp.get("/nearby")
def nearby():
    """Shelters within `radius` km of a point, nearest first.

    Query params:
    - latitude: [-90, 90], required
    - longitude: [-180, 180], required
    - radius: (0, 100] km, default 5
    """

    lat = float_in_range("latitude", low=-90.0, high=90.0)
    lon = float_in_range("longitude", low=-180.0, high=180.0)
    radius = float_in_range(
        "radius",
        low=0.0,
        high=MAX_RADIUS_KM,
        default=DEFAULT_RADIUS_KM,
        low_inclusive=False,
    )
    logger.debug("nearby lat=%s lon=%s radius_km=%s", lat, lon, radius)
    return _list_response(get_shelter_cache().nearby(lat, lon, radius))
