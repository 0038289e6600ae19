from __future__ import annotations

import time

from flask import Blueprint, jsonify

from api.api_v1.query_params import get_shelter_cache
from api.schemas.api_responses import ok
from api.schemas.shelters import ShelterRecord
from logging_utils import get_logger
from utils.time_utils import utcnow

logger = get_logger(__name__)

admin_v1_bp = Blueprint("admin_v1", __name__, url_prefix="/admin")


def _by_type(records: list[ShelterRecord]) -> dict[str, int]:
    air_raid = sum(1 for r in records if r.is_air_raid)
    return {"natural_disaster": len(records) - air_raid, "air_raid": air_raid}


def _update_summary(records: list[ShelterRecord], started: float) -> dict:
    return {
        "total_shelters": len(records),
        "refresh_duration_seconds": round(time.monotonic() - started, 2),
        "timestamp": utcnow().isoformat(),
        "shelters_by_type": _by_type(records),
    }


@admin_v1_bp.get("/cache-status")
def cache_status():
    """Both cache tiers: store record count and age, memory view TTL."""

    info = get_shelter_cache().info()
    data = {
        "database_cache": {
            "enabled": info.has_database_cache,
            "record_count": info.record_count,
            "last_updated": info.last_updated.isoformat() if info.last_updated else None,
            "age_hours": info.age_hours,
            "notes": info.notes,
        },
        "memory_cache": {
            "enabled": info.has_memory_cache,
            "duration_minutes": info.memory_cache_minutes,
        },
        "timestamp": utcnow().isoformat(),
    }
    return jsonify(ok(data))


@admin_v1_bp.post("/refresh-cache")
def refresh_cache():
    logger.info("Admin triggered cache refresh")
    started = time.monotonic()
    records = get_shelter_cache().refresh()
    return jsonify(ok(_update_summary(records, started)))


@admin_v1_bp.delete("/clear-cache")
def clear_cache():
    logger.warning("Admin triggered clear of all caches")
    get_shelter_cache().clear_all()
    return jsonify(ok({"cleared": True, "timestamp": utcnow().isoformat()}))


@admin_v1_bp.post("/full-update")
def full_update():
    """Clear both tiers, then refresh. A failed fetch leaves the cache empty."""

    logger.info("Admin triggered full update")
    started = time.monotonic()
    records = get_shelter_cache().full_update()

    data = _update_summary(records, started)
    total_capacity = sum(r.capacity for r in records)
    data["details"] = {
        "with_accessibility": sum(1 for r in records if r.accessibility),
        "total_capacity": total_capacity,
        "average_capacity": int(total_capacity / len(records)) if records else 0,
    }
    return jsonify(ok(data))


@admin_v1_bp.get("/health")
def health():
    """Healthy means the store holds records; stale data only adds a warning."""

    info = get_shelter_cache().info()
    healthy = info.has_database_cache and info.record_count > 0

    warnings: list[str] = []
    if info.is_stale:
        warnings.append(
            f"Cached data is older than {info.stale_after_hours:g} hours; refresh recommended"
        )

    data = {
        "healthy": healthy,
        "status": "healthy" if healthy else "unhealthy",
        "warnings": warnings,
        "cache": {
            "record_count": info.record_count,
            "age_hours": round(info.age_hours, 2) if info.age_hours is not None else None,
            "last_updated": info.last_updated.isoformat() if info.last_updated else None,
        },
        "timestamp": utcnow().isoformat(),
    }
    return jsonify(ok(data))


@admin_v1_bp.get("/cache-statistics")
def cache_statistics():
    service = get_shelter_cache()
    stats = service.statistics()
    info = service.info()
    data = {
        "statistics": stats.model_dump(mode="json"),
        "cache": info.model_dump(mode="json"),
    }
    return jsonify(ok(data))
