import logging
import os

from settings import SETTINGS


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    v = (os.getenv(name) or "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    v = (os.getenv(name) or "").strip()
    return v or default


class Config:
    """Environment overrides layered on top of ``settings.SETTINGS``.

    Values are read when ``as_dict()`` is called (not at import time) so that
    tests can monkeypatch the environment before creating the app.
    """

    @classmethod
    def as_dict(cls) -> dict[str, object]:
        return {
            "SECRET_KEY": _env_str("SECRET_KEY", str(SETTINGS["SECRET_KEY"])),
            "ENABLE_ADMIN": _env_bool("ENABLE_ADMIN", bool(SETTINGS["ENABLE_ADMIN"])),
            "LOG_LEVEL": _env_str("LOG_LEVEL", str(SETTINGS["LOG_LEVEL"])).upper(),
            "NATURAL_DISASTER_URL": _env_str(
                "NATURAL_DISASTER_URL", str(SETTINGS["NATURAL_DISASTER_URL"])
            ),
            "NATURAL_DISASTER_PAGE_SIZE": int(
                _env_float(
                    "NATURAL_DISASTER_PAGE_SIZE",
                    float(SETTINGS["NATURAL_DISASTER_PAGE_SIZE"]),
                )
            ),
            "AIR_RAID_KML_URL": _env_str(
                "AIR_RAID_KML_URL", str(SETTINGS["AIR_RAID_KML_URL"])
            ),
            "SOURCE_TIMEOUT_SECONDS": _env_float(
                "SOURCE_TIMEOUT_SECONDS", float(SETTINGS["SOURCE_TIMEOUT_SECONDS"])
            ),
            "REFRESH_TIMEOUT_SECONDS": _env_float(
                "REFRESH_TIMEOUT_SECONDS", float(SETTINGS["REFRESH_TIMEOUT_SECONDS"])
            ),
            "SHELTER_USER_AGENT": _env_str(
                "SHELTER_USER_AGENT", str(SETTINGS["SHELTER_USER_AGENT"])
            ),
            "MEMORY_CACHE_MINUTES": _env_float(
                "MEMORY_CACHE_MINUTES", float(SETTINGS["MEMORY_CACHE_MINUTES"])
            ),
            "STALE_AFTER_HOURS": _env_float(
                "STALE_AFTER_HOURS", float(SETTINGS["STALE_AFTER_HOURS"])
            ),
            "SIMULATE_OCCUPANCY": _env_bool(
                "SIMULATE_OCCUPANCY", bool(SETTINGS["SIMULATE_OCCUPANCY"])
            ),
        }


def configure_logging(app_logger: logging.Logger, level_name: str) -> None:
    """Configure the Flask app logger in a simple, predictable way."""

    level = getattr(logging, level_name, logging.INFO)

    # Avoid duplicate handlers (e.g., in tests or reload scenarios)
    if app_logger.handlers:
        app_logger.setLevel(level)
        return

    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    app_logger.addHandler(handler)
    app_logger.setLevel(level)
