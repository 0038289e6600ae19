"""App settings.

Flask loads this module on startup via ``app.config.from_pyfile(...)``.
Environment overrides are applied afterwards by ``config.Config``.
"""

# Single source of truth for app configuration defaults.
SETTINGS: dict[str, object] = {
    # Flask
    "SECRET_KEY": "dev-not-secret",
    # Feature flags
    "ENABLE_ADMIN": True,
    # Logging
    "LOG_LEVEL": "INFO",
    # Upstream sources
    "NATURAL_DISASTER_URL": (
        "https://data.taipei/api/v1/dataset/4c92dbd4-d259-495a-8390-52628119a4dd"
        "?scope=resourceAquire"
    ),
    "NATURAL_DISASTER_PAGE_SIZE": 1000,
    "AIR_RAID_KML_URL": (
        "https://www.google.com/maps/d/u/0/kml"
        "?mid=1kXkkEoggmJqoYFk-jdxinZtOzne4CrNK&resourcekey&forcekml=1"
    ),
    "SOURCE_TIMEOUT_SECONDS": 30.0,
    # Upper bound for one whole refresh (all sources, retries and pages).
    "REFRESH_TIMEOUT_SECONDS": 120.0,
    "SHELTER_USER_AGENT": "shelter-cache/0.1 (contact: unset)",
    # Cache
    "MEMORY_CACHE_MINUTES": 5,
    "STALE_AFTER_HOURS": 24.0,
    # Display-only: fill current_occupancy with a random value in list responses.
    "SIMULATE_OCCUPANCY": True,
}

SECRET_KEY = SETTINGS["SECRET_KEY"]
ENABLE_ADMIN = SETTINGS["ENABLE_ADMIN"]
LOG_LEVEL = SETTINGS["LOG_LEVEL"]
NATURAL_DISASTER_URL = SETTINGS["NATURAL_DISASTER_URL"]
NATURAL_DISASTER_PAGE_SIZE = SETTINGS["NATURAL_DISASTER_PAGE_SIZE"]
AIR_RAID_KML_URL = SETTINGS["AIR_RAID_KML_URL"]
SOURCE_TIMEOUT_SECONDS = SETTINGS["SOURCE_TIMEOUT_SECONDS"]
REFRESH_TIMEOUT_SECONDS = SETTINGS["REFRESH_TIMEOUT_SECONDS"]
SHELTER_USER_AGENT = SETTINGS["SHELTER_USER_AGENT"]
MEMORY_CACHE_MINUTES = SETTINGS["MEMORY_CACHE_MINUTES"]
STALE_AFTER_HOURS = SETTINGS["STALE_AFTER_HOURS"]
SIMULATE_OCCUPANCY = SETTINGS["SIMULATE_OCCUPANCY"]
