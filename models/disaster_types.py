from __future__ import annotations

import enum

from support.errors import QueryValidationError


class DisasterType(enum.IntFlag):
    """Hazard kinds a shelter is rated for, stored as a bitset."""

    NONE = 0
    FLOODING = 1 << 0
    EARTHQUAKE = 1 << 1
    LANDSLIDE = 1 << 2
    TSUNAMI = 1 << 3
    AIR_RAID = 1 << 4


NATURAL_DISASTERS = (
    DisasterType.FLOODING
    | DisasterType.EARTHQUAKE
    | DisasterType.LANDSLIDE
    | DisasterType.TSUNAMI
)

# Query tokens accepted by the API, keyed by their normalized form.
_TOKENS: dict[str, DisasterType] = {
    "none": DisasterType.NONE,
    "flooding": DisasterType.FLOODING,
    "earthquake": DisasterType.EARTHQUAKE,
    "landslide": DisasterType.LANDSLIDE,
    "tsunami": DisasterType.TSUNAMI,
    "airraid": DisasterType.AIR_RAID,
}

TOKEN_NAMES = ("None", "Flooding", "Earthquake", "Landslide", "Tsunami", "AirRaid")


def parse_disaster_type(token: str | None) -> DisasterType:
    """Parse an API token such as ``Flooding`` or ``AirRaid`` (case-insensitive).

    ``AIR_RAID`` / ``air-raid`` are accepted as spellings of ``AirRaid``.

    Raises:
        QueryValidationError: for missing or unknown tokens.
    """

    key = (token or "").strip().lower().replace("_", "").replace("-", "")
    if key not in _TOKENS:
        raise QueryValidationError(
            "Invalid disaster type. Valid types: " + ", ".join(TOKEN_NAMES),
            field="type",
        )
    return _TOKENS[key]


def disaster_names(flags: int) -> list[str]:
    """Return API token names for every bit set in `flags`."""

    return [
        name
        for name in TOKEN_NAMES[1:]
        if int(flags) & int(_TOKENS[name.lower()])
    ]
