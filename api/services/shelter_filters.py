"""In-memory versions of the store queries.

Each function mirrors a `ShelterRepository` query and must return the same
records in the same order for the same dataset. Inputs are assumed to be in
id order (the order `ShelterRepository.all()` returns).
"""

from __future__ import annotations

from typing import Iterable

from api.schemas.shelters import ShelterRecord
from utils.geo import haversine_km, is_ungeocoded

# SQLite's LIKE/lower() fold ASCII letters only; mirror that exactly.
_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def fold_ascii(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def by_disaster_type(records: Iterable[ShelterRecord], flags: int) -> list[ShelterRecord]:
    return [r for r in records if r.supported_disasters & int(flags)]


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and fold_ascii(needle) in fold_ascii(haystack)


def search_by_name(records: Iterable[ShelterRecord], text: str) -> list[ShelterRecord]:
    return [r for r in records if _contains(r.name, text)]


def search_by_address(records: Iterable[ShelterRecord], text: str) -> list[ShelterRecord]:
    return [r for r in records if _contains(r.address, text)]


def by_min_capacity(records: Iterable[ShelterRecord], min_capacity: int) -> list[ShelterRecord]:
    # sorted() is stable, so equal capacities keep id order.
    hits = [r for r in records if r.capacity >= min_capacity]
    return sorted(hits, key=lambda r: r.capacity, reverse=True)


def accessible(records: Iterable[ShelterRecord]) -> list[ShelterRecord]:
    return [r for r in records if r.accessibility]


def nearby(
    records: Iterable[ShelterRecord], lat: float, lon: float, radius_km: float
) -> list[ShelterRecord]:
    """Records within `radius_km` of (lat, lon), nearest first.

    Ungeocoded (0, 0) records never match.
    """

    scored: list[tuple[float, ShelterRecord]] = []
    for r in records:
        if is_ungeocoded(r.latitude, r.longitude):
            continue
        d = haversine_km(lat, lon, r.latitude, r.longitude)
        if d <= radius_km:
            scored.append((d, r))
    scored.sort(key=lambda pair: pair[0])
    return [r for _d, r in scored]
