from __future__ import annotations

from typing import Optional

from flask import current_app, request

from api.services.shelter_cache_service import ShelterCacheService
from support.errors import QueryValidationError

EXTENSION_KEY = "shelter_cache"


def get_shelter_cache() -> ShelterCacheService:
    """Return the service instance attached by ``create_app``."""
    return current_app.extensions[EXTENSION_KEY]


def required_text(name: str) -> str:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        raise QueryValidationError(f"{name} is required", field=name)
    return raw


def float_in_range(
    name: str,
    *,
    low: float,
    high: float,
    default: Optional[float] = None,
    low_inclusive: bool = True,
) -> float:
    """Parse a float query param and check it against [low, high].

    With ``low_inclusive=False`` the lower bound is open: (low, high].
    """

    raw = (request.args.get(name) or "").strip()
    if not raw:
        if default is None:
            raise QueryValidationError(f"{name} is required", field=name)
        return default

    try:
        value = float(raw)
    except ValueError:
        raise QueryValidationError(f"{name} must be a number", field=name) from None

    # NaN fails every comparison, so reject it explicitly.
    if value != value:
        raise QueryValidationError(f"{name} must be a number", field=name)

    below = value < low if low_inclusive else value <= low
    if below or value > high:
        bracket = "[" if low_inclusive else "("
        raise QueryValidationError(
            f"{name} must be in {bracket}{low:g}, {high:g}]", field=name
        )
    return value


def non_negative_int(name: str, *, default: int = 0) -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise QueryValidationError(f"{name} must be an integer", field=name) from None
    if value < 0:
        raise QueryValidationError(f"{name} must be >= 0", field=name)
    return value
