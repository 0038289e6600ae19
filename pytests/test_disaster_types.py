from __future__ import annotations

import pytest

from models.disaster_types import (
    NATURAL_DISASTERS,
    DisasterType,
    disaster_names,
    parse_disaster_type,
)
from support.errors import QueryValidationError


def test_flag_values_are_stable():
    # Persisted as integers; the bit layout must not change.
    assert int(DisasterType.NONE) == 0
    assert [
        int(DisasterType.FLOODING),
        int(DisasterType.EARTHQUAKE),
        int(DisasterType.LANDSLIDE),
        int(DisasterType.TSUNAMI),
        int(DisasterType.AIR_RAID),
    ] == [1, 2, 4, 8, 16]
    assert int(NATURAL_DISASTERS) == 15


@pytest.mark.parametrize(
    "token, expected",
    [
        ("None", DisasterType.NONE),
        ("flooding", DisasterType.FLOODING),
        ("EARTHQUAKE", DisasterType.EARTHQUAKE),
        ("Landslide", DisasterType.LANDSLIDE),
        (" tsunami ", DisasterType.TSUNAMI),
        ("AirRaid", DisasterType.AIR_RAID),
        ("air_raid", DisasterType.AIR_RAID),
        ("air-raid", DisasterType.AIR_RAID),
    ],
)
def test_parse_disaster_type(token, expected):
    assert parse_disaster_type(token) == expected


@pytest.mark.parametrize("token", [None, "", "fire", "16", "Flooding,Tsunami"])
def test_parse_disaster_type_rejects(token):
    with pytest.raises(QueryValidationError) as exc:
        parse_disaster_type(token)
    assert exc.value.field == "type"


def test_disaster_names():
    assert disaster_names(0) == []
    assert disaster_names(int(DisasterType.FLOODING | DisasterType.TSUNAMI)) == [
        "Flooding",
        "Tsunami",
    ]
    assert disaster_names(16) == ["AirRaid"]
