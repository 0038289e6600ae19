from __future__ import annotations

from typing import Generator

import pytest
from sqlalchemy.engine import Engine

from app import create_app
from pytests.common import (
    TAIPEI_101,
    air_raid_source,
    create_empty_sqlite_db,
    make_record,
    make_service,
    natural_source,
    patch_app_db,
)


@pytest.fixture()
def sqlite_engine(tmp_path, monkeypatch) -> Generator[Engine, None, None]:
    """Empty temp SQLite DB with all tables; `db.SessionLocal` points at it."""

    session, engine = create_empty_sqlite_db(tmp_path / "shelters.sqlite")
    session.close()
    patch_app_db(monkeypatch, engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def sample_records():
    """Two natural-disaster records (ungeocoded) and two air-raid records."""

    lat, lon = TAIPEI_101
    natural = [
        make_record(
            name="信義國小",
            address="臺北市信義區松勤街60號",
            capacity=500,
            accessibility=True,
        ),
        make_record(
            name="Daan Community Center",
            address="臺北市大安區新生南路二段1號",
            capacity=120,
            supported_disasters=8,
        ),
    ]
    air_raid = [
        make_record(
            type="防空避難所",
            name="台北101地下停車場",
            address="臺北市信義區信義路五段7號",
            capacity=3000,
            supported_disasters=16,
            latitude=lat,
            longitude=lon,
        ),
        make_record(
            type="防空避難所",
            name="市政府站地下街",
            address="臺北市信義區忠孝東路五段",
            capacity=800,
            supported_disasters=16,
            # About 1.3 km north-east of Taipei 101.
            latitude=lat + 0.0075,
            longitude=lon + 0.0090,
        ),
    ]
    return natural, air_raid


@pytest.fixture()
def make_client(sqlite_engine, monkeypatch):
    """Factory: Flask test client over a service backed by the temp DB.

    Occupancy simulation is off so responses are deterministic.
    """

    monkeypatch.setenv("SIMULATE_OCCUPANCY", "0")
    monkeypatch.setenv("SLOW_REQUEST_MS", "0")

    def _make(natural=(), air_raid=(), *, env: dict[str, str] | None = None):
        for k, v in (env or {}).items():
            monkeypatch.setenv(k, v)
        service = make_service(
            sqlite_engine, [natural_source(natural), air_raid_source(air_raid)]
        )
        app = create_app(shelter_cache=service)
        app.config.update(TESTING=True)
        return app.test_client(), service

    return _make
