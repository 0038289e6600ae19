from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from api.services.shelter_cache_service import (
    ShelterCacheService,
    build_statistics,
    create_shelter_cache_service,
)
from api.services.unifier import Unifier
from pytests.common import (
    TAIPEI_101,
    FakeClock,
    air_raid_source,
    failing_source,
    make_record,
    make_service,
    natural_source,
)
from support.errors import UpstreamError
from utils.air_raid_kml import AirRaidKmlSource
from utils.natural_disaster_api import NaturalDisasterSource
from utils.time_utils import utcnow


def _fields(records):
    return sorted(
        (r.model_dump() for r in records), key=lambda d: (d["id"], d["name"])
    )


def test_cold_start_refreshes_exactly_once(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    n_src, a_src = natural_source(natural), air_raid_source(air_raid)
    svc = make_service(sqlite_engine, [n_src, a_src])

    first = svc.get_all()
    second = svc.get_all()

    assert len(first) == len(natural) + len(air_raid)
    assert first == second
    assert (n_src.calls, a_src.calls) == (1, 1)


def test_concurrent_cold_readers_trigger_single_fetch(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    gate = threading.Event()
    n_src = natural_source(natural, delay=lambda: gate.wait(5))
    a_src = air_raid_source(air_raid)
    svc = make_service(sqlite_engine, [n_src, a_src])

    results = []
    errors = []

    def reader():
        try:
            results.append(svc.get_all())
        except Exception as e:  # pragma: no cover - surfaced by the assert below
            errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert len(results) == 4
    assert all(len(r) == 4 for r in results)
    assert n_src.calls == 1


def test_tiers_hold_same_records_after_refresh(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)])

    refreshed = svc.refresh()

    assert _fields(svc.memory_view.get()) == _fields(svc.repository.all())
    assert _fields(refreshed) == _fields(svc.repository.all())
    assert all(r.id is not None for r in svc.memory_view.get())


def test_memory_miss_falls_back_to_store_without_refetch(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    clock = FakeClock()
    n_src = natural_source(natural)
    svc = make_service(sqlite_engine, [n_src, air_raid_source(air_raid)], clock=clock)

    svc.get_all()
    clock.advance(301)
    assert svc.memory_view.get() is None

    records = svc.get_all()

    assert len(records) == 4
    assert n_src.calls == 1
    assert svc.memory_view.get() is not None


def test_clear_all_empties_tiers_but_keeps_timestamp(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)])
    svc.refresh()
    before = svc.info().last_updated

    svc.clear_all()

    assert svc.repository.has_data() is False
    assert svc.memory_view.get() is None
    info = svc.info()
    assert info.last_updated is not None
    assert info.last_updated >= before
    assert info.record_count == 0
    assert info.has_database_cache is False


def test_refresh_failure_preserves_previous_data(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    n_src = natural_source(natural)
    a_src = air_raid_source(air_raid)
    svc = make_service(sqlite_engine, [n_src, a_src])
    warm = svc.get_all()

    a_src.error = UpstreamError("kml down", source="air_raid_kml")
    with pytest.raises(UpstreamError):
        svc.refresh()

    assert svc.get_all() == warm
    assert svc.repository.all() == warm


def test_refresh_failure_on_cold_cache_propagates(sqlite_engine):
    svc = make_service(sqlite_engine, [failing_source("natural_disaster")])

    with pytest.raises(UpstreamError):
        svc.get_all()
    assert svc.repository.has_data() is False
    assert svc.memory_view.get() is None


def test_full_update_failure_leaves_cache_empty(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    a_src = air_raid_source(air_raid)
    svc = make_service(sqlite_engine, [natural_source(natural), a_src])
    svc.refresh()

    a_src.error = UpstreamError("kml down", source="air_raid_kml")
    with pytest.raises(UpstreamError):
        svc.full_update()

    assert svc.repository.has_data() is False
    assert svc.memory_view.get() is None


def test_full_update_replaces_data(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    n_src = natural_source(natural)
    svc = make_service(sqlite_engine, [n_src, air_raid_source(air_raid)])
    svc.refresh()

    records = svc.full_update()

    assert len(records) == 4
    assert n_src.calls == 2
    assert svc.info().notes == "Cache refreshed"


def test_filtered_reads_on_cold_cache_trigger_refresh(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    n_src = natural_source(natural)
    svc = make_service(sqlite_engine, [n_src, air_raid_source(air_raid)])

    hits = svc.nearby(*TAIPEI_101, 5.0)

    assert [r.name for r in hits] == ["台北101地下停車場", "市政府站地下街"]
    assert n_src.calls == 1


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.by_disaster_type(16),
        lambda s: s.by_disaster_type(8),
        lambda s: s.search_by_name("daan"),
        lambda s: s.search_by_address("信義區"),
        lambda s: s.by_min_capacity(500),
        lambda s: s.accessible(),
        lambda s: s.nearby(*TAIPEI_101, 1.0),
        lambda s: s.nearby(*TAIPEI_101, 100.0),
    ],
)
def test_memory_and_store_paths_agree(sqlite_engine, sample_records, call):
    natural, air_raid = sample_records
    clock = FakeClock()
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)], clock=clock)
    svc.refresh()

    from_memory = call(svc)
    svc.memory_view.invalidate()
    from_store = call(svc)

    assert from_memory == from_store


def test_nearby_excludes_record_five_km_away(sqlite_engine):
    lat, lon = TAIPEI_101
    # About 5 km due north.
    far = make_record(name="five-km", latitude=lat + 0.045, longitude=lon)
    svc = make_service(sqlite_engine, [air_raid_source([far])])

    assert svc.nearby(lat, lon, 0.001) == []
    assert [r.name for r in svc.nearby(lat, lon, 6.0)] == ["five-km"]


def test_info_reports_staleness(sqlite_engine, sample_records):
    natural, air_raid = sample_records
    later = utcnow() + timedelta(hours=25)
    svc = make_service(
        sqlite_engine,
        [natural_source(natural), air_raid_source(air_raid)],
        now=lambda: later,
    )

    assert svc.info().last_updated is None
    assert svc.info().is_stale is False

    svc.refresh()
    info = svc.info()
    assert info.record_count == 4
    assert info.has_memory_cache is True
    assert info.age_hours == pytest.approx(25.0, abs=0.1)
    assert info.is_stale is True


def test_statistics_breakdown(sample_records):
    natural, air_raid = sample_records
    stats = build_statistics(natural + air_raid)

    assert stats.total_shelters == 4
    assert stats.total_capacity == 500 + 120 + 3000 + 800
    assert stats.natural_disaster_shelters.total_count == 2
    assert stats.natural_disaster_shelters.accessible_count == 1
    assert stats.natural_disaster_shelters.average_capacity == 310
    assert stats.air_raid_shelters.total_count == 2
    assert stats.disaster_support.flooding_count == 1
    assert stats.disaster_support.tsunami_count == 1
    assert stats.disaster_support.air_raid_count == 2
    assert stats.largest_shelter.name == "台北101地下停車場"
    assert stats.smallest_shelter.name == "Daan Community Center"


def test_statistics_smallest_ignores_zero_capacity():
    stats = build_statistics([make_record(name="zero", capacity=0), make_record(name="ten", capacity=10)])
    assert stats.smallest_shelter.name == "ten"
    assert build_statistics([]).largest_shelter is None


def test_ttl_must_be_positive(sqlite_engine):
    with pytest.raises(ValueError):
        make_service(sqlite_engine, [natural_source([])], memory_ttl_seconds=0)


def test_factory_wires_sources_from_config(sqlite_engine):
    config = {
        "NATURAL_DISASTER_URL": "https://data.example/api",
        "AIR_RAID_KML_URL": "https://maps.example/kml",
        "SOURCE_TIMEOUT_SECONDS": 7,
        "REFRESH_TIMEOUT_SECONDS": 60,
        "NATURAL_DISASTER_PAGE_SIZE": 50,
        "MEMORY_CACHE_MINUTES": 2,
        "STALE_AFTER_HOURS": 12,
    }

    svc = create_shelter_cache_service(config)

    assert isinstance(svc, ShelterCacheService)
    assert isinstance(svc.unifier, Unifier)
    natural, kml = svc.unifier.sources
    assert isinstance(natural, NaturalDisasterSource)
    assert isinstance(kml, AirRaidKmlSource)
    assert natural.page_size == 50
    assert natural.timeout_seconds == 7.0
    assert svc.unifier.timeout_seconds == 60.0
    assert svc.memory_ttl_seconds == 120.0
    assert svc.stale_after_hours == 12.0
    # Default repository uses the patched db.SessionLocal.
    assert svc.repository.count() == 0


def test_three_natural_plus_two_air_raid(sqlite_engine):
    natural = [make_record(name=f"natural-{i}") for i in range(3)]
    air_raid = [
        make_record(name=f"air-{i}", latitude=25.0 + i / 100, longitude=121.5)
        for i in range(2)
    ]
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)])

    records = svc.refresh()

    assert len(records) == 5
    assert svc.repository.count() == 5
    assert svc.info().record_count == 5
    assert [r.name for r in svc.by_disaster_type(16)] == ["air-0", "air-1"]


def test_cold_start_keeps_same_named_rows_with_different_capacity(sqlite_engine):
    rows = [
        make_record(name="X", address="Y", capacity=100),
        make_record(name="X", address="Y", capacity=400, type="體育館"),
    ]
    svc = make_service(sqlite_engine, [natural_source(rows)])

    records = svc.get_all()

    assert [r.capacity for r in records] == [100, 400]
    assert svc.repository.count() == 2


@pytest.mark.parametrize("write", ["clear", "refresh"])
def test_store_load_racing_a_write_does_not_cache_old_data(
    sqlite_engine, sample_records, monkeypatch, write
):
    natural, air_raid = sample_records
    n_src = natural_source(natural)
    svc = make_service(sqlite_engine, [n_src, air_raid_source(air_raid)])
    svc.refresh()
    svc.memory_view.invalidate()

    read_done = threading.Event()
    release = threading.Event()
    store_all = svc.repository.all

    def slow_all():
        records = store_all()
        read_done.set()
        release.wait(5)
        return records

    monkeypatch.setattr(svc.repository, "all", slow_all)
    reader = threading.Thread(target=svc.get_all)
    reader.start()
    assert read_done.wait(5)

    if write == "clear":
        svc.clear_all()
    else:
        n_src.records = [make_record(name="replacement")]
        svc.refresh()

    release.set()
    reader.join(timeout=10)
    monkeypatch.setattr(svc.repository, "all", store_all)

    if write == "clear":
        assert svc.repository.has_data() is False
        assert svc.memory_view.get() is None
    else:
        assert _fields(svc.memory_view.get()) == _fields(svc.repository.all())
        assert "replacement" in [r.name for r in svc.memory_view.get()]
