from __future__ import annotations

import pytest

from pytests.common import air_raid_source, failing_source, make_service, natural_source


@pytest.fixture()
def job():
    import jobs.refresh_shelter_cache as job

    return job


def test_default_mode_refreshes(job, sqlite_engine, sample_records, capsys):
    natural, air_raid = sample_records
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)])

    assert job.main([], service=svc) == 0

    assert svc.repository.count() == 4
    assert "records=4" in capsys.readouterr().out


def test_info_mode_does_not_fetch(job, sqlite_engine, capsys):
    src = natural_source([])
    svc = make_service(sqlite_engine, [src])

    assert job.main(["--info"], service=svc) == 0

    assert src.calls == 0
    out = capsys.readouterr().out
    assert "records=0" in out
    assert "last_updated=-" in out


def test_clear_mode(job, sqlite_engine, sample_records):
    natural, air_raid = sample_records
    svc = make_service(sqlite_engine, [natural_source(natural), air_raid_source(air_raid)])
    svc.refresh()

    assert job.main(["--clear"], service=svc) == 0
    assert svc.repository.has_data() is False
    assert svc.info().notes == "Cache cleared"


def test_full_mode(job, sqlite_engine, sample_records):
    natural, air_raid = sample_records
    n_src = natural_source(natural)
    svc = make_service(sqlite_engine, [n_src, air_raid_source(air_raid)])

    assert job.main(["--full"], service=svc) == 0
    assert n_src.calls == 1
    assert svc.repository.count() == 4


def test_upstream_failure_exit_code(job, sqlite_engine, capsys):
    svc = make_service(sqlite_engine, [failing_source("natural_disaster")])

    assert job.main([], service=svc) == 1
    assert "failed" in capsys.readouterr().err


def test_modes_are_mutually_exclusive(job):
    with pytest.raises(SystemExit):
        job.main(["--info", "--clear"])
