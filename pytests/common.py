"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite database
- create all SQLAlchemy tables
- build unified shelter records and fake upstream sources
- wire a ShelterCacheService without touching the network

These utilities keep tests small and consistent.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Callable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db
from api.schemas.shelters import ShelterRecord
from api.services.memory_view import MemoryView
from api.services.shelter_cache_service import ShelterCacheService
from api.services.shelter_repository import ShelterRepository
from api.services.unifier import Unifier
from models import Base
from models.disaster_types import DisasterType
from support.errors import UpstreamError
from support.shelter_source_base import (
    SOURCE_KIND_AIR_RAID,
    SOURCE_KIND_NATURAL,
    ShelterSource,
)

__all__ = [
    "make_sqlite_engine",
    "create_empty_sqlite_db",
    "patch_app_db",
    "make_record",
    "FakeSource",
    "FakeClock",
    "make_service",
]

TAIPEI_101 = (25.0339639, 121.5644722)


def make_sqlite_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine suitable for tests (same pragmas as the app)."""

    if isinstance(db_path, Path):
        db_path = str(db_path)
    return db.make_engine(f"sqlite:///{db_path}")


def create_empty_sqlite_db(db_path: Path) -> tuple[Session, Engine]:
    """Create an empty SQLite DB file and initialize all models.

    Returns (session, engine).
    """

    engine = make_sqlite_engine(db_path)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    return SessionLocal(), engine


def patch_app_db(monkeypatch, engine: Engine) -> sessionmaker:
    """Point `db.engine` / `db.SessionLocal` at a test engine.

    Anything that resolves the session factory at call time (the repository
    default, the CLI job) then uses the temp DB.
    """

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", SessionLocal)
    return SessionLocal


def make_record(**overrides: Any) -> ShelterRecord:
    """A valid natural-disaster record; override any field."""

    data: dict[str, Any] = {
        "type": "學校",
        "name": "市立國小",
        "capacity": 100,
        "supported_disasters": int(DisasterType.FLOODING | DisasterType.EARTHQUAKE),
        "accessibility": False,
        "address": "臺北市信義區松智路1號",
        "latitude": 0.0,
        "longitude": 0.0,
        "telephone": None,
        "size_in_square_meters": 0,
    }
    data.update(overrides)
    return ShelterRecord(**data)


class FakeSource(ShelterSource):
    """In-process source: returns canned records or raises a canned error."""

    def __init__(
        self,
        records: Iterable[ShelterRecord] = (),
        *,
        name: str = "fake",
        kind: str = SOURCE_KIND_NATURAL,
        error: Exception | None = None,
        delay: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(url=f"https://example.test/{name}")
        self.name = name
        self.kind = kind
        self.records = list(records)
        self.error = error
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def fetch(self) -> list[ShelterRecord]:
        with self._lock:
            self.calls += 1
        if self.delay is not None:
            self.delay()
        if self.error is not None:
            raise self.error
        return list(self.records)


def natural_source(records: Iterable[ShelterRecord], **kw: Any) -> FakeSource:
    return FakeSource(records, name="natural_disaster", kind=SOURCE_KIND_NATURAL, **kw)


def air_raid_source(records: Iterable[ShelterRecord], **kw: Any) -> FakeSource:
    return FakeSource(records, name="air_raid_kml", kind=SOURCE_KIND_AIR_RAID, **kw)


def failing_source(name: str = "broken") -> FakeSource:
    return FakeSource(name=name, error=UpstreamError(f"{name}: boom", source=name))


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


def make_service(
    engine: Engine,
    sources: Iterable[ShelterSource],
    *,
    clock: FakeClock | None = None,
    memory_ttl_seconds: float = 300.0,
    **kwargs: Any,
) -> ShelterCacheService:
    """ShelterCacheService over `engine` with the given (fake) sources."""

    repo = ShelterRepository(session_factory=sessionmaker(bind=engine))
    repo.ensure_schema()
    view = MemoryView(clock=clock) if clock is not None else MemoryView()
    return ShelterCacheService(
        unifier=Unifier(list(sources), timeout_seconds=5.0),
        repository=repo,
        memory_view=view,
        memory_ttl_seconds=memory_ttl_seconds,
        **kwargs,
    )
