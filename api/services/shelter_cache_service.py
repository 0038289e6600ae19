from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Callable, Mapping, Optional, Protocol

from api.schemas.shelters import (
    CacheInfo,
    DisasterSupportStatistics,
    ShelterRecord,
    ShelterStatistics,
    ShelterTypeStatistics,
)
from api.services import shelter_filters
from api.services.memory_view import MemoryView
from api.services.shelter_repository import ShelterRepository
from api.services.unifier import Unifier
from logging_utils import get_logger
from models.disaster_types import DisasterType
from utils.air_raid_kml import AirRaidKmlSource
from utils.natural_disaster_api import NaturalDisasterSource
from utils.time_utils import age_hours, utcnow

logger = get_logger(__name__)

NOTE_CLEARED = "Cache cleared"


class SupportsUnify(Protocol):
    def unify(self) -> list[ShelterRecord]: ...


class ShelterCacheService:
    """Two-tier shelter cache: memory view in front of the persistent store.

    Reads go memory -> store -> upstream refresh (only when the store is empty).
    Refreshes and clears are serialized on one lock; a cold start re-checks the
    store under that lock so concurrent cold readers trigger a single fetch.
    Failures from the unifier or the store propagate unchanged and leave both
    tiers as they were.
    """

    def __init__(
        self,
        *,
        unifier: SupportsUnify,
        repository: ShelterRepository,
        memory_view: MemoryView | None = None,
        memory_ttl_seconds: float = 300.0,
        stale_after_hours: float = 24.0,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        if memory_ttl_seconds <= 0:
            raise ValueError("memory_ttl_seconds must be > 0")
        self.unifier = unifier
        self.repository = repository
        self.memory_view = memory_view or MemoryView()
        self.memory_ttl_seconds = float(memory_ttl_seconds)
        self.stale_after_hours = float(stale_after_hours)
        self._now = now
        self._refresh_lock = threading.Lock()
        # Bumped under _memory_lock after every committed write; a store load
        # only fills memory if no write landed while it was reading.
        self._generation = 0
        self._memory_lock = threading.Lock()

    # --- read path ----------------------------------------------------------------

    def _load_from_store(self) -> list[ShelterRecord]:
        with self._memory_lock:
            generation = self._generation
        records = self.repository.all()
        with self._memory_lock:
            if self._generation == generation:
                self.memory_view.set(records, self.memory_ttl_seconds)
            else:
                logger.debug("Store load raced a write; not caching it")
        return records

    def _publish(self, records: Optional[list[ShelterRecord]]) -> None:
        with self._memory_lock:
            self._generation += 1
            if records is None:
                self.memory_view.invalidate()
            else:
                self.memory_view.set(records, self.memory_ttl_seconds)

    def get_all(self) -> list[ShelterRecord]:
        cached = self.memory_view.get()
        if cached is not None:
            logger.debug("get_all served from memory | count=%s", len(cached))
            return cached

        if self.repository.has_data():
            records = self._load_from_store()
            logger.info("get_all served from store | count=%s", len(records))
            return records

        logger.info("Cache is cold; refreshing from upstream sources")
        return self._refresh_if_cold()

    def _refresh_if_cold(self) -> list[ShelterRecord]:
        with self._refresh_lock:
            # Another thread may have filled the cache while we waited.
            cached = self.memory_view.get()
            if cached is not None:
                return cached
            if self.repository.has_data():
                return self._load_from_store()
            return self._refresh_locked()

    def _warm_snapshot(self) -> Optional[list[ShelterRecord]]:
        """Make sure the cache is not cold; return the memory snapshot if any.

        None means "memory missed but the store has data": callers then run the
        same query against the store.
        """

        snapshot = self.memory_view.get()
        if snapshot is not None:
            return snapshot
        if not self.repository.has_data():
            logger.info("Cache is cold; refreshing before filtered read")
            return self._refresh_if_cold()
        return None

    def by_disaster_type(self, flags: int) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.by_disaster_type(snapshot, flags)
        return self.repository.by_disaster_type(flags)

    def nearby(self, lat: float, lon: float, radius_km: float) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.nearby(snapshot, lat, lon, radius_km)
        return self.repository.nearby(lat, lon, radius_km)

    def search_by_name(self, text: str) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.search_by_name(snapshot, text)
        return self.repository.search_by_name(text)

    def search_by_address(self, text: str) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.search_by_address(snapshot, text)
        return self.repository.search_by_address(text)

    def by_min_capacity(self, min_capacity: int) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.by_min_capacity(snapshot, min_capacity)
        return self.repository.by_min_capacity(min_capacity)

    def accessible(self) -> list[ShelterRecord]:
        snapshot = self._warm_snapshot()
        if snapshot is not None:
            return shelter_filters.accessible(snapshot)
        return self.repository.accessible()

    # --- write path -----------------------------------------------------------------

    def _refresh_locked(self) -> list[ShelterRecord]:
        started = time.monotonic()
        try:
            records = self.unifier.unify()
            stored = self.repository.replace_all(records)
        except Exception:
            logger.exception("Cache refresh failed; keeping previous generation")
            raise
        self._publish(stored)
        logger.info(
            "Cache refresh complete | count=%s elapsed_ms=%.1f",
            len(stored),
            (time.monotonic() - started) * 1000.0,
        )
        return stored

    def refresh(self) -> list[ShelterRecord]:
        """Re-fetch every source and replace both tiers."""
        with self._refresh_lock:
            return self._refresh_locked()

    def _clear_locked(self) -> None:
        self._publish(None)
        self.repository.replace_all([], notes=NOTE_CLEARED)
        self._publish(None)

    def clear_all(self) -> None:
        """Empty both tiers. The metadata row stays, with count 0 and a new timestamp."""
        logger.warning("Clearing all shelter caches")
        with self._refresh_lock:
            self._clear_locked()
        logger.info("All shelter caches cleared")

    def full_update(self) -> list[ShelterRecord]:
        """Clear, then refresh. A failed refresh leaves the cache empty."""
        logger.info("Full update requested")
        with self._refresh_lock:
            self._clear_locked()
            return self._refresh_locked()

    # --- inspection -----------------------------------------------------------------

    def info(self) -> CacheInfo:
        meta = self.repository.metadata()
        last_updated = meta.last_updated if meta else None
        return CacheInfo(
            has_database_cache=self.repository.has_data(),
            has_memory_cache=self.memory_view.has_data(),
            record_count=self.repository.count(),
            last_updated=last_updated,
            age_hours=age_hours(last_updated, now=self._now()),
            memory_cache_minutes=self.memory_ttl_seconds / 60.0,
            stale_after_hours=self.stale_after_hours,
            notes=meta.notes if meta else None,
        )

    def statistics(self) -> ShelterStatistics:
        return build_statistics(self.get_all())


def _type_statistics(records: list[ShelterRecord]) -> ShelterTypeStatistics:
    total_capacity = sum(r.capacity for r in records)
    return ShelterTypeStatistics(
        total_count=len(records),
        total_capacity=total_capacity,
        average_capacity=int(total_capacity / len(records)) if records else 0,
        accessible_count=sum(1 for r in records if r.accessibility),
    )


def _count_flag(records: list[ShelterRecord], flag: DisasterType) -> int:
    return sum(1 for r in records if r.supported_disasters & flag)


def build_statistics(records: list[ShelterRecord]) -> ShelterStatistics:
    air_raid = [r for r in records if r.is_air_raid]
    natural = [r for r in records if not r.is_air_raid]

    with_capacity = [r for r in records if r.capacity > 0]
    largest = max(records, key=lambda r: r.capacity, default=None)
    smallest = min(with_capacity, key=lambda r: r.capacity, default=None)

    return ShelterStatistics(
        total_shelters=len(records),
        total_capacity=sum(r.capacity for r in records),
        natural_disaster_shelters=_type_statistics(natural),
        air_raid_shelters=_type_statistics(air_raid),
        disaster_support=DisasterSupportStatistics(
            flooding_count=_count_flag(records, DisasterType.FLOODING),
            earthquake_count=_count_flag(records, DisasterType.EARTHQUAKE),
            landslide_count=_count_flag(records, DisasterType.LANDSLIDE),
            tsunami_count=_count_flag(records, DisasterType.TSUNAMI),
            air_raid_count=len(air_raid),
        ),
        largest_shelter=largest,
        smallest_shelter=smallest,
    )


def create_shelter_cache_service(
    config: Mapping[str, object],
    *,
    repository: ShelterRepository | None = None,
) -> ShelterCacheService:
    """Wire sources, unifier, store and memory view from app config."""

    timeout = float(config.get("SOURCE_TIMEOUT_SECONDS", 30.0))
    user_agent = str(config.get("SHELTER_USER_AGENT") or "") or None

    # Natural-disaster source first: unified lists keep source order.
    sources = [
        NaturalDisasterSource(
            url=str(config["NATURAL_DISASTER_URL"]),
            page_size=int(config.get("NATURAL_DISASTER_PAGE_SIZE", 1000)),
            timeout_seconds=timeout,
            user_agent=user_agent,
        ),
        AirRaidKmlSource(
            url=str(config["AIR_RAID_KML_URL"]),
            timeout_seconds=timeout,
            user_agent=user_agent,
        ),
    ]

    repo = repository or ShelterRepository()
    repo.ensure_schema()

    return ShelterCacheService(
        unifier=Unifier(
            sources,
            timeout_seconds=float(config.get("REFRESH_TIMEOUT_SECONDS", 120.0)),
        ),
        repository=repo,
        memory_ttl_seconds=float(config.get("MEMORY_CACHE_MINUTES", 5)) * 60.0,
        stale_after_hours=float(config.get("STALE_AFTER_HOURS", 24.0)),
    )
