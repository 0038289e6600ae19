from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import db
from api.schemas.shelters import ShelterRecord
from api.services import shelter_filters
from logging_utils import get_logger
from models import Base
from models.cache_metadata import CacheMetadata
from models.shelters import Shelter
from support.errors import StoreError
from utils.geo import bounding_box
from utils.time_utils import ensure_utc, utcnow

logger = get_logger(__name__)

DEFAULT_CACHE_KEY = "AllShelters"

NOTE_CREATED = "Initial cache creation"
NOTE_REFRESHED = "Cache refreshed"

_RECORD_COLUMNS = (
    "type",
    "name",
    "capacity",
    "supported_disasters",
    "accessibility",
    "address",
    "latitude",
    "longitude",
    "telephone",
    "size_in_square_meters",
)


@dataclass(frozen=True)
class CacheMetadataSnapshot:
    cache_key: str
    last_updated: datetime
    record_count: int
    notes: Optional[str]


def _to_row(record: ShelterRecord) -> Shelter:
    return Shelter(**{c: getattr(record, c) for c in _RECORD_COLUMNS})


def _to_record(row: Shelter) -> ShelterRecord:
    data = {c: getattr(row, c) for c in _RECORD_COLUMNS}
    return ShelterRecord(id=row.id, **data)


class ShelterRepository:
    """Persistent tier: the `shelters` table plus one `cache_metadata` row.

    Every write is a full replace inside one transaction, so readers see either
    the previous generation or the new one, never a mix. Reads are plain
    queries ordered by id (the order records were written in).
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] | None = None,
        cache_key: str = DEFAULT_CACHE_KEY,
    ) -> None:
        self.session_factory = session_factory or db.SessionLocal
        self.cache_key = cache_key

    def ensure_schema(self) -> None:
        """Create missing tables (no-op when they exist)."""
        with self.session_factory() as session:
            Base.metadata.create_all(bind=session.get_bind())

    # --- writes -----------------------------------------------------------------

    def replace_all(
        self, records: Sequence[ShelterRecord], *, notes: str | None = None
    ) -> list[ShelterRecord]:
        """Atomically swap the table contents for `records`.

        Deletes every row, inserts the new set (fresh ids) and upserts the
        metadata row in one transaction. Returns the stored records with ids.

        Raises:
            StoreError: any database failure; the transaction is rolled back and
                the previous generation stays intact.
        """

        rows = [_to_row(r) for r in records]
        try:
            with self.session_factory() as session:
                with session.begin():
                    session.execute(delete(Shelter))
                    session.add_all(rows)
                    session.flush()
                    stored = [_to_record(r) for r in rows]

                    now = utcnow()
                    meta = session.scalars(
                        select(CacheMetadata).filter_by(cache_key=self.cache_key)
                    ).first()
                    if meta is None:
                        session.add(
                            CacheMetadata(
                                cache_key=self.cache_key,
                                last_updated=now,
                                record_count=len(rows),
                                notes=notes or NOTE_CREATED,
                            )
                        )
                    else:
                        meta.last_updated = now
                        meta.record_count = len(rows)
                        meta.notes = notes or NOTE_REFRESHED
        except SQLAlchemyError as e:
            logger.error(
                "replace_all rolled back | cache_key=%s records=%s err=%s",
                self.cache_key,
                len(rows),
                e,
            )
            raise StoreError(f"failed to replace cached shelters: {e}") from e

        logger.info(
            "replace_all committed | cache_key=%s records=%s notes=%s",
            self.cache_key,
            len(stored),
            notes,
        )
        return stored

    # --- reads ------------------------------------------------------------------

    def _select(self, *criteria: Any, order_by: Sequence[Any] = ()) -> list[ShelterRecord]:
        stmt = select(Shelter)
        if criteria:
            stmt = stmt.where(and_(*criteria))
        stmt = stmt.order_by(*(order_by or (Shelter.id,)))
        with self.session_factory() as session:
            return [_to_record(r) for r in session.scalars(stmt)]

    def all(self) -> list[ShelterRecord]:
        return self._select()

    def has_data(self) -> bool:
        with self.session_factory() as session:
            return session.scalar(select(Shelter.id).limit(1)) is not None

    def count(self) -> int:
        with self.session_factory() as session:
            return int(session.scalar(select(func.count(Shelter.id))) or 0)

    def metadata(self) -> CacheMetadataSnapshot | None:
        with self.session_factory() as session:
            meta = session.scalars(
                select(CacheMetadata).filter_by(cache_key=self.cache_key)
            ).first()
            if meta is None:
                return None
            return CacheMetadataSnapshot(
                cache_key=meta.cache_key,
                last_updated=ensure_utc(meta.last_updated),
                record_count=int(meta.record_count or 0),
                notes=meta.notes,
            )

    def by_disaster_type(self, flags: int) -> list[ShelterRecord]:
        return self._select(Shelter.supported_disasters.op("&")(int(flags)) != 0)

    def search_by_name(self, text: str) -> list[ShelterRecord]:
        return self._select(Shelter.name.icontains(text, autoescape=True))

    def search_by_address(self, text: str) -> list[ShelterRecord]:
        return self._select(Shelter.address.icontains(text, autoescape=True))

    def by_min_capacity(self, min_capacity: int) -> list[ShelterRecord]:
        return self._select(
            Shelter.capacity >= int(min_capacity),
            order_by=(Shelter.capacity.desc(), Shelter.id),
        )

    def accessible(self) -> list[ShelterRecord]:
        return self._select(Shelter.accessibility.is_(True))

    def nearby(self, lat: float, lon: float, radius_km: float) -> list[ShelterRecord]:
        """Bounding-box pre-filter in SQL, exact haversine filter in Python."""

        box = bounding_box(lat, lon, radius_km)
        criteria = [
            Shelter.latitude >= box.min_lat,
            Shelter.latitude <= box.max_lat,
        ]
        if box.min_lon is not None and box.max_lon is not None:
            criteria += [Shelter.longitude >= box.min_lon, Shelter.longitude <= box.max_lon]

        candidates = self._select(*criteria)
        return shelter_filters.nearby(candidates, lat, lon, radius_km)
