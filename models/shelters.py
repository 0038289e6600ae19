from __future__ import annotations

from sqlalchemy import Boolean, Column, Float, Index, Integer, String

from models import Base


class Shelter(Base):
    """One cached, unified shelter row.

    Rows are replaced wholesale on every cache refresh, so `id` is only stable
    within one cache generation. `current_occupancy` is intentionally absent:
    it is a display-time value and never persisted.
    """

    __tablename__ = "shelters"
    __table_args__ = (
        Index("ix_shelters_name", "name"),
        Index("ix_shelters_address", "address"),
        Index("ix_shelters_supported_disasters", "supported_disasters"),
        Index("ix_shelters_lat_lon", "latitude", "longitude"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Free-text category label from upstream (e.g. 防空避難所, 學校).
    type = Column(String(100), nullable=True)

    name = Column(String(500), nullable=False)
    capacity = Column(Integer, nullable=False, default=0)

    # DisasterType bitset.
    supported_disasters = Column(Integer, nullable=False, default=0)

    accessibility = Column(Boolean, nullable=False, default=False)
    address = Column(String(1000), nullable=False)

    # (0, 0) means "not geocoded".
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)

    telephone = Column(String(50), nullable=True)
    size_in_square_meters = Column(Integer, nullable=False, default=0)
