from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from models.disaster_types import DisasterType, disaster_names

PLACEHOLDER_NAME = "未命名收容所"
PLACEHOLDER_ADDRESS = "未知"
AIR_RAID_TYPE_LABEL = "防空避難所"


class ShelterRecord(BaseModel):
    """Unified shelter record shared by both upstream sources and both cache tiers."""

    id: Optional[int] = None
    type: Optional[str] = None
    name: str = Field(min_length=1)
    capacity: int = Field(default=0, ge=0)
    current_occupancy: Optional[int] = None
    supported_disasters: int = Field(default=int(DisasterType.NONE), ge=0)
    accessibility: bool = False
    address: str = Field(min_length=1)
    latitude: float = 0.0
    longitude: float = 0.0
    telephone: Optional[str] = None
    size_in_square_meters: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="ignore")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def geocoded(self) -> bool:
        """False when the coordinates are the (0, 0) "unknown" sentinel."""
        return not (self.latitude == 0.0 and self.longitude == 0.0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def disaster_types(self) -> list[str]:
        return disaster_names(self.supported_disasters)

    @property
    def is_air_raid(self) -> bool:
        return bool(self.supported_disasters & DisasterType.AIR_RAID)

    def content_key(self) -> tuple:
        """Every persisted field except the id; equal keys mean an exact duplicate."""
        return (
            self.type,
            self.name,
            self.capacity,
            self.supported_disasters,
            self.accessibility,
            self.address,
            self.latitude,
            self.longitude,
            self.telephone,
            self.size_in_square_meters,
        )


class CacheInfo(BaseModel):
    has_database_cache: bool
    has_memory_cache: bool
    record_count: int
    last_updated: Optional[datetime] = None
    age_hours: Optional[float] = None
    memory_cache_minutes: float
    stale_after_hours: float
    notes: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_stale(self) -> bool:
        return self.age_hours is not None and self.age_hours > self.stale_after_hours


class ShelterTypeStatistics(BaseModel):
    total_count: int = 0
    total_capacity: int = 0
    average_capacity: int = 0
    accessible_count: int = 0


class DisasterSupportStatistics(BaseModel):
    flooding_count: int = 0
    earthquake_count: int = 0
    landslide_count: int = 0
    tsunami_count: int = 0
    air_raid_count: int = 0


class ShelterStatistics(BaseModel):
    total_shelters: int = 0
    total_capacity: int = 0
    natural_disaster_shelters: ShelterTypeStatistics = Field(
        default_factory=ShelterTypeStatistics
    )
    air_raid_shelters: ShelterTypeStatistics = Field(
        default_factory=ShelterTypeStatistics
    )
    disaster_support: DisasterSupportStatistics = Field(
        default_factory=DisasterSupportStatistics
    )
    largest_shelter: Optional[ShelterRecord] = None
    smallest_shelter: Optional[ShelterRecord] = None
