from models import Base
from sqlalchemy import Column, DateTime, Integer, String, Text

from utils.time_utils import utcnow_sa_default


class CacheMetadata(Base):
    """Freshness row for a named cache.

    - cache_key: fixed name of the cache (one row per cache, unique)
    - last_updated: UTC time of the last replace (refresh or explicit clear)
    - record_count: rows written by that replace
    - notes: short description of the last replace

    Created on the first replace and overwritten afterwards; never deleted.
    """

    __tablename__ = "cache_metadata"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_key = Column(String(100), unique=True, nullable=False, index=True)
    last_updated = Column(DateTime, nullable=False, default=utcnow_sa_default)
    record_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
