from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Sequence

from api.schemas.shelters import ShelterRecord


class MemoryView:
    """Single, process-local slot holding the latest full shelter list.

    All-or-nothing: the whole list is set, read or dropped at once, matching how
    refreshes replace the whole dataset. Reads return a shallow copy of the
    list so callers can filter/sort it without touching the slot.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Optional[tuple[ShelterRecord, ...]] = None
        self._expires_at: Optional[float] = None

    def get(self) -> Optional[list[ShelterRecord]]:
        with self._lock:
            if self._records is None or self._expires_at is None:
                return None
            if self._clock() >= self._expires_at:
                self._records = None
                self._expires_at = None
                return None
            return list(self._records)

    def set(self, records: Sequence[ShelterRecord], ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        with self._lock:
            self._records = tuple(records)
            self._expires_at = self._clock() + float(ttl_seconds)

    def invalidate(self) -> None:
        with self._lock:
            self._records = None
            self._expires_at = None

    def has_data(self) -> bool:
        return self.get() is not None

    def expires_in(self) -> Optional[float]:
        """Seconds until expiry, or None when the slot is empty/expired."""
        with self._lock:
            if self._expires_at is None:
                return None
            remaining = self._expires_at - self._clock()
            return remaining if remaining > 0 else None
