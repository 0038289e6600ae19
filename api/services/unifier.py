from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Sequence

from api.schemas.shelters import PLACEHOLDER_ADDRESS, PLACEHOLDER_NAME, ShelterRecord
from logging_utils import get_logger
from models.disaster_types import NATURAL_DISASTERS, DisasterType
from support.errors import UpstreamError
from support.shelter_source_base import SOURCE_KIND_AIR_RAID, ShelterSource

logger = get_logger(__name__)


def normalize_record(record: ShelterRecord, *, kind: str) -> ShelterRecord:
    """Apply the unified-record rules regardless of what a source produced.

    - identity and occupancy are cleared (the store assigns ids)
    - blank name/address get placeholders, negative numbers become 0
    - air-raid records carry exactly AIR_RAID; natural records never carry it
    """

    if kind == SOURCE_KIND_AIR_RAID:
        flags = int(DisasterType.AIR_RAID)
    else:
        flags = int(record.supported_disasters) & int(NATURAL_DISASTERS)

    return record.model_copy(
        update={
            "id": None,
            "current_occupancy": None,
            "name": (record.name or "").strip() or PLACEHOLDER_NAME,
            "address": (record.address or "").strip() or PLACEHOLDER_ADDRESS,
            "capacity": max(0, int(record.capacity or 0)),
            "size_in_square_meters": max(0, int(record.size_in_square_meters or 0)),
            "supported_disasters": flags,
        }
    )


def _dedupe(records: list[ShelterRecord]) -> list[ShelterRecord]:
    seen: set[tuple] = set()
    out: list[ShelterRecord] = []
    for r in records:
        key = r.content_key()
        if key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out


class Unifier:
    """Fan out to every configured source and merge the results.

    All sources run concurrently on a thread pool. Results are concatenated in
    the order the sources were given (natural-disaster first by convention).
    Any failing or timed-out source fails the whole call: a refresh is all or
    nothing.
    """

    def __init__(
        self,
        sources: Sequence[ShelterSource],
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not sources:
            raise ValueError("at least one source is required")
        self.sources = list(sources)
        self.timeout_seconds = float(timeout_seconds)

    def unify(self) -> list[ShelterRecord]:
        return unify(self.sources, timeout_seconds=self.timeout_seconds)


def _collect(source: ShelterSource, future: Future, deadline: float) -> list[ShelterRecord]:
    remaining = max(0.0, deadline - time.monotonic())
    try:
        return list(future.result(timeout=remaining))
    except FutureTimeoutError as e:
        raise UpstreamError(
            f"{source.name}: fetch timed out", source=source.name
        ) from e
    except UpstreamError:
        raise
    except Exception as e:
        raise UpstreamError(f"{source.name}: fetch failed: {e}", source=source.name) from e


def unify(
    sources: Sequence[ShelterSource], *, timeout_seconds: float = 30.0
) -> list[ShelterRecord]:
    """Fetch all sources concurrently and return one normalized record list.

    Raises:
        UpstreamError: any source failed or did not finish within `timeout_seconds`.
    """

    started = time.monotonic()
    deadline = started + float(timeout_seconds)

    executor = ThreadPoolExecutor(
        max_workers=max(1, len(sources)), thread_name_prefix="shelter-source"
    )
    try:
        futures = [executor.submit(s.fetch) for s in sources]
        per_source: list[tuple[ShelterSource, list[ShelterRecord]]] = []
        for source, future in zip(sources, futures):
            per_source.append((source, _collect(source, future, deadline)))
    except UpstreamError as e:
        logger.error("Unify failed | source=%s err=%s", e.source, e)
        raise
    finally:
        # Do not block on a hung source; its result is discarded anyway.
        executor.shutdown(wait=False, cancel_futures=True)

    merged: list[ShelterRecord] = []
    for source, records in per_source:
        merged.extend(normalize_record(r, kind=source.kind) for r in records)

    unique = _dedupe(merged)
    dropped = len(merged) - len(unique)

    logger.info(
        "Unify complete | total=%s dropped_duplicates=%s per_source=%s elapsed_ms=%.1f",
        len(unique),
        dropped,
        {s.name: len(r) for s, r in per_source},
        (time.monotonic() - started) * 1000.0,
    )
    return unique
