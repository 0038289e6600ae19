"""Client for the data.taipei natural-disaster shelter dataset.

Endpoint (JSON):
  https://data.taipei/api/v1/dataset/<resource-id>?scope=resourceAquire&limit=N&offset=M

Payload shape:
  {"result": {"limit": N, "offset": M, "count": TOTAL, "results": [ {...}, ... ]}}

Field names are Chinese column headers from the dataset; see `_FIELD_*` below.
"""

from __future__ import annotations

import json
from typing import Any

import requests

from api.schemas.shelters import PLACEHOLDER_ADDRESS, PLACEHOLDER_NAME, ShelterRecord
from logging_utils import get_logger
from models.disaster_types import DisasterType
from support.errors import UpstreamError
from support.shelter_source_base import SOURCE_KIND_NATURAL, ShelterSource
from utils import http_client
from utils.value_parsing import blank_to_none, non_negative, parse_int

logger = get_logger(__name__)

_FIELD_NAME = "名稱"
_FIELD_ADDRESS = "門牌地址"
_FIELD_TYPE = "類型"
_FIELD_CAPACITY = "容納人數"
_FIELD_AREA = "收容所面積（平方公尺）"
_FIELD_ACCESSIBLE = "無障礙設施"
_FIELD_CONTACT_PHONE = "聯絡人連絡電話"
_FIELD_MANAGER_PHONE = "管理人連絡電話"

_YES = "是"

# Which raw values mark a disaster kind as supported, per dataset column.
# "備用" (standby) counts as supported.
DISASTER_SUPPORT_MARKERS: dict[DisasterType, tuple[str, frozenset[str]]] = {
    DisasterType.FLOODING: ("水災", frozenset({"Y", "備用"})),
    DisasterType.EARTHQUAKE: ("震災", frozenset({"Y", "備用"})),
    DisasterType.LANDSLIDE: ("土石流", frozenset({"Y", "備用"})),
    DisasterType.TSUNAMI: ("海嘯", frozenset({"是", "備用"})),
}


def supported_disasters(row: dict[str, Any]) -> DisasterType:
    flags = DisasterType.NONE
    for kind, (field, markers) in DISASTER_SUPPORT_MARKERS.items():
        raw = row.get(field)
        if isinstance(raw, str) and raw.strip() in markers:
            flags |= kind
    return flags


def _text(row: dict[str, Any], field: str) -> str | None:
    raw = row.get(field)
    if raw is None:
        return None
    return blank_to_none(str(raw))


def convert_row(row: dict[str, Any]) -> ShelterRecord:
    """Map one dataset row to the unified record.

    This dataset carries no coordinates; records come out ungeocoded (0, 0).
    """

    return ShelterRecord(
        type=_text(row, _FIELD_TYPE),
        name=_text(row, _FIELD_NAME) or PLACEHOLDER_NAME,
        capacity=non_negative(parse_int(_text(row, _FIELD_CAPACITY))),
        supported_disasters=int(supported_disasters(row)),
        accessibility=_text(row, _FIELD_ACCESSIBLE) == _YES,
        address=_text(row, _FIELD_ADDRESS) or PLACEHOLDER_ADDRESS,
        latitude=0.0,
        longitude=0.0,
        telephone=_text(row, _FIELD_CONTACT_PHONE) or _text(row, _FIELD_MANAGER_PHONE),
        size_in_square_meters=non_negative(parse_int(_text(row, _FIELD_AREA))),
    )


def parse_payload(content: bytes | str, *, source: str = "natural_disaster") -> tuple[list[dict], int | None]:
    """Parse one page of the dataset response.

    Returns (rows, total_count). An empty body yields ([], 0).

    Raises:
        UpstreamError: invalid JSON or a payload without a `result.results` list.
            A malformed page fails the whole fetch; rows are never half-read.
    """

    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    if not text.strip():
        return [], 0

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamError(f"{source}: response is not valid JSON: {e}", source=source) from e

    result = payload.get("result") if isinstance(payload, dict) else None
    rows = result.get("results") if isinstance(result, dict) else None
    if not isinstance(rows, list):
        raise UpstreamError(
            f"{source}: payload is missing a result.results list", source=source
        )
    if not all(isinstance(r, dict) for r in rows):
        raise UpstreamError(f"{source}: result.results contains non-object rows", source=source)

    count = result.get("count")
    total = count if isinstance(count, int) and count >= 0 else None
    return rows, total


class NaturalDisasterSource(ShelterSource):
    """Natural-disaster shelters (flooding/earthquake/landslide/tsunami)."""

    name = "natural_disaster"
    kind = SOURCE_KIND_NATURAL

    def __init__(
        self,
        *,
        url: str,
        page_size: int = 1000,
        max_pages: int = 20,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
        user_agent: str | None = None,
    ) -> None:
        super().__init__(
            url=url, timeout_seconds=timeout_seconds, session=session, user_agent=user_agent
        )
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self.page_size = int(page_size)
        self.max_pages = max(1, int(max_pages))

    def _fetch_page(self, offset: int) -> tuple[list[dict], int | None]:
        r = http_client.get(
            self.url,
            source=self.name,
            session=self.session,
            headers={"Accept": "application/json"},
            params={"limit": self.page_size, "offset": offset},
            timeout_seconds=self.timeout_seconds,
            user_agent=self.user_agent,
        )
        return parse_payload(r.content, source=self.name)

    def fetch_rows(self) -> list[dict]:
        rows: list[dict] = []
        offset = 0
        for _page in range(self.max_pages):
            page, total = self._fetch_page(offset)
            rows.extend(page)
            offset += len(page)
            if not page or total is None or offset >= total:
                break
        else:
            logger.warning(
                "Stopped paging after max_pages | source=%s pages=%s rows=%s",
                self.name,
                self.max_pages,
                len(rows),
            )
        return rows

    def fetch(self) -> list[ShelterRecord]:
        logger.info("Fetching natural-disaster shelters | url=%s", self.url)
        rows = self.fetch_rows()
        records = [convert_row(r) for r in rows]
        logger.info("Parsed natural-disaster shelters | count=%s", len(records))
        return records
