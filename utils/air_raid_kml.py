"""Air-raid shelter feed (Google My Maps KML export).

Structure (namespace http://www.opengis.net/kml/2.2, tolerated when missing):

  <kml><Document>
    <Folder><Placemark>
      <name>...</name>
      <ExtendedData><Data name="地址"><value>...</value></Data>...</ExtendedData>
      <Point><coordinates>lon,lat[,alt]</coordinates></Point>
    </Placemark></Folder>
  </Document></kml>

One bad placemark is logged and skipped; a document that is not XML fails the
whole fetch.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Iterator

from api.schemas.shelters import AIR_RAID_TYPE_LABEL, PLACEHOLDER_ADDRESS, ShelterRecord
from logging_utils import get_logger
from models.disaster_types import DisasterType
from support.errors import ParseSkipError, UpstreamError
from support.shelter_source_base import SOURCE_KIND_AIR_RAID, ShelterSource
from utils import http_client
from utils.value_parsing import blank_to_none, parse_float

logger = get_logger(__name__)

_UNKNOWN_NAME = "未知"

_DATA_CATEGORY = "類別"
_DATA_ADDRESS = "地址"
_DATA_CAPACITY = "可容納人數"
_DATA_LAT_LON = "緯經度"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _iter_placemarks(root: ET.Element) -> Iterator[ET.Element]:
    # Placemarks may sit in Folders or directly under Document.
    for el in root.iter():
        if _local(el.tag) == "Placemark":
            yield el


def _extended_data(placemark: ET.Element) -> dict[str, str | None] | None:
    ext = placemark.find("{*}ExtendedData")
    if ext is None:
        return None
    values: dict[str, str | None] = {}
    for data in ext.findall("{*}Data"):
        key = data.attrib.get("name")
        if key:
            values[key] = blank_to_none(data.findtext("{*}value"))
    return values


def _coordinate_pair(first: str, second: str, *, name: str) -> tuple[float, float]:
    a = parse_float(first)
    b = parse_float(second)
    if a is None or b is None or not (math.isfinite(a) and math.isfinite(b)):
        raise ParseSkipError(f"non-numeric coordinates {first!r},{second!r}", record_name=name)
    return a, b


def _coordinates(placemark: ET.Element, data: dict[str, str | None], *, name: str) -> tuple[float, float]:
    """Return (lat, lon); (0, 0) when the placemark carries no coordinates."""

    point_text = blank_to_none(placemark.findtext("{*}Point/{*}coordinates"))
    if point_text:
        parts = [p.strip() for p in point_text.split(",")]
        if len(parts) < 2:
            raise ParseSkipError(f"malformed Point coordinates {point_text!r}", record_name=name)
        lon, lat = _coordinate_pair(parts[0], parts[1], name=name)
    else:
        raw = data.get(_DATA_LAT_LON)
        if not raw:
            return 0.0, 0.0
        parts = [p.strip() for p in raw.split(",")]
        if len(parts) < 2:
            raise ParseSkipError(f"malformed {_DATA_LAT_LON} value {raw!r}", record_name=name)
        lat, lon = _coordinate_pair(parts[0], parts[1], name=name)

    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise ParseSkipError(f"coordinates out of range lat={lat} lon={lon}", record_name=name)
    return lat, lon


def convert_placemark(placemark: ET.Element) -> ShelterRecord | None:
    """Convert one placemark. Returns None when it has no ExtendedData.

    Raises:
        ParseSkipError: the placemark is present but cannot be converted.
    """

    name = blank_to_none(placemark.findtext("{*}name")) or _UNKNOWN_NAME
    data = _extended_data(placemark)
    if data is None:
        return None

    lat, lon = _coordinates(placemark, data, name=name)

    capacity = parse_float(data.get(_DATA_CAPACITY))
    if capacity is None or not math.isfinite(capacity) or capacity < 0:
        capacity = 0.0

    return ShelterRecord(
        type=data.get(_DATA_CATEGORY) or AIR_RAID_TYPE_LABEL,
        name=name,
        capacity=int(capacity),
        supported_disasters=int(DisasterType.AIR_RAID),
        accessibility=False,
        address=data.get(_DATA_ADDRESS) or PLACEHOLDER_ADDRESS,
        latitude=lat,
        longitude=lon,
        telephone=None,
        size_in_square_meters=0,
    )


def parse_kml(content: bytes | str, *, source: str = "air_raid_kml") -> list[ShelterRecord]:
    """Parse a KML document into unified air-raid records.

    Raises:
        UpstreamError: the document is not well-formed XML.
    """

    if isinstance(content, str):
        content = content.encode("utf-8")
    if not content.strip():
        logger.warning("KML content is empty | source=%s", source)
        return []

    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise UpstreamError(f"{source}: KML is not well-formed: {e}", source=source) from e

    records: list[ShelterRecord] = []
    skipped = 0
    for placemark in _iter_placemarks(root):
        label = placemark.findtext("{*}name")
        try:
            record = convert_placemark(placemark)
        except (ParseSkipError, ValueError) as e:
            # pydantic.ValidationError is a ValueError.
            skipped += 1
            logger.warning("Skipping placemark | name=%s reason=%s", label, e)
            continue
        if record is None:
            skipped += 1
            logger.warning("Skipping placemark without ExtendedData | name=%s", label)
            continue
        records.append(record)

    if skipped:
        logger.info("KML parse finished with skips | parsed=%s skipped=%s", len(records), skipped)
    return records


class AirRaidKmlSource(ShelterSource):
    """Air-raid shelters from a KML export."""

    name = "air_raid_kml"
    kind = SOURCE_KIND_AIR_RAID

    def fetch(self) -> list[ShelterRecord]:
        logger.info("Fetching air-raid shelters | url=%s", self.url)
        r = http_client.get(
            self.url,
            source=self.name,
            session=self.session,
            headers={
                "Accept": "application/vnd.google-earth.kml+xml,application/xml,text/xml"
            },
            timeout_seconds=self.timeout_seconds,
            user_agent=self.user_agent,
        )
        records = parse_kml(r.content, source=self.name)
        logger.info("Parsed air-raid shelters | count=%s", len(records))
        return records
