from __future__ import annotations

import json

import pytest

from models.disaster_types import DisasterType
from support.errors import UpstreamError
from utils.natural_disaster_api import (
    NaturalDisasterSource,
    convert_row,
    parse_payload,
    supported_disasters,
)


def _row(**overrides):
    row = {
        "名稱": "信義國小",
        "門牌地址": "臺北市信義區松勤街60號",
        "類型": "學校",
        "容納人數": "500",
        "收容所面積（平方公尺）": "1200",
        "無障礙設施": "是",
        "聯絡人連絡電話": "02-27233355",
        "管理人連絡電話": "02-27200000",
        "水災": "Y",
        "震災": "備用",
        "土石流": "N",
        "海嘯": "否",
    }
    row.update(overrides)
    return row


def _payload(rows, *, count=None):
    return json.dumps(
        {"result": {"limit": 1000, "offset": 0, "count": count, "results": rows}},
        ensure_ascii=False,
    ).encode("utf-8")


class _FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": "application/json"}


class _FakeSession:
    def __init__(self, pages):
        self._pages = list(pages)
        self.calls = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {})})
        return _FakeResponse(self._pages.pop(0))


def test_supported_disasters_markers():
    flags = supported_disasters(_row())
    assert flags == DisasterType.FLOODING | DisasterType.EARTHQUAKE


def test_tsunami_uses_shi_marker_not_y():
    assert supported_disasters(_row(水災="", 震災="", 海嘯="是")) == DisasterType.TSUNAMI
    assert supported_disasters(_row(水災="", 震災="", 海嘯="Y")) == DisasterType.NONE
    assert supported_disasters(_row(水災="", 震災="", 海嘯="備用")) == DisasterType.TSUNAMI


def test_convert_row_maps_fields():
    rec = convert_row(_row())

    assert rec.id is None
    assert rec.name == "信義國小"
    assert rec.address == "臺北市信義區松勤街60號"
    assert rec.type == "學校"
    assert rec.capacity == 500
    assert rec.size_in_square_meters == 1200
    assert rec.accessibility is True
    assert rec.telephone == "02-27233355"
    assert (rec.latitude, rec.longitude) == (0.0, 0.0)
    assert rec.geocoded is False
    assert not rec.is_air_raid


def test_convert_row_placeholders_and_bad_numbers():
    rec = convert_row(
        _row(
            名稱="  ",
            門牌地址=None,
            容納人數="約300",
            無障礙設施="否",
            聯絡人連絡電話="",
        )
    )
    assert rec.name == "未命名收容所"
    assert rec.address == "未知"
    assert rec.capacity == 0
    assert rec.accessibility is False
    # Falls back to the manager's phone.
    assert rec.telephone == "02-27200000"


def test_convert_row_negative_capacity_clamped():
    assert convert_row(_row(容納人數="-20")).capacity == 0


def test_parse_payload_returns_rows_and_total():
    rows, total = parse_payload(_payload([_row(), _row(名稱="B")], count=2))
    assert len(rows) == 2
    assert total == 2


def test_parse_payload_empty_body():
    assert parse_payload(b"   ") == ([], 0)


@pytest.mark.parametrize(
    "content",
    [
        b"<html>maintenance</html>",
        b'{"result": {}}',
        b'{"result": {"results": "nope"}}',
        b'{"result": {"results": [1, 2]}}',
        b"[]",
    ],
)
def test_parse_payload_rejects_malformed(content):
    with pytest.raises(UpstreamError):
        parse_payload(content)


def test_source_pages_until_total_reached():
    pages = [
        _payload([_row(名稱="A"), _row(名稱="B")], count=3),
        _payload([_row(名稱="C")], count=3),
    ]
    s = _FakeSession(pages)
    src = NaturalDisasterSource(url="https://data.example/api", page_size=2, session=s)

    records = src.fetch()

    assert [r.name for r in records] == ["A", "B", "C"]
    assert [c["params"] for c in s.calls] == [
        {"limit": 2, "offset": 0},
        {"limit": 2, "offset": 2},
    ]


def test_source_stops_when_total_missing():
    s = _FakeSession([_payload([_row()], count=None)])
    src = NaturalDisasterSource(url="https://data.example/api", page_size=1, session=s)

    assert len(src.fetch()) == 1
    assert len(s.calls) == 1


def test_source_propagates_malformed_page():
    s = _FakeSession([b"not json"])
    src = NaturalDisasterSource(url="https://data.example/api", session=s)

    with pytest.raises(UpstreamError):
        src.fetch()


def test_source_rejects_bad_page_size():
    with pytest.raises(ValueError):
        NaturalDisasterSource(url="https://data.example/api", page_size=0)
