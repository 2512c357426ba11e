"""Tests for the track CSV codec."""

from datetime import datetime

import pytest

from tracklog.codec import (
    HEADER, LEGACY_HEADER,
    OtherKind, PointKind, PointRecord,
    decode, decode_line, encode, kind_token, parse_kind, records,
)
from tracklog.errors import DecodeError, DecodeSkipped

T0 = datetime(2024, 5, 1, 10, 15, 30, 123000)


def _rec(kind=PointKind.MANUAL, lat=52.52, lon=13.405, ts=T0) -> PointRecord:
    return PointRecord(timestamp=ts, kind=kind, lat=lat, lon=lon)


class TestKinds:
    def test_known_tokens(self):
        assert parse_kind("MANUAL") is PointKind.MANUAL
        assert parse_kind("CONTINUOUS") is PointKind.CONTINUOUS
        assert parse_kind("HIGHLIGHT") is PointKind.HIGHLIGHT

    def test_unknown_token_kept(self):
        kind = parse_kind("WAYPOINT")
        assert kind == OtherKind("WAYPOINT")
        assert kind_token(kind) == "WAYPOINT"

    def test_routing_flags(self):
        assert _rec(PointKind.HIGHLIGHT).is_highlight
        assert _rec(PointKind.CONTINUOUS).is_continuous
        other = _rec(OtherKind("WAYPOINT"))
        assert not other.is_highlight
        assert not other.is_continuous


class TestEncode:
    def test_header(self):
        assert HEADER == "Timestamp,Type,Latitude,Longitude\n"
        assert LEGACY_HEADER == "Timestamp,Latitude,Longitude\n"

    def test_one_line(self):
        line = encode(_rec())
        assert line == "2024-05-01T10:15:30.123000,MANUAL,52.52,13.405\n"
        assert line.count("\n") == 1

    @pytest.mark.parametrize("kind", list(PointKind))
    def test_roundtrip(self, kind):
        rec = _rec(kind, lat=-33.86881234567, lon=151.2093)
        assert decode_line(encode(rec)) == rec

    def test_other_kind_roundtrip(self):
        rec = _rec(OtherKind("WAYPOINT"))
        line = encode(rec)
        assert ",WAYPOINT," in line
        assert decode_line(line) == rec


class TestDecodeLine:
    def test_v2(self):
        rec = decode_line("2024-01-01T00:00:00,CONTINUOUS,1.5,2.5\n")
        assert rec.kind is PointKind.CONTINUOUS
        assert rec.lat == 1.5
        assert rec.lon == 2.5

    def test_v1_synthesizes_manual(self):
        rec = decode_line("2024-01-01T00:00:00,10.0,20.0")
        assert rec.kind is PointKind.MANUAL
        assert rec.lat == 10.0
        assert rec.lon == 20.0
        assert rec.timestamp == datetime(2024, 1, 1)

    def test_java_style_timestamps(self):
        assert decode_line("2024-01-01T10:15,1.0,2.0").timestamp == datetime(2024, 1, 1, 10, 15)
        rec = decode_line("2024-01-01T10:15:30.123,MANUAL,1.0,2.0")
        assert rec.timestamp.microsecond == 123000

    def test_extra_fields_ignored(self):
        rec = decode_line("2024-01-01T00:00:00,HIGHLIGHT,1.0,2.0,extra")
        assert rec.kind is PointKind.HIGHLIGHT

    @pytest.mark.parametrize("line", [
        "2024-01-01T00:00:00,MANUAL,abc,2.0",
        "2024-01-01T00:00:00,MANUAL,91.0,2.0",
        "2024-01-01T00:00:00,MANUAL,1.0,-181.0",
        "2024-01-01T00:00:00,MANUAL,nan,2.0",
        "2024-01-01T00:00:00,1.0",
        "yesterday,MANUAL,1.0,2.0",
        "Timestamp,Type,Latitude,Longitude",
    ])
    def test_rejects(self, line):
        with pytest.raises(DecodeError):
            decode_line(line)


class TestDecode:
    def test_v2_file(self):
        lines = [HEADER, encode(_rec(PointKind.CONTINUOUS)), encode(_rec(PointKind.HIGHLIGHT))]
        out = list(decode(lines))
        assert [r.kind for r in out] == [PointKind.CONTINUOUS, PointKind.HIGHLIGHT]

    def test_legacy_file(self):
        lines = [LEGACY_HEADER, "2024-01-01T00:00:00,10.0,20.0\n"]
        out = list(decode(lines))
        assert out == [PointRecord(datetime(2024, 1, 1), PointKind.MANUAL, 10.0, 20.0)]

    def test_legacy_file_with_appended_v2_rows(self):
        lines = [LEGACY_HEADER, "2024-01-01T00:00:00,10.0,20.0\n", encode(_rec(PointKind.HIGHLIGHT))]
        out = list(records(decode(lines)))
        assert [r.kind for r in out] == [PointKind.MANUAL, PointKind.HIGHLIGHT]

    def test_headerless_file(self):
        lines = [encode(_rec(lat=1.0)), encode(_rec(lat=2.0))]
        out = list(decode(lines))
        assert [r.lat for r in out] == [1.0, 2.0]

    def test_bad_line_skipped_and_reported(self):
        lines = [HEADER, encode(_rec(lat=1.0)), "2024-01-01T00:00:00,MANUAL,x,y\n", encode(_rec(lat=3.0))]
        out = list(decode(lines))
        assert isinstance(out[1], DecodeSkipped)
        assert out[1].line_no == 3
        assert [r.lat for r in records(out)] == [1.0, 3.0]

    def test_blank_lines_ignored(self):
        lines = ["\n", HEADER, "\n", encode(_rec()), "   \n"]
        out = list(decode(lines))
        assert len(out) == 1
        assert isinstance(out[0], PointRecord)

    def test_truncated_last_line(self):
        lines = [HEADER, encode(_rec(lat=1.0)), encode(_rec(lat=2.0)), "2024-05-01T10:16:00,CONT"]
        out = list(decode(lines))
        assert out[-1] == DecodeSkipped(4, "truncated line")
        assert [r.lat for r in records(out)] == [1.0, 2.0]

    def test_unterminated_last_record(self):
        lines = [LEGACY_HEADER, "2024-01-01T00:00:00,10.0,20.0"]
        out = list(decode(lines))
        assert len(out) == 1
        assert out[0].lat == 10.0
        assert out[0].kind is PointKind.MANUAL

    def test_is_lazy(self):
        def gen():
            yield HEADER
            yield encode(_rec())
            raise AssertionError("read too far")

        it = decode(gen())
        assert isinstance(next(it), PointRecord)
