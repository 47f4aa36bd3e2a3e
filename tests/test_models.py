"""Tests for mediafx.models — dataclasses and JSON round-tripping."""

import pytest

from mediafx.models import (
    BinaryPayload,
    ItemResult,
    MediaProbe,
    OperationResult,
    Placement,
    TextEntry,
    TextStyle,
    TransitionSupport,
    VideoGeometry,
    WorkItem,
    format_time,
    parse_time,
)


# ---------------------------------------------------------------------------
# parse_time / format_time
# ---------------------------------------------------------------------------

class TestParseTime:
    def test_seconds(self):
        assert parse_time("90") == 90.0
        assert parse_time(2) == 2.0

    def test_mmss(self):
        assert parse_time("1:30") == 90.0

    def test_hhmmss_millis(self):
        assert parse_time("01:02:03.500") == 3723.5

    def test_srt_comma(self):
        assert parse_time("00:00:01,250") == 1.25

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid time format"):
            parse_time("soon")


class TestFormatTime:
    def test_hours(self):
        assert format_time(3723.5) == "01:02:03.500"


# ---------------------------------------------------------------------------
# Probe results
# ---------------------------------------------------------------------------

class TestVideoGeometry:
    def test_fps(self):
        assert VideoGeometry(1920, 1080, frame_rate="30000/1001").fps == pytest.approx(29.97, abs=0.01)
        assert VideoGeometry(1920, 1080, frame_rate="0/0").fps == 0.0

    def test_resolution(self):
        assert VideoGeometry(1280, 720).resolution == "1280x720"


class TestMediaProbe:
    def test_round_trip(self):
        p = MediaProbe(path="a.mp4", duration=3.5, has_audio=True, geometry=VideoGeometry(640, 480))
        d = p.to_dict()
        assert d["duration_formatted"] == "00:00:03.500"
        assert MediaProbe.from_dict(d) == p

    def test_audio_only(self):
        d = MediaProbe(path="a.mp3", duration=10.0, has_audio=True).to_dict()
        assert d["geometry"] is None


# ---------------------------------------------------------------------------
# Overlay options
# ---------------------------------------------------------------------------

class TestOverlayOptions:
    def test_text_entry_parses_times(self):
        e = TextEntry.from_dict({"text": "Hi", "start": "00:00:02", "end": "4.5"})
        assert (e.start, e.end) == (2.0, 4.5)
        assert TextEntry.from_dict({"text": "Hi"}).to_dict() == {"text": "Hi", "start": 0.0}

    def test_style_ignores_unknown_keys(self):
        style = TextStyle.from_dict({"size": 30, "shadow": True})
        assert style.size == 30
        assert style.font_key == "noto-sans-kr"

    def test_placement_defaults(self):
        p = Placement.from_dict(None)
        assert (p.mode, p.horizontal, p.vertical) == ("alignment", "center", "bottom")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class TestResults:
    def test_transition_support_drops_none(self):
        assert TransitionSupport(supported=True).to_dict() == {"supported": True}

    def test_operation_result_minimal(self):
        assert OperationResult(output_path="/tmp/x.mp4").to_dict() == {"output_path": "/tmp/x.mp4"}

    def test_item_result_failed(self):
        ok = ItemResult(json={"success": True}, binary={"data": BinaryPayload(b"abc", "x.mp4", "video/mp4")})
        assert not ok.failed
        assert ok.to_dict()["binary"]["data"] == {"file_name": "x.mp4", "mime_type": "video/mp4", "size_bytes": 3}
        assert ItemResult(json={"error": True}).failed

    def test_work_item_from_dict(self):
        item = WorkItem.from_dict({"operation": "trim", "params": {"end": 3}})
        assert item.params == {"end": 3}
        assert item.binary == {}
