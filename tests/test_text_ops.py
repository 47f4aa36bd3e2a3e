"""Tests for mediafx.text_ops — timed text and subtitle burn-in."""

import pytest

from conftest import temp_entries
from mediafx.errors import (
    EngineExecutionError,
    ValidationError,
    FONT_NOT_FOUND,
    INVALID_PARAMETER,
    SUBTITLE_EMPTY,
)
from mediafx.models import Placement, TextEntry, TextStyle
from mediafx.text_ops import add_subtitle, add_text

SRT = """1
00:00:00,500 --> 00:00:02,000
First

2
00:00:02,500 --> 00:00:04,000
Second
"""


class TestAddText:
    def test_one_drawtext_per_entry(self, ctx, media, fake_engine):
        src = media.video("v.mp4", 10)
        entries = [TextEntry("Hello", 0, 2), TextEntry("World", 2, None)]
        result = add_text(src, entries, TextStyle(size=40, color="yellow"), ctx=ctx)
        graph = fake_engine.filter_complex()
        assert graph.count("drawtext=") == 2
        assert "NotoSansKR-Regular.ttf" in graph
        assert "fontsize=40:fontcolor=yellow" in graph
        assert "enable='between(t,0,2)'" in graph
        assert "enable='gte(t,2)'" in graph
        assert result.details == {"entries": 2}

    def test_default_placement_is_bottom_center(self, ctx, media, fake_engine):
        add_text(media.video("v.mp4", 10), [TextEntry("Hi")], ctx=ctx)
        assert "x=(w-text_w)/2:y=h-th-0" in fake_engine.filter_complex()

    def test_custom_position(self, ctx, media, fake_engine):
        placement = Placement(mode="custom", x="100", y="50")
        add_text(media.video("v.mp4", 10), [TextEntry("Hi")], placement=placement, ctx=ctx)
        assert "x=100:y=50" in fake_engine.filter_complex()

    def test_unknown_font(self, ctx, media, fake_engine):
        with pytest.raises(ValidationError) as exc_info:
            add_text(media.video("v.mp4", 10), [TextEntry("Hi")], TextStyle(font_key="missing-font"), ctx=ctx)
        assert exc_info.value.code == FONT_NOT_FOUND
        assert fake_engine.calls == []

    @pytest.mark.parametrize("entries", [[], [TextEntry("")], [TextEntry("x", 5, 2)]])
    def test_bad_entries(self, ctx, media, fake_engine, entries):
        with pytest.raises(ValidationError) as exc_info:
            add_text(media.video("v.mp4", 10), entries, ctx=ctx)
        assert exc_info.value.code == INVALID_PARAMETER

    def test_bad_alignment(self, ctx, media, fake_engine):
        with pytest.raises(ValidationError):
            add_text(media.video("v.mp4", 10), [TextEntry("Hi")], placement=Placement(horizontal="diagonal"), ctx=ctx)

    def test_color_failure_gets_guidance(self, ctx, media, fake_engine):
        fake_engine.fail_at = 0
        fake_engine.stderr = "[Parsed_drawtext_0] Cannot find color 'blurple'"
        with pytest.raises(EngineExecutionError) as exc_info:
            add_text(media.video("v.mp4", 10), [TextEntry("Hi")], TextStyle(color="blurple"), ctx=ctx)
        assert "An invalid color was specified." in exc_info.value.message
        assert temp_entries(ctx) == []


class TestAddSubtitle:
    def test_entries_boxed(self, ctx, media, fake_engine, tmp_path):
        subs = tmp_path / "subs.srt"
        subs.write_text(SRT, encoding="utf-8")
        result = add_subtitle(media.video("v.mp4", 10), subs, ctx=ctx)
        graph = fake_engine.filter_complex()
        assert graph.count("drawtext=") == 2
        assert graph.count("box=1:boxcolor=black@0.5") == 2
        assert "enable='between(t,0.5,2)'" in graph
        assert "enable='between(t,2.5,4)'" in graph
        assert result.details == {"entries": 2}

    def test_empty_subtitle_file(self, ctx, media, fake_engine, tmp_path):
        subs = tmp_path / "empty.srt"
        subs.write_text("\n", encoding="utf-8")
        with pytest.raises(ValidationError) as exc_info:
            add_subtitle(media.video("v.mp4", 10), subs, ctx=ctx)
        assert exc_info.value.code == SUBTITLE_EMPTY
        assert fake_engine.calls == []
