"""Tests for mediafx.overlay_ops — image stamps and video-on-video."""

import pytest

from mediafx.errors import ValidationError, INVALID_PARAMETER
from mediafx.models import Placement
from mediafx.overlay_ops import overlay_video, stamp_image


def _value(argv, flag):
    return argv[argv.index(flag) + 1]


class TestStampImage:
    def test_default_corner_and_audio_copy(self, ctx, media, fake_engine):
        stamp_image(media.video("v.mp4", 10), media.image("logo.png"), ctx=ctx)
        assert fake_engine.filter_complex() == "[0:v][1:v]overlay=x=10:y=10[vout]"
        assert _value(fake_engine.last, "-c:a") == "copy"

    def test_scaled_rotated_translucent_window(self, ctx, media, fake_engine):
        stamp_image(
            media.video("v.mp4", 10), media.image("logo.png"),
            placement=Placement(horizontal="right", vertical="top", padding_x=20, padding_y=20),
            width=200, rotation=45, opacity=0.6, start=2, end=6, ctx=ctx,
        )
        graph = fake_engine.filter_complex()
        assert "[1:v]scale=200:-1,format=rgba,rotate=0.785398" in graph
        assert "colorchannelmixer=aa=0.6" in graph
        assert "overlay=x=main_w-overlay_w-20:y=20:enable='between(t,2,6)'" in graph

    @pytest.mark.parametrize("kwargs", [{"opacity": 1.5}, {"start": -1}, {"start": 5, "end": 3}])
    def test_invalid_window(self, ctx, media, fake_engine, kwargs):
        with pytest.raises(ValidationError) as exc_info:
            stamp_image(media.video("v.mp4", 10), media.image("logo.png"), ctx=ctx, **kwargs)
        assert exc_info.value.code == INVALID_PARAMETER
        assert fake_engine.calls == []


class TestOverlayVideo:
    def test_percentage_of_main(self, ctx, media, fake_engine):
        main = media.video("main.mp4", 20, width=1280, height=720)
        pip = media.video("pip.mp4", 5)
        result = overlay_video(main, pip, width_percent=25, ctx=ctx)
        graph = fake_engine.filter_complex()
        assert "[1:v]scale=320:-1[ovr]" in graph
        assert "overlay=x=(main_w-overlay_w)/2:y=(main_h-overlay_h)/2:eof_action=pass:repeatlast=0" in graph
        assert result.details == {"audio_mode": "main", "scale": [320, -1]}
        assert result.duration_seconds == 20

    def test_open_window_ends_with_main(self, ctx, media, fake_engine):
        main = media.video("main.mp4", 20)
        overlay_video(main, media.video("pip.mp4", 5), size_mode="original", start=3, ctx=ctx)
        assert "enable='between(t,3,20)'" in fake_engine.filter_complex()

    def test_mix_with_silent_overlay_uses_main(self, ctx, media, fake_engine):
        main = media.video("main.mp4", 20)
        pip = media.video("pip.mp4", 5, audio=False)
        result = overlay_video(main, pip, audio_mode="mix", ctx=ctx)
        assert result.details["audio_mode"] == "main"
        assert result.warnings
        assert "amix" not in fake_engine.filter_complex()

    def test_mix_both(self, ctx, media, fake_engine):
        main = media.video("main.mp4", 20)
        pip = media.video("pip.mp4", 5)
        overlay_video(main, pip, audio_mode="mix", main_volume=1, overlay_volume=0.5, ctx=ctx)
        graph = fake_engine.filter_complex()
        assert "[1:a]volume=0.5[a1]" in graph
        assert "-c:a" in fake_engine.last

    def test_no_audio(self, ctx, media, fake_engine):
        overlay_video(media.video("m.mp4", 20), media.video("p.mp4", 5), audio_mode="none", ctx=ctx)
        assert "-c:a" not in fake_engine.last

    @pytest.mark.parametrize("kwargs", [
        {"size_mode": "huge"}, {"audio_mode": "both"}, {"width_percent": 0},
    ])
    def test_invalid_options(self, ctx, media, fake_engine, kwargs):
        with pytest.raises(ValidationError):
            overlay_video(media.video("m.mp4", 20), media.video("p.mp4", 5), ctx=ctx, **kwargs)
