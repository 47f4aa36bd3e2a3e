"""Tests for mediafx.audio_ops — mixing, extraction, separation."""

from pathlib import Path

import pytest

from conftest import temp_entries
from mediafx.audio_ops import extract_audio, mix_audio, separate_audio
from mediafx.errors import (
    EngineExecutionError,
    ValidationError,
    AUDIO_STREAM_MISSING,
    INVALID_PARAMETER,
)


def _value(argv, flag):
    return argv[argv.index(flag) + 1]


class TestMixAudio:
    @pytest.mark.parametrize("match_length,expected", [
        ("shortest", 10), ("longest", 30), ("first", 10),
    ])
    def test_full_mix_duration(self, ctx, media, fake_engine, match_length, expected):
        video = media.video("v.mp4", 10)
        music = media.audio("m.mp3", 30)
        result = mix_audio(video, music, 0.8, 0.4, match_length=match_length, ctx=ctx)
        assert result.duration_seconds == expected
        graph = fake_engine.filter_complex()
        assert f"amix=inputs=2:duration={match_length}" in graph
        assert "[0:a]volume=0.8" in graph
        assert _value(fake_engine.last, "-c:v") == "copy"

    def test_silent_video_mixed_against_silence(self, ctx, media, fake_engine):
        video = media.video("v.mp4", 10, audio=False)
        music = media.audio("m.mp3", 30)
        result = mix_audio(video, music, ctx=ctx)
        argv = fake_engine.last
        assert "anullsrc=r=44100:cl=stereo" in argv
        assert _value(argv, "-t") == "10"
        assert "[2:a]volume=1" in fake_engine.filter_complex()
        assert result.warnings == ["Video has no audio track; mixing against silence."]

    def test_overlay_without_audio_fails_fast(self, ctx, media, fake_engine):
        video = media.video("v.mp4", 10)
        other = media.video("o.mp4", 10, audio=False)
        with pytest.raises(ValidationError) as exc_info:
            mix_audio(video, other, ctx=ctx)
        assert exc_info.value.code == AUDIO_STREAM_MISSING
        assert fake_engine.calls == []

    def test_partial_mix_window(self, ctx, media, fake_engine):
        video = media.video("v.mp4", 60)
        jingle = media.audio("j.mp3", 4)
        result = mix_audio(
            video, jingle, partial=True, start=12, duration=10, loop=True, fade_in=1, fade_out=1, ctx=ctx,
        )
        graph = fake_engine.filter_complex()
        assert "aloop=loop=-1" in graph
        assert "atrim=duration=10" in graph
        assert "adelay=12000|12000" in graph
        assert "amix=inputs=2:duration=first" in graph
        assert result.duration_seconds == 60

    @pytest.mark.parametrize("kwargs", [
        {"match_length": "forever"},
        {"video_volume": -1},
        {"duration": 0},
        {"fade_in": -2},
    ])
    def test_invalid_options(self, ctx, media, fake_engine, kwargs):
        with pytest.raises(ValidationError) as exc_info:
            mix_audio(media.video("v.mp4", 10), media.audio("m.mp3", 5), ctx=ctx, **kwargs)
        assert exc_info.value.code == INVALID_PARAMETER


class TestExtractAudio:
    def test_mp3_copy_becomes_lame(self, ctx, media, fake_engine):
        result = extract_audio(media.video("v.mp4", 7), ctx=ctx)
        argv = fake_engine.last
        assert _value(argv, "-c:a") == "libmp3lame"
        assert _value(argv, "-b:a") == "192k"
        assert "-vn" in argv
        assert Path(result.output_path).suffix == ".mp3"
        assert result.duration_seconds == 7

    def test_copy_into_aac(self, ctx, media, fake_engine):
        result = extract_audio(media.video("v.mp4", 7), audio_format="aac", codec="copy", ctx=ctx)
        argv = fake_engine.last
        assert _value(argv, "-c:a") == "copy"
        assert "-b:a" not in argv
        assert Path(result.output_path).suffix == ".aac"

    def test_no_audio(self, ctx, media, fake_engine):
        with pytest.raises(ValidationError) as exc_info:
            extract_audio(media.video("v.mp4", 7, audio=False), ctx=ctx)
        assert exc_info.value.code == AUDIO_STREAM_MISSING


class TestSeparateAudio:
    def test_two_outputs(self, ctx, media, fake_engine):
        result = separate_audio(media.video("v.mp4", 7), audio_format="wav", audio_codec="pcm_s16le", ctx=ctx)
        muted_call, audio_call = fake_engine.calls
        assert "-an" in muted_call
        assert _value(muted_call, "-c:v") == "copy"
        assert _value(audio_call, "-c:a") == "pcm_s16le"
        assert Path(result.output_path).exists()
        assert Path(result.extra_outputs["audio"]).suffix == ".wav"
        assert sorted(temp_entries(ctx)) == sorted(
            [Path(result.output_path).name, Path(result.extra_outputs["audio"]).name]
        )

    def test_second_stage_failure_removes_both(self, ctx, media, fake_engine):
        fake_engine.fail_at = 1
        with pytest.raises(EngineExecutionError) as exc_info:
            separate_audio(media.video("v.mp4", 7), ctx=ctx)
        assert exc_info.value.message.startswith("Error separating audio from video.")
        assert temp_entries(ctx) == []
