"""Tests for mediafx.ffmpeg — binary discovery, runners and failure hints."""

import os
import subprocess

import pytest

from mediafx import ffmpeg as ffmpeg_module
from mediafx.errors import (
    EngineExecutionError,
    FFMPEG_FAILED,
    FFMPEG_NOT_FOUND,
    FFMPEG_TIMEOUT,
    engine_guidance,
    explain_engine_failure,
    ffmpeg_recovery_hints,
)
from mediafx.ffmpeg import (
    _try_env_dir,
    _try_env_exact,
    find_ffmpeg,
    reset_cache,
    run_ffmpeg,
)


@pytest.fixture(autouse=True)
def _fresh_cache():
    reset_cache()
    yield
    reset_cache()


class TestEnvVarDiscovery:
    def test_env_exact_returns_none_when_unset(self, monkeypatch):
        monkeypatch.delenv("MEDIAFX_FFMPEG", raising=False)
        assert _try_env_exact("MEDIAFX_FFMPEG") is None

    def test_env_exact_returns_path_when_valid(self, tmp_path, monkeypatch):
        fake_bin = tmp_path / "ffmpeg"
        fake_bin.write_text("#!/bin/sh\n")
        monkeypatch.setenv("MEDIAFX_FFMPEG", str(fake_bin))
        assert _try_env_exact("MEDIAFX_FFMPEG") == str(fake_bin)

    def test_env_exact_ignores_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MEDIAFX_FFMPEG", str(tmp_path / "missing"))
        assert _try_env_exact("MEDIAFX_FFMPEG") is None

    def test_env_dir_finds_binary(self, tmp_path, monkeypatch):
        fake_bin = tmp_path / "ffprobe"
        fake_bin.write_text("#!/bin/sh\n")
        monkeypatch.setenv("MEDIAFX_FFMPEG_DIR", str(tmp_path))
        assert _try_env_dir("ffprobe") == str(fake_bin)

    def test_env_dir_returns_none_when_unset(self, monkeypatch):
        monkeypatch.delenv("MEDIAFX_FFMPEG_DIR", raising=False)
        assert _try_env_dir("ffmpeg") is None


class TestFindFfmpeg:
    def test_env_override_wins_and_is_cached(self, tmp_path, monkeypatch):
        fake_bin = tmp_path / "ffmpeg"
        fake_bin.write_text("#!/bin/sh\n")
        monkeypatch.setenv("MEDIAFX_FFMPEG", str(fake_bin))
        assert find_ffmpeg() == str(fake_bin)
        monkeypatch.delenv("MEDIAFX_FFMPEG")
        assert find_ffmpeg() == str(fake_bin)

    def test_not_found(self, monkeypatch):
        monkeypatch.setattr(ffmpeg_module, "_discover", lambda name, env: "")
        with pytest.raises(EngineExecutionError) as exc_info:
            find_ffmpeg()
        assert exc_info.value.code == FFMPEG_NOT_FOUND
        assert exc_info.value.recovery


class TestRunFfmpeg:
    @pytest.fixture
    def fake_binary(self, monkeypatch):
        monkeypatch.setattr(ffmpeg_module, "find_ffmpeg", lambda: "/usr/bin/ffmpeg")

    def test_prepends_flags(self, fake_binary, monkeypatch):
        seen = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            return subprocess.CompletedProcess(cmd, 0, "", "")

        monkeypatch.setattr(subprocess, "run", fake_run)
        run_ffmpeg(["-i", "in.mp4", 1.5, "out.mp4"])
        assert seen["cmd"] == ["/usr/bin/ffmpeg", "-hide_banner", "-y", "-i", "in.mp4", "1.5", "out.mp4"]

    def test_failure_carries_stderr(self, fake_binary, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run",
            lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, "", "Unknown encoder 'libfoo'"),
        )
        with pytest.raises(EngineExecutionError) as exc_info:
            run_ffmpeg(["-i", "a", "b"])
        err = exc_info.value
        assert err.code == FFMPEG_FAILED
        assert "Unknown encoder 'libfoo'" in err.message
        assert err.context["returncode"] == 1
        assert any("codec" in hint for hint in err.recovery)

    def test_timeout(self, fake_binary, monkeypatch):
        def slow(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

        monkeypatch.setattr(subprocess, "run", slow)
        with pytest.raises(EngineExecutionError) as exc_info:
            run_ffmpeg(["-i", "a", "b"], timeout=5)
        assert exc_info.value.code == FFMPEG_TIMEOUT


class TestGuidance:
    def test_hints_for_missing_filter(self):
        assert "filter" in ffmpeg_recovery_hints("No such filter: 'drawtext'")[0]

    def test_xfade_guidance_only_for_transitions(self):
        stderr = "No such filter: 'xfade'"
        assert "4.3+" in engine_guidance(stderr, "transition")
        assert engine_guidance(stderr, "merge") is None

    def test_font_guidance_for_subtitles(self):
        assert "font" in engine_guidance("Could not load font file", "subtitle")

    def test_audio_stream_guidance_for_any_operation(self):
        assert engine_guidance("Stream specifier ':a' matches no streams", "mix_audio") == (
            "The source may not have an audio track."
        )

    def test_explain_prefixes_summary(self):
        original = EngineExecutionError(
            code=FFMPEG_FAILED,
            message="ffmpeg exited with code 1 (ffmpeg stderr: Cannot find color 'blu')",
            context={"stderr": "Cannot find color 'blu'"},
        )
        explained = explain_engine_failure(original, "text", "Error adding text to video.")
        assert explained.message.startswith("Error adding text to video. An invalid color was specified.")
        assert explained.message.endswith(original.message)
        assert explained.context["operation"] == "text"
