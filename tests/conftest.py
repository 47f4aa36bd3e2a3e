"""Shared test fixtures.

Unit tests never run ffmpeg: ``fake_engine`` records every engine
invocation and writes a stand-in output file, and ``media`` creates
small placeholder files whose canned ffprobe JSON is looked up by the
file's content (so copies made by the source resolver probe the same).
Integration fixtures at the bottom generate real media and are skipped
when ffmpeg is not installed.
"""

from __future__ import annotations

import importlib
import subprocess
from pathlib import Path
from typing import Callable, Optional

import pytest

from mediafx.capabilities import CapabilityDetector
from mediafx.config import Settings
from mediafx.context import MediaContext
from mediafx import ffmpeg
from mediafx.errors import EngineExecutionError, FFMPEG_FAILED

FFMPEG_6 = "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers"
FFMPEG_4_2 = "ffmpeg version 4.2.7-0ubuntu0.1 Copyright (c) 2000-2022 the FFmpeg developers"


# ---------------------------------------------------------------------------
# Canned ffprobe output
# ---------------------------------------------------------------------------

def video_json(
    duration: float,
    width: int = 1920,
    height: int = 1080,
    audio: bool = True,
    sar: str = "1:1",
    rate: str = "30/1",
) -> dict:
    streams = [{
        "codec_type": "video",
        "width": width,
        "height": height,
        "sample_aspect_ratio": sar,
        "r_frame_rate": rate,
        "duration": str(duration),
    }]
    if audio:
        streams.append({"codec_type": "audio", "duration": str(duration)})
    return {"format": {"duration": str(duration)}, "streams": streams}


def audio_json(duration: float) -> dict:
    return {"format": {"duration": str(duration)}, "streams": [{"codec_type": "audio"}]}


def image_json(width: int = 800, height: int = 600) -> dict:
    return {
        "format": {},
        "streams": [{"codec_type": "video", "width": width, "height": height, "r_frame_rate": "25/1"}],
    }


class MediaLibrary:
    """Placeholder media files plus the ffprobe JSON each one reports."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self._probes: dict[str, dict] = {}

    def add(self, name: str, probe_data: dict) -> str:
        path = self.root / name
        path.write_text(f"media:{name}", encoding="utf-8")
        self._probes[f"media:{name}"] = probe_data
        return str(path)

    def video(self, name: str, duration: float, **kwargs) -> str:
        return self.add(name, video_json(duration, **kwargs))

    def audio(self, name: str, duration: float) -> str:
        return self.add(name, audio_json(duration))

    def image(self, name: str, width: int = 800, height: int = 600) -> str:
        return self.add(name, image_json(width, height))

    def bytes_of(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def probe_json(self, path) -> dict:
        key = Path(path).read_text(encoding="utf-8")
        return self._probes[key]


@pytest.fixture
def media(tmp_path, monkeypatch) -> MediaLibrary:
    library = MediaLibrary(tmp_path / "media")
    # mediafx re-exports probe(), which shadows the submodule attribute
    probe_module = importlib.import_module("mediafx.probe")
    monkeypatch.setattr(probe_module, "run_ffprobe_json", library.probe_json)
    return library


# ---------------------------------------------------------------------------
# Recording engine
# ---------------------------------------------------------------------------

class FakeEngine:
    """Records ffmpeg invocations and writes each call's output file.

    ``fail_at`` makes the Nth call (0-based) write a partial output and
    then fail the way ffmpeg does.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail_at: Optional[int] = None
        self.stderr = "Conversion failed!"
        self.on_call: Optional[Callable[[list[str]], None]] = None

    def __call__(self, args, timeout=None):
        argv = [str(a) for a in args]
        index = len(self.calls)
        self.calls.append(argv)
        if self.on_call is not None:
            self.on_call(argv)
        Path(argv[-1]).write_bytes(b"partial" if index == self.fail_at else b"fake-output")
        if index == self.fail_at:
            raise EngineExecutionError(
                code=FFMPEG_FAILED,
                message=f"ffmpeg exited with code 1 (ffmpeg stderr: {self.stderr})",
                context={"command": ["ffmpeg"] + argv, "returncode": 1, "stderr": self.stderr},
            )
        return subprocess.CompletedProcess(argv, 0, "", "")

    @property
    def last(self) -> list[str]:
        return self.calls[-1]

    def filter_complex(self, call: int = -1) -> str:
        argv = self.calls[call]
        return argv[argv.index("-filter_complex") + 1]


@pytest.fixture
def fake_engine(monkeypatch) -> FakeEngine:
    engine = FakeEngine()
    monkeypatch.setattr("mediafx.execution.run_ffmpeg", engine)
    return engine


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------

def make_context(tmp_path: Path, version_text: str = FFMPEG_6) -> MediaContext:
    settings = Settings(
        temp_dir=tmp_path / "work",
        fonts_dir=tmp_path / "fonts",
        sweep_probability=0.0,
        probe_workers=2,
    )
    ctx = MediaContext.create(settings, detector=CapabilityDetector(lambda: version_text))
    ctx.settings.fonts_dir.mkdir(parents=True, exist_ok=True)
    (ctx.settings.fonts_dir / "NotoSansKR-Regular.ttf").write_bytes(b"font")
    return ctx


@pytest.fixture
def ctx(tmp_path) -> MediaContext:
    """Context for an engine with xfade (FFmpeg 6.0)."""
    return make_context(tmp_path)


@pytest.fixture
def legacy_ctx(tmp_path) -> MediaContext:
    """Context for an engine without xfade (FFmpeg 4.2)."""
    return make_context(tmp_path, FFMPEG_4_2)


def temp_entries(ctx: MediaContext) -> list[str]:
    return sorted(p.name for p in ctx.temp.base_dir.iterdir())


# ---------------------------------------------------------------------------
# Real media (integration)
# ---------------------------------------------------------------------------

def _discover_engine() -> Optional[str]:
    """ffmpeg path from the package's discovery chain, or None without ffprobe."""
    try:
        ffmpeg.find_ffprobe()
        return ffmpeg.find_ffmpeg()
    except EngineExecutionError:
        return None


FFMPEG_BIN = _discover_engine()

requires_ffmpeg = pytest.mark.skipif(FFMPEG_BIN is None, reason="ffmpeg/ffprobe not found")


def _generate(out: Path, duration: float, size: str, audio: bool) -> str:
    cmd = [
        FFMPEG_BIN, "-y", "-hide_banner", "-loglevel", "error",
        "-f", "lavfi", "-i", f"testsrc=duration={duration}:size={size}:rate=30",
    ]
    if audio:
        cmd += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}", "-c:a", "aac", "-b:a", "64k"]
    cmd += ["-c:v", "libx264", "-preset", "ultrafast", "-pix_fmt", "yuv420p", str(out)]
    subprocess.run(cmd, check=True, capture_output=True)
    return str(out)


@pytest.fixture(scope="session")
def real_clip_hd(tmp_path_factory) -> str:
    """3-second 1280x720 clip with a sine-wave audio track."""
    return _generate(tmp_path_factory.mktemp("real") / "hd.mp4", 3, "1280x720", audio=True)


@pytest.fixture(scope="session")
def real_clip_silent(tmp_path_factory) -> str:
    """2-second 640x480 clip without audio."""
    return _generate(tmp_path_factory.mktemp("real") / "silent.mp4", 2, "640x480", audio=False)


@pytest.fixture(scope="session")
def real_tone(tmp_path_factory) -> str:
    """5-second sine tone."""
    out = tmp_path_factory.mktemp("real") / "tone.m4a"
    subprocess.run([
        FFMPEG_BIN, "-y", "-hide_banner", "-loglevel", "error",
        "-f", "lavfi", "-i", "sine=frequency=660:duration=5",
        "-c:a", "aac", str(out),
    ], check=True, capture_output=True)
    return str(out)
