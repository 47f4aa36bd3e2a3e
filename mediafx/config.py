"""Runtime settings, read from MEDIAFX_* environment variables."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _default_temp_dir() -> Path:
    return Path(tempfile.gettempdir()) / "mediafx"


def _default_fonts_dir() -> Path:
    return Path.home() / ".mediafx" / "fonts"


@dataclass
class Settings:
    """Configuration for temp files, fonts, and external calls."""
    # Directory holding every resolved input, intermediate, and output file.
    temp_dir: Path = field(default_factory=_default_temp_dir)
    # Files in temp_dir older than this are removed by a sweep.
    temp_max_age_hours: float = 24.0
    # Chance that a batch run starts with a sweep of temp_dir.
    sweep_probability: float = 0.1
    # System fonts live here; uploaded fonts go to fonts_dir/user.
    fonts_dir: Path = field(default_factory=_default_fonts_dir)
    # Seconds allowed for a URL download (connect + read).
    download_timeout: float = 300.0
    # Seconds allowed per ffmpeg run. None blocks until ffmpeg exits.
    ffmpeg_timeout: Optional[float] = None
    # Thread pool size for concurrent ffprobe calls within one operation.
    probe_workers: int = 4

    @classmethod
    def from_env(cls) -> Settings:
        defaults = cls()
        temp_dir = os.environ.get("MEDIAFX_TEMP_DIR")
        fonts_dir = os.environ.get("MEDIAFX_FONTS_DIR")
        return cls(
            temp_dir=Path(temp_dir) if temp_dir else defaults.temp_dir,
            temp_max_age_hours=_env_float("MEDIAFX_TEMP_MAX_AGE_HOURS", defaults.temp_max_age_hours),
            sweep_probability=_env_float("MEDIAFX_SWEEP_PROBABILITY", defaults.sweep_probability),
            fonts_dir=Path(fonts_dir) if fonts_dir else defaults.fonts_dir,
            download_timeout=_env_float("MEDIAFX_DOWNLOAD_TIMEOUT", defaults.download_timeout),
            ffmpeg_timeout=_env_float("MEDIAFX_FFMPEG_TIMEOUT", defaults.ffmpeg_timeout),
            probe_workers=int(_env_float("MEDIAFX_PROBE_WORKERS", defaults.probe_workers)),
        )

    def to_dict(self) -> dict:
        return {
            "temp_dir": str(self.temp_dir),
            "temp_max_age_hours": self.temp_max_age_hours,
            "sweep_probability": self.sweep_probability,
            "fonts_dir": str(self.fonts_dir),
            "download_timeout": self.download_timeout,
            "ffmpeg_timeout": self.ffmpeg_timeout,
            "probe_workers": self.probe_workers,
        }
