"""Shared services for one process: settings, temp files, capabilities, fonts."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from mediafx.capabilities import CapabilityDetector, default_detector
from mediafx.config import Settings
from mediafx.fonts import FontRegistry
from mediafx.tempfiles import TempFileManager


@dataclass
class MediaContext:
    settings: Settings
    temp: TempFileManager
    detector: CapabilityDetector
    fonts: FontRegistry

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        detector: Optional[CapabilityDetector] = None,
    ) -> MediaContext:
        settings = settings or Settings.from_env()
        return cls(
            settings=settings,
            temp=TempFileManager(settings.temp_dir, settings.temp_max_age_hours),
            detector=detector or default_detector(),
            fonts=FontRegistry(settings.fonts_dir),
        )


_default_context: Optional[MediaContext] = None
_lock = threading.Lock()


def default_context() -> MediaContext:
    """Process-wide context built from the environment on first use."""
    global _default_context
    with _lock:
        if _default_context is None:
            _default_context = MediaContext.create()
        return _default_context


def reset_default_context() -> None:
    global _default_context
    with _lock:
        _default_context = None
