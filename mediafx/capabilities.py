"""FFmpeg version detection and transition capability checks."""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable, Optional

from mediafx.errors import MediaFXError
from mediafx.ffmpeg import ffmpeg_version_text
from mediafx.models import EngineCapabilities, TransitionSupport

logger = logging.getLogger(__name__)

# Built from plain fade/color filters, so they work on every version.
SIMPLE_TRANSITIONS = ("fade", "fadeblack", "fadewhite")

# Need the xfade filter (FFmpeg 4.3+).
XFADE_TRANSITIONS = (
    "wipeleft", "wiperight", "wipeup", "wipedown",
    "slideleft", "slideright", "slideup", "slidedown",
    "circlecrop", "rectcrop", "distance", "fadegrays",
    "radial", "circleopen", "circleclose", "pixelize",
    "dissolve", "diagtl", "boxin", "iris",
)

FALLBACK_TRANSITION = "fade"

_VERSION_RE = re.compile(r"ffmpeg version n?(\d+)\.(\d+)(?:\.(\d+))?")
_NIGHTLY_RE = re.compile(r"ffmpeg version N-\d+-g[a-f0-9]+\S*")

UNKNOWN_CAPABILITIES = EngineCapabilities(version="unknown", major=4, minor=0, patch=0, supports_xfade=False)


def _xfade_available(major: int, minor: int) -> bool:
    return major > 4 or (major == 4 and minor >= 3)


def parse_version(text: str) -> EngineCapabilities:
    """Parse 'ffmpeg -version' output.

    Git snapshot builds (``N-12345-gabcdef``) carry no release number and
    are treated as 4.2.0. Anything unrecognizable is ``unknown`` 4.0.0.
    Both variants report no xfade support.
    """
    m = _VERSION_RE.search(text)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        patch = int(m.group(3) or 0)
        return EngineCapabilities(
            version=f"{major}.{minor}.{patch}",
            major=major,
            minor=minor,
            patch=patch,
            supports_xfade=_xfade_available(major, minor),
        )

    nightly = _NIGHTLY_RE.search(text)
    if nightly:
        return EngineCapabilities(
            version=nightly.group(0).replace("ffmpeg version ", ""),
            major=4,
            minor=2,
            patch=0,
            supports_xfade=False,
        )

    return UNKNOWN_CAPABILITIES


class CapabilityDetector:
    """Computes engine capabilities once and answers transition queries.

    The first caller pays for the version query; later callers read the
    cached result. ``reset()`` drops the cache.
    """

    def __init__(self, version_reader: Optional[Callable[[], str]] = None) -> None:
        self._version_reader = version_reader or ffmpeg_version_text
        self._lock = threading.Lock()
        self._capabilities: Optional[EngineCapabilities] = None

    def capabilities(self) -> EngineCapabilities:
        with self._lock:
            if self._capabilities is None:
                self._capabilities = self._detect()
            return self._capabilities

    def _detect(self) -> EngineCapabilities:
        try:
            text = self._version_reader()
        except (MediaFXError, OSError) as exc:
            logger.warning("FFmpeg version query failed, assuming no xfade support: %s", exc)
            return UNKNOWN_CAPABILITIES
        caps = parse_version(text)
        logger.info("Detected FFmpeg %s (xfade=%s)", caps.version, caps.supports_xfade)
        return caps

    def reset(self) -> None:
        with self._lock:
            self._capabilities = None

    def check_transition_support(self, name: str) -> TransitionSupport:
        if name in SIMPLE_TRANSITIONS:
            return TransitionSupport(supported=True)

        if name in XFADE_TRANSITIONS:
            if self.capabilities().supports_xfade:
                return TransitionSupport(supported=True)
            return TransitionSupport(
                supported=False,
                alternative=FALLBACK_TRANSITION,
                message=f"The '{name}' effect requires FFmpeg 4.3+. Using '{FALLBACK_TRANSITION}' as fallback.",
            )

        return TransitionSupport(
            supported=False,
            alternative=FALLBACK_TRANSITION,
            message=f"Unknown transition '{name}'. Using '{FALLBACK_TRANSITION}' as fallback.",
        )


_default_detector: Optional[CapabilityDetector] = None
_default_lock = threading.Lock()


def default_detector() -> CapabilityDetector:
    """Return the process-wide detector."""
    global _default_detector
    with _default_lock:
        if _default_detector is None:
            _default_detector = CapabilityDetector()
        return _default_detector


def check_transition_support(name: str) -> TransitionSupport:
    return default_detector().check_transition_support(name)
