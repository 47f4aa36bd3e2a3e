"""Media probing: duration, audio presence, and video geometry."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional

from mediafx.errors import (
    ResolutionError,
    INPUT_NOT_FOUND,
    recovery_hints,
)
from mediafx.ffmpeg import run_ffprobe_json
from mediafx.models import MediaProbe, VideoGeometry

logger = logging.getLogger(__name__)


def _check_input(path: str | Path) -> Path:
    """Validate that the input file exists."""
    p = Path(path)
    if not p.exists():
        raise ResolutionError(
            code=INPUT_NOT_FOUND,
            message=f"Input file not found: {p}",
            recovery=recovery_hints(INPUT_NOT_FOUND, {"path": str(p)}),
            context={"path": str(p)},
        )
    return p


def _finite(value) -> Optional[float]:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _parse_duration(data: dict) -> float:
    """Container duration, else the first usable stream duration, else 0."""
    d = _finite(data.get("format", {}).get("duration"))
    if d is not None:
        return max(0.0, d)
    for stream in data.get("streams", []):
        d = _finite(stream.get("duration"))
        if d is not None:
            return max(0.0, d)
    return 0.0


def _parse_geometry(data: dict) -> Optional[VideoGeometry]:
    for stream in data.get("streams", []):
        if stream.get("codec_type") != "video":
            continue
        width = int(stream.get("width") or 0)
        height = int(stream.get("height") or 0)
        if width <= 0 or height <= 0:
            return None
        sar = stream.get("sample_aspect_ratio") or "1:1"
        # ffprobe reports "0:1" when the container does not say
        if sar.startswith("0:") or sar == "N/A":
            sar = "1:1"
        rate = stream.get("r_frame_rate") or stream.get("avg_frame_rate") or "30/1"
        if rate.startswith("0/") or rate.endswith("/0"):
            rate = "30/1"
        return VideoGeometry(
            width=width,
            height=height,
            sample_aspect_ratio=sar,
            frame_rate=rate,
        )
    return None


def _parse_has_audio(data: dict) -> bool:
    return any(s.get("codec_type") == "audio" for s in data.get("streams", []))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def probe(path: str | Path) -> MediaProbe:
    """Probe a media file with a single ffprobe call.

    Args:
        path: Path to the media file.

    Returns:
        MediaProbe with duration (0 when unknown), audio presence and
        the first video stream's geometry, if any.
    """
    p = _check_input(path)
    data = run_ffprobe_json(p)
    result = MediaProbe(
        path=str(p),
        duration=_parse_duration(data),
        has_audio=_parse_has_audio(data),
        geometry=_parse_geometry(data),
    )
    logger.debug("Probed %s: %s", p, result.to_dict())
    return result


def duration(path: str | Path) -> float:
    return probe(path).duration


def has_audio(path: str | Path) -> bool:
    return probe(path).has_audio


def video_geometry(path: str | Path) -> Optional[VideoGeometry]:
    return probe(path).geometry


def probe_many(paths: Iterable[str | Path], workers: int = 4) -> list[MediaProbe]:
    """Probe several files concurrently and return results in input order.

    The first failure is re-raised once every probe has finished.
    """
    paths = list(paths)
    if len(paths) <= 1 or workers <= 1:
        return [probe(p) for p in paths]
    with ThreadPoolExecutor(max_workers=min(workers, len(paths))) as executor:
        futures = [executor.submit(probe, p) for p in paths]
        return [f.result() for f in futures]
