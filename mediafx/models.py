"""Data models for mediafx — all JSON-serializable via to_dict / from_dict."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, asdict
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Time parsing helper
# ---------------------------------------------------------------------------

_TIME_RE = re.compile(
    r"^(?:(\d+):)?(\d{1,2}):(\d{2})(?:[.,](\d+))?$"
)


def parse_time(value: str | float | int) -> float:
    """Parse HH:MM:SS.ms, HH:MM:SS,mmm or plain seconds into a float of seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except ValueError:
        pass
    m = _TIME_RE.match(value.strip())
    if not m:
        raise ValueError(f"Invalid time format: {value!r} (use HH:MM:SS, MM:SS, or seconds)")
    hours = int(m.group(1) or 0)
    minutes = int(m.group(2))
    seconds = int(m.group(3))
    frac = float(f"0.{m.group(4)}") if m.group(4) else 0.0
    return hours * 3600 + minutes * 60 + seconds + frac


def format_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm."""
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:06.3f}"


# ---------------------------------------------------------------------------
# Probe results
# ---------------------------------------------------------------------------

@dataclass
class VideoGeometry:
    """Dimensions and timing of the first video stream."""
    width: int
    height: int
    sample_aspect_ratio: str = "1:1"
    frame_rate: str = "30/1"

    @property
    def fps(self) -> float:
        num, _, den = self.frame_rate.partition("/")
        try:
            return float(num) / float(den or 1)
        except (ValueError, ZeroDivisionError):
            return 0.0

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> VideoGeometry:
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            sample_aspect_ratio=data.get("sample_aspect_ratio", "1:1"),
            frame_rate=data.get("frame_rate", "30/1"),
        )


@dataclass
class MediaProbe:
    """What one ffprobe call tells us about a file. Never cached."""
    path: str
    duration: float = 0.0
    has_audio: bool = False
    geometry: Optional[VideoGeometry] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "duration": self.duration,
            "duration_formatted": format_time(self.duration),
            "has_audio": self.has_audio,
            "geometry": self.geometry.to_dict() if self.geometry else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MediaProbe:
        geometry = data.get("geometry")
        return cls(
            path=data["path"],
            duration=float(data.get("duration", 0.0)),
            has_audio=bool(data.get("has_audio", False)),
            geometry=VideoGeometry.from_dict(geometry) if geometry else None,
        )


# ---------------------------------------------------------------------------
# Engine capabilities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineCapabilities:
    """Parsed ffmpeg version and the features it unlocks."""
    version: str
    major: int
    minor: int
    patch: int = 0
    supports_xfade: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TransitionSupport:
    """Whether a named transition can run natively, and what to use instead."""
    supported: bool
    alternative: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None}


# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------

FONT_ORIGINS = {"system", "user"}


@dataclass
class FontEntry:
    """A symbolic font key and the file it resolves to."""
    key: str
    name: str
    path: str
    origin: str  # "system" or "user"
    description: str = ""
    category: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> FontEntry:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# ---------------------------------------------------------------------------
# Text overlay
# ---------------------------------------------------------------------------

HORIZONTAL_ALIGNMENTS = {"left", "center", "right"}
VERTICAL_ALIGNMENTS = {"top", "middle", "bottom"}
POSITION_MODES = {"alignment", "custom"}


@dataclass
class Placement:
    """Where an overlay goes: an alignment grid cell or raw x/y expressions."""
    mode: str = "alignment"
    horizontal: str = "center"
    vertical: str = "bottom"
    padding_x: int = 0
    padding_y: int = 0
    x: str = "(w-text_w)/2"
    y: str = "h-th-10"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> Placement:
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class TextEntry:
    """One piece of text shown between start and end seconds."""
    text: str
    start: float = 0.0
    end: Optional[float] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> TextEntry:
        end = data.get("end")
        return cls(
            text=str(data["text"]),
            start=parse_time(data.get("start", 0.0)),
            end=parse_time(end) if end is not None else None,
        )


@dataclass
class TextStyle:
    """Font and box styling shared by all entries of one drawtext pass."""
    font_key: str = "noto-sans-kr"
    size: int = 48
    color: str = "white"
    outline_width: int = 0
    outline_color: str = "black"
    box: bool = False
    box_color: str = "black@0.5"
    box_border: int = 5

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> TextStyle:
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class SubtitleEntry:
    """A parsed subtitle block."""
    index: int
    start: float
    end: float
    text: str

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Operation and batch results
# ---------------------------------------------------------------------------

@dataclass
class OperationResult:
    """Output of one orchestrator call. Paths live in the temp directory."""
    output_path: str
    extra_outputs: dict[str, str] = field(default_factory=dict)
    duration_seconds: Optional[float] = None
    warnings: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d: dict = {"output_path": self.output_path}
        if self.extra_outputs:
            d["extra_outputs"] = self.extra_outputs
        if self.duration_seconds is not None:
            d["duration_seconds"] = self.duration_seconds
        if self.warnings:
            d["warnings"] = self.warnings
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class BinaryPayload:
    """Named bytes attached to a work item."""
    data: bytes
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "size_bytes": len(self.data),
        }


@dataclass
class WorkItem:
    """One unit of a batch: an operation, its parameters, and attached payloads."""
    operation: str
    params: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, BinaryPayload] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> WorkItem:
        return cls(
            operation=data["operation"],
            params=dict(data.get("params", {})),
        )


@dataclass
class ItemResult:
    """What a work item produces: a JSON record, optionally with a binary payload."""
    json: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, BinaryPayload] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return bool(self.json.get("error"))

    def to_dict(self) -> dict:
        return {
            "json": self.json,
            "binary": {k: v.to_dict() for k, v in self.binary.items()},
        }
