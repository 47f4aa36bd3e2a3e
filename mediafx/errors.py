"""Structured error handling with error codes and recovery suggestions."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

# System
FFMPEG_NOT_FOUND = "FFMPEG_NOT_FOUND"
FFPROBE_NOT_FOUND = "FFPROBE_NOT_FOUND"
FFMPEG_TIMEOUT = "FFMPEG_TIMEOUT"
FFMPEG_FAILED = "FFMPEG_FAILED"

# Input resolution
INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
MISSING_PAYLOAD = "MISSING_PAYLOAD"
UNSUPPORTED_SOURCE = "UNSUPPORTED_SOURCE"
URL_UNREACHABLE = "URL_UNREACHABLE"

# Probing
PROBE_FAILED = "PROBE_FAILED"

# Validation
UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
MISSING_SOURCE = "MISSING_SOURCE"
INVALID_PARAMETER = "INVALID_PARAMETER"
NO_REFERENCE_VIDEO = "NO_REFERENCE_VIDEO"
AUDIO_STREAM_MISSING = "AUDIO_STREAM_MISSING"
SUBTITLE_EMPTY = "SUBTITLE_EMPTY"
INVALID_FILTER_GRAPH = "INVALID_FILTER_GRAPH"

# Fonts
INVALID_FONT_KEY = "INVALID_FONT_KEY"
FONT_KEY_EXISTS = "FONT_KEY_EXISTS"
FONT_NOT_FOUND = "FONT_NOT_FOUND"

# Capabilities
UNSUPPORTED_TRANSITION = "UNSUPPORTED_TRANSITION"

# Anything not raised as a MediaFXError
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

# Exit codes for CLI
EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_EXECUTION = 2
EXIT_SYSTEM = 3


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

@dataclass
class MediaFXError(Exception):
    """Structured error with code, message, recovery hints, and context."""
    code: str
    message: str
    recovery: list[str] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "recovery": self.recovery,
            "context": self.context,
        }


class ValidationError(MediaFXError):
    """Rejected before any external call: bad parameters, font keys, sources."""


class NotFound(ValidationError):
    """A named resource (e.g. a user font) does not exist."""


class ResolutionError(MediaFXError):
    """A source descriptor could not be turned into a local file."""


class ProbeError(MediaFXError):
    """The media inspection call failed."""


class EngineExecutionError(MediaFXError):
    """The external engine could not be found, timed out, or exited non-zero."""


class UnsupportedCapability(EngineExecutionError):
    """The installed engine lacks a feature and no fallback exists.

    Subclasses EngineExecutionError: a missing capability with no fallback
    surfaces the same way an engine failure does.
    """


# ---------------------------------------------------------------------------
# Recovery hint factory
# ---------------------------------------------------------------------------

def _ffmpeg_install_hints() -> list[str]:
    """Return platform-specific FFmpeg install instructions."""
    hints = ["pip install 'mediafx[ffmpeg]'  # bundles ffmpeg+ffprobe automatically"]
    if sys.platform == "darwin":
        hints.append("brew install ffmpeg")
    elif sys.platform == "win32":
        hints.append("winget install ffmpeg  OR  choco install ffmpeg")
    else:
        hints.append("sudo apt install ffmpeg  (Debian/Ubuntu)")
    hints.extend([
        "Or download from https://ffmpeg.org/download.html",
        "Set MEDIAFX_FFMPEG=/path/to/ffmpeg to override discovery",
    ])
    return hints


_RECOVERY_MAP: dict[str, list[str]] = {
    INPUT_NOT_FOUND: [
        "Check the file path for typos",
        "Use an absolute path to avoid working-directory issues",
    ],
    MISSING_PAYLOAD: [
        "Check the binary property name attached to the item",
        "Make sure the previous step produced binary data",
    ],
    UNSUPPORTED_SOURCE: [
        "Use source_type 'url' (with 'value') or 'binary' (with 'binary_property')",
    ],
    URL_UNREACHABLE: [
        "Check that the URL is reachable from this machine",
        "Presigned URLs expire; request a fresh one",
    ],
    PROBE_FAILED: [
        "Verify the input file exists and is a valid media file",
    ],
    UNKNOWN_OPERATION: [
        "Run 'mediafx capabilities' to see all supported operations",
    ],
    MISSING_SOURCE: [
        "Add the required sources to the operation parameters",
    ],
    NO_REFERENCE_VIDEO: [
        "At least one merge input must contain a video stream with known dimensions",
    ],
    AUDIO_STREAM_MISSING: [
        "The source file has no audio stream",
        "Run 'mediafx probe <file>' to inspect available streams",
    ],
    SUBTITLE_EMPTY: [
        "Subtitle files use blocks of: index, 'HH:MM:SS,mmm --> HH:MM:SS,mmm', text",
        "Separate blocks with a blank line",
    ],
    INVALID_FONT_KEY: [
        "Font keys are 3-50 characters: letters, digits, '-' and '_' only",
    ],
    FONT_KEY_EXISTS: [
        "Choose a key that is not already used by a system or user font",
        "Run 'mediafx fonts list' to see taken keys",
    ],
    FONT_NOT_FOUND: [
        "Run 'mediafx fonts list' to see available font keys",
        "Upload the font first or place the system font file in the fonts directory",
    ],
    UNEXPECTED_ERROR: [
        "This is an unexpected error; please report it",
    ],
    INVALID_PARAMETER: [
        "Check the operation parameters against 'mediafx capabilities'",
    ],
    UNSUPPORTED_TRANSITION: [
        "Use 'fade', 'fadeblack' or 'fadewhite', which work on every FFmpeg version",
        "Upgrade to FFmpeg 4.3+ for the full xfade transition catalog",
    ],
}


def recovery_hints(code: str, context: dict[str, Any] | None = None) -> list[str]:
    """Return recovery suggestions for a given error code."""
    if code in (FFMPEG_NOT_FOUND, FFPROBE_NOT_FOUND):
        return _ffmpeg_install_hints()

    hints = list(_RECOVERY_MAP.get(code, []))
    context = context or {}

    if code == INPUT_NOT_FOUND and "path" in context:
        hints.insert(0, f"File not found: {context['path']}")

    if code == FONT_NOT_FOUND and "font_key" in context:
        hints.insert(0, f"Unknown font key: {context['font_key']}")

    return hints


# ---------------------------------------------------------------------------
# Engine diagnostics
# ---------------------------------------------------------------------------

def ffmpeg_recovery_hints(stderr: str) -> list[str]:
    """Generate context-aware recovery hints from ffmpeg stderr."""
    if "No such filter" in stderr:
        return [
            "A required ffmpeg filter is missing from your build (e.g. drawtext needs libfreetype)",
            "Set MEDIAFX_FFMPEG to a ffmpeg binary with the needed filters",
        ]
    stderr_lower = stderr.lower()
    if "codec not found" in stderr_lower or "unknown encoder" in stderr_lower:
        return [
            "The required codec is not available in your ffmpeg build",
            "Set MEDIAFX_FFMPEG to a ffmpeg binary with the needed codec",
        ]
    if "no such file" in stderr_lower or "does not exist" in stderr_lower:
        return [
            "A referenced file could not be found",
            "Verify all input file paths are correct and accessible",
        ]
    if "permission denied" in stderr_lower:
        return [
            "Permission denied when accessing a file",
            "Check file permissions for input and output paths",
        ]
    return ["Check stderr for details", "Verify input file is a valid media file"]


# (operations or "*", stderr substring, guidance). First match wins.
_ENGINE_GUIDANCE: list[tuple[tuple[str, ...] | str, str, str]] = [
    (
        ("transition",),
        "No such filter: 'xfade'",
        "Your FFmpeg version doesn't support the 'xfade' filter (requires FFmpeg 4.3+). "
        "Upgrade FFmpeg or use basic transitions like 'fade'.",
    ),
    (
        ("transition",),
        "Invalid argument",
        "Invalid transition parameters. The effect may not be supported by your FFmpeg version.",
    ),
    (
        ("text", "subtitle"),
        "Cannot find color",
        "An invalid color was specified. Use a color name (e.g. 'yellow') or a hex code (e.g. 'FFFFFF').",
    ),
    (
        ("text", "subtitle"),
        "font",
        "There was an issue with the specified font. Check the font key and that its file is readable.",
    ),
    (
        "*",
        "Cannot find a matching stream for unlabeled",
        "The source may not have an audio track.",
    ),
    (
        "*",
        "matches no streams",
        "The source may not have an audio track.",
    ),
]


def engine_guidance(stderr: str, operation: str) -> str | None:
    """Return scenario-specific guidance for a failed engine call, if any."""
    for op, needle, guidance in _ENGINE_GUIDANCE:
        if op != "*" and operation not in op:
            continue
        if needle in stderr:
            return guidance
    return None


def explain_engine_failure(
    exc: EngineExecutionError,
    operation: str,
    summary: str,
) -> EngineExecutionError:
    """Wrap an engine failure with an operation summary and matched guidance."""
    stderr = str(exc.context.get("stderr", ""))
    guidance = engine_guidance(stderr, operation)
    parts = [summary]
    if guidance:
        parts.append(guidance)
    parts.append(exc.message)
    return EngineExecutionError(
        code=exc.code,
        message=" ".join(parts),
        recovery=exc.recovery,
        context={**exc.context, "operation": operation},
    )
