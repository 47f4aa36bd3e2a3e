"""Low-level FFmpeg and FFprobe subprocess runners."""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from mediafx.errors import (
    EngineExecutionError,
    ProbeError,
    FFMPEG_NOT_FOUND,
    FFPROBE_NOT_FOUND,
    FFMPEG_TIMEOUT,
    FFMPEG_FAILED,
    PROBE_FAILED,
    ffmpeg_recovery_hints,
    recovery_hints,
)

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 30
_STDERR_TAIL = 2000

# Module-level cache; discovery runs once per process
_cached_ffmpeg: str | None = None
_cached_ffprobe: str | None = None


def reset_cache() -> None:
    """Clear cached binary paths. Useful for testing."""
    global _cached_ffmpeg, _cached_ffprobe
    _cached_ffmpeg = None
    _cached_ffprobe = None


# ---------------------------------------------------------------------------
# Binary detection helpers
# ---------------------------------------------------------------------------

def _try_env_exact(env_var: str) -> str | None:
    """Check an env var pointing to an exact binary path."""
    value = os.environ.get(env_var)
    if value and Path(value).is_file():
        return value
    return None


def _try_env_dir(binary_name: str) -> str | None:
    """Check MEDIAFX_FFMPEG_DIR for a binary by name."""
    dir_path = os.environ.get("MEDIAFX_FFMPEG_DIR")
    if not dir_path:
        return None
    candidate = Path(dir_path) / binary_name
    if candidate.is_file():
        return str(candidate)
    # Windows: try with .exe suffix
    candidate_exe = Path(dir_path) / f"{binary_name}.exe"
    if candidate_exe.is_file():
        return str(candidate_exe)
    return None


def _try_static_ffmpeg() -> tuple[str | None, str | None]:
    """Try to get paths from the static-ffmpeg package (bundles both)."""
    try:
        from static_ffmpeg.run import get_or_fetch_platform_executables_else_raise
        ffmpeg_path, ffprobe_path = get_or_fetch_platform_executables_else_raise()
        return (ffmpeg_path, ffprobe_path)
    except Exception:
        return (None, None)


def _try_imageio_ffmpeg() -> str | None:
    """Try to get ffmpeg path from imageio-ffmpeg (ffmpeg only, no ffprobe)."""
    try:
        import imageio_ffmpeg
        return imageio_ffmpeg.get_ffmpeg_exe()
    except Exception:
        return None


def _discover(binary_name: str, env_var: str) -> str:
    """Walk the fallback chain to find ffmpeg or ffprobe."""
    path = _try_env_exact(env_var) or _try_env_dir(binary_name) or shutil.which(binary_name)
    if path:
        return path

    ffmpeg_path, ffprobe_path = _try_static_ffmpeg()
    path = ffmpeg_path if binary_name == "ffmpeg" else ffprobe_path
    if path:
        return path

    if binary_name == "ffmpeg":
        return _try_imageio_ffmpeg() or ""
    return ""


# ---------------------------------------------------------------------------
# Public binary finders (cached)
# ---------------------------------------------------------------------------

def find_ffmpeg() -> str:
    """Return the path to the ffmpeg binary, or raise EngineExecutionError."""
    global _cached_ffmpeg
    if _cached_ffmpeg is not None:
        return _cached_ffmpeg

    path = _discover("ffmpeg", "MEDIAFX_FFMPEG")
    if not path:
        raise EngineExecutionError(
            code=FFMPEG_NOT_FOUND,
            message="ffmpeg binary not found",
            recovery=recovery_hints(FFMPEG_NOT_FOUND),
        )
    logger.debug("Using ffmpeg at %s", path)
    _cached_ffmpeg = path
    return path


def find_ffprobe() -> str:
    """Return the path to the ffprobe binary, or raise EngineExecutionError."""
    global _cached_ffprobe
    if _cached_ffprobe is not None:
        return _cached_ffprobe

    path = _discover("ffprobe", "MEDIAFX_FFPROBE")
    if not path:
        raise EngineExecutionError(
            code=FFPROBE_NOT_FOUND,
            message="ffprobe binary not found",
            recovery=recovery_hints(FFPROBE_NOT_FOUND),
        )
    logger.debug("Using ffprobe at %s", path)
    _cached_ffprobe = path
    return path


# ---------------------------------------------------------------------------
# Subprocess runners
# ---------------------------------------------------------------------------

def run_ffmpeg(
    args: list[str],
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """Run exactly one ffmpeg invocation.

    Args:
        args: Arguments to pass after 'ffmpeg' (do NOT include 'ffmpeg' itself).
        timeout: Maximum seconds to wait. None waits for ffmpeg to exit.

    Returns:
        The CompletedProcess result.

    Raises:
        EngineExecutionError: On a non-zero exit; the message embeds the
            tail of ffmpeg's stderr. Partially written outputs are left
            in place for the caller to clean up.
    """
    ffmpeg = find_ffmpeg()
    cmd = [ffmpeg, "-hide_banner", "-y"] + [str(a) for a in args]
    logger.debug("Running: %s", subprocess.list2cmdline(cmd))

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise EngineExecutionError(
            code=FFMPEG_TIMEOUT,
            message=f"ffmpeg timed out after {timeout}s",
            recovery=[f"Increase timeout (current: {timeout}s)", "Check if input file is corrupt"],
            context={"command": cmd, "timeout": timeout},
        ) from exc

    if result.returncode != 0:
        stderr_tail = result.stderr[-_STDERR_TAIL:] if result.stderr else ""
        raise EngineExecutionError(
            code=FFMPEG_FAILED,
            message=f"ffmpeg exited with code {result.returncode} (ffmpeg stderr: {stderr_tail.strip()})",
            recovery=ffmpeg_recovery_hints(stderr_tail),
            context={
                "command": cmd,
                "returncode": result.returncode,
                "stderr": stderr_tail,
            },
        )

    return result


def run_ffprobe(
    args: list[str],
    timeout: int = PROBE_TIMEOUT,
) -> subprocess.CompletedProcess:
    """Run ffprobe with the given arguments.

    Args:
        args: Arguments to pass after 'ffprobe' (do NOT include 'ffprobe' itself).
        timeout: Maximum seconds to wait.

    Returns:
        The CompletedProcess result.
    """
    ffprobe = find_ffprobe()
    cmd = [ffprobe, "-hide_banner"] + [str(a) for a in args]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(
            code=PROBE_FAILED,
            message=f"ffprobe timed out after {timeout}s",
            recovery=["Check if input file is corrupt or on a slow filesystem"],
            context={"command": cmd, "timeout": timeout},
        ) from exc

    if result.returncode != 0:
        stderr_tail = result.stderr[-_STDERR_TAIL:] if result.stderr else ""
        raise ProbeError(
            code=PROBE_FAILED,
            message=f"ffprobe exited with code {result.returncode} (ffprobe stderr: {stderr_tail.strip()})",
            recovery=recovery_hints(PROBE_FAILED),
            context={
                "command": cmd,
                "returncode": result.returncode,
                "stderr": stderr_tail,
            },
        )

    return result


def run_ffprobe_json(path: str | Path) -> dict:
    """Run ffprobe and return parsed JSON output for a media file."""
    result = run_ffprobe([
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(path),
    ])
    try:
        return json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ProbeError(
            code=PROBE_FAILED,
            message=f"ffprobe returned unparseable output for {path}",
            recovery=recovery_hints(PROBE_FAILED),
            context={"path": str(path)},
        ) from exc


def ffmpeg_version_text() -> str:
    """Return the raw output of 'ffmpeg -version'."""
    result = run_ffmpeg(["-version"], timeout=10)
    return result.stdout or ""
