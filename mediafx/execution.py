"""Run one engine stage for an orchestrator and explain its failures."""

from __future__ import annotations

import logging
from typing import Optional

from mediafx.context import MediaContext
from mediafx.errors import EngineExecutionError, explain_engine_failure
from mediafx.ffmpeg import run_ffmpeg

logger = logging.getLogger(__name__)

# Re-encode settings shared by every operation that writes H.264/AAC.
VIDEO_ENCODE = ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-pix_fmt", "yuv420p"]
AUDIO_ENCODE = ["-c:a", "aac", "-ar", "44100", "-ac", "2"]


def output_extension(output_format: Optional[str], default: str = "mp4") -> str:
    fmt = (output_format or default).strip().lstrip(".").lower()
    return f".{fmt or default}"


def run_stage(
    args: list,
    operation: str,
    summary: str,
    ctx: MediaContext,
) -> None:
    """Run one ffmpeg invocation to completion.

    On failure the error is re-raised with ``summary`` and any matching
    guidance in front of ffmpeg's own message.
    """
    try:
        run_ffmpeg(args, timeout=ctx.settings.ffmpeg_timeout)
    except EngineExecutionError as exc:
        logger.debug("Stage failed for %s: %s", operation, exc.message)
        raise explain_engine_failure(exc, operation, summary) from exc
