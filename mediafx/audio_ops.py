"""Audio operations — mix, extract, separate."""

from __future__ import annotations

import logging
from typing import Optional

from mediafx.context import MediaContext, default_context
from mediafx.errors import (
    ValidationError,
    AUDIO_STREAM_MISSING,
    INVALID_PARAMETER,
    recovery_hints,
)
from mediafx.execution import output_extension, run_stage
from mediafx.filters import MIX_DURATIONS, full_mix, partial_mix, silent_audio_input
from mediafx.models import MediaProbe, OperationResult
from mediafx.probe import probe, probe_many

logger = logging.getLogger(__name__)


def _check_audio_stream(info: MediaProbe) -> None:
    """Raise if the probed file has no audio stream."""
    if not info.has_audio:
        raise ValidationError(
            code=AUDIO_STREAM_MISSING,
            message=f"Source has no audio stream: {info.path}",
            recovery=recovery_hints(AUDIO_STREAM_MISSING),
            context={"source": info.path},
        )


def _audio_codec(codec: str, audio_format: str) -> str:
    # mp3 containers cannot take a copied AAC stream
    if codec == "copy" and audio_format == "mp3":
        return "libmp3lame"
    return codec


def _extract_args(source: str, output, codec: str, bitrate: Optional[str]) -> list:
    args = ["-i", source, "-vn", "-map", "0:a:0", "-c:a", codec]
    if bitrate and codec != "copy":
        args += ["-b:a", bitrate]
    args.append(output)
    return args


# ---------------------------------------------------------------------------
# Mix audio
# ---------------------------------------------------------------------------

def mix_audio(
    video: str,
    audio: str,
    video_volume: float = 1.0,
    audio_volume: float = 1.0,
    match_length: str = "longest",
    partial: bool = False,
    start: float = 0.0,
    duration: Optional[float] = None,
    loop: bool = False,
    fade_in: float = 0.0,
    fade_out: float = 0.0,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Mix an external audio track into a video's audio.

    Full mix: both tracks, volume-scaled, ending per ``match_length``
    (``shortest``, ``longest`` or ``first``). Partial mix: the overlay
    track plays from ``start`` for ``duration`` seconds (looped if asked),
    with optional fades, and the video keeps its own length.

    A video without audio is mixed against a silent track of its own
    length. An overlay without audio is an error.
    """
    ctx = ctx or default_context()
    if match_length not in MIX_DURATIONS:
        raise ValidationError(
            code=INVALID_PARAMETER,
            message=f"match_length must be one of {sorted(MIX_DURATIONS)}, got {match_length!r}",
            recovery=recovery_hints(INVALID_PARAMETER),
            context={"match_length": match_length},
        )
    if min(video_volume, audio_volume) < 0 or start < 0 or fade_in < 0 or fade_out < 0:
        raise ValidationError(
            code=INVALID_PARAMETER,
            message="Volumes, start and fade durations must be >= 0",
            recovery=recovery_hints(INVALID_PARAMETER),
            context={"video_volume": video_volume, "audio_volume": audio_volume, "start": start},
        )
    if duration is not None and duration <= 0:
        raise ValidationError(
            code=INVALID_PARAMETER,
            message=f"Mix duration must be > 0, got {duration}",
            recovery=recovery_hints(INVALID_PARAMETER),
            context={"duration": duration},
        )

    main, overlay = probe_many([video, audio], ctx.settings.probe_workers)
    _check_audio_stream(overlay)

    warnings: list[str] = []
    args: list = ["-i", video, "-i", audio]
    main_audio = "0:a"
    if not main.has_audio:
        args += silent_audio_input(main.duration)
        main_audio = "2:a"
        warnings.append("Video has no audio track; mixing against silence.")
        logger.info("Substituting %.3fs of silence for %s", main.duration, video)

    if partial:
        graph = partial_mix(
            video_volume,
            audio_volume,
            start=start,
            audio_duration=overlay.duration,
            window=duration,
            loop=loop,
            fade_in=fade_in,
            fade_out=fade_out,
            main_audio=main_audio,
        )
        out_duration = main.duration
    else:
        graph = full_mix(video_volume, audio_volume, match_length, main_audio=main_audio)
        out_duration = {
            "shortest": min(main.duration, overlay.duration),
            "longest": max(main.duration, overlay.duration),
            "first": main.duration,
        }[match_length]

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args += graph.args() + ["-c:v", "copy", "-c:a", "aac", output.path]
        run_stage(args, "mix_audio", "Error mixing audio.", ctx)

    return OperationResult(
        output_path=str(output.path),
        duration_seconds=out_duration,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Extract / separate
# ---------------------------------------------------------------------------

def extract_audio(
    source: str,
    audio_format: str = "mp3",
    codec: str = "copy",
    bitrate: Optional[str] = "192k",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Write the first audio stream of a file to its own audio file."""
    ctx = ctx or default_context()
    info = probe(source)
    _check_audio_stream(info)
    final_codec = _audio_codec(codec, audio_format)

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(audio_format, "mp3"))
        run_stage(
            _extract_args(source, output.path, final_codec, bitrate),
            "extract_audio",
            "Error extracting audio. Ensure the source video contains an audio track.",
            ctx,
        )

    return OperationResult(output_path=str(output.path), duration_seconds=info.duration)


def separate_audio(
    source: str,
    video_format: str = "mp4",
    audio_format: str = "mp3",
    audio_codec: str = "copy",
    bitrate: Optional[str] = "192k",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Split a file into a muted video and its audio track.

    The muted video is ``output_path``; the audio is
    ``extra_outputs["audio"]``. Both are removed if either stage fails.
    """
    ctx = ctx or default_context()
    info = probe(source)
    _check_audio_stream(info)
    final_codec = _audio_codec(audio_codec, audio_format)

    with ctx.temp.scope() as scope:
        muted = scope.allocate_output(output_extension(video_format))
        audio_out = scope.allocate_output(output_extension(audio_format, "mp3"))
        summary = "Error separating audio from video. Ensure the source contains both video and audio tracks."
        run_stage(["-i", source, "-an", "-c:v", "copy", muted.path], "separate_audio", summary, ctx)
        run_stage(_extract_args(source, audio_out.path, final_codec, bitrate), "separate_audio", summary, ctx)

    return OperationResult(
        output_path=str(muted.path),
        extra_outputs={"audio": str(audio_out.path)},
        duration_seconds=info.duration,
    )
