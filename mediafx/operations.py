"""Core video operations — merge, trim, transition, fade, image to video."""

from __future__ import annotations

import logging
from typing import Optional

from mediafx.context import MediaContext, default_context
from mediafx.errors import (
    ValidationError,
    INVALID_PARAMETER,
    MISSING_SOURCE,
    NO_REFERENCE_VIDEO,
    recovery_hints,
)
from mediafx.execution import AUDIO_ENCODE, VIDEO_ENCODE, output_extension, run_stage
from mediafx.filters import (
    clip_fade,
    concat_list,
    normalize_for_merge,
    silent_audio_input,
    transition_chain,
)
from mediafx.graph import f, render_chain
from mediafx.models import OperationResult, parse_time
from mediafx.probe import probe, probe_many

logger = logging.getLogger(__name__)


def _invalid(message: str, **context) -> ValidationError:
    return ValidationError(
        code=INVALID_PARAMETER,
        message=message,
        recovery=recovery_hints(INVALID_PARAMETER),
        context=context,
    )


def _require_sources(sources: list, minimum: int, operation: str) -> None:
    if len(sources) < minimum:
        raise ValidationError(
            code=MISSING_SOURCE,
            message=f"{operation} needs at least {minimum} source(s), got {len(sources)}",
            recovery=recovery_hints(MISSING_SOURCE),
            context={"operation": operation, "count": len(sources)},
        )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def merge(
    sources: list[str],
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Concatenate clips of any geometry into one file.

    Every input is normalized to the first input with a video stream
    (size, aspect, pixel format, frame rate, stereo 44.1 kHz audio) and
    rendered to its own intermediate. Inputs without audio get a silent
    track of their own probed length. The intermediates are then joined
    with the concat demuxer without re-encoding.

    Args:
        sources: Local input paths, in output order.
        output_format: Container extension for the result.
        ctx: Shared services; the process default when omitted.

    Returns:
        OperationResult whose output_path is a temp file owned by the caller.
    """
    ctx = ctx or default_context()
    _require_sources(sources, 1, "merge")

    probes = probe_many(sources, ctx.settings.probe_workers)
    reference = next((p.geometry for p in probes if p.geometry is not None), None)
    if reference is None:
        raise ValidationError(
            code=NO_REFERENCE_VIDEO,
            message="None of the merge inputs has a video stream with known dimensions",
            recovery=recovery_hints(NO_REFERENCE_VIDEO),
            context={"sources": [str(s) for s in sources]},
        )
    logger.info("Merging %d inputs at %s, %s fps", len(sources), reference.resolution, reference.frame_rate)

    with ctx.temp.scope() as scope:
        parts: list[str] = []
        for i, (source, info) in enumerate(zip(sources, probes)):
            part = scope.allocate(".mp4")
            graph = normalize_for_merge(reference, info.has_audio)
            args = ["-i", source]
            if not info.has_audio:
                args += silent_audio_input(info.duration)
            args += graph.args() + VIDEO_ENCODE + AUDIO_ENCODE + [part.path]
            run_stage(args, "merge", f"Failed to normalize merge input {i + 1}.", ctx)
            parts.append(str(part.path))

        list_file = scope.allocate(".txt")
        list_file.path.write_text(concat_list(parts), encoding="utf-8")

        output = scope.allocate_output(output_extension(output_format))
        run_stage(
            ["-f", "concat", "-safe", "0", "-i", list_file.path, "-c", "copy", output.path],
            "merge",
            "Failed to join normalized merge inputs.",
            ctx,
        )

    return OperationResult(
        output_path=str(output.path),
        duration_seconds=sum(p.duration for p in probes),
        details={"reference": reference.to_dict()},
    )


# ---------------------------------------------------------------------------
# Trim
# ---------------------------------------------------------------------------

def trim(
    source: str,
    start: str | float,
    end: str | float,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Cut [start, end) out of a clip, re-encoding for frame-accurate edges."""
    ctx = ctx or default_context()
    start_sec = parse_time(start)
    end_sec = parse_time(end)
    if start_sec < 0 or start_sec >= end_sec:
        raise _invalid(
            f"Start time ({start}) must be before end time ({end})",
            start=start,
            end=end,
        )

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = [
            "-ss", start_sec,
            "-i", source,
            "-t", round(end_sec - start_sec, 6),
            "-c:v", "libx264",
            "-c:a", "aac",
            output.path,
        ]
        run_stage(
            args,
            "trim",
            "Error trimming video. Check that start and end times are within the video's duration.",
            ctx,
        )

    return OperationResult(output_path=str(output.path), duration_seconds=end_sec - start_sec)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def transition_apply(
    sources: list[str],
    transition: str = "fade",
    duration: float = 1.0,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Join clips with a blend between each consecutive pair.

    Unsupported transitions never fail: the capability detector names a
    fallback and the reason ends up in ``warnings``. When the engine has
    no xfade filter, the fade family is built from per-clip edge fades.
    Audio is crossfaded only when every clip has an audio stream.
    """
    ctx = ctx or default_context()
    _require_sources(sources, 2, "transition")
    if duration <= 0:
        raise _invalid(f"Transition duration must be > 0, got {duration}", duration=duration)

    warnings: list[str] = []
    support = ctx.detector.check_transition_support(transition)
    effective = transition
    if not support.supported:
        effective = support.alternative or "fade"
        if support.message:
            warnings.append(support.message)
            logger.warning(support.message)

    native = ctx.detector.capabilities().supports_xfade

    probes = probe_many(sources, ctx.settings.probe_workers)
    geometries = [p.geometry for p in probes if p.geometry is not None]
    if not geometries:
        raise ValidationError(
            code=NO_REFERENCE_VIDEO,
            message="None of the transition inputs has a video stream",
            recovery=recovery_hints(NO_REFERENCE_VIDEO),
        )
    durations = [p.duration for p in probes]
    for i, clip_duration in enumerate(durations):
        if clip_duration <= duration:
            raise _invalid(
                f"Clip {i + 1} duration ({clip_duration:.3f}s) must be greater than "
                f"the transition duration ({duration:.3f}s)",
                clip=i,
                clip_duration=clip_duration,
                duration=duration,
            )

    with_audio = all(p.has_audio for p in probes)
    if not with_audio and any(p.has_audio for p in probes):
        message = "Not every clip has an audio track; the output has no audio."
        warnings.append(message)
        logger.warning(message)

    width = max(g.width for g in geometries)
    height = max(g.height for g in geometries)
    plan = transition_chain(
        durations,
        width=width,
        height=height,
        fps=geometries[0].frame_rate,
        transition=effective,
        duration=duration,
        with_audio=with_audio,
        native=native,
    )
    logger.debug("Transition graph (%s): %s", plan.strategy, plan.graph.render())

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args: list = []
        for source in sources:
            args += ["-i", source]
        args += plan.graph.args() + VIDEO_ENCODE
        if with_audio:
            args += AUDIO_ENCODE
        args.append(output.path)
        run_stage(args, "transition", f"Failed to apply the '{effective}' transition.", ctx)

    return OperationResult(
        output_path=str(output.path),
        duration_seconds=plan.output_duration,
        warnings=warnings,
        details={
            "transition": effective,
            "strategy": plan.strategy,
            "blends": [b.to_dict() for b in plan.blends],
        },
    )


def fade(
    source: str,
    effect: str = "in",
    start: float = 0.0,
    duration: float = 1.0,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Fade a single clip in or out. Audio fades only if the clip has audio."""
    ctx = ctx or default_context()
    if effect not in ("in", "out"):
        raise _invalid(f"Fade effect must be 'in' or 'out', got {effect!r}", effect=effect)
    if duration <= 0 or start < 0:
        raise _invalid("Fade needs start >= 0 and duration > 0", start=start, duration=duration)

    info = probe(source)
    video, audio = clip_fade(effect, start, duration, info.has_audio)

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = ["-i", source, "-vf", render_chain(video)]
        if audio:
            args += ["-af", render_chain(audio)]
        args += VIDEO_ENCODE + AUDIO_ENCODE + [output.path]
        run_stage(
            args,
            "fade",
            "Error applying fade effect. Check the effect parameters (start time, duration).",
            ctx,
        )

    return OperationResult(output_path=str(output.path), duration_seconds=info.duration)


def image_to_video(
    source: str,
    duration: float = 5.0,
    width: Optional[int] = None,
    height: Optional[int] = None,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Loop a still image for ``duration`` seconds with a silent audio track."""
    ctx = ctx or default_context()
    if duration <= 0:
        raise _invalid(f"Duration must be > 0, got {duration}", duration=duration)

    if width and height:
        scale = f("scale", int(width), int(height))
    else:
        # Many encoders need even dimensions
        scale = f("scale", "trunc(iw/2)*2", "trunc(ih/2)*2")

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = ["-loop", "1", "-t", duration, "-i", source]
        args += silent_audio_input(duration)
        args += [
            "-map", "0:v", "-map", "1:a",
            "-vf", render_chain([scale]),
        ]
        args += VIDEO_ENCODE + ["-c:a", "aac", "-shortest", output.path]
        run_stage(
            args,
            "image_to_video",
            "Error converting image to video. Ensure the source image is valid.",
            ctx,
        )

    return OperationResult(output_path=str(output.path), duration_seconds=float(duration))
