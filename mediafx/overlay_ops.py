"""Image stamping and video-on-video overlay."""

from __future__ import annotations

import logging
from typing import Optional

from mediafx.context import MediaContext, default_context
from mediafx.errors import (
    ValidationError,
    INVALID_PARAMETER,
    recovery_hints,
)
from mediafx.execution import AUDIO_ENCODE, VIDEO_ENCODE, output_extension, run_stage
from mediafx.filters import (
    OVERLAY_AUDIO_MODES,
    overlay_scale,
    placement_position,
    stamp_overlay,
    video_overlay,
)
from mediafx.models import OperationResult, Placement
from mediafx.probe import probe_many

logger = logging.getLogger(__name__)

OVERLAY_SIZE_MODES = {"percentage", "pixels", "original"}


def _invalid(message: str, **context) -> ValidationError:
    return ValidationError(
        code=INVALID_PARAMETER,
        message=message,
        recovery=recovery_hints(INVALID_PARAMETER),
        context=context,
    )


def _check_window(opacity: float, start: Optional[float], end: Optional[float]) -> None:
    if not 0.0 <= opacity <= 1.0:
        raise _invalid(f"Opacity must be between 0 and 1, got {opacity}", opacity=opacity)
    if start is not None and start < 0:
        raise _invalid(f"Start time must be >= 0, got {start}", start=start)
    if start is not None and end is not None and end <= start:
        raise _invalid(f"End time ({end}) must be after start time ({start})", start=start, end=end)


def stamp_image(
    video: str,
    image: str,
    placement: Optional[Placement] = None,
    width: int = -1,
    height: int = -1,
    rotation: float = 0.0,
    opacity: float = 1.0,
    start: Optional[float] = None,
    end: Optional[float] = None,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Composite a still image onto a video.

    The image is optionally scaled (-1 keeps aspect), rotated by
    ``rotation`` degrees on a canvas grown to fit, faded to ``opacity``
    and shown only inside [start, end]. Audio is passed through.
    """
    ctx = ctx or default_context()
    placement = placement or Placement(mode="custom", x="10", y="10")
    _check_window(opacity, start, end)
    x, y = placement_position(placement, for_overlay=True)
    graph = stamp_overlay(x, y, width, height, rotation, opacity, start, end)

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = ["-i", video, "-i", image] + graph.args() + VIDEO_ENCODE + ["-c:a", "copy", output.path]
        run_stage(
            args,
            "stamp_image",
            "Error stamping image on video. Check source files and stamp options.",
            ctx,
        )

    return OperationResult(output_path=str(output.path))


def overlay_video(
    main: str,
    overlay: str,
    placement: Optional[Placement] = None,
    size_mode: str = "percentage",
    width_percent: float = 50,
    height_mode: str = "auto",
    height_percent: float = 50,
    width_pixels: int = -1,
    height_pixels: int = -1,
    rotation: float = 0.0,
    opacity: float = 1.0,
    start: Optional[float] = None,
    end: Optional[float] = None,
    audio_mode: str = "main",
    main_volume: float = 1.0,
    overlay_volume: float = 1.0,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Place one video on top of another.

    Percentage sizes are relative to the main video's probed size. The
    main video keeps playing once the overlay runs out.
    """
    ctx = ctx or default_context()
    placement = placement or Placement(horizontal="center", vertical="middle")
    if size_mode not in OVERLAY_SIZE_MODES:
        raise _invalid(f"size_mode must be one of {sorted(OVERLAY_SIZE_MODES)}", size_mode=size_mode)
    if audio_mode not in OVERLAY_AUDIO_MODES:
        raise _invalid(f"audio_mode must be one of {sorted(OVERLAY_AUDIO_MODES)}", audio_mode=audio_mode)
    if size_mode == "percentage" and width_percent <= 0:
        raise _invalid(f"width_percent must be > 0, got {width_percent}", width_percent=width_percent)
    _check_window(opacity, start, end)

    main_info, overlay_info = probe_many([main, overlay], ctx.settings.probe_workers)
    width, height = overlay_scale(
        size_mode,
        main_info.geometry,
        width_percent=width_percent,
        height_mode=height_mode,
        height_percent=height_percent,
        width_pixels=width_pixels,
        height_pixels=height_pixels,
    )
    if start is not None and end is None:
        end = main_info.duration or None

    x, y = placement_position(placement, for_overlay=True)
    plan = video_overlay(
        x, y,
        width=width,
        height=height,
        rotation=rotation,
        opacity=opacity,
        start=start,
        end=end,
        audio_mode=audio_mode,
        main_volume=main_volume,
        overlay_volume=overlay_volume,
        main_has_audio=main_info.has_audio,
        overlay_has_audio=overlay_info.has_audio,
    )

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = ["-i", main, "-i", overlay] + plan.graph.args() + VIDEO_ENCODE
        if plan.audio_mode != "none":
            args += AUDIO_ENCODE
        args.append(output.path)
        run_stage(args, "overlay_video", "Failed to overlay video.", ctx)

    return OperationResult(
        output_path=str(output.path),
        duration_seconds=main_info.duration,
        warnings=plan.warnings,
        details={"audio_mode": plan.audio_mode, "scale": [width, height]},
    )
