"""Text overlay operations — burn timed text and subtitle files onto video."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from mediafx.context import MediaContext, default_context
from mediafx.errors import (
    ValidationError,
    INVALID_PARAMETER,
    recovery_hints,
)
from mediafx.execution import AUDIO_ENCODE, VIDEO_ENCODE, output_extension, run_stage
from mediafx.filters import text_overlay
from mediafx.models import (
    HORIZONTAL_ALIGNMENTS,
    POSITION_MODES,
    VERTICAL_ALIGNMENTS,
    OperationResult,
    Placement,
    TextEntry,
    TextStyle,
)
from mediafx.subtitles import load_subtitles

logger = logging.getLogger(__name__)


def _invalid(message: str, **context) -> ValidationError:
    return ValidationError(
        code=INVALID_PARAMETER,
        message=message,
        recovery=recovery_hints(INVALID_PARAMETER),
        context=context,
    )


def _check_style(style: TextStyle, placement: Placement) -> None:
    if style.size <= 0:
        raise _invalid(f"Font size must be > 0, got {style.size}", size=style.size)
    if placement.mode not in POSITION_MODES:
        raise _invalid(f"Position mode must be one of {sorted(POSITION_MODES)}", mode=placement.mode)
    if placement.mode == "alignment":
        if placement.horizontal not in HORIZONTAL_ALIGNMENTS:
            raise _invalid(f"Unknown horizontal alignment {placement.horizontal!r}", horizontal=placement.horizontal)
        if placement.vertical not in VERTICAL_ALIGNMENTS:
            raise _invalid(f"Unknown vertical alignment {placement.vertical!r}", vertical=placement.vertical)


def _burn(
    source: str,
    entries: list[TextEntry],
    style: TextStyle,
    placement: Placement,
    output_format: str,
    operation: str,
    summary: str,
    ctx: MediaContext,
) -> OperationResult:
    font_file = ctx.fonts.resolve(style.font_key)
    graph = text_overlay(entries, font_file, style, placement)
    logger.debug("Text graph: %s", graph.render())

    with ctx.temp.scope() as scope:
        output = scope.allocate_output(output_extension(output_format))
        args = ["-i", source] + graph.args() + VIDEO_ENCODE + AUDIO_ENCODE + [output.path]
        run_stage(args, operation, summary, ctx)

    return OperationResult(output_path=str(output.path), details={"entries": len(entries)})


def add_text(
    source: str,
    entries: list[TextEntry],
    style: Optional[TextStyle] = None,
    placement: Optional[Placement] = None,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Burn one or more timed text entries onto a video.

    Args:
        source: Path to the source video.
        entries: Text and its [start, end] window; ``end=None`` shows
            the text until the video ends.
        style: Font key, size, color, outline and box.
        placement: Alignment cell with padding, or raw x/y expressions.
        output_format: Container extension for the result.

    Returns:
        OperationResult with the output path.
    """
    ctx = ctx or default_context()
    style = style or TextStyle()
    placement = placement or Placement()
    if not entries:
        raise _invalid("No text entries provided, at least one is required")
    for entry in entries:
        if not entry.text:
            raise _invalid("Text entries must not be empty")
        if entry.end is not None and entry.start >= entry.end:
            raise _invalid(
                f"Text start ({entry.start}) is at or after end ({entry.end})",
                start=entry.start,
                end=entry.end,
            )
    _check_style(style, placement)
    return _burn(
        source, entries, style, placement, output_format, "text",
        "Error adding text to video.", ctx,
    )


def add_subtitle(
    source: str,
    subtitle_file: str | Path,
    style: Optional[TextStyle] = None,
    placement: Optional[Placement] = None,
    output_format: str = "mp4",
    ctx: Optional[MediaContext] = None,
) -> OperationResult:
    """Burn every entry of a subtitle file, each over a translucent box."""
    ctx = ctx or default_context()
    style = style or TextStyle(box=True)
    placement = placement or Placement()
    _check_style(style, placement)

    subs = load_subtitles(subtitle_file)
    entries = [TextEntry(text=s.text, start=s.start, end=s.end) for s in subs]
    return _burn(
        source, entries, style, placement, output_format, "subtitle",
        "Error adding subtitles to video.", ctx,
    )
