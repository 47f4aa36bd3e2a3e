"""Batch engine — resolves work item sources, dispatches operations, packages outputs.

Each work item names an operation and its parameters. Source parameters
(``source``, ``sources``, ``audio``, ``overlay``...) are descriptors that are
first turned into local temp files; the operation's output file is read back
into a binary payload and then removed, so nothing outlives the item.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from mediafx.audio_ops import extract_audio, mix_audio, separate_audio
from mediafx.context import MediaContext, default_context
from mediafx.errors import (
    MediaFXError,
    ResolutionError,
    ValidationError,
    MISSING_PAYLOAD,
    UNEXPECTED_ERROR,
    recovery_hints,
)
from mediafx.models import (
    BinaryPayload,
    ItemResult,
    OperationResult,
    Placement,
    TextEntry,
    TextStyle,
    WorkItem,
    parse_time,
)
from mediafx.operations import fade, image_to_video, merge, transition_apply, trim
from mediafx.overlay_ops import overlay_video, stamp_image
from mediafx.sources import resolve_inputs
from mediafx.tempfiles import ResourceScope, TempFile
from mediafx.text_ops import add_subtitle, add_text
from mediafx.validation import FONT_OPERATIONS, SOURCE_FIELDS, validate_params

logger = logging.getLogger(__name__)

OUTPUT_PROPERTY = "data"


def _time(params: dict, name: str, default: Optional[float] = None) -> Optional[float]:
    value = params.get(name)
    return parse_time(value) if value is not None else default


def _placement(params: dict) -> Optional[Placement]:
    position = params.get("position")
    return Placement.from_dict(position) if position else None


# ---------------------------------------------------------------------------
# Operation adapters: params + resolved paths -> orchestrator call
# ---------------------------------------------------------------------------

def _run_merge(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return merge(paths["sources"], output_format=p.get("output_format", "mp4"), ctx=ctx)


def _run_trim(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return trim(paths["source"], p.get("start", 0), p["end"], output_format=p.get("output_format", "mp4"), ctx=ctx)


def _run_mix_audio(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return mix_audio(
        paths["video"],
        paths["audio"],
        video_volume=p.get("video_volume", 1.0),
        audio_volume=p.get("audio_volume", 1.0),
        match_length=p.get("match_length", "longest"),
        partial=bool(p.get("partial", False)),
        start=_time(p, "start", 0.0),
        duration=p.get("duration"),
        loop=bool(p.get("loop", False)),
        fade_in=p.get("fade_in", 0.0),
        fade_out=p.get("fade_out", 0.0),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_extract_audio(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return extract_audio(
        paths["source"],
        audio_format=p.get("format", "mp3"),
        codec=p.get("codec", "copy"),
        bitrate=p.get("bitrate", "192k"),
        ctx=ctx,
    )


def _run_separate_audio(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return separate_audio(
        paths["source"],
        video_format=p.get("video_format", "mp4"),
        audio_format=p.get("audio_format", "mp3"),
        audio_codec=p.get("codec", "copy"),
        bitrate=p.get("bitrate", "192k"),
        ctx=ctx,
    )


def _run_image_to_video(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return image_to_video(
        paths["source"],
        duration=p.get("duration", 5.0),
        width=p.get("width"),
        height=p.get("height"),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_transition(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return transition_apply(
        paths["sources"],
        transition=p.get("transition", "fade"),
        duration=p.get("duration", 1.0),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_fade(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return fade(
        paths["source"],
        effect=p.get("effect", "in"),
        start=_time(p, "start", 0.0),
        duration=p.get("duration", 1.0),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_text(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    raw_entries = p.get("entries") or [p]
    return add_text(
        paths["source"],
        [TextEntry.from_dict(e) for e in raw_entries],
        style=TextStyle.from_dict(p.get("style")),
        placement=_placement(p),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_subtitle(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    style = p.get("style")
    return add_subtitle(
        paths["source"],
        paths["subtitle"],
        style=TextStyle.from_dict({"box": True, **style}) if style else None,
        placement=_placement(p),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_stamp_image(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return stamp_image(
        paths["source"],
        paths["image"],
        placement=_placement(p),
        width=p.get("width", -1),
        height=p.get("height", -1),
        rotation=p.get("rotation", 0.0),
        opacity=p.get("opacity", 1.0),
        start=_time(p, "start"),
        end=_time(p, "end"),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


def _run_overlay_video(p: dict, paths: dict, ctx: MediaContext) -> OperationResult:
    return overlay_video(
        paths["source"],
        paths["overlay"],
        placement=_placement(p),
        size_mode=p.get("size_mode", "percentage"),
        width_percent=p.get("width_percent", 50),
        height_mode=p.get("height_mode", "auto"),
        height_percent=p.get("height_percent", 50),
        width_pixels=p.get("width_pixels", -1),
        height_pixels=p.get("height_pixels", -1),
        rotation=p.get("rotation", 0.0),
        opacity=p.get("opacity", 1.0),
        start=_time(p, "start"),
        end=_time(p, "end"),
        audio_mode=p.get("audio_mode", "main"),
        main_volume=p.get("main_volume", 1.0),
        overlay_volume=p.get("overlay_volume", 1.0),
        output_format=p.get("output_format", "mp4"),
        ctx=ctx,
    )


_HANDLERS: dict[str, Callable[[dict, dict, MediaContext], OperationResult]] = {
    "merge": _run_merge,
    "trim": _run_trim,
    "mix_audio": _run_mix_audio,
    "extract_audio": _run_extract_audio,
    "separate_audio": _run_separate_audio,
    "image_to_video": _run_image_to_video,
    "transition": _run_transition,
    "fade": _run_fade,
    "text": _run_text,
    "subtitle": _run_subtitle,
    "stamp_image": _run_stamp_image,
    "overlay_video": _run_overlay_video,
}


# ---------------------------------------------------------------------------
# Font operations (JSON only)
# ---------------------------------------------------------------------------

def _font_operation(item: WorkItem, ctx: MediaContext) -> dict[str, Any]:
    params = item.params
    op = item.operation

    if op == "font_list":
        fonts = ctx.fonts.list_fonts()
        return {"fonts": [e.to_dict() for e in fonts], "count": len(fonts)}

    key = params["font_key"]
    if op == "font_validate":
        try:
            ctx.fonts.validate_key(key)
        except ValidationError as exc:
            return {"font_key": key, "valid": False, "code": exc.code, "message": exc.message}
        return {"font_key": key, "valid": True}

    if op == "font_delete":
        ctx.fonts.delete(key)
        return {"font_key": key, "deleted": True}

    # font_upload
    prop = params["binary_property"]
    payload = item.binary.get(prop)
    if payload is None:
        raise ResolutionError(
            code=MISSING_PAYLOAD,
            message=f"No binary data found in property '{prop}'",
            recovery=recovery_hints(MISSING_PAYLOAD),
            context={"binary_property": prop, "available": sorted(item.binary)},
        )
    entry = ctx.fonts.upload(
        key,
        payload.data,
        original_filename=payload.file_name or "",
        name=params.get("name"),
        description=params.get("description", ""),
    )
    return {"font": entry.to_dict()}


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def _resolve_fields(item: WorkItem, ctx: MediaContext, scope: ResourceScope) -> dict[str, Any]:
    """Resolve every source parameter, registering each batch for cleanup."""
    paths: dict[str, Any] = {}
    for name, min_count in SOURCE_FIELDS[item.operation]:
        value = item.params[name]
        descriptors = value if min_count is not None else [value]
        resolved = resolve_inputs(descriptors, item.binary, ctx.temp, ctx.settings.download_timeout)
        scope.callback(resolved.cleanup)
        local = [str(p) for p in resolved.paths]
        paths[name] = local if min_count is not None else local[0]
    return paths


def _package(path: str, operation: str, name: str) -> BinaryPayload:
    suffix = Path(path).suffix
    mime_type, _ = mimetypes.guess_type(path)
    file_name = f"{operation}{suffix}" if name == OUTPUT_PROPERTY else f"{operation}_{name}{suffix}"
    return BinaryPayload(
        data=Path(path).read_bytes(),
        file_name=file_name,
        mime_type=mime_type or "application/octet-stream",
    )


def execute_item(item: WorkItem, ctx: Optional[MediaContext] = None) -> ItemResult:
    """Validate, resolve, run and package one work item.

    Raises:
        MediaFXError: on any validation, resolution, probe or engine failure.
            Every temp file the item created is gone by then.
    """
    ctx = ctx or default_context()
    validate_params(item.operation, item.params)

    if item.operation in FONT_OPERATIONS:
        record = _font_operation(item, ctx)
        return ItemResult(json={"operation": item.operation, "success": True, **record})

    handler = _HANDLERS[item.operation]
    with ctx.temp.scope() as scope:
        paths = _resolve_fields(item, ctx, scope)
        logger.info("Running %s", item.operation)
        result = handler(item.params, paths, ctx)

        outputs = {OUTPUT_PROPERTY: result.output_path, **result.extra_outputs}
        for path in outputs.values():
            scope.track(TempFile(Path(path)))
        binary = {name: _package(path, item.operation, name) for name, path in outputs.items()}

    record: dict[str, Any] = {
        "operation": item.operation,
        "success": True,
        "outputs": {name: payload.file_name for name, payload in binary.items()},
    }
    if result.duration_seconds is not None:
        record["duration_seconds"] = result.duration_seconds
    if result.warnings:
        record["warnings"] = result.warnings
    if result.details:
        record["details"] = result.details
    if scope.cleanup_failed:
        record.setdefault("warnings", []).append("Some temporary files could not be removed.")
    return ItemResult(json=record, binary=binary)


def _error_record(exc: Exception, item: WorkItem, index: int) -> dict[str, Any]:
    if isinstance(exc, MediaFXError):
        record = exc.to_dict()
    else:
        record = {
            "error": True,
            "code": UNEXPECTED_ERROR,
            "message": str(exc),
            "recovery": recovery_hints(UNEXPECTED_ERROR),
            "context": {"type": type(exc).__name__},
        }
    record["operation"] = item.operation
    record["item_index"] = index
    return record


def execute_batch(
    items: Iterable[WorkItem],
    ctx: Optional[MediaContext] = None,
    continue_on_fail: bool = False,
) -> list[ItemResult]:
    """Run work items strictly one after another.

    By default the first failure propagates. With ``continue_on_fail`` a
    failed item becomes an error record at its position and the batch
    keeps going.
    """
    ctx = ctx or default_context()
    report = ctx.temp.maybe_sweep(ctx.settings.sweep_probability)
    if report is not None:
        logger.info("Swept %d stale temp entries", len(report.removed))

    results: list[ItemResult] = []
    for index, item in enumerate(items):
        try:
            results.append(execute_item(item, ctx))
        except Exception as exc:
            if not continue_on_fail:
                raise
            logger.warning("Item %d (%s) failed: %s", index, item.operation, exc)
            results.append(ItemResult(json=_error_record(exc, item, index)))
    return results
