"""Filter graph builders for every operation.

Pure functions: they take probed facts and options and return a
``FilterGraph`` (or plain ffmpeg arguments). Nothing here touches the
filesystem or runs a process.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from mediafx.graph import Filter, FilterGraph, between, f, format_value, quote
from mediafx.models import Placement, TextEntry, TextStyle, VideoGeometry

logger = logging.getLogger(__name__)

MIN_SILENCE_SECONDS = 0.01
AUDIO_SAMPLE_RATE = 44100
AUDIO_LAYOUT = "stereo"

MIX_DURATIONS = {"shortest", "longest", "first"}
OVERLAY_AUDIO_MODES = {"main", "overlay", "mix", "none"}

# Edge-fade transitions fade through this color.
_FADE_COLORS = {"fade": "black", "fadeblack": "black", "fadewhite": "white"}


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------

def silent_audio_input(duration: float) -> list[str]:
    """Input arguments for a silent stereo track lasting ``duration`` seconds.

    Zero or unknown durations (still images probe to 0) are raised to a
    small positive floor so the generated track is never empty.
    """
    seconds = duration if duration and duration > 0 else 0.0
    seconds = max(seconds, MIN_SILENCE_SECONDS)
    return [
        "-f", "lavfi",
        "-t", format_value(float(seconds)),
        "-i", f"anullsrc=r={AUDIO_SAMPLE_RATE}:cl={AUDIO_LAYOUT}",
    ]


def _audio_format() -> Filter:
    return f(
        "aformat",
        sample_fmts="fltp",
        sample_rates=AUDIO_SAMPLE_RATE,
        channel_layouts=AUDIO_LAYOUT,
    )


def _sar_ratio(sar: str) -> str:
    # setsar takes a ratio expression; "16:9" would split into two options
    return sar.replace(":", "/") if sar else "1/1"


def _fit_and_pad(width: int, height: int, pad_x: str = "-1", pad_y: str = "-1") -> list[Filter]:
    return [
        f("scale", width, height, force_original_aspect_ratio="decrease"),
        f("pad", width, height, pad_x, pad_y, color="black"),
    ]


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def normalize_for_merge(
    reference: VideoGeometry,
    has_audio: bool,
    silent_input: int = 1,
) -> FilterGraph:
    """Normalize input 0 to the reference geometry and a fixed audio format.

    When the input has no audio, audio is read from ``silent_input``
    (see ``silent_audio_input``) instead.
    """
    g = FilterGraph()
    g.chain(
        "0:v",
        _fit_and_pad(reference.width, reference.height) + [
            f("setsar", _sar_ratio(reference.sample_aspect_ratio)),
            f("format", "yuv420p"),
            f("setpts", "PTS-STARTPTS"),
            f("fps", reference.frame_rate),
        ],
        "v",
    )
    audio_source = "0:a" if has_audio else f"{silent_input}:a"
    g.chain(audio_source, [_audio_format(), f("asetpts", "PTS-STARTPTS")], "a")
    g.map("v")
    g.map("a")
    return g


def concat_list(paths: list[str]) -> str:
    """Body of a concat demuxer list file."""
    lines = []
    for p in paths:
        safe = str(p).replace("'", "'\\''")
        lines.append(f"file '{safe}'")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

@dataclass
class Blend:
    """One blend between two consecutive clips on the output timeline."""
    offset: float
    duration: float
    transition: str

    def to_dict(self) -> dict:
        return {"offset": self.offset, "duration": self.duration, "transition": self.transition}


@dataclass
class TransitionPlan:
    graph: FilterGraph
    blends: list[Blend] = field(default_factory=list)
    strategy: str = "xfade"  # "xfade" or "edge_fade"
    video_label: str = "vout"
    audio_label: Optional[str] = None
    output_duration: float = 0.0


def _normalize_clip(
    g: FilterGraph,
    index: int,
    width: int,
    height: int,
    fps: str,
    extra: Optional[list[Filter]] = None,
) -> str:
    label = f"v{index}"
    g.chain(
        f"{index}:v",
        _fit_and_pad(width, height, "(ow-iw)/2", "(oh-ih)/2") + [
            f("setsar", 1),
            # Reset timestamps before fps; xfade needs a constant frame rate
            f("setpts", "PTS-STARTPTS"),
            f("fps", fps),
            f("format", "yuv420p"),
            f("settb", "AVTB"),
        ] + (extra or []),
        label,
    )
    return label


def _normalize_clip_audio(g: FilterGraph, index: int, extra: Optional[list[Filter]] = None) -> str:
    label = f"a{index}"
    g.chain(
        f"{index}:a",
        [_audio_format(), f("asetpts", "PTS-STARTPTS")] + (extra or []),
        label,
    )
    return label


def transition_chain(
    durations: list[float],
    width: int,
    height: int,
    fps: str,
    transition: str,
    duration: float,
    with_audio: bool,
    native: bool = True,
) -> TransitionPlan:
    """Build a transition graph over inputs ``0..N-1``.

    Native strategy chains N-1 ``xfade`` stages (plus ``acrossfade`` when
    every clip has audio); each offset is the running output length
    minus the blend duration. Without xfade, ``fade``/``fadeblack``/
    ``fadewhite`` are synthesized by fading each clip at its edges and
    concatenating: the first clip fades out, the last fades in, and
    interior clips do both.
    """
    if native:
        return _xfade_chain(durations, width, height, fps, transition, duration, with_audio)
    return _edge_fade_chain(durations, width, height, fps, transition, duration, with_audio)


def _xfade_chain(durations, width, height, fps, transition, duration, with_audio) -> TransitionPlan:
    g = FilterGraph()
    n = len(durations)
    videos = [_normalize_clip(g, i, width, height, fps) for i in range(n)]
    audios = [_normalize_clip_audio(g, i) for i in range(n)] if with_audio else []

    blends: list[Blend] = []
    running = durations[0]
    prev_v = videos[0]
    prev_a = audios[0] if with_audio else None
    for i in range(1, n):
        offset = max(0.0, running - duration)
        out_v = g.label("xv")
        g.chain(
            [prev_v, videos[i]],
            f("xfade", transition=transition, duration=duration, offset=round(offset, 6)),
            out_v,
        )
        prev_v = out_v
        if with_audio:
            out_a = g.label("xa")
            g.chain([prev_a, audios[i]], f("acrossfade", d=duration), out_a)
            prev_a = out_a
        blends.append(Blend(offset=offset, duration=duration, transition=transition))
        running += durations[i] - duration

    g.map(prev_v)
    if prev_a:
        g.map(prev_a)
    return TransitionPlan(
        graph=g,
        blends=blends,
        strategy="xfade",
        video_label=prev_v,
        audio_label=prev_a,
        output_duration=running,
    )


def _edge_fade_chain(durations, width, height, fps, transition, duration, with_audio) -> TransitionPlan:
    g = FilterGraph()
    n = len(durations)
    color = _FADE_COLORS.get(transition, "black")
    concat_inputs: list[str] = []
    blends: list[Blend] = []

    elapsed = 0.0
    for i, clip_duration in enumerate(durations):
        fade_out_start = max(0.0, clip_duration - duration)
        vfades: list[Filter] = []
        afades: list[Filter] = []
        if i > 0:
            vfades.append(f("fade", t="in", st=0, d=duration, color=color))
            afades.append(f("afade", t="in", st=0, d=duration))
        if i < n - 1:
            vfades.append(f("fade", t="out", st=round(fade_out_start, 6), d=duration, color=color))
            afades.append(f("afade", t="out", st=round(fade_out_start, 6), d=duration))

        concat_inputs.append(_normalize_clip(g, i, width, height, fps, vfades))
        if with_audio:
            concat_inputs.append(_normalize_clip_audio(g, i, afades))

        if i > 0:
            blends.append(Blend(offset=max(0.0, elapsed - duration), duration=duration, transition=transition))
        elapsed += clip_duration

    outputs = ["vout", "aout"] if with_audio else ["vout"]
    g.chain(concat_inputs, f("concat", n=n, v=1, a=1 if with_audio else 0), outputs)
    for label in outputs:
        g.map(label)
    return TransitionPlan(
        graph=g,
        blends=blends,
        strategy="edge_fade",
        video_label="vout",
        audio_label="aout" if with_audio else None,
        output_duration=elapsed,
    )


def clip_fade(
    kind: str,
    start: float,
    duration: float,
    with_audio: bool,
) -> tuple[list[Filter], list[Filter]]:
    """Video and audio filters for a single fade in or out."""
    video = [f("fade", type=kind, st=start, d=duration)]
    audio = [f("afade", type=kind, st=start, d=duration)] if with_audio else []
    return video, audio


# ---------------------------------------------------------------------------
# Audio mixing
# ---------------------------------------------------------------------------

def full_mix(
    video_volume: float,
    audio_volume: float,
    match_length: str,
    main_audio: str = "0:a",
    overlay_audio: str = "1:a",
) -> FilterGraph:
    """Mix two volume-scaled tracks; ``match_length`` picks where the mix ends."""
    g = FilterGraph()
    g.chain(main_audio, f("volume", video_volume), "a0")
    g.chain(overlay_audio, f("volume", audio_volume), "a1")
    g.chain(["a0", "a1"], f("amix", inputs=2, duration=match_length, dropout_transition=0), "aout")
    g.map("0:v?")
    g.map("aout")
    return g


def partial_mix(
    video_volume: float,
    audio_volume: float,
    start: float,
    audio_duration: float,
    window: Optional[float] = None,
    loop: bool = False,
    fade_in: float = 0.0,
    fade_out: float = 0.0,
    main_audio: str = "0:a",
    overlay_audio: str = "1:a",
) -> FilterGraph:
    """Place the overlay track inside a window of the main track.

    The overlay is looped (when asked and too short) and trimmed to
    ``window`` seconds, faded, scaled, and delayed to ``start``. The
    mix keeps the main track's length.
    """
    chain: list[Filter] = []
    looped = False
    if window is not None and loop and audio_duration < window:
        chain.append(f("aloop", loop=-1, size=2_000_000_000))
        looped = True
    if window is not None and (looped or audio_duration >= window):
        chain.append(f("atrim", duration=window))
    chain.append(f("asetpts", "PTS-STARTPTS"))

    length = window if window is not None else audio_duration
    if fade_in > 0:
        chain.append(f("afade", t="in", st=0, d=fade_in))
    if fade_out > 0:
        chain.append(f("afade", t="out", st=round(max(0.0, length - fade_out), 6), d=fade_out))
    chain.append(f("volume", audio_volume))
    delay_ms = int(round(max(0.0, start) * 1000))
    chain.append(f("adelay", f"{delay_ms}|{delay_ms}"))

    g = FilterGraph()
    g.chain(overlay_audio, chain, "overlay_audio")
    g.chain(main_audio, f("volume", video_volume), "main_audio")
    g.chain(
        ["main_audio", "overlay_audio"],
        f("amix", inputs=2, duration="first", dropout_transition=0),
        "aout",
    )
    g.map("0:v?")
    g.map("aout")
    return g


# ---------------------------------------------------------------------------
# Text and subtitles
# ---------------------------------------------------------------------------

def alignment_position(
    horizontal: str,
    vertical: str,
    padding_x: int = 0,
    padding_y: int = 0,
    for_overlay: bool = False,
) -> tuple[str, str]:
    """x/y expressions for one of the 3x3 alignment cells.

    Text uses the frame (w, h) and text (text_w, text_h) extents; image
    and video overlays use main_w/overlay_w. For overlays a centred cell
    is shifted by its padding.
    """
    if for_overlay:
        fw, fh, ow, oh = "main_w", "main_h", "overlay_w", "overlay_h"
    else:
        fw, fh, ow, oh = "w", "h", "text_w", "text_h"

    if horizontal == "left":
        x = str(padding_x)
    elif horizontal == "right":
        x = f"{fw}-{ow}-{padding_x}"
    else:
        x = f"({fw}-{ow})/2"
        if for_overlay and padding_x:
            x += f"+{padding_x}"

    if vertical == "top":
        y = str(padding_y)
    elif vertical == "bottom":
        y = f"{fh}-{oh}-{padding_y}" if for_overlay else f"{fh}-th-{padding_y}"
    else:
        y = f"({fh}-{oh})/2"
        if for_overlay and padding_y:
            y += f"+{padding_y}"
    return x, y


def placement_position(placement: Placement, for_overlay: bool = False) -> tuple[str, str]:
    if placement.mode == "custom":
        return str(placement.x), str(placement.y)
    return alignment_position(
        placement.horizontal,
        placement.vertical,
        placement.padding_x,
        placement.padding_y,
        for_overlay=for_overlay,
    )


def escape_text(text: str, expansion: bool = True) -> str:
    """Escape special characters for an ffmpeg drawtext value.

    ``expansion`` also escapes the ``%`` that drawtext expands in its
    ``text`` option; file paths pass ``False``.
    """
    # drawtext requires escaping: ' \ : ; and the % of its text expansion
    text = text.replace("\\", "\\\\")
    text = text.replace("'", "'\\\\\\''")
    text = text.replace(":", "\\:")
    text = text.replace(";", "\\;")
    if expansion:
        text = text.replace("%", "\\%")
    return text


def drawtext_filter(
    text: str,
    font_file: str,
    style: TextStyle,
    x: str,
    y: str,
    start: Optional[float] = None,
    end: Optional[float] = None,
) -> Filter:
    options: dict = {
        "fontfile": quote(escape_text(str(font_file), expansion=False)),
        "text": quote(escape_text(text)),
        "fontsize": style.size,
        "fontcolor": style.color,
        "x": x,
        "y": y,
    }
    if style.outline_width > 0:
        options["borderw"] = style.outline_width
        options["bordercolor"] = style.outline_color
    if style.box:
        options["box"] = 1
        options["boxcolor"] = style.box_color
        options["boxborderw"] = style.box_border
    if start is not None or end is not None:
        options["enable"] = between(start or 0.0, end)
    return Filter("drawtext", options=options)


def text_overlay(
    entries: list[TextEntry],
    font_file: str,
    style: TextStyle,
    placement: Placement,
) -> FilterGraph:
    """One time-gated drawtext per entry, chained on the main video."""
    x, y = placement_position(placement)
    filters = [
        drawtext_filter(e.text, font_file, style, x, y, e.start, e.end)
        for e in entries
    ]
    g = FilterGraph()
    g.chain("0:v", filters, "vout")
    g.map("vout")
    g.map("0:a?")
    return g


# ---------------------------------------------------------------------------
# Image stamp and video overlay
# ---------------------------------------------------------------------------

def _overlay_source_filters(
    width: int | str = -1,
    height: int | str = -1,
    rotation: float = 0.0,
    opacity: float = 1.0,
) -> list[Filter]:
    filters: list[Filter] = []
    if str(width) != "-1" or str(height) != "-1":
        filters.append(f("scale", width, height))
    if rotation or opacity < 1.0:
        filters.append(f("format", "rgba"))
    if rotation:
        radians = round(math.radians(rotation), 6)
        filters.append(f("rotate", radians, c="none", ow=f"rotw({radians})", oh=f"roth({radians})"))
    if opacity < 1.0:
        filters.append(f("colorchannelmixer", aa=opacity))
    return filters


def stamp_overlay(
    x: str,
    y: str,
    width: int | str = -1,
    height: int | str = -1,
    rotation: float = 0.0,
    opacity: float = 1.0,
    start: Optional[float] = None,
    end: Optional[float] = None,
) -> FilterGraph:
    """Composite input 1 (a still image) onto input 0's video."""
    g = FilterGraph()
    stamp = "1:v"
    prep = _overlay_source_filters(width, height, rotation, opacity)
    if prep:
        g.chain("1:v", prep, "stamp")
        stamp = "stamp"
    options: dict = {"x": x, "y": y}
    if start is not None or end is not None:
        options["enable"] = between(start or 0.0, end)
    g.chain(["0:v", stamp], Filter("overlay", options=options), "vout")
    g.map("vout")
    g.map("0:a?")
    return g


@dataclass
class OverlayPlan:
    graph: FilterGraph
    audio_mode: str
    warnings: list[str] = field(default_factory=list)


def _overlay_audio_mode(mode: str, main_has_audio: bool, overlay_has_audio: bool) -> tuple[str, list[str]]:
    if mode != "mix":
        return mode, []
    if main_has_audio and overlay_has_audio:
        return "mix", []
    if main_has_audio:
        return "main", ["Overlay video has no audio track; using the main video's audio only."]
    if overlay_has_audio:
        return "overlay", ["Main video has no audio track; using the overlay video's audio only."]
    return "none", ["Neither video has an audio track; output has no audio."]


def video_overlay(
    x: str,
    y: str,
    width: int | str = -1,
    height: int | str = -1,
    rotation: float = 0.0,
    opacity: float = 1.0,
    start: Optional[float] = None,
    end: Optional[float] = None,
    audio_mode: str = "main",
    main_volume: float = 1.0,
    overlay_volume: float = 1.0,
    main_has_audio: bool = True,
    overlay_has_audio: bool = True,
) -> OverlayPlan:
    """Composite input 1 (a video) onto input 0 and route audio.

    The main video keeps playing after the overlay ends. Audio modes:
    ``main``, ``overlay``, ``mix`` (volume-weighted, longest) or ``none``.
    A mix with one silent side falls back to the side that has audio.
    """
    g = FilterGraph()
    overlay_src = "1:v"
    prep = _overlay_source_filters(width, height, rotation, opacity)
    if prep:
        g.chain("1:v", prep, "ovr")
        overlay_src = "ovr"
    options: dict = {"x": x, "y": y, "eof_action": "pass", "repeatlast": 0}
    if start is not None or end is not None:
        options["enable"] = between(start or 0.0, end)
    g.chain(["0:v", overlay_src], Filter("overlay", options=options), "outv")
    g.map("outv")

    mode, warnings = _overlay_audio_mode(audio_mode, main_has_audio, overlay_has_audio)
    if mode == "main":
        g.map("0:a?")
    elif mode == "overlay":
        g.map("1:a?")
    elif mode == "mix":
        g.chain("0:a", f("volume", main_volume), "a0")
        g.chain("1:a", f("volume", overlay_volume), "a1")
        g.chain(["a0", "a1"], f("amix", inputs=2, duration="longest"), "outa")
        g.map("outa")
    for w in warnings:
        logger.warning(w)
    return OverlayPlan(graph=g, audio_mode=mode, warnings=warnings)


def overlay_scale(
    size_mode: str,
    main: Optional[VideoGeometry],
    width_percent: float = 50,
    height_mode: str = "auto",
    height_percent: float = 50,
    width_pixels: int = -1,
    height_pixels: int = -1,
) -> tuple[int, int]:
    """Overlay size for the ``percentage``, ``pixels`` and ``original`` modes.

    Percentages are of the main video's probed size (1920x1080 when
    unknown). -1 keeps the aspect ratio.
    """
    if size_mode == "pixels":
        return int(width_pixels), int(height_pixels)
    if size_mode != "percentage":
        return -1, -1
    main_w = main.width if main else 1920
    main_h = main.height if main else 1080
    w = int(round(main_w * width_percent / 100))
    h = -1 if height_mode == "auto" else int(round(main_h * height_percent / 100))
    return w, h
