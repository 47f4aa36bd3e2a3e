"""Parameter validation for work items — runs before any download or engine call."""

from __future__ import annotations

from typing import Any, Mapping

from mediafx.capabilities import SIMPLE_TRANSITIONS, XFADE_TRANSITIONS
from mediafx.errors import (
    ValidationError,
    INVALID_PARAMETER,
    MISSING_SOURCE,
    UNKNOWN_OPERATION,
    recovery_hints,
)
from mediafx.filters import MIX_DURATIONS, OVERLAY_AUDIO_MODES
from mediafx.models import HORIZONTAL_ALIGNMENTS, POSITION_MODES, VERTICAL_ALIGNMENTS, parse_time

# operation -> [(param, min_count)]; min_count None means a single source
SOURCE_FIELDS: dict[str, list[tuple[str, int | None]]] = {
    "merge": [("sources", 1)],
    "trim": [("source", None)],
    "mix_audio": [("video", None), ("audio", None)],
    "extract_audio": [("source", None)],
    "separate_audio": [("source", None)],
    "image_to_video": [("source", None)],
    "transition": [("sources", 2)],
    "fade": [("source", None)],
    "text": [("source", None)],
    "subtitle": [("source", None), ("subtitle", None)],
    "stamp_image": [("source", None), ("image", None)],
    "overlay_video": [("source", None), ("overlay", None)],
    "font_list": [],
    "font_upload": [],
    "font_delete": [],
    "font_validate": [],
}

OPERATIONS = sorted(SOURCE_FIELDS)
FONT_OPERATIONS = {"font_list", "font_upload", "font_delete", "font_validate"}

_ENUMS: dict[str, dict[str, set]] = {
    "mix_audio": {"match_length": MIX_DURATIONS},
    "fade": {"effect": {"in", "out"}},
    "overlay_video": {
        "audio_mode": OVERLAY_AUDIO_MODES,
        "size_mode": {"percentage", "pixels", "original"},
        "height_mode": {"auto", "percentage"},
    },
}

# Accept "HH:MM:SS" strings as well as seconds.
_TIME_PARAMS = {"start", "end"}

# param -> (minimum, inclusive)
_NUMBERS: dict[str, dict[str, tuple[float, bool]]] = {
    "transition": {"duration": (0.0, False)},
    "fade": {"start": (0.0, True), "duration": (0.0, False)},
    "image_to_video": {"duration": (0.0, False), "width": (1, True), "height": (1, True)},
    "mix_audio": {
        "video_volume": (0.0, True), "audio_volume": (0.0, True), "start": (0.0, True),
        "duration": (0.0, False), "fade_in": (0.0, True), "fade_out": (0.0, True),
    },
    "stamp_image": {"opacity": (0.0, True), "rotation": (-360.0, True)},
    "overlay_video": {
        "opacity": (0.0, True), "main_volume": (0.0, True), "overlay_volume": (0.0, True),
        "width_percent": (0.0, False), "height_percent": (0.0, False),
    },
}


def _invalid(message: str, **context: Any) -> ValidationError:
    return ValidationError(
        code=INVALID_PARAMETER,
        message=message,
        recovery=recovery_hints(INVALID_PARAMETER),
        context=context,
    )


def _check_sources(operation: str, params: Mapping[str, Any]) -> None:
    for name, min_count in SOURCE_FIELDS[operation]:
        value = params.get(name)
        if min_count is None:
            ok = bool(value)
            count = 1 if ok else 0
            needed = 1
        else:
            ok = isinstance(value, (list, tuple)) and len(value) >= min_count
            count = len(value) if isinstance(value, (list, tuple)) else 0
            needed = min_count
        if not ok:
            raise ValidationError(
                code=MISSING_SOURCE,
                message=f"'{operation}' requires '{name}' ({needed} source(s)), got {count}",
                recovery=recovery_hints(MISSING_SOURCE),
                context={"operation": operation, "param": name},
            )


def _check_numbers(operation: str, params: Mapping[str, Any]) -> None:
    for name, (minimum, inclusive) in _NUMBERS.get(operation, {}).items():
        if params.get(name) is None:
            continue
        value = params[name]
        if name in _TIME_PARAMS and isinstance(value, str):
            try:
                value = parse_time(value)
            except ValueError as exc:
                raise _invalid(str(exc), param=name) from exc
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _invalid(f"'{name}' must be a number, got {value!r}", param=name)
        if value < minimum or (not inclusive and value == minimum):
            op = ">=" if inclusive else ">"
            raise _invalid(f"'{name}' must be {op} {minimum}, got {value}", param=name, value=value)
    if "opacity" in params and params["opacity"] is not None and params["opacity"] > 1:
        raise _invalid(f"'opacity' must be <= 1, got {params['opacity']}", param="opacity")


def _check_enums(operation: str, params: Mapping[str, Any]) -> None:
    for name, allowed in _ENUMS.get(operation, {}).items():
        if name in params and params[name] not in allowed:
            raise _invalid(
                f"'{name}' must be one of {sorted(allowed)}, got {params[name]!r}",
                param=name,
                allowed=sorted(allowed),
            )


def _check_position(params: Mapping[str, Any]) -> None:
    position = params.get("position")
    if position is None:
        return
    if not isinstance(position, Mapping):
        raise _invalid("'position' must be an object", param="position")
    mode = position.get("mode", "alignment")
    if mode not in POSITION_MODES:
        raise _invalid(f"Position mode must be one of {sorted(POSITION_MODES)}", mode=mode)
    if mode == "alignment":
        if position.get("horizontal", "center") not in HORIZONTAL_ALIGNMENTS:
            raise _invalid(f"Unknown horizontal alignment {position.get('horizontal')!r}")
        if position.get("vertical", "middle") not in VERTICAL_ALIGNMENTS:
            raise _invalid(f"Unknown vertical alignment {position.get('vertical')!r}")


def _check_times(operation: str, params: Mapping[str, Any]) -> None:
    if operation == "trim":
        try:
            start = parse_time(params.get("start", 0))
            end = parse_time(params["end"])
        except KeyError:
            raise _invalid("'trim' requires 'end'", param="end") from None
        except ValueError as exc:
            raise _invalid(str(exc)) from exc
        if start >= end:
            raise _invalid(f"Start time ({start}) must be before end time ({end})", start=start, end=end)

    if operation == "text":
        entries = params.get("entries")
        if entries is None and params.get("text"):
            entries = [params]
        if not entries:
            raise _invalid("'text' requires 'entries' or 'text'", param="entries")
        for entry in entries:
            if not isinstance(entry, Mapping) or not entry.get("text"):
                raise _invalid("Every text entry needs non-empty 'text'", param="entries")


def _check_transition(params: Mapping[str, Any]) -> None:
    name = params.get("transition", "fade")
    # Unknown names are accepted; they fall back to 'fade' at run time.
    if not isinstance(name, str) or not name:
        raise _invalid("'transition' must be a non-empty string", param="transition",
                       known=list(SIMPLE_TRANSITIONS + XFADE_TRANSITIONS))


def _check_fonts(operation: str, params: Mapping[str, Any]) -> None:
    if operation in ("font_upload", "font_delete", "font_validate") and not params.get("font_key"):
        raise _invalid(f"'{operation}' requires 'font_key'", param="font_key")
    if operation == "font_upload" and not params.get("binary_property"):
        raise _invalid("'font_upload' requires 'binary_property'", param="binary_property")


def validate_params(operation: str, params: Mapping[str, Any]) -> None:
    """Raise ValidationError if an operation's parameters are unusable."""
    if operation not in SOURCE_FIELDS:
        raise ValidationError(
            code=UNKNOWN_OPERATION,
            message=f"Unknown operation: {operation!r}",
            recovery=recovery_hints(UNKNOWN_OPERATION),
            context={"operation": operation, "valid_operations": OPERATIONS},
        )
    _check_sources(operation, params)
    _check_numbers(operation, params)
    _check_enums(operation, params)
    _check_position(params)
    _check_times(operation, params)
    if operation == "transition":
        _check_transition(params)
    _check_fonts(operation, params)
