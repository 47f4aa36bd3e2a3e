"""Subtitle file parsing."""

from __future__ import annotations

from pathlib import Path

import srt

from mediafx.errors import (
    ValidationError,
    INVALID_PARAMETER,
    SUBTITLE_EMPTY,
    recovery_hints,
)
from mediafx.models import SubtitleEntry


def parse_subtitles(text: str) -> list[SubtitleEntry]:
    """Parse SRT-formatted text into entries, in file order.

    Raises:
        ValidationError: SUBTITLE_EMPTY when there are no entries,
            INVALID_PARAMETER when a block cannot be parsed.
    """
    # Strip a UTF-8 BOM and normalize Windows line endings
    text = text.lstrip("\ufeff").replace("\r\n", "\n")
    try:
        subs = list(srt.parse(text))
    except srt.SRTParseError as exc:
        raise ValidationError(
            code=INVALID_PARAMETER,
            message=f"Malformed subtitle file: {exc}",
            recovery=recovery_hints(INVALID_PARAMETER),
        ) from exc

    entries = [
        SubtitleEntry(
            index=sub.index,
            start=sub.start.total_seconds(),
            end=sub.end.total_seconds(),
            text=sub.content.strip(),
        )
        for sub in subs
        if sub.content.strip()
    ]
    if not entries:
        raise ValidationError(
            code=SUBTITLE_EMPTY,
            message="Subtitle file contains no entries",
            recovery=recovery_hints(SUBTITLE_EMPTY),
        )
    return entries


def load_subtitles(path: str | Path) -> list[SubtitleEntry]:
    return parse_subtitles(Path(path).read_text(encoding="utf-8-sig"))
