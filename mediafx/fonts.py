"""Font registry: symbolic font keys -> font files.

Two tiers share one key space. System fonts are a fixed catalog whose
files must sit in the fonts directory; user fonts are uploaded into
``<fonts_dir>/user`` and listed in ``user-fonts.json`` there.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional

from mediafx.errors import (
    NotFound,
    ValidationError,
    FONT_KEY_EXISTS,
    FONT_NOT_FOUND,
    INVALID_FONT_KEY,
    recovery_hints,
)
from mediafx.models import FontEntry

logger = logging.getLogger(__name__)

REGISTERED_FONTS: dict[str, dict[str, str]] = {
    "noto-sans-kr": {"name": "Noto Sans KR", "filename": "NotoSansKR-Regular.ttf",
                     "description": "Google Noto Sans KR", "category": "korean"},
    "nanum-gothic": {"name": "Nanum Gothic", "filename": "NanumGothic-Regular.ttf",
                     "description": "Naver Nanum Gothic", "category": "korean"},
    "pretendard": {"name": "Pretendard", "filename": "Pretendard-Regular.otf",
                   "description": "Pretendard", "category": "korean"},
    "roboto": {"name": "Roboto", "filename": "Roboto-Regular.ttf",
               "description": "Google Roboto", "category": "global"},
    "inter": {"name": "Inter", "filename": "Inter-Regular.ttf",
              "description": "Inter UI Font", "category": "global"},
    "dejavu-sans": {"name": "DejaVu Sans", "filename": "DejaVuSans.ttf",
                    "description": "Default fallback font", "category": "fallback"},
}

DEFAULT_FONT_KEY = "noto-sans-kr"
USER_INDEX_NAME = "user-fonts.json"

_KEY_RE = re.compile(r"^[a-zA-Z0-9_-]{3,50}$")


class FontRegistry:
    def __init__(self, fonts_dir: str | Path) -> None:
        self.fonts_dir = Path(fonts_dir)
        self.user_dir = self.fonts_dir / "user"
        self.index_path = self.user_dir / USER_INDEX_NAME
        self._lock = threading.Lock()

    # -- index ------------------------------------------------------------

    def _read_index(self) -> dict[str, dict]:
        if not self.index_path.exists():
            return {}
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable font index %s: %s", self.index_path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_index(self, index: dict[str, dict]) -> None:
        self.user_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.user_dir, prefix=".user-fonts-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(index, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, self.index_path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # -- lookup -----------------------------------------------------------

    def _system_entries(self) -> list[FontEntry]:
        entries = []
        for key, meta in REGISTERED_FONTS.items():
            path = self.fonts_dir / meta["filename"]
            if path.is_file():
                entries.append(FontEntry(
                    key=key,
                    name=meta["name"],
                    path=str(path),
                    origin="system",
                    description=meta["description"],
                    category=meta["category"],
                ))
        return entries

    def _user_entries(self, index: dict[str, dict]) -> list[FontEntry]:
        entries = []
        for key, meta in index.items():
            path = self.user_dir / str(meta.get("filename", ""))
            if path.is_file():
                entries.append(FontEntry(
                    key=key,
                    name=meta.get("name", key),
                    path=str(path),
                    origin="user",
                    description=meta.get("description", ""),
                    created_at=meta.get("createdAt"),
                ))
        return entries

    def list_fonts(self) -> list[FontEntry]:
        """Every font whose file exists, system tier first."""
        return self._system_entries() + self._user_entries(self._read_index())

    def available(self) -> dict[str, FontEntry]:
        return {entry.key: entry for entry in self.list_fonts()}

    def resolve(self, key: str) -> str:
        """Return the font file for a key, or raise FONT_NOT_FOUND."""
        entry = self.available().get(key)
        if entry is None:
            raise ValidationError(
                code=FONT_NOT_FOUND,
                message=f"Font key '{key}' not found",
                recovery=recovery_hints(FONT_NOT_FOUND, {"font_key": key}),
                context={"font_key": key, "available": sorted(self.available())},
            )
        return entry.path

    # -- validation -------------------------------------------------------

    def validate_key(self, key: str) -> None:
        """Reject malformed keys and keys used by either tier."""
        if not isinstance(key, str) or not _KEY_RE.match(key):
            raise ValidationError(
                code=INVALID_FONT_KEY,
                message=(
                    "Font key must be 3-50 characters, containing only letters, "
                    "numbers, hyphens, and underscores."
                ),
                recovery=recovery_hints(INVALID_FONT_KEY),
                context={"font_key": key},
            )
        if key in REGISTERED_FONTS or key in self._read_index():
            raise ValidationError(
                code=FONT_KEY_EXISTS,
                message=f"Font key '{key}' already exists. Please use a different key.",
                recovery=recovery_hints(FONT_KEY_EXISTS),
                context={"font_key": key},
            )

    # -- mutation ---------------------------------------------------------

    def upload(
        self,
        key: str,
        data: bytes,
        original_filename: str,
        name: Optional[str] = None,
        description: str = "",
    ) -> FontEntry:
        """Store a user font and record it in the index."""
        with self._lock:
            self.validate_key(key)
            ext = PurePosixPath(original_filename or "").suffix or ".ttf"
            filename = f"{key}{ext}"
            self.user_dir.mkdir(parents=True, exist_ok=True)
            path = self.user_dir / filename
            path.write_bytes(data)

            created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            index = self._read_index()
            index[key] = {
                "name": name or key,
                "filename": filename,
                "description": description,
                "createdAt": created_at,
            }
            try:
                self._write_index(index)
            except OSError:
                path.unlink(missing_ok=True)
                raise
            logger.info("Uploaded user font %s -> %s", key, path)
            return FontEntry(
                key=key,
                name=name or key,
                path=str(path),
                origin="user",
                description=description,
                created_at=created_at,
            )

    def delete(self, key: str) -> None:
        """Remove a user font file, then its index entry."""
        with self._lock:
            index = self._read_index()
            meta = index.get(key)
            if meta is None:
                raise NotFound(
                    code=FONT_NOT_FOUND,
                    message=f"User font with key '{key}' not found.",
                    recovery=recovery_hints(FONT_NOT_FOUND, {"font_key": key}),
                    context={"font_key": key},
                )
            (self.user_dir / str(meta.get("filename", ""))).unlink(missing_ok=True)
            del index[key]
            self._write_index(index)
            logger.info("Deleted user font %s", key)
