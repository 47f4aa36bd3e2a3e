"""Temp file allocation, scoped release, and age-based sweeping.

Every file an operation touches (downloaded inputs, normalized
intermediates, concat lists, outputs) lives under one base directory.
Each file has a single owner that releases it through a ``TempFile``
handle; a ``ResourceScope`` guarantees release on every exit path.
Anything that still escapes is removed by a periodic sweep.
"""

from __future__ import annotations

import logging
import random
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_HOURS = 24.0


@dataclass
class CleanupOutcome:
    """Result of releasing one resource. Failures are reported, never raised."""
    path: str
    succeeded: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"path": self.path, "succeeded": self.succeeded}
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class SweepReport:
    """Summary of an age-based sweep."""
    removed: list[str] = field(default_factory=list)
    failed: list[CleanupOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "removed": self.removed,
            "removed_count": len(self.removed),
            "failed": [f.to_dict() for f in self.failed],
        }


def remove_path(path: Path) -> CleanupOutcome:
    """Delete a file or directory tree, reporting instead of raising."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove temp file %s: %s", path, exc)
        return CleanupOutcome(path=str(path), succeeded=False, error=str(exc))
    return CleanupOutcome(path=str(path), succeeded=True)


class TempFile:
    """A path under the temp directory with an idempotent release action."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._outcome: Optional[CleanupOutcome] = None

    def __fspath__(self) -> str:
        return str(self.path)

    def __str__(self) -> str:
        return str(self.path)

    def __repr__(self) -> str:
        return f"TempFile({str(self.path)!r})"

    @property
    def released(self) -> bool:
        return self._outcome is not None and self._outcome.succeeded

    def release(self) -> CleanupOutcome:
        """Remove the file. Safe to call any number of times."""
        if self.released:
            return self._outcome
        self._outcome = remove_path(self.path)
        return self._outcome


class TempFileManager:
    """Allocates unique paths under one ensured base directory."""

    def __init__(self, base_dir: str | Path, max_age_hours: float = DEFAULT_MAX_AGE_HOURS) -> None:
        self.base_dir = Path(base_dir)
        self.max_age_hours = max_age_hours
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, extension: str = "") -> Path:
        """Return a fresh, unused path with the given extension."""
        if extension and not extension.startswith("."):
            extension = f".{extension}"
        self.base_dir.mkdir(parents=True, exist_ok=True)
        return self.base_dir / f"{uuid.uuid4()}{extension}"

    def allocate(self, extension: str = "") -> TempFile:
        """Allocate a temp path. The file itself is created by its writer."""
        return TempFile(self.path_for(extension))

    def scope(self) -> ResourceScope:
        return ResourceScope(self)

    def sweep(self, max_age_hours: Optional[float] = None) -> SweepReport:
        """Remove entries older than max_age_hours (default: the manager's)."""
        max_age = self.max_age_hours if max_age_hours is None else max_age_hours
        report = SweepReport()
        if not self.base_dir.exists():
            return report

        cutoff = time.time() - max_age * 3600
        for entry in self.base_dir.iterdir():
            try:
                mtime = entry.stat().st_mtime
            except OSError as exc:
                logger.warning("Could not stat temp file %s: %s", entry, exc)
                report.failed.append(CleanupOutcome(str(entry), False, str(exc)))
                continue
            if mtime > cutoff:
                continue
            outcome = remove_path(entry)
            if outcome.succeeded:
                logger.info("Cleaned up old temp file: %s", entry.name)
                report.removed.append(str(entry))
            else:
                report.failed.append(outcome)
        return report

    def maybe_sweep(self, probability: float, rng: Callable[[], float] = random.random) -> Optional[SweepReport]:
        """Sweep with the given probability to bound per-call overhead."""
        if probability <= 0 or rng() >= probability:
            return None
        return self.sweep()


class ResourceScope:
    """Scoped acquisition for the temp files of one operation.

    Files from ``allocate`` are released when the block exits. Files
    from ``allocate_output`` are released only if the block raises, so
    a successful operation hands its output to the caller. Extra
    cleanup callables registered with ``callback`` run on exit too.
    Release failures are logged and collected in ``outcomes``; they
    never replace an exception raised inside the block.
    """

    def __init__(self, manager: TempFileManager) -> None:
        self.manager = manager
        self.outcomes: list[CleanupOutcome] = []
        self._intermediates: list[TempFile] = []
        self._outputs: list[TempFile] = []
        self._callbacks: list[Callable[[], object]] = []

    def __enter__(self) -> ResourceScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close(failed=exc_type is not None)
        return False

    def allocate(self, extension: str = "") -> TempFile:
        handle = self.manager.allocate(extension)
        self._intermediates.append(handle)
        return handle

    def allocate_output(self, extension: str = "") -> TempFile:
        handle = self.manager.allocate(extension)
        self._outputs.append(handle)
        return handle

    def track(self, handle: TempFile) -> TempFile:
        """Adopt an already-allocated handle as an intermediate."""
        self._intermediates.append(handle)
        return handle

    def callback(self, func: Callable[[], object]) -> None:
        self._callbacks.append(func)

    def close(self, failed: bool = False) -> list[CleanupOutcome]:
        handles = list(self._intermediates)
        if failed:
            handles.extend(self._outputs)
        for handle in handles:
            self.outcomes.append(handle.release())
        for func in self._callbacks:
            try:
                result = func()
            except Exception as exc:
                logger.warning("Cleanup callback failed: %s", exc)
                self.outcomes.append(CleanupOutcome(path=repr(func), succeeded=False, error=str(exc)))
                continue
            if isinstance(result, list):
                self.outcomes.extend(r for r in result if isinstance(r, CleanupOutcome))
            elif isinstance(result, CleanupOutcome):
                self.outcomes.append(result)
        self._intermediates.clear()
        self._callbacks.clear()
        if failed:
            self._outputs.clear()
        return self.outcomes

    @property
    def cleanup_failed(self) -> bool:
        return any(not o.succeeded for o in self.outcomes)
