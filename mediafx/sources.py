"""Turn source descriptors (URL or named binary payload) into local temp files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Mapping, Optional, Union
from urllib.parse import urlparse

import requests

from mediafx.errors import (
    ResolutionError,
    MISSING_PAYLOAD,
    UNSUPPORTED_SOURCE,
    URL_UNREACHABLE,
    recovery_hints,
)
from mediafx.models import BinaryPayload
from mediafx.tempfiles import CleanupOutcome, TempFile, TempFileManager

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_EXTENSION = ".tmp"


@dataclass(frozen=True)
class UrlSource:
    url: str


@dataclass(frozen=True)
class BinarySource:
    property: str


Source = Union[UrlSource, BinarySource]


def source_from_dict(data: Mapping | str) -> Source:
    """Build a source from ``{"source_type": "url"|"binary", ...}``.

    A bare string is taken as a URL.
    """
    if isinstance(data, str):
        return UrlSource(url=data)
    if isinstance(data, (UrlSource, BinarySource)):
        return data

    kind = data.get("source_type") if isinstance(data, Mapping) else None
    if kind == "url" and data.get("value"):
        return UrlSource(url=str(data["value"]))
    if kind == "binary" and data.get("binary_property"):
        return BinarySource(property=str(data["binary_property"]))
    raise ResolutionError(
        code=UNSUPPORTED_SOURCE,
        message=f"Unsupported source descriptor: {data!r}",
        recovery=recovery_hints(UNSUPPORTED_SOURCE),
        context={"source": repr(data)},
    )


def _extension_from_name(name: Optional[str]) -> str:
    if not name:
        return DEFAULT_EXTENSION
    suffix = PurePosixPath(name).suffix
    return suffix if suffix else DEFAULT_EXTENSION


@dataclass
class ResolvedInput:
    """A local file made from a source, owned by the caller until released."""
    path: Path
    handle: TempFile
    source: Source

    def release(self) -> CleanupOutcome:
        return self.handle.release()


@dataclass
class ResolvedInputs:
    items: list[ResolvedInput] = field(default_factory=list)

    @property
    def paths(self) -> list[Path]:
        return [item.path for item in self.items]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def cleanup(self) -> list[CleanupOutcome]:
        """Release every input. One failed delete never blocks the others."""
        outcomes = []
        for item in self.items:
            outcome = item.release()
            if not outcome.succeeded:
                logger.warning("Failed to clean up resolved input %s: %s", outcome.path, outcome.error)
            outcomes.append(outcome)
        return outcomes


def download_url(url: str, temp: TempFileManager, timeout: float = 300.0) -> TempFile:
    """Stream a URL into a new temp file."""
    handle = temp.allocate(_extension_from_name(urlparse(url).path))
    logger.debug("Downloading %s -> %s", url, handle.path)
    try:
        with requests.get(url, stream=True, timeout=timeout, allow_redirects=True) as r:
            r.raise_for_status()
            with open(handle.path, "wb") as f:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except requests.RequestException as exc:
        handle.release()
        raise ResolutionError(
            code=URL_UNREACHABLE,
            message=f"Failed to download {url}: {exc}",
            recovery=recovery_hints(URL_UNREACHABLE),
            context={"url": url},
        ) from exc
    except OSError:
        handle.release()
        raise
    return handle


def write_payload(
    prop: str,
    payloads: Mapping[str, BinaryPayload],
    temp: TempFileManager,
) -> TempFile:
    """Write a named binary payload to a new temp file."""
    payload = payloads.get(prop)
    if payload is None:
        raise ResolutionError(
            code=MISSING_PAYLOAD,
            message=f"No binary data found in property '{prop}'",
            recovery=recovery_hints(MISSING_PAYLOAD),
            context={"binary_property": prop, "available": sorted(payloads)},
        )
    handle = temp.allocate(_extension_from_name(payload.file_name))
    try:
        handle.path.write_bytes(payload.data)
    except OSError:
        handle.release()
        raise
    return handle


def resolve_input(
    source: Source | Mapping | str,
    payloads: Mapping[str, BinaryPayload],
    temp: TempFileManager,
    download_timeout: float = 300.0,
) -> ResolvedInput:
    src = source_from_dict(source)
    if isinstance(src, UrlSource):
        handle = download_url(src.url, temp, timeout=download_timeout)
    else:
        handle = write_payload(src.property, payloads, temp)
    return ResolvedInput(path=handle.path, handle=handle, source=src)


def resolve_inputs(
    sources: list,
    payloads: Mapping[str, BinaryPayload],
    temp: TempFileManager,
    download_timeout: float = 300.0,
) -> ResolvedInputs:
    """Resolve every source in order.

    If any source fails, the ones already resolved are released before
    the error propagates.
    """
    resolved = ResolvedInputs()
    try:
        for source in sources:
            resolved.items.append(resolve_input(source, payloads, temp, download_timeout))
    except BaseException:
        resolved.cleanup()
        raise
    return resolved
