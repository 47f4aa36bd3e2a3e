"""Tests for mediafx.sources — resolving URL and binary sources to temp files."""

import pytest
import requests

from mediafx import sources as sources_module
from mediafx.errors import (
    ResolutionError,
    MISSING_PAYLOAD,
    UNSUPPORTED_SOURCE,
    URL_UNREACHABLE,
)
from mediafx.models import BinaryPayload
from mediafx.sources import (
    BinarySource,
    UrlSource,
    resolve_input,
    resolve_inputs,
    source_from_dict,
)
from mediafx.tempfiles import TempFileManager


class FakeResponse:
    def __init__(self, chunks, status=200):
        self.chunks = chunks
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Client Error")

    def iter_content(self, chunk_size=1):
        yield from self.chunks


@pytest.fixture
def temp(tmp_path) -> TempFileManager:
    return TempFileManager(tmp_path / "work")


class TestSourceDescriptors:
    def test_url(self):
        assert source_from_dict({"source_type": "url", "value": "https://x/a.mp4"}) == UrlSource("https://x/a.mp4")

    def test_bare_string_is_url(self):
        assert source_from_dict("https://x/a.mp4") == UrlSource("https://x/a.mp4")

    def test_binary(self):
        assert source_from_dict({"source_type": "binary", "binary_property": "clip"}) == BinarySource("clip")

    @pytest.mark.parametrize("bad", [{"source_type": "ftp", "value": "x"}, {"source_type": "url"}, 42])
    def test_unsupported(self, bad):
        with pytest.raises(ResolutionError) as exc_info:
            source_from_dict(bad)
        assert exc_info.value.code == UNSUPPORTED_SOURCE


class TestResolve:
    def test_binary_written_with_extension(self, temp):
        payloads = {"clip": BinaryPayload(b"abc", file_name="holiday.MOV")}
        resolved = resolve_input({"source_type": "binary", "binary_property": "clip"}, payloads, temp)
        assert resolved.path.read_bytes() == b"abc"
        assert resolved.path.suffix.lower() == ".mov"

    def test_missing_payload(self, temp):
        with pytest.raises(ResolutionError) as exc_info:
            resolve_input({"source_type": "binary", "binary_property": "nope"}, {}, temp)
        assert exc_info.value.code == MISSING_PAYLOAD

    def test_url_streamed_to_disk(self, temp, monkeypatch):
        seen = {}

        def fake_get(url, **kwargs):
            seen.update(kwargs, url=url)
            return FakeResponse([b"he", b"", b"llo"])

        monkeypatch.setattr(sources_module.requests, "get", fake_get)
        resolved = resolve_input("https://cdn.example.com/v/clip.mp4?sig=1", {}, temp, download_timeout=12)
        assert resolved.path.read_bytes() == b"hello"
        assert resolved.path.suffix == ".mp4"
        assert seen["stream"] is True
        assert seen["timeout"] == 12

    def test_http_error_leaves_nothing_behind(self, temp, monkeypatch):
        monkeypatch.setattr(sources_module.requests, "get", lambda url, **kw: FakeResponse([], status=404))
        with pytest.raises(ResolutionError) as exc_info:
            resolve_input("https://cdn.example.com/missing.mp4", {}, temp)
        assert exc_info.value.code == URL_UNREACHABLE
        assert list(temp.base_dir.iterdir()) == []

    def test_connection_error(self, temp, monkeypatch):
        def refuse(url, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(sources_module.requests, "get", refuse)
        with pytest.raises(ResolutionError) as exc_info:
            resolve_input("https://down.example.com/a.mp4", {}, temp)
        assert exc_info.value.code == URL_UNREACHABLE

    def test_partial_failure_rolls_back(self, temp):
        payloads = {"a": BinaryPayload(b"1", "a.mp4"), "b": BinaryPayload(b"2", "b.mp4")}
        descriptors = [
            {"source_type": "binary", "binary_property": "a"},
            {"source_type": "binary", "binary_property": "b"},
            {"source_type": "binary", "binary_property": "c"},
        ]
        with pytest.raises(ResolutionError):
            resolve_inputs(descriptors, payloads, temp)
        assert list(temp.base_dir.iterdir()) == []

    def test_cleanup_releases_all(self, temp):
        payloads = {"a": BinaryPayload(b"1", "a.mp4"), "b": BinaryPayload(b"2", "b.wav")}
        resolved = resolve_inputs(
            [{"source_type": "binary", "binary_property": p} for p in ("a", "b")], payloads, temp,
        )
        assert len(resolved) == 2
        assert all(p.exists() for p in resolved.paths)
        outcomes = resolved.cleanup()
        assert all(o.succeeded for o in outcomes)
        assert list(temp.base_dir.iterdir()) == []
