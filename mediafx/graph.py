"""Typed ffmpeg filter graphs.

A graph is an ordered list of stages. Each stage reads some pads,
runs a chain of filters, and writes some pads::

    [0:v]scale=1280:720,setsar=1[v0];[v0][1:v]overlay=x=10:y=10[vout]

Pad labels are checked as stages are added: a label may be produced
once and consumed once, and a stage may only consume a label an
earlier stage produced. Stream specifiers such as ``0:v`` or ``1:a?``
refer to inputs, not pads, and are exempt.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from mediafx.errors import ValidationError, INVALID_FILTER_GRAPH

_STREAM_SPEC_RE = re.compile(r"^\d+(:[vas](:\d+)?)?\??$")
_LABEL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class GraphError(ValidationError):
    """A filter graph was wired incorrectly."""


def _graph_error(message: str, **context: Any) -> GraphError:
    return GraphError(
        code=INVALID_FILTER_GRAPH,
        message=message,
        recovery=["This is a bug in graph construction; please report it with the operation parameters"],
        context=context,
    )


def is_stream_spec(label: str) -> bool:
    return bool(_STREAM_SPEC_RE.match(label))


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        # 4.0 -> "4", 0.1 stays "0.1"
        return f"{value:g}" if value == int(value) else repr(value)
    return str(value)


@dataclass
class Filter:
    """One filter: ``name=arg1:arg2:key=value``."""
    name: str
    args: tuple = ()
    options: dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        parts = [format_value(a) for a in self.args]
        parts += [f"{k}={format_value(v)}" for k, v in self.options.items() if v is not None]
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)


def f(name: str, *args: Any, **options: Any) -> Filter:
    """Shorthand constructor: ``f("fade", t="in", st=0, d=1)``."""
    return Filter(name=name, args=tuple(args), options=dict(options))


def render_chain(filters: Iterable[Filter]) -> str:
    """Render filters as a simple chain for ``-vf`` / ``-af``."""
    return ",".join(flt.render() for flt in filters)


Labels = Union[str, Iterable[str], None]


def _as_list(labels: Labels) -> list[str]:
    if labels is None:
        return []
    if isinstance(labels, str):
        return [labels]
    return list(labels)


@dataclass
class Stage:
    inputs: list[str]
    filters: list[Filter]
    outputs: list[str]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return f"{ins}{render_chain(self.filters)}{outs}"


class FilterGraph:
    """An ordered, label-checked filter graph plus its output mapping."""

    def __init__(self) -> None:
        self.stages: list[Stage] = []
        self.maps: list[str] = []
        self._produced: set[str] = set()
        self._consumed: set[str] = set()
        self._counters: dict[str, int] = {}

    def label(self, prefix: str) -> str:
        """Return a fresh label with the given prefix."""
        n = self._counters.get(prefix, 0)
        self._counters[prefix] = n + 1
        return f"{prefix}{n}"

    def _consume(self, label: str) -> None:
        if is_stream_spec(label):
            return
        if label not in self._produced:
            raise _graph_error(f"Pad [{label}] is consumed before it is produced", label=label)
        if label in self._consumed:
            raise _graph_error(f"Pad [{label}] is consumed more than once", label=label)
        self._consumed.add(label)

    def _produce(self, label: str) -> None:
        if not _LABEL_RE.match(label):
            raise _graph_error(f"Invalid pad label: {label!r}", label=label)
        if label in self._produced:
            raise _graph_error(f"Pad [{label}] is produced more than once", label=label)
        self._produced.add(label)

    def add(self, stage: Stage) -> Stage:
        if not stage.filters:
            raise _graph_error("A stage needs at least one filter", inputs=stage.inputs)
        for label in stage.inputs:
            self._consume(label)
        for label in stage.outputs:
            self._produce(label)
        self.stages.append(stage)
        return stage

    def chain(self, inputs: Labels, filters: Iterable[Filter] | Filter, outputs: Labels) -> Stage:
        if isinstance(filters, Filter):
            filters = [filters]
        return self.add(Stage(_as_list(inputs), list(filters), _as_list(outputs)))

    def map(self, label: str) -> None:
        """Route a pad (or an input stream specifier) to the output file."""
        self._consume(label)
        self.maps.append(label)

    def dangling(self) -> list[str]:
        return sorted(self._produced - self._consumed)

    def render(self) -> str:
        dangling = self.dangling()
        if dangling:
            raise _graph_error(f"Unconnected pads: {', '.join(dangling)}", labels=dangling)
        return ";".join(stage.render() for stage in self.stages)

    def args(self) -> list[str]:
        """ffmpeg arguments: ``-filter_complex`` followed by every ``-map``."""
        out: list[str] = []
        if self.stages:
            out += ["-filter_complex", self.render()]
        for label in self.maps:
            out += ["-map", label if is_stream_spec(label) else f"[{label}]"]
        return out

    def filter_names(self) -> list[str]:
        return [flt.name for stage in self.stages for flt in stage.filters]

    def find(self, name: str) -> list[Filter]:
        return [flt for stage in self.stages for flt in stage.filters if flt.name == name]

    def __str__(self) -> str:
        return self.render()


def quote(value: str) -> str:
    """Wrap a filter option value in single quotes."""
    return f"'{value}'"


def between(start: float, end: Optional[float]) -> str:
    """An ``enable`` expression for a [start, end] time window."""
    if end is None:
        return quote(f"gte(t,{format_value(float(start))})")
    return quote(f"between(t,{format_value(float(start))},{format_value(float(end))})")
