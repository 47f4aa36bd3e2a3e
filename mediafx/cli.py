"""Command-line interface — every command outputs JSON to stdout."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from mediafx.errors import (
    EngineExecutionError,
    MediaFXError,
    ProbeError,
    FFMPEG_NOT_FOUND,
    FFPROBE_NOT_FOUND,
    INVALID_PARAMETER,
    UNEXPECTED_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION,
    EXIT_EXECUTION,
    EXIT_SYSTEM,
    ValidationError,
    recovery_hints,
)


def _json_out(data: dict | list, exit_code: int = EXIT_SUCCESS) -> int:
    """Print JSON to stdout and return exit code."""
    print(json.dumps(data, indent=2))
    return exit_code


def _exit_code_for(exc: MediaFXError) -> int:
    if exc.code in (FFMPEG_NOT_FOUND, FFPROBE_NOT_FOUND):
        return EXIT_SYSTEM
    if isinstance(exc, (EngineExecutionError, ProbeError)):
        return EXIT_EXECUTION
    return EXIT_VALIDATION


def _json_error(exc: MediaFXError, exit_code: int | None = None) -> int:
    """Print a MediaFXError as JSON and return the appropriate exit code."""
    return _json_out(exc.to_dict(), _exit_code_for(exc) if exit_code is None else exit_code)


def _context():
    from mediafx.context import default_context
    return default_context()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

def cmd_capabilities(_args) -> int:
    """Report the engine version, transition catalog and batch operations."""
    from mediafx.capabilities import SIMPLE_TRANSITIONS, XFADE_TRANSITIONS
    from mediafx.validation import OPERATIONS, SOURCE_FIELDS

    caps = _context().detector.capabilities()
    transitions = list(SIMPLE_TRANSITIONS)
    if caps.supports_xfade:
        transitions += [t for t in XFADE_TRANSITIONS if t not in SIMPLE_TRANSITIONS]
    return _json_out({
        "engine": caps.to_dict(),
        "transitions": transitions,
        "operations": {
            op: {"sources": [name for name, _ in SOURCE_FIELDS[op]]} for op in OPERATIONS
        },
    })


def cmd_probe(args) -> int:
    """Probe a media file for duration, audio and geometry."""
    from mediafx.probe import probe
    try:
        return _json_out(probe(args.file).to_dict())
    except MediaFXError as exc:
        return _json_error(exc)


def cmd_transition_check(args) -> int:
    """Report whether a transition runs natively or falls back."""
    support = _context().detector.check_transition_support(args.name)
    return _json_out({"transition": args.name, **support.to_dict()})


def _read_batch(batch_arg: str) -> tuple[list, bool, Path]:
    """Read a batch from a file path or '-' for stdin.

    Accepts a list of items or ``{"items": [...], "continue_on_fail": bool}``.
    Returns the raw items, the file's continue flag and the directory that
    relative binary paths are resolved against.
    """
    if batch_arg == "-":
        text, base = sys.stdin.read(), Path.cwd()
    else:
        path = Path(batch_arg)
        text, base = path.read_text(encoding="utf-8"), path.parent
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            code=INVALID_PARAMETER,
            message=f"Batch is not valid JSON: {exc}",
            recovery=recovery_hints(INVALID_PARAMETER),
        ) from exc
    if isinstance(data, dict):
        return list(data.get("items", [])), bool(data.get("continue_on_fail", False)), base
    return list(data), False, base


def _load_item(raw: dict, base: Path):
    """Build a WorkItem, reading ``binary`` entries (property -> file path) from disk."""
    from mediafx.models import BinaryPayload, WorkItem

    item = WorkItem.from_dict(raw)
    for prop, file_ref in (raw.get("binary") or {}).items():
        path = Path(file_ref)
        if not path.is_absolute():
            path = base / path
        item.binary[prop] = BinaryPayload(data=path.read_bytes(), file_name=path.name)
    return item


def cmd_run(args) -> int:
    """Execute a batch of work items."""
    from mediafx.engine import execute_batch
    try:
        raw_items, file_continue, base = _read_batch(args.batch)
        items = [_load_item(raw, base) for raw in raw_items]
        results = execute_batch(items, _context(), continue_on_fail=args.continue_on_fail or file_continue)
    except MediaFXError as exc:
        return _json_error(exc)
    except FileNotFoundError as exc:
        return _json_out({
            "error": True, "code": "INPUT_NOT_FOUND",
            "message": str(exc),
            "recovery": ["Check the batch file path and the binary file paths it references"],
        }, EXIT_VALIDATION)

    out_dir = Path(args.output_dir) if args.output_dir else None
    records = []
    for index, result in enumerate(results):
        record = result.to_dict()
        if out_dir is not None:
            out_dir.mkdir(parents=True, exist_ok=True)
            written = {}
            for name, payload in result.binary.items():
                target = out_dir / f"{index:03d}_{payload.file_name}"
                target.write_bytes(payload.data)
                written[name] = str(target)
            record["written"] = written
        records.append(record)

    failed = any(r.failed for r in results)
    return _json_out({"success": not failed, "results": records}, EXIT_EXECUTION if failed else EXIT_SUCCESS)


def cmd_fonts(args) -> int:
    """List, add, remove or validate fonts."""
    fonts = _context().fonts
    try:
        if args.fonts_command == "list":
            entries = fonts.list_fonts()
            return _json_out({"fonts": [e.to_dict() for e in entries], "count": len(entries)})
        if args.fonts_command == "add":
            path = Path(args.file)
            entry = fonts.upload(
                args.key, path.read_bytes(), path.name,
                name=args.name, description=args.description,
            )
            return _json_out({"font": entry.to_dict()})
        if args.fonts_command == "remove":
            fonts.delete(args.key)
            return _json_out({"font_key": args.key, "deleted": True})
        # validate
        fonts.validate_key(args.key)
        return _json_out({"font_key": args.key, "valid": True})
    except MediaFXError as exc:
        return _json_error(exc, EXIT_VALIDATION)


def cmd_sweep(args) -> int:
    """Remove stale entries from the temp directory."""
    temp = _context().temp
    report = temp.sweep(args.max_age_hours)
    return _json_out({"temp_dir": str(temp.base_dir), **report.to_dict()})


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="mediafx",
        description="Media effects over ffmpeg — all output is JSON",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log to stderr (-v info, -vv debug)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("capabilities", help="Show engine version, transitions and operations")

    p = sub.add_parser("probe", help="Probe a media file")
    p.add_argument("file", help="Path to media file")

    p = sub.add_parser("transition-check", help="Check whether a transition is natively supported")
    p.add_argument("name", help="Transition name, e.g. wipeleft")

    p = sub.add_parser("run", help="Execute a batch of work items")
    p.add_argument("batch", help="Path to batch JSON file, or '-' for stdin")
    p.add_argument("--continue-on-fail", action="store_true",
                   help="Record failed items and keep going")
    p.add_argument("--output-dir", default=None, help="Write output payloads here")

    p = sub.add_parser("fonts", help="Manage the font registry")
    fonts_sub = p.add_subparsers(dest="fonts_command", required=True)
    fonts_sub.add_parser("list", help="List system and user fonts")
    fp = fonts_sub.add_parser("add", help="Register a user font")
    fp.add_argument("key", help="Font key (letters, digits, '-' and '_')")
    fp.add_argument("file", help="Path to .ttf/.otf file")
    fp.add_argument("--name", default=None, help="Display name")
    fp.add_argument("--description", default="", help="Description")
    fp = fonts_sub.add_parser("remove", help="Delete a user font")
    fp.add_argument("key")
    fp = fonts_sub.add_parser("validate", help="Check that a key is free and well-formed")
    fp.add_argument("key")

    p = sub.add_parser("sweep", help="Remove stale temp files")
    p.add_argument("--max-age-hours", type=float, default=None,
                   help="Age threshold (default: MEDIAFX_TEMP_MAX_AGE_HOURS)")

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_VALIDATION)

    _configure_logging(args.verbose)

    handlers = {
        "capabilities": cmd_capabilities,
        "probe": cmd_probe,
        "transition-check": cmd_transition_check,
        "run": cmd_run,
        "fonts": cmd_fonts,
        "sweep": cmd_sweep,
    }

    try:
        exit_code = handlers[args.command](args)
    except MediaFXError as exc:
        exit_code = _json_error(exc, EXIT_SYSTEM)
    except Exception as exc:
        exit_code = _json_out({
            "error": True,
            "code": UNEXPECTED_ERROR,
            "message": str(exc),
            "recovery": recovery_hints(UNEXPECTED_ERROR),
        }, EXIT_SYSTEM)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
