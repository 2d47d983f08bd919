from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hunkwise import __version__
from hunkwise.diagnostics import format_error_with_hint, format_skipped_blocks
from hunkwise.dotenv import load_dotenv_into_environ
from hunkwise.errors import (
    HunkwiseConfigError,
    HunkwiseInputError,
    HunkwiseReconcileError,
)

if TYPE_CHECKING:  # pragma: no cover
    from hunkwise.config import HunkwiseConfig
    from hunkwise.document import AnnotatedDocument


EXIT_OK = 0
EXIT_CONFIG_OR_INPUT = 2
EXIT_RECONCILE_FAILED = 3

_PREFIXES = {"context": "  ", "added": "+ ", "removed": "- "}


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Emit machine-readable JSON on stdout.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hunkwise")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    diff_p = subparsers.add_parser("diff", help="Show a line diff between two files.")
    diff_p.add_argument("old", type=str, help="Original file.")
    diff_p.add_argument("new", type=str, help="Changed file.")
    _add_common_flags(diff_p)

    preview_p = subparsers.add_parser(
        "preview", help="Annotate a SEARCH/REPLACE proposal for display."
    )
    preview_p.add_argument("proposed", type=str, help="File holding the proposed change.")
    preview_p.add_argument(
        "--against",
        type=str,
        default=None,
        help="Show hunks in place within this original file.",
    )
    _add_common_flags(preview_p)

    apply_p = subparsers.add_parser("apply", help="Merge a proposed change into a file.")
    apply_p.add_argument("original", type=str, help="File to merge into.")
    apply_p.add_argument("proposed", type=str, help="File holding the proposed change.")
    apply_p.add_argument(
        "--write", action="store_true", help="Write the merged body back to ORIGINAL."
    )
    apply_p.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Never call the AI fallback for proposals without SEARCH/REPLACE markers.",
    )
    apply_p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for hunkwise.toml).",
    )
    apply_p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to hunkwise.toml (defaults to <root>/hunkwise.toml).",
    )
    _add_common_flags(apply_p)

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _is_json_mode(args: argparse.Namespace) -> bool:
    return bool(getattr(args, "json_output", False))


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _read_text(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise HunkwiseInputError(f"No such file: {path}") from e
    except UnicodeDecodeError as e:
        raise HunkwiseInputError(f"File is not valid UTF-8: {path}") from e
    except OSError as e:
        raise HunkwiseInputError(f"Failed reading {path}: {e}") from e


def _format_document(doc: AnnotatedDocument) -> str:
    return "\n".join(_PREFIXES[kind] + line for line, kind in doc.pairs())


def _document_payload(doc: AnnotatedDocument) -> dict[str, Any]:
    return {
        "lines": list(doc.lines),
        "line_types": list(doc.line_types),
        "counts": doc.counts(),
    }


def _emit_document(args: argparse.Namespace, doc: AnnotatedDocument) -> None:
    if _is_json_mode(args):
        print(json.dumps(_document_payload(doc)))
    else:
        print(_format_document(doc))


def _load_config(args: argparse.Namespace) -> tuple[Path, HunkwiseConfig]:
    from hunkwise.config import default_config, find_project_root, load_config

    root = Path(args.root).resolve() if args.root else None
    config_path = Path(args.config).resolve() if args.config else None
    if root is None and config_path is not None:
        root = config_path.parent
    if root is not None:
        return root, load_config(root=root, config_path=config_path)

    try:
        root = find_project_root(Path.cwd())
    except HunkwiseConfigError:
        # No project file: run with defaults from the current directory.
        return Path.cwd(), default_config()
    return root, load_config(root=root)


def cmd_diff(args: argparse.Namespace) -> int:
    from hunkwise.diff_engine import diff_texts

    try:
        doc = diff_texts(_read_text(args.old), _read_text(args.new))
    except HunkwiseInputError as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_INPUT
    _emit_document(args, doc)
    return EXIT_OK


def cmd_preview(args: argparse.Namespace) -> int:
    from hunkwise.hunks import annotate_hunks, parse_hunked_change

    try:
        proposed = _read_text(args.proposed)
        if args.against:
            doc = annotate_hunks(_read_text(args.against), proposed)
        else:
            doc = parse_hunked_change(proposed)
    except HunkwiseInputError as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_INPUT

    if doc is None:
        _eprint(f"error: no SEARCH/REPLACE markers in {args.proposed}")
        return EXIT_CONFIG_OR_INPUT
    _emit_document(args, doc)
    return EXIT_OK


def cmd_apply(args: argparse.Namespace) -> int:
    from hunkwise.blocks import has_search_replace
    from hunkwise.merger import merge_change
    from hunkwise.reconcile import build_reconciler

    try:
        root, cfg = _load_config(args)
        load_dotenv_into_environ(root / ".env")

        original = _read_text(args.original)
        proposed = _read_text(args.proposed)

        reconciler = None
        wants_ai = cfg.merge.reconcile and not bool(args.no_reconcile)
        if wants_ai and not has_search_replace(proposed):
            reconciler = build_reconciler(cfg.llm, cfg.prompts)

        result = asyncio.run(
            merge_change(
                original,
                proposed,
                args.original,
                reconciler=reconciler,
                max_attempts=cfg.merge.max_attempts,
            )
        )
    except (HunkwiseConfigError, HunkwiseInputError) as e:
        _eprint(format_error_with_hint(e))
        return EXIT_CONFIG_OR_INPUT

    if result.skipped:
        _eprint(format_skipped_blocks({args.original: list(result.skipped)}).rstrip())

    if args.write and result.changed:
        Path(args.original).write_text(result.merged_code, encoding="utf-8")

    if _is_json_mode(args):
        print(
            json.dumps(
                {
                    "file": args.original,
                    "strategy": result.strategy,
                    "changed": result.changed,
                    "written": bool(args.write and result.changed),
                    "error": result.error,
                    "skipped": list(result.skipped),
                    "merged_code": result.merged_code,
                }
            )
        )
    elif not args.write:
        sys.stdout.write(result.merged_code)
        if result.merged_code and not result.merged_code.endswith("\n"):
            sys.stdout.write("\n")

    if result.error is not None:
        _eprint(format_error_with_hint(HunkwiseReconcileError(result.error)))
        return EXIT_RECONCILE_FAILED
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG_OR_INPUT

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "diff":
        return cmd_diff(args)
    if args.command == "preview":
        return cmd_preview(args)
    if args.command == "apply":
        return cmd_apply(args)

    return EXIT_CONFIG_OR_INPUT


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
