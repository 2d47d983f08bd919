"""Apply SEARCH/REPLACE blocks from raw model output to an original file.

Unlike `hunkwise.hunks`, which annotates a proposal for display, this module
produces the final merged body. It accepts several shapes of model output:
blocks may sit inside fenced code, be preceded by a file path
line ("File: src/app.ts" or just "src/app.ts"), use the short marker variant
(`<<< SEARCH` / `>>> REPLACE`), or differ from the original in indentation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hunkwise.paths import normalize_path, path_matches

logger = logging.getLogger("hunkwise.blocks")

_SEARCH_MARKERS = ("<<<<<<< SEARCH", "<<< SEARCH")
_REPLACE_MARKERS = (">>>>>>> REPLACE", ">>> REPLACE")
_DIVIDER = "======="
_FENCE = "```"
_MARKER_PREFIXES = ("<<<", ">>>", "=======", _FENCE)
_SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".html", ".css", ".json", ".py", ".md")

NEW_FILE = -1


@dataclass(frozen=True, slots=True)
class SearchReplaceBlock:
    file_path: str
    search_lines: tuple[str, ...]
    replace_lines: tuple[str, ...]


def _bare_path(stripped: str) -> str:
    if stripped.startswith("File:"):
        stripped = stripped[len("File:") :].strip()
    # Markdown emphasis, inline code and a trailing colon around the name.
    return stripped.strip("*`").rstrip(":").strip().strip("*`")


def _is_path_line(stripped: str) -> bool:
    if not stripped or stripped.startswith(_MARKER_PREFIXES):
        return False
    if stripped.startswith("File:"):
        return True
    bare = _bare_path(stripped)
    if not bare:
        return False
    if " " in bare:
        return bare.endswith(_SOURCE_SUFFIXES) and "/" in bare
    return "/" in bare or "\\" in bare or bare.endswith(_SOURCE_SUFFIXES)


def _clean_path(stripped: str) -> str:
    return normalize_path(_bare_path(stripped))


def _trim_blank_edges(lines: list[str]) -> tuple[str, ...]:
    start = 0
    end = len(lines)
    while start < end and lines[start] == "":
        start += 1
    while end > start and lines[end - 1] == "":
        end -= 1
    return tuple(lines[start:end])


def parse_blocks(lines: list[str]) -> list[tuple[tuple[str, ...], tuple[str, ...]]]:
    """Return (search, replace) pairs for every complete block in `lines`.

    Incomplete trailing blocks are dropped, as are blocks with both sides empty.
    """

    out: list[tuple[tuple[str, ...], tuple[str, ...]]] = []
    state = "outside"
    search: list[str] = []
    replace: list[str] = []

    for line in lines:
        stripped = line.strip()
        if state == "outside":
            if stripped.startswith(_SEARCH_MARKERS):
                state = "search"
                search = []
                replace = []
        elif state == "search":
            if stripped.startswith(_DIVIDER):
                state = "replace"
            else:
                search.append(line)
        elif stripped.startswith(_REPLACE_MARKERS):
            s = _trim_blank_edges(search)
            r = _trim_blank_edges(replace)
            if s or r:
                out.append((s, r))
            state = "outside"
        else:
            replace.append(line)
    return out


def parse_search_replace_blocks(
    snippet: str, default_file_path: str | None = None
) -> list[SearchReplaceBlock]:
    """Parse SEARCH/REPLACE blocks out of free-form model output."""

    trimmed = (snippet or "").strip()
    blocks: list[SearchReplaceBlock] = []
    current_path: str | None = None
    pending: list[str] = []
    in_block = False

    def _flush() -> None:
        nonlocal pending
        if pending and current_path:
            for search, replace in parse_blocks(pending):
                blocks.append(SearchReplaceBlock(current_path, search, replace))
        pending = []

    for line in trimmed.split("\n"):
        stripped = line.strip()

        if not in_block and _is_path_line(stripped):
            _flush()
            current_path = _clean_path(stripped)
            continue

        if stripped.startswith(_FENCE):
            if in_block:
                _flush()
                in_block = False
            else:
                in_block = True
                pending = []
            continue

        if in_block:
            pending.append(line)
        elif stripped.startswith(_SEARCH_MARKERS):
            # Raw block with no surrounding fence.
            if not current_path and default_file_path:
                current_path = normalize_path(default_file_path)
            in_block = True
            pending.append(line)

    if pending:
        if not current_path and default_file_path:
            current_path = normalize_path(default_file_path)
        _flush()

    if not blocks and has_search_replace(trimmed):
        path = normalize_path(default_file_path) if default_file_path else "unknown"
        for search, replace in parse_blocks(trimmed.split("\n")):
            blocks.append(SearchReplaceBlock(path, search, replace))

    return blocks


def has_search_replace(text: str) -> bool:
    """True if `text` holds either SEARCH marker variant."""
    return any(m in (text or "") for m in _SEARCH_MARKERS)


def find_block(code: str, search_lines: tuple[str, ...] | list[str]) -> int | None:
    """Locate `search_lines` in `code`.

    Returns the 0-based start line, NEW_FILE (-1) for an empty search, or None
    when there is no match. An exact match wins; otherwise the first match
    ignoring leading/trailing whitespace on each line is used.
    """

    if not search_lines:
        return NEW_FILE

    code_lines = code.split("\n")
    k = len(search_lines)
    last = len(code_lines) - k

    for i in range(last + 1):
        if all(code_lines[i + j] == search_lines[j] for j in range(k)):
            return i

    wanted = [s.strip() for s in search_lines]
    for i in range(last + 1):
        if all(code_lines[i + j].strip() == wanted[j] for j in range(k)):
            return i

    return None


def _apply_numbered(
    original: str, numbered: list[tuple[int, SearchReplaceBlock]]
) -> tuple[str, list[tuple[int, str]]]:
    result = original
    skipped: list[tuple[int, str]] = []
    for number, block in reversed(numbered):
        start = find_block(result, block.search_lines)

        if start == NEW_FILE:
            if not result.strip():
                result = "\n".join(block.replace_lines)
            else:
                skipped.append((number, "empty SEARCH against a non-empty file"))
            continue

        if start is None:
            skipped.append((number, "SEARCH text not found"))
            continue

        lines = result.split("\n")
        end = start + len(block.search_lines)
        result = "\n".join([*lines[:start], *block.replace_lines, *lines[end:]])

    skipped.reverse()
    return result, skipped


def _reasons(skipped: list[tuple[int, str]]) -> list[str]:
    return [f"block {number}: {why}" for number, why in sorted(skipped)]


def apply_blocks(original: str, blocks: list[SearchReplaceBlock]) -> tuple[str, list[str]]:
    """Apply blocks last-to-first so earlier line indices stay valid.

    Returns the merged text and one reason string per block that was skipped.
    """

    merged, skipped = _apply_numbered(original, list(enumerate(blocks, start=1)))
    return merged, _reasons(skipped)


def search_replace_with_report(
    original: str, snippet: str, file_path: str | None = None
) -> tuple[str, list[str]]:
    """Like `apply_search_replace`, also returning why blocks were skipped.

    Blocks addressed to a file other than `file_path` are reported too. Block
    numbers count every parsed block, in snippet order.
    """

    numbered = list(enumerate(parse_search_replace_blocks(snippet, file_path), start=1))
    skipped: list[tuple[int, str]] = []
    if file_path:
        kept: list[tuple[int, SearchReplaceBlock]] = []
        for number, b in numbered:
            if b.file_path == "unknown" or path_matches(file_path, b.file_path):
                kept.append((number, b))
            else:
                skipped.append((number, f"addressed to {b.file_path}"))
        numbered = kept

    merged = original
    if numbered:
        merged, not_applied = _apply_numbered(original, numbered)
        skipped.extend(not_applied)

    reasons = _reasons(skipped)
    for reason in reasons:
        logger.warning("Skipping %s for %s", reason, file_path or "<unnamed>")
    return merged, reasons


def apply_search_replace(original: str, snippet: str, file_path: str | None = None) -> str:
    """Merge the SEARCH/REPLACE blocks in `snippet` into `original`.

    When `file_path` is given, blocks explicitly addressed to another file are
    not applied. Returns `original` unchanged when nothing applies.
    """
    return search_replace_with_report(original, snippet, file_path)[0]


__all__ = [
    "NEW_FILE",
    "SearchReplaceBlock",
    "apply_blocks",
    "apply_search_replace",
    "find_block",
    "has_search_replace",
    "parse_blocks",
    "parse_search_replace_blocks",
    "search_replace_with_report",
]
