"""SEARCH/REPLACE hunk parsing and annotation.

A proposed change may hold one or more hunks:

    <<<<<<< SEARCH
    old lines...
    =======
    new lines...
    >>>>>>> REPLACE

Lines outside hunks are passed through as context. Each hunk is diffed on its
own so only lines that actually changed are tagged added/removed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Literal

from hunkwise.diff_engine import compute_line_diff
from hunkwise.document import AnnotatedDocument

logger = logging.getLogger("hunkwise.hunks")

SEARCH_MARKER = "<<<<<<< SEARCH"
DIVIDER_MARKER = "======="
REPLACE_MARKER = ">>>>>>> REPLACE"


@dataclass(frozen=True, slots=True)
class Hunk:
    search_lines: tuple[str, ...]
    replace_lines: tuple[str, ...]
    # False when input ended before the closing REPLACE marker (e.g. while the
    # proposal is still streaming in).
    closed: bool = True

    def diff(self) -> AnnotatedDocument:
        return compute_line_diff(self.search_lines, self.replace_lines)


@dataclass(frozen=True, slots=True)
class ContextSegment:
    lines: tuple[str, ...] = field(default_factory=tuple)

    def annotate(self) -> AnnotatedDocument:
        return AnnotatedDocument(lines=self.lines, line_types=("context",) * len(self.lines))


Segment = ContextSegment | Hunk


def has_hunk_markers(text: str) -> bool:
    return SEARCH_MARKER in (text or "")


def iter_segments(proposed_text: str) -> Iterator[Segment]:
    """Split `proposed_text` into context runs and hunks, in document order.

    Marker lines are recognized after a right-trim; content lines are kept
    byte-for-byte. A hunk still open at end of input is flushed with
    `closed=False` rather than dropped.
    """

    section: Literal["outside", "search", "replace"] = "outside"
    context: list[str] = []
    search: list[str] = []
    replace: list[str] = []

    for line in proposed_text.split("\n"):
        marker = line.rstrip()
        if section == "outside":
            if marker == SEARCH_MARKER:
                if context:
                    yield ContextSegment(tuple(context))
                    context = []
                section = "search"
                continue
            context.append(line)
        elif section == "search":
            if marker == DIVIDER_MARKER:
                section = "replace"
                continue
            search.append(line)
        else:
            if marker == REPLACE_MARKER:
                yield Hunk(tuple(search), tuple(replace))
                search = []
                replace = []
                section = "outside"
                continue
            replace.append(line)

    if section != "outside":
        logger.debug(
            "Unterminated hunk at end of input (%d search, %d replace lines); flushing",
            len(search),
            len(replace),
        )
        yield Hunk(tuple(search), tuple(replace), closed=False)
    elif context:
        yield ContextSegment(tuple(context))


def extract_hunks(proposed_text: str) -> list[Hunk]:
    return [seg for seg in iter_segments(proposed_text) if isinstance(seg, Hunk)]


def parse_hunked_change(proposed_text: str) -> AnnotatedDocument | None:
    """Annotate a hunk-formatted proposal for display.

    Returns None when the text has no SEARCH marker at all; callers treat that
    as a full-file replacement instead.
    """

    if not has_hunk_markers(proposed_text):
        return None

    parts: list[AnnotatedDocument] = []
    for seg in iter_segments(proposed_text):
        if isinstance(seg, Hunk):
            parts.append(seg.diff())
        else:
            parts.append(seg.annotate())
    return AnnotatedDocument.concat(parts)


def _find_exact(haystack: list[str], needle: tuple[str, ...], start: int) -> int | None:
    k = len(needle)
    for i in range(start, len(haystack) - k + 1):
        if tuple(haystack[i : i + k]) == needle:
            return i
    return None


def annotate_hunks(original_text: str, proposed_text: str) -> AnnotatedDocument | None:
    """Annotate hunks in place within the full original file.

    Each hunk's search lines are located (exactly) in the original, scanning
    forward from the end of the previous hunk. Original lines between hunks
    become context. Hunks whose search lines are not found, and insertions
    with an empty search side against a non-empty file, are skipped. Keeping
    context+removed lines of the result always reproduces `original_text`.

    Text outside the hunks in `proposed_text` is not part of the file and is
    ignored. Returns None when the proposal has no hunk markers.
    """

    if not has_hunk_markers(proposed_text):
        return None

    original = original_text.split("\n")
    if not original_text.strip():
        # Empty search against a blank file creates the file.
        for hunk in extract_hunks(proposed_text):
            if not hunk.search_lines:
                return compute_line_diff(original, hunk.replace_lines)

    parts: list[AnnotatedDocument] = []
    cursor = 0
    for idx, hunk in enumerate(extract_hunks(proposed_text)):
        if not hunk.search_lines:
            logger.warning("Skipping hunk %d: empty search block on a non-empty file", idx + 1)
            continue
        at = _find_exact(original, hunk.search_lines, cursor)
        if at is None:
            logger.warning("Skipping hunk %d: search block not found in original", idx + 1)
            continue
        parts.append(ContextSegment(tuple(original[cursor:at])).annotate())
        parts.append(hunk.diff())
        cursor = at + len(hunk.search_lines)
    parts.append(ContextSegment(tuple(original[cursor:])).annotate())
    return AnnotatedDocument.concat(parts)


__all__ = [
    "DIVIDER_MARKER",
    "REPLACE_MARKER",
    "SEARCH_MARKER",
    "ContextSegment",
    "Hunk",
    "Segment",
    "annotate_hunks",
    "extract_hunks",
    "has_hunk_markers",
    "iter_segments",
    "parse_hunked_change",
]
