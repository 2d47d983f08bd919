"""Line-level diffing.

`compute_line_diff` fills a full longest-common-subsequence table (O(m*n) time
and space) and is meant for hunk-sized regions. Whole files go through
`diff_texts`, which uses `difflib` opcodes instead.
"""

from __future__ import annotations

import difflib
from collections.abc import Sequence

from hunkwise.document import AnnotatedDocument, LineType


def lcs_table(a: Sequence[str], b: Sequence[str]) -> list[list[int]]:
    """Return T where T[i][j] is the LCS length of a[:i] and b[:j]."""

    m = len(a)
    n = len(b)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        prev = table[i - 1]
        row = table[i]
        ai = a[i - 1]
        for j in range(1, n + 1):
            if ai == b[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])
    return table


def compute_line_diff(
    old_lines: Sequence[str], new_lines: Sequence[str]
) -> AnnotatedDocument:
    """Compute a minimal edit script from `old_lines` to `new_lines`.

    Matching lines are tagged "context"; everything else is "added" or
    "removed". When walking the table backwards, ties between an insertion and
    a deletion go to the insertion, so within a changed run the removed lines
    come out ahead of the added ones in forward order.

    Keeping context+removed lines reproduces `old_lines`; keeping context+added
    lines reproduces `new_lines`. Empty inputs are valid.
    """

    table = lcs_table(old_lines, new_lines)
    ops: list[tuple[str, LineType]] = []
    i = len(old_lines)
    j = len(new_lines)

    while i > 0 or j > 0:
        if i > 0 and j > 0 and old_lines[i - 1] == new_lines[j - 1]:
            ops.append((old_lines[i - 1], "context"))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            ops.append((new_lines[j - 1], "added"))
            j -= 1
        else:
            ops.append((old_lines[i - 1], "removed"))
            i -= 1

    ops.reverse()
    return AnnotatedDocument.from_pairs(ops)


def diff_texts(old_text: str, new_text: str) -> AnnotatedDocument:
    """Diff two whole text bodies split on "\\n" (no line-ending normalization).

    Whole files go through `difflib.SequenceMatcher` rather than the full LCS
    table. Within a replaced run the removed lines precede the added ones, as
    in `compute_line_diff`, and both round-trip guarantees still hold.
    """

    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    ops: list[tuple[str, LineType]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            ops.extend((line, "context") for line in old_lines[i1:i2])
            continue
        if tag in ("replace", "delete"):
            ops.extend((line, "removed") for line in old_lines[i1:i2])
        if tag in ("replace", "insert"):
            ops.extend((line, "added") for line in new_lines[j1:j2])
    return AnnotatedDocument.from_pairs(ops)


__all__ = ["compute_line_diff", "diff_texts", "lcs_table"]
