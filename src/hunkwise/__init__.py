from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from hunkwise.blocks import apply_search_replace, parse_search_replace_blocks
from hunkwise.diff_engine import compute_line_diff
from hunkwise.document import AnnotatedDocument, LineType
from hunkwise.errors import (
    HunkwiseConfigError,
    HunkwiseError,
    HunkwiseInputError,
    HunkwiseReconcileError,
)
from hunkwise.hunks import annotate_hunks, parse_hunked_change
from hunkwise.merger import MergeResult, merge_change, preview_change
from hunkwise.regions import DiffSession, SessionStore


def _package_version() -> str:
    try:
        return version("hunkwise")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "AnnotatedDocument",
    "DiffSession",
    "HunkwiseConfigError",
    "HunkwiseError",
    "HunkwiseInputError",
    "HunkwiseReconcileError",
    "LineType",
    "MergeResult",
    "SessionStore",
    "__version__",
    "annotate_hunks",
    "apply_search_replace",
    "compute_line_diff",
    "merge_change",
    "parse_hunked_change",
    "parse_search_replace_blocks",
    "preview_change",
]
