"""Entry points tying the hunk path and the AI fallback together.

A proposal containing SEARCH/REPLACE markers is merged deterministically. Any
other proposal is a complete or partial rewrite and is handed to a
`Reconciler`; if that fails the original text comes back unchanged and the
error is reported on the result for the caller to surface.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from hunkwise.blocks import has_search_replace, search_replace_with_report
from hunkwise.diff_engine import diff_texts
from hunkwise.document import AnnotatedDocument
from hunkwise.hunks import parse_hunked_change
from hunkwise.reconcile.base import Reconciler, ReconcileRequest

logger = logging.getLogger("hunkwise.merge")

Strategy = Literal["hunks", "reconcile", "unchanged"]


@dataclass(frozen=True, slots=True)
class MergeResult:
    merged_code: str
    original_code: str
    strategy: Strategy
    error: str | None = None
    skipped: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.merged_code != self.original_code

    def preview(self) -> AnnotatedDocument:
        """Combined original/merged view for an editor's inline diff."""
        return diff_documents(self.original_code, self.merged_code)


def preview_change(
    proposed_text: str, original: str | None = None, file_path: str | None = None
) -> AnnotatedDocument | None:
    """Display document for a hunk proposal, or None if it has no hunks.

    With only the proposal, the payload view recognizes the 7-sign
    `<<<<<<< SEARCH` markers. Given the `original` text, any proposal that
    `merge_change` would merge as hunks (including the 3-sign `<<< SEARCH`
    form) is previewed as the diff between `original` and the merged result.
    """

    if original is None:
        return parse_hunked_change(proposed_text)
    if not has_search_replace(proposed_text):
        return None
    merged, _ = search_replace_with_report(original, proposed_text, file_path)
    return diff_documents(original, merged)


def diff_documents(original: str, merged: str) -> AnnotatedDocument:
    return diff_texts(original, merged)


async def merge_change(
    original: str,
    proposed: str,
    file_path: str,
    *,
    reconciler: Reconciler | None = None,
    max_attempts: int = 2,
) -> MergeResult:
    """Merge `proposed` into `original`.

    `file_path` only attributes blocks and labels log/error messages.
    """

    if has_search_replace(proposed):
        merged, skipped = search_replace_with_report(original, proposed, file_path)
        if merged == original:
            logger.info("No SEARCH/REPLACE block applied to %s", file_path)
        return MergeResult(
            merged_code=merged,
            original_code=original,
            strategy="hunks",
            skipped=tuple(skipped),
        )

    if reconciler is None:
        logger.info("No hunk markers for %s and no reconciler; leaving file unchanged", file_path)
        return MergeResult(merged_code=original, original_code=original, strategy="unchanged")

    request = ReconcileRequest(file_path=file_path, original_code=original, proposed_code=proposed)
    result = await reconciler.reconcile_with_retry(request, max_attempts=max_attempts)
    if not result.ok:
        logger.warning("Keeping original %s: %s", file_path, result.error)
    return MergeResult(
        merged_code=result.code,
        original_code=original,
        strategy="reconcile",
        error=result.error,
    )


__all__ = ["MergeResult", "Strategy", "diff_documents", "merge_change", "preview_change"]
