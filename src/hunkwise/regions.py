"""Change regions and accept/reject bookkeeping over an annotated document.

An editor shows the combined document (removed and added lines together) with
accept/reject controls per contiguous run of changes. Line numbers here are
1-based and inclusive, as an editor reports them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Literal

from hunkwise.document import AnnotatedDocument
from hunkwise.paths import normalize_path

ChangeKind = Literal["added", "removed"]


@dataclass(frozen=True, slots=True)
class ChangeBlock:
    kind: ChangeKind
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1


def granular_blocks(doc: AnnotatedDocument) -> list[ChangeBlock]:
    """Group maximal runs of same-kind changed lines into blocks."""

    blocks: list[ChangeBlock] = []
    run_kind: ChangeKind | None = None
    run_start = 0

    for lineno, kind in enumerate(doc.line_types, start=1):
        if kind == run_kind:
            continue
        if run_kind is not None:
            blocks.append(ChangeBlock(run_kind, run_start, lineno - 1))
        if kind == "context":
            run_kind = None
        else:
            run_kind = kind
            run_start = lineno

    if run_kind is not None:
        blocks.append(ChangeBlock(run_kind, run_start, len(doc.line_types)))
    return blocks


def modification_partner(blocks: Iterable[ChangeBlock], block: ChangeBlock) -> ChangeBlock | None:
    """Return the block pairing with `block` as one modification, if any.

    A removed run directly followed by an added run is a modification; the
    editor shows a single control for the pair, on the removed side.
    """

    for other in blocks:
        if block.kind == "removed" and other.kind == "added" and other.start == block.end + 1:
            return other
        if block.kind == "added" and other.kind == "removed" and other.end == block.start - 1:
            return other
    return None


def control_anchors(blocks: list[ChangeBlock]) -> list[ChangeBlock]:
    """Blocks that carry an accept/reject control (added halves of pairs do not)."""
    return [b for b in blocks if not (b.kind == "added" and modification_partner(blocks, b))]


@dataclass(frozen=True, slots=True)
class DiffSession:
    combined_text: str
    unresolved_blocks: tuple[ChangeBlock, ...] = field(default_factory=tuple)

    @classmethod
    def from_document(cls, doc: AnnotatedDocument) -> DiffSession:
        return cls(combined_text=doc.display_code, unresolved_blocks=tuple(granular_blocks(doc)))

    @property
    def resolved(self) -> bool:
        return not self.unresolved_blocks


def _drop_ranges(text: str, ranges: Iterable[ChangeBlock]) -> str:
    lines = text.split("\n")
    for block in sorted(ranges, key=lambda b: b.start, reverse=True):
        del lines[block.start - 1 : block.end]
    return "\n".join(lines)


def keep_all(session: DiffSession) -> str:
    """Accept every unresolved change: removed lines go, added lines stay."""
    return _drop_ranges(
        session.combined_text, (b for b in session.unresolved_blocks if b.kind == "removed")
    )


def reject_all(session: DiffSession) -> str:
    """Reject every unresolved change: added lines go, removed lines stay."""
    return _drop_ranges(
        session.combined_text, (b for b in session.unresolved_blocks if b.kind == "added")
    )


def resolve_block(session: DiffSession, block: ChangeBlock, *, accept: bool) -> DiffSession:
    """Accept or reject a single block and return the updated session.

    A block that forms a modification with a pending partner is resolved
    together with it, as the editor shows one control for the pair. Accepting
    deletes the removed lines, rejecting deletes the added ones, and blocks
    after a deleted range shift up accordingly. Kept lines simply stop being a
    pending change.
    """

    if block not in session.unresolved_blocks:
        raise ValueError(f"block {block} is not unresolved in this session")

    group = [block]
    partner = modification_partner(session.unresolved_blocks, block)
    if partner is not None:
        group.append(partner)

    remaining = [b for b in session.unresolved_blocks if b not in group]
    deleted = [b for b in group if (b.kind == "removed") == accept]
    if not deleted:
        return replace(session, unresolved_blocks=tuple(remaining))

    text = _drop_ranges(session.combined_text, deleted)
    shifted = []
    for b in remaining:
        offset = sum(d.size for d in deleted if d.end < b.start)
        if offset:
            b = ChangeBlock(b.kind, b.start - offset, b.end - offset)
        shifted.append(b)
    return DiffSession(combined_text=text, unresolved_blocks=tuple(shifted))


class SessionStore:
    """Unresolved diff sessions per file, kept while the user switches files."""

    def __init__(self) -> None:
        self._sessions: dict[str, DiffSession] = {}

    def save(self, path: str, session: DiffSession) -> None:
        key = normalize_path(path)
        if session.resolved:
            self._sessions.pop(key, None)
            return
        self._sessions[key] = session

    def get(self, path: str) -> DiffSession | None:
        return self._sessions.get(normalize_path(path))

    def discard(self, path: str) -> DiffSession | None:
        return self._sessions.pop(normalize_path(path), None)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
