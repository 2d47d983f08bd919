"""Annotated documents: a line sequence with a parallel sequence of change tags."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

LineType = Literal["context", "added", "removed"]

LINE_TYPES: tuple[LineType, ...] = ("context", "added", "removed")


@dataclass(frozen=True, slots=True)
class AnnotatedDocument:
    lines: tuple[str, ...] = field(default_factory=tuple)
    line_types: tuple[LineType, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if len(self.lines) != len(self.line_types):
            raise ValueError(
                f"lines and line_types differ in length ({len(self.lines)} != "
                f"{len(self.line_types)})"
            )

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, LineType]]) -> AnnotatedDocument:
        lines: list[str] = []
        types: list[LineType] = []
        for line, kind in pairs:
            lines.append(line)
            types.append(kind)
        return cls(lines=tuple(lines), line_types=tuple(types))

    @classmethod
    def concat(cls, docs: Sequence[AnnotatedDocument]) -> AnnotatedDocument:
        lines: list[str] = []
        types: list[LineType] = []
        for doc in docs:
            lines.extend(doc.lines)
            types.extend(doc.line_types)
        return cls(lines=tuple(lines), line_types=tuple(types))

    def __len__(self) -> int:
        return len(self.lines)

    def pairs(self) -> list[tuple[str, LineType]]:
        return list(zip(self.lines, self.line_types, strict=True))

    @property
    def display_code(self) -> str:
        """All lines, removed and added alike, joined for a live preview."""
        return "\n".join(self.lines)

    def select(self, keep: Iterable[LineType]) -> list[str]:
        wanted = set(keep)
        return [line for line, kind in zip(self.lines, self.line_types) if kind in wanted]

    def original_lines(self) -> list[str]:
        return self.select(("context", "removed"))

    def proposed_lines(self) -> list[str]:
        return self.select(("context", "added"))

    def original_text(self) -> str:
        return "\n".join(self.original_lines())

    def proposed_text(self) -> str:
        return "\n".join(self.proposed_lines())

    @property
    def merged_code(self) -> str:
        """The post-change body: every change in the document accepted."""
        return self.proposed_text()

    @property
    def has_changes(self) -> bool:
        return any(kind != "context" for kind in self.line_types)

    def counts(self) -> dict[LineType, int]:
        c = Counter(self.line_types)
        return {kind: c.get(kind, 0) for kind in LINE_TYPES}
