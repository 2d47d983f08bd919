"""Pure helpers for matching file paths named in model output to open files."""

from __future__ import annotations

import re

_MULTI_SLASH_RE = re.compile(r"/+")


def normalize_path(path: str) -> str:
    """Trim, collapse repeated slashes, and drop one leading and trailing slash."""

    p = _MULTI_SLASH_RE.sub("/", (path or "").strip())
    if p.startswith("/"):
        p = p[1:]
    if p.endswith("/"):
        p = p[:-1]
    return p


def file_name(path: str) -> str:
    p = normalize_path(path)
    return p.rsplit("/", 1)[-1] if p else p


def path_matches(target: str, candidate: str) -> bool:
    """Return True if both paths name the same file.

    Model output often gives a path relative to some folder, so a match on a
    whole-segment suffix counts ("components/Button.tsx" matches
    "src/components/Button.tsx", "ton.tsx" does not).
    """

    a = normalize_path(target)
    b = normalize_path(candidate)
    if not a or not b:
        return False
    if a == b:
        return True
    shorter, longer = (a, b) if len(a) < len(b) else (b, a)
    return longer.endswith("/" + shorter)
