"""Error formatting and actionable hints for Hunkwise CLI output.

Keep this module small and dependency-light: it is imported by the CLI layer
and only depends on the error hierarchy.
"""

from __future__ import annotations

from hunkwise.errors import (
    HunkwiseConfigError,
    HunkwiseInputError,
    HunkwiseReconcileError,
)


def format_skipped_blocks(skipped: dict[str, list[str]]) -> str:
    """Summarize SEARCH/REPLACE blocks that could not be applied, per file."""
    if not skipped:
        return ""
    lines = [f"Unapplied changes in {len(skipped)} file(s):\n"]
    for path in sorted(skipped):
        lines.append(f"  {path}:")
        for reason in skipped[path]:
            lines.append(f"    - {reason}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def format_hint(exc: BaseException) -> str | None:
    """Return an actionable hint for a known error, or None."""
    msg = str(exc)

    if isinstance(exc, HunkwiseConfigError):
        if "Could not find hunkwise.toml" in msg or "Missing hunkwise.toml" in msg:
            return "pass --root or --config, or run from inside the project"
        if "Missing API key" in msg:
            return "create a .env file in your project root with the key"
        if "Unsupported llm.provider" in msg:
            return 'set [llm] provider = "openai" or "anthropic" in hunkwise.toml'
        if "package is required" in msg:
            return "install the provider SDK, or pass --no-reconcile"
        return None

    if isinstance(exc, HunkwiseInputError):
        return "check the file path and that the file is UTF-8 text"

    if isinstance(exc, HunkwiseReconcileError):
        return (
            "the original file was left unchanged; retry, or send the change as "
            "SEARCH/REPLACE blocks"
        )

    return None


def format_error_with_hint(exc: BaseException) -> str:
    """Format error message + optional hint for stderr output."""
    msg = (str(exc) or repr(exc)).strip()
    result = f"error: {msg}"
    hint = format_hint(exc)
    if hint:
        result += f"\nhint: {hint}"
    return result
