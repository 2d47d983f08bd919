"""Shared utilities for reconciliation backends."""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path


_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def render_template(text: str, mapping: dict[str, str]) -> str:
    """Very small template renderer: replaces `{{name}}` placeholders.

    Substitution is a single pass, so placeholder-like text inside a value
    (e.g. file content) is left alone. Unknown names are kept verbatim.
    """

    def _sub(m: re.Match[str]) -> str:
        return mapping.get(m.group(1), m.group(0))

    return _PLACEHOLDER_RE.sub(_sub, text)


_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_+-]*[ \t]*\n(?P<code>.*?)\n?\s*```\s*$", re.DOTALL)


def strip_markdown_fences(text: str) -> str:
    m = _FENCE_RE.match(text or "")
    if not m:
        return text or ""
    return m.group("code") or ""


def fmt_error_block(extra_error_context: list[str] | None, *, empty: str = "(none)") -> str:
    if not extra_error_context:
        return empty
    return "\n".join(f"- {line}" for line in extra_error_context) + "\n"


def load_prompt(default_name: str, override_path: str | None) -> str:
    """Load a prompt template from the packaged defaults or a user-specified path."""
    if override_path:
        return Path(override_path).read_text(encoding="utf-8")
    p = resources.files("hunkwise") / "prompts" / default_name
    return p.read_text(encoding="utf-8")


def render_prompts(
    system_template: str,
    user_template: str,
    *,
    file_path: str,
    original_code: str,
    proposed_code: str,
    extra_error_context: list[str] | None,
) -> tuple[str, str]:
    mapping = {
        "file_path": file_path,
        "original_code": original_code,
        "proposed_code": proposed_code,
        "error_context_block": fmt_error_block(extra_error_context),
    }
    system = render_template(system_template, mapping).strip() + "\n"
    user = render_template(user_template, mapping).strip() + "\n"
    return system, user
