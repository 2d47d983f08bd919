from __future__ import annotations

from hunkwise.reconcile.shared import (
    fmt_error_block,
    render_prompts,
    render_template,
    strip_markdown_fences,
)


def test_render_template_replaces_known_names() -> None:
    assert render_template("{{a}} and {{b}}", {"a": "1", "b": "2"}) == "1 and 2"
    assert render_template("{{missing}}", {"a": "1"}) == "{{missing}}"


def test_render_template_does_not_expand_placeholders_inside_values() -> None:
    out = render_template(
        "orig: {{original_code}}\nnew: {{proposed_code}}",
        {"original_code": "x = '{{proposed_code}}'", "proposed_code": "SNIPPET"},
    )
    assert out == "orig: x = '{{proposed_code}}'\nnew: SNIPPET"


def test_render_prompts_keeps_template_text_in_file_content() -> None:
    original = "TEMPLATE = '{{error_context_block}}'\n"
    _system, user = render_prompts(
        "file {{file_path}}",
        "{{original_code}}|{{error_context_block}}",
        file_path="t.py",
        original_code=original,
        proposed_code="",
        extra_error_context=None,
    )
    assert user == "TEMPLATE = '{{error_context_block}}'\n|(none)\n"


def test_fmt_error_block() -> None:
    assert fmt_error_block(None) == "(none)"
    assert fmt_error_block(["a", "b"]) == "- a\n- b\n"


def test_strip_markdown_fences() -> None:
    assert strip_markdown_fences("```python\nx = 1\n```") == "x = 1"
    assert strip_markdown_fences("x = 1\n") == "x = 1\n"
    assert strip_markdown_fences("") == ""
