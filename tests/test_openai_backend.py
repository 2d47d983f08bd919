from __future__ import annotations

import asyncio
import sys

import pytest

from hunkwise.config import LLMConfig, PromptsConfig
from hunkwise.errors import HunkwiseConfigError, HunkwiseReconcileError
from hunkwise.reconcile.base import ReconcileRequest
from hunkwise.reconcile.openai_backend import OpenAIReconciler


def _llm() -> LLMConfig:
    return LLMConfig(provider="openai", model="gpt-test", api_key_env="OPENAI_API_KEY")


def _request() -> ReconcileRequest:
    return ReconcileRequest(
        file_path="src/app.py",
        original_code="import os\n\nVALUE = 1\n",
        proposed_code="# ... existing code ...\nVALUE = 2  # NEW: bump\n",
    )


def _fake_client(content: str, captured: list[dict] | None = None):
    class _FakeResp:
        class _Choice:
            class _Message:
                pass

            message = _Message()

        choices = [_Choice()]

    _FakeResp._Choice._Message.content = content

    class _FakeCompletions:
        @staticmethod
        async def create(**kwargs):
            if captured is not None:
                captured.append(kwargs)
            return _FakeResp()

    return type("C", (), {"chat": type("Ch", (), {"completions": _FakeCompletions})()})()


def test_openai_reconciler_strips_fences(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    backend = OpenAIReconciler(_llm())

    # Force fallback (non-structured) path.
    monkeypatch.setattr(type(backend), "supports_structured_output", property(lambda self: False))

    async def fake_call(messages):
        assert isinstance(messages, list)
        return "```python\nimport os\n\nVALUE = 2\n```"

    monkeypatch.setattr(backend, "_call_openai", fake_call)
    out = asyncio.run(backend.reconcile(_request()))
    assert out == "import os\n\nVALUE = 2"


def test_openai_reconciler_renders_prompts(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    backend = OpenAIReconciler(_llm())

    seen: list[list[dict[str, str]]] = []

    async def fake_call(messages):
        seen.append(messages)
        return "import os\n\nVALUE = 2\n"

    # Uses structured path by default; mock it.
    monkeypatch.setattr(backend, "_call_openai_structured", fake_call)

    asyncio.run(backend.reconcile(_request()))
    asyncio.run(backend.reconcile(_request(), extra_error_context=["output was empty"]))

    assert len(seen) == 2
    system = seen[0][0]["content"]
    user = seen[0][1]["content"]
    assert seen[0][0]["role"] == "system"
    assert seen[0][1]["role"] == "user"

    assert "src/app.py" in system
    assert "Return only the final code" in system
    assert "// ... existing code ..." in system
    assert "VALUE = 1" in user
    assert "VALUE = 2  # NEW: bump" in user
    assert "(none)" in user
    assert "{{" not in system + user

    assert "- output was empty" in seen[1][1]["content"]


def test_openai_reconciler_uses_prompt_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    sys_p = tmp_path / "sys.md"
    sys_p.write_text("custom system for {{file_path}}", encoding="utf-8")
    backend = OpenAIReconciler(
        _llm(), PromptsConfig(reconcile_system=str(sys_p), reconcile_user="")
    )

    seen: list[list[dict[str, str]]] = []

    async def fake_call(messages):
        seen.append(messages)
        return "x"

    monkeypatch.setattr(backend, "_call_openai_structured", fake_call)
    asyncio.run(backend.reconcile(_request()))
    assert seen[0][0]["content"] == "custom system for src/app.py\n"
    assert "# Original file" in seen[0][1]["content"]


def test_openai_reconciler_errors_when_package_missing(monkeypatch) -> None:
    """If openai SDK is not installed, a clear HunkwiseConfigError is raised."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")

    original = sys.modules.get("openai")
    sys.modules["openai"] = None  # type: ignore[assignment]

    try:
        with pytest.raises(HunkwiseConfigError, match="'openai' package is required"):
            OpenAIReconciler(_llm())
    finally:
        if original is not None:
            sys.modules["openai"] = original
        else:
            sys.modules.pop("openai", None)


def test_openai_reconciler_errors_when_api_key_missing(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(HunkwiseConfigError) as ei:
        OpenAIReconciler(_llm())
    assert "Missing API key" in str(ei.value)


# -- Structured output tests --


def test_openai_reconciler_supports_structured_output(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    assert OpenAIReconciler(_llm()).supports_structured_output is True


def test_openai_call_structured_sends_response_format(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    backend = OpenAIReconciler(_llm())

    captured_kwargs: list[dict] = []
    monkeypatch.setattr(
        backend, "_client", _fake_client('{"code": "VALUE = 2\\n"}', captured_kwargs)
    )

    messages = [{"role": "user", "content": "merge"}]
    result = asyncio.run(backend._call_openai_structured(messages))

    assert result == "VALUE = 2\n"
    assert len(captured_kwargs) == 1
    assert captured_kwargs[0]["model"] == "gpt-test"
    rf = captured_kwargs[0]["response_format"]
    assert rf["type"] == "json_schema"
    assert rf["json_schema"]["name"] == "merged_file"
    schema = rf["json_schema"]["schema"]
    assert schema["required"] == ["code"]
    assert schema["additionalProperties"] is False


@pytest.mark.parametrize("content", ["this is not json", '{"other": 1}', '{"code": 3}', "[]"])
def test_openai_structured_unusable_output_raises(monkeypatch, content: str) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    backend = OpenAIReconciler(_llm())
    monkeypatch.setattr(backend, "_client", _fake_client(content))

    with pytest.raises(HunkwiseReconcileError):
        asyncio.run(backend._call_openai_structured([{"role": "user", "content": "hi"}]))
