from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from hunkwise.config import LLMConfig, PromptsConfig
from hunkwise.errors import HunkwiseConfigError, HunkwiseReconcileError
from hunkwise.reconcile.base import Reconciler, ReconcileRequest
from hunkwise.reconcile.shared import load_prompt, render_prompts, strip_markdown_fences

logger = logging.getLogger("hunkwise.reconcile.anthropic")

_MAX_API_RETRIES = 4
_BASE_BACKOFF_S = 1.0
_MAX_TOKENS = 16384


def _is_retryable(exc: BaseException) -> bool:
    """Return True for transient Anthropic API errors worth retrying."""
    cls_name = type(exc).__name__
    if cls_name in ("RateLimitError", "APITimeoutError", "APIConnectionError", "OverloadedError"):
        return True
    if cls_name in ("APIStatusError", "InternalServerError"):
        status = getattr(exc, "status_code", 0)
        return int(status) >= 500
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    return False


_ANTHROPIC_WRITE_FILE_TOOL: dict[str, Any] = {
    "name": "write_file",
    "description": "Write the complete merged file content.",
    "input_schema": {
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": "The complete file content after applying the change.",
            },
        },
        "required": ["code"],
    },
}


class AnthropicReconciler(Reconciler):
    """Reconciliation backend using the Anthropic Messages API."""

    @property
    def supports_structured_output(self) -> bool:
        return True

    def __init__(self, llm: LLMConfig, prompts: PromptsConfig | None = None) -> None:
        api_key = (os.environ.get(llm.api_key_env) or "").strip()
        if not api_key:
            raise HunkwiseConfigError(
                f"Missing API key: {llm.api_key_env}. "
                f"Set it in the environment or add it to <project_root>/.env."
            )
        self._model = llm.model

        try:
            from anthropic import AsyncAnthropic  # type: ignore[import-untyped]
        except ImportError as e:
            raise HunkwiseConfigError(
                "The 'anthropic' package is required for provider='anthropic'. "
                "Install it with: pip install anthropic"
            ) from e

        self._client: Any = AsyncAnthropic(api_key=api_key)

        self._system = load_prompt(
            "reconcile_system.md", prompts.reconcile_system if prompts else None
        )
        self._user = load_prompt("reconcile_user.md", prompts.reconcile_user if prompts else None)

    async def _create(self, system: str, messages: list[dict[str, str]], **kwargs: Any) -> Any:
        """Call the Messages API with retry and exponential backoff."""
        last_exc: BaseException | None = None
        for attempt in range(_MAX_API_RETRIES):
            try:
                return await self._client.messages.create(
                    model=self._model,
                    max_tokens=_MAX_TOKENS,
                    system=system,
                    messages=messages,
                    **kwargs,
                )
            except Exception as exc:
                last_exc = exc
                if not _is_retryable(exc) or attempt >= _MAX_API_RETRIES - 1:
                    raise
                delay = _BASE_BACKOFF_S * (2**attempt)
                logger.warning(
                    "Anthropic API error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    _MAX_API_RETRIES,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _call_anthropic(self, system: str, messages: list[dict[str, str]]) -> str:
        resp: Any = await self._create(system, messages)
        content = resp.content
        if not content or not hasattr(content[0], "text"):
            raise HunkwiseReconcileError("Anthropic returned empty content.")
        return str(content[0].text)

    async def _call_anthropic_structured(self, system: str, messages: list[dict[str, str]]) -> str:
        """Force a write_file tool call and return its `code` argument."""
        resp: Any = await self._create(
            system,
            messages,
            tools=[_ANTHROPIC_WRITE_FILE_TOOL],
            tool_choice={"type": "tool", "name": "write_file"},
        )
        for block in resp.content:
            if getattr(block, "type", None) == "tool_use" and block.name == "write_file":
                code = block.input.get("code")
                if not isinstance(code, str):
                    raise HunkwiseReconcileError("write_file tool call is missing 'code'.")
                return code
        raise HunkwiseReconcileError(
            "Anthropic response did not contain a write_file tool_use block."
        )

    def _render_messages(
        self, request: ReconcileRequest, *, extra_error_context: list[str] | None
    ) -> tuple[str, list[dict[str, str]]]:
        """Return (system_prompt, messages) for the Anthropic Messages API."""
        system, user = render_prompts(
            self._system,
            self._user,
            file_path=request.file_path,
            original_code=request.original_code,
            proposed_code=request.proposed_code,
            extra_error_context=extra_error_context,
        )
        return system, [{"role": "user", "content": user}]

    async def reconcile(
        self,
        request: ReconcileRequest,
        *,
        extra_error_context: list[str] | None = None,
    ) -> str:
        system, messages = self._render_messages(request, extra_error_context=extra_error_context)
        if self.supports_structured_output:
            return await self._call_anthropic_structured(system, messages)
        raw = await self._call_anthropic(system, messages)
        return strip_markdown_fences(raw)
