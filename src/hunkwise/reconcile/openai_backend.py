from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

from hunkwise.config import LLMConfig, PromptsConfig
from hunkwise.errors import HunkwiseConfigError, HunkwiseReconcileError
from hunkwise.reconcile.base import Reconciler, ReconcileRequest
from hunkwise.reconcile.shared import load_prompt, render_prompts, strip_markdown_fences

logger = logging.getLogger("hunkwise.reconcile.openai")

_MAX_API_RETRIES = 4
_BASE_BACKOFF_S = 1.0


def _is_retryable(exc: BaseException) -> bool:
    """Return True for transient API errors worth retrying."""
    # openai.RateLimitError, openai.APITimeoutError, openai.APIConnectionError,
    # and 5xx APIStatusError are retryable.
    cls_name = type(exc).__name__
    if cls_name in ("RateLimitError", "APITimeoutError", "APIConnectionError"):
        return True
    if cls_name in ("APIStatusError", "InternalServerError"):
        status = getattr(exc, "status_code", 0)
        return int(status) >= 500
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    return False


_OPENAI_FILE_RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "merged_file",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "code": {"type": "string"},
            },
            "required": ["code"],
            "additionalProperties": False,
        },
    },
}


class OpenAIReconciler(Reconciler):
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
            from openai import AsyncOpenAI
        except ImportError as e:
            raise HunkwiseConfigError(
                "The 'openai' package is required for provider='openai'. "
                "Install it with: pip install openai"
            ) from e

        self._client: Any = AsyncOpenAI(api_key=api_key)

        system_override = prompts.reconcile_system if prompts else None
        user_override = prompts.reconcile_user if prompts else None
        self._system = load_prompt("reconcile_system.md", system_override)
        self._user = load_prompt("reconcile_user.md", user_override)

    async def _create(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        """Call the chat completions API with retry and exponential backoff."""
        last_exc: BaseException | None = None
        for attempt in range(_MAX_API_RETRIES):
            try:
                resp: Any = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    **kwargs,
                )
                content = resp.choices[0].message.content
                if not isinstance(content, str):
                    raise HunkwiseReconcileError("OpenAI returned empty content.")
                return content
            except Exception as exc:
                last_exc = exc
                if not _is_retryable(exc) or attempt >= _MAX_API_RETRIES - 1:
                    raise
                delay = _BASE_BACKOFF_S * (2**attempt)
                logger.warning(
                    "OpenAI API error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    _MAX_API_RETRIES,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _call_openai(self, messages: list[dict[str, str]]) -> str:
        return await self._create(messages)

    async def _call_openai_structured(self, messages: list[dict[str, str]]) -> str:
        """Structured output: the model returns {"code": "..."}."""
        content = await self._create(messages, response_format=_OPENAI_FILE_RESPONSE_FORMAT)
        try:
            parsed = json.loads(content)
            code = parsed["code"]
        except (ValueError, KeyError, TypeError) as e:
            raise HunkwiseReconcileError(f"OpenAI structured output was not usable: {e}") from e
        if not isinstance(code, str):
            raise HunkwiseReconcileError("OpenAI structured output field 'code' is not a string.")
        return code

    def _render_messages(
        self, request: ReconcileRequest, *, extra_error_context: list[str] | None
    ) -> list[dict[str, str]]:
        system, user = render_prompts(
            self._system,
            self._user,
            file_path=request.file_path,
            original_code=request.original_code,
            proposed_code=request.proposed_code,
            extra_error_context=extra_error_context,
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    async def reconcile(
        self, request: ReconcileRequest, *, extra_error_context: list[str] | None = None
    ) -> str:
        messages = self._render_messages(request, extra_error_context=extra_error_context)
        if self.supports_structured_output:
            return await self._call_openai_structured(messages)
        raw = await self._call_openai(messages)
        return strip_markdown_fences(raw)
