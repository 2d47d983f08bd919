from __future__ import annotations

from typing import TYPE_CHECKING

from hunkwise.errors import HunkwiseConfigError
from hunkwise.reconcile.base import Reconciler, ReconcileRequest, ReconcileResult

if TYPE_CHECKING:  # pragma: no cover
    from hunkwise.config import LLMConfig, PromptsConfig


def build_reconciler(llm: LLMConfig, prompts: PromptsConfig | None = None) -> Reconciler:
    """Construct the reconciler for `llm.provider` (SDKs are imported lazily)."""

    if llm.provider == "openai":
        from hunkwise.reconcile.openai_backend import OpenAIReconciler

        return OpenAIReconciler(llm, prompts)
    if llm.provider == "anthropic":
        from hunkwise.reconcile.anthropic_backend import AnthropicReconciler

        return AnthropicReconciler(llm, prompts)
    raise HunkwiseConfigError(f"Unsupported llm.provider: {llm.provider!r}")


__all__ = ["ReconcileRequest", "ReconcileResult", "Reconciler", "build_reconciler"]
