from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from hunkwise.reconcile.shared import strip_markdown_fences

logger = logging.getLogger("hunkwise.reconcile")


@dataclass(frozen=True, slots=True)
class ReconcileRequest:
    file_path: str
    original_code: str
    proposed_code: str


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    code: str
    attempts: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_reconciled(code: str, request: ReconcileRequest) -> list[str]:
    """Cheap sanity checks on a reconciled body (empty list means ok)."""

    errors: list[str] = []
    if request.original_code.strip() and not code.strip():
        errors.append("returned an empty file for a non-empty original")
    if code.lstrip().startswith("```"):
        errors.append("output is still wrapped in a markdown fence")
    if "<<<<<<< SEARCH" in code or ">>>>>>> REPLACE" in code:
        errors.append("output contains SEARCH/REPLACE markers")
    return errors


class Reconciler(ABC):
    @property
    def supports_structured_output(self) -> bool:
        """Whether this backend uses provider-native structured output."""
        return False

    @abstractmethod
    async def reconcile(
        self, request: ReconcileRequest, *, extra_error_context: list[str] | None = None
    ) -> str:
        """Return the complete file with the proposed change applied."""

    async def reconcile_with_retry(
        self, request: ReconcileRequest, *, max_attempts: int = 2
    ) -> ReconcileResult:
        """Reconcile, validate, and retry with error context.

        Never raises for provider or validation failures: the result carries
        the original text unchanged plus the error, so a failed AI call can not
        corrupt the user's file.
        """

        attempts = 0
        extra_ctx: list[str] | None = None
        errors: list[str] = []

        while attempts < max_attempts:
            attempts += 1
            try:
                code = strip_markdown_fences(
                    await self.reconcile(request, extra_error_context=extra_ctx)
                )
            except Exception as exc:  # noqa: BLE001 - fail safe to the original text
                logger.warning(
                    "Reconcile failed for %s (attempt %d/%d): %s: %s",
                    request.file_path,
                    attempts,
                    max_attempts,
                    type(exc).__name__,
                    exc,
                )
                return ReconcileResult(
                    code=request.original_code,
                    attempts=attempts,
                    error=f"{type(exc).__name__}: {exc}",
                )

            errors = validate_reconciled(code, request)
            if not errors:
                return ReconcileResult(code=code, attempts=attempts)

            logger.debug("Reconciled output for %s rejected: %s", request.file_path, errors)
            extra_ctx = (extra_ctx or []) + [f"previous output errors: {e}" for e in errors]

        logger.warning(
            "Reconcile for %s gave unusable output after %d attempt(s); keeping original",
            request.file_path,
            attempts,
        )
        return ReconcileResult(
            code=request.original_code, attempts=attempts, error="; ".join(errors)
        )
