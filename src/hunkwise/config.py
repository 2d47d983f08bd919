"""Project configuration loading for Hunkwise.

Only the CLI and the AI reconciliation layer are configurable; the diff engine
and hunk parser take no settings. This module reads `hunkwise.toml` and
performs light validation.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from hunkwise.errors import HunkwiseConfigError

CONFIG_FILENAME = "hunkwise.toml"

_PROVIDERS = ("openai", "anthropic")
_DEFAULT_MODELS = {"openai": "gpt-5.2", "anthropic": "claude-sonnet-4-5"}
_DEFAULT_KEY_ENVS = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    model: str
    api_key_env: str


@dataclass(frozen=True)
class MergeConfig:
    max_attempts: int
    reconcile: bool


@dataclass(frozen=True)
class PromptsConfig:
    reconcile_system: str
    reconcile_user: str


@dataclass(frozen=True)
class HunkwiseConfig:
    version: int
    llm: LLMConfig
    merge: MergeConfig
    prompts: PromptsConfig


def default_config() -> HunkwiseConfig:
    """Configuration used when no hunkwise.toml exists."""
    return HunkwiseConfig(
        version=1,
        llm=LLMConfig(
            provider="openai",
            model=_DEFAULT_MODELS["openai"],
            api_key_env=_DEFAULT_KEY_ENVS["openai"],
        ),
        merge=MergeConfig(max_attempts=2, reconcile=True),
        prompts=PromptsConfig(reconcile_system="", reconcile_user=""),
    )


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `hunkwise.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / CONFIG_FILENAME).is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise HunkwiseConfigError(
        f"Could not find {CONFIG_FILENAME} by walking upward from start path."
    )


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise HunkwiseConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise HunkwiseConfigError(f"Expected {name} to be a boolean.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise HunkwiseConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise HunkwiseConfigError(f"Expected {name} to be a string.")
    return value


def _resolve_prompt_path(root: Path, value: str) -> str:
    if not value:
        return ""
    p = Path(value)
    if not p.is_absolute():
        p = root / p
    if not p.is_file():
        raise HunkwiseConfigError(f"Prompt override not found: {p}")
    return str(p)


def load_config(
    *, root: Path | None = None, config_path: Path | None = None
) -> HunkwiseConfig:
    """Load and validate `hunkwise.toml`.

    If neither `root` nor `config_path` are provided, the project root is
    discovered by walking upward from the current working directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / CONFIG_FILENAME
    elif root is None:
        root = config_path.parent

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise HunkwiseConfigError(f"Missing {CONFIG_FILENAME} at: {config_path}") from e
    except OSError as e:
        raise HunkwiseConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise HunkwiseConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise HunkwiseConfigError(f"Invalid TOML in {config_path}: {e}") from e

    version = data.get("version", None)
    if version is None:
        raise HunkwiseConfigError(f"Missing required `version = 1` in {CONFIG_FILENAME}.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise HunkwiseConfigError(f"Unsupported config version: {version_i} (expected 1).")

    llm_tbl = _as_table(data.get("llm"), name="llm")
    merge_tbl = _as_table(data.get("merge"), name="merge")
    prompts_tbl = _as_table(data.get("prompts"), name="prompts")

    if "provider" in llm_tbl:
        provider = _as_str(llm_tbl["provider"], name="llm.provider")
    else:
        provider = "openai"
    if provider not in _PROVIDERS:
        raise HunkwiseConfigError(
            f"Unsupported llm.provider: {provider!r} (expected one of {', '.join(_PROVIDERS)})."
        )

    if "model" in llm_tbl:
        model = _as_str(llm_tbl["model"], name="llm.model")
    else:
        model = _DEFAULT_MODELS[provider]

    if "api_key_env" in llm_tbl:
        api_key_env = _as_str(llm_tbl["api_key_env"], name="llm.api_key_env")
    else:
        api_key_env = _DEFAULT_KEY_ENVS[provider]

    if "max_attempts" in merge_tbl:
        max_attempts = _as_int(merge_tbl["max_attempts"], name="merge.max_attempts")
    else:
        max_attempts = 2

    if "reconcile" in merge_tbl:
        reconcile = _as_bool(merge_tbl["reconcile"], name="merge.reconcile")
    else:
        reconcile = True

    if "reconcile_system" in prompts_tbl:
        reconcile_system = _as_str(
            prompts_tbl["reconcile_system"], name="prompts.reconcile_system"
        )
    else:
        reconcile_system = ""

    if "reconcile_user" in prompts_tbl:
        reconcile_user = _as_str(prompts_tbl["reconcile_user"], name="prompts.reconcile_user")
    else:
        reconcile_user = ""

    # Validation
    if not model.strip():
        raise HunkwiseConfigError("Invalid config: llm.model must not be empty.")

    if max_attempts < 1:
        raise HunkwiseConfigError("Invalid config: merge.max_attempts must be >= 1.")

    return HunkwiseConfig(
        version=version_i,
        llm=LLMConfig(provider=provider, model=model, api_key_env=api_key_env),
        merge=MergeConfig(max_attempts=max_attempts, reconcile=reconcile),
        prompts=PromptsConfig(
            reconcile_system=_resolve_prompt_path(root, reconcile_system),
            reconcile_user=_resolve_prompt_path(root, reconcile_user),
        ),
    )
