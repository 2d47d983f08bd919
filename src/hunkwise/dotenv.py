from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger("hunkwise.dotenv")


def load_dotenv(path: Path) -> dict[str, str]:
    """Parse a tiny subset of .env files (KEY=VALUE, no interpolation).

    Provider API keys are the only values Hunkwise reads from here.
    """

    out: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] in ("'", '"') and value[-1] == value[0]:
            value = value[1:-1]
        out[key] = value
    return out


def load_dotenv_into_environ(path: Path) -> bool:
    """Load `path` into `os.environ`, without overriding existing keys.

    Returns True if the file existed and was parsed, otherwise False.
    """

    if not path.is_file():
        return False

    try:
        vals = load_dotenv(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return False

    for k, v in vals.items():
        # Do not override the process environment (including empty-but-present keys).
        os.environ.setdefault(k, v)
    logger.debug("Loaded %d key(s) from %s", len(vals), path)
    return True
