"""
Lightweight environment variable loader for local development.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def _parse_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def load_env_if_present(candidate_paths: Iterable[Path]) -> Optional[Path]:
    """
    Load key=value pairs from the first .env-style file that exists.

    Variables already set in the environment are never overwritten.

    Returns:
        The path that was loaded, or None.
    """
    for env_path in candidate_paths:
        if not env_path.exists() or not env_path.is_file():
            continue
        try:
            lines = env_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            # Explicit environment variables take precedence anyway.
            logger.debug("skipping unreadable env file %s: %s", env_path, exc)
            continue
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            if key and key not in os.environ:
                os.environ[key] = _parse_value(value)
        return env_path
    return None


def load_default_env() -> Optional[Path]:
    """Load from common locations: cwd/.env, then the project root .env."""
    cwd = Path.cwd()
    default_candidates = [
        cwd / ".env",
        Path(__file__).resolve().parents[2] / ".env",
    ]
    return load_env_if_present(default_candidates)


def first_env(*names: str) -> Optional[str]:
    """Value of the first of ``names`` that is set and non-empty."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


__all__ = ["load_default_env", "load_env_if_present", "first_env"]
