"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import Final

from .errors import ConfigurationError

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def _read(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def optional_int_env(name: str, default: int) -> int:
    """Return an integer environment variable, falling back to ``default`` when unset."""

    value = _read(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be an integer, got {value!r}", variable=name
        ) from exc


def optional_bool_env(name: str, *, default: bool = False) -> bool:
    value = _read(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {value!r}", variable=name)
