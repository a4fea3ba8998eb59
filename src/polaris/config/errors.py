"""Errors raised while reading Polaris settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but unusable."""

    def __init__(self, message: str, *, variable: str | None = None) -> None:
        super().__init__(message)
        self.variable = variable
