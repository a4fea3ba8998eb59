from __future__ import annotations

import pytest

from polaris.config import ConfigurationError, optional_bool_env, optional_int_env


def test_optional_int_env_falls_back_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXAMPLE_INT", raising=False)

    assert optional_int_env("EXAMPLE_INT", 7) == 7


def test_optional_int_env_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", "   ")

    assert optional_int_env("EXAMPLE_INT", 7) == 7


def test_optional_int_env_parses_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", " 42 ")

    assert optional_int_env("EXAMPLE_INT", 7) == 42


def test_optional_int_env_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_INT", "many")

    with pytest.raises(ConfigurationError, match="EXAMPLE_INT must be an integer") as exc:
        optional_int_env("EXAMPLE_INT", 7)

    assert exc.value.variable == "EXAMPLE_INT"


@pytest.mark.parametrize(
    ("value", "expected"), [("1", True), ("Yes", True), ("off", False), ("FALSE", False)]
)
def test_optional_bool_env_parses_flags(
    monkeypatch: pytest.MonkeyPatch, value: str, expected: bool
) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", value)

    assert optional_bool_env("EXAMPLE_FLAG") is expected


def test_optional_bool_env_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_FLAG", "sometimes")

    with pytest.raises(ConfigurationError, match="boolean flag"):
        optional_bool_env("EXAMPLE_FLAG", default=True)
