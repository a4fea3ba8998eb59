"""Pydantic validation reported through registry errors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from polaris.domain.errors import ValidationError


def parse_body[TModel: BaseModel](model: type[TModel], body: Mapping[str, Any]) -> TModel:
    """Validate ``body`` into ``model``, reporting failures as registry validation errors."""

    try:
        return model.model_validate(dict(body))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {problems}") from exc
